"""Tests for the placement portfolio balance pass."""

import pytest

from bid_recommender.portfolio import PortfolioBalancer
from bid_recommender.rules import Action, RuleResult

from conftest import make_placement


def proposal(placement, current, recommended, campaign_id="C2"):
    entity = make_placement(campaign_id=campaign_id, placement=placement, adjustment=current)
    return RuleResult(
        rule_name='PLACEMENT_ADJUSTMENT_RULE',
        entity=entity,
        action=Action.INCREASE if recommended > current else Action.DECREASE,
        current_value=current,
        recommended_value=recommended,
        weighted_acos=0.10,
        target_acos=0.30,
        reason="Placement ACOS (10.0%) is below target range (27.0%-33.0%)",
    )


@pytest.fixture
def balancer(settings):
    return PortfolioBalancer(settings)


class TestPortfolioBalancer:
    """At least one placement per campaign stays at 0% when all would be positive."""

    def test_lowest_forced_to_zero(self, balancer):
        proposals = [
            proposal("Top of Search", 20, 70),
            proposal("Product Pages", 40, 90),
            proposal("Rest of Search", 60, 110),
        ]
        balanced, campaigns = balancer.balance(proposals)

        assert campaigns == {"C2"}
        by_label = {p.entity.targeting: p for p in balanced}
        assert by_label["Top of Search"].recommended_value == 0.0
        assert by_label["Top of Search"].action == Action.DECREASE
        assert "Portfolio balance" in by_label["Top of Search"].reason
        assert by_label["Top of Search"].metadata["pre_balance_value"] == 70
        assert by_label["Product Pages"].recommended_value == 90
        assert by_label["Rest of Search"].recommended_value == 110

    def test_ties_broken_by_label(self, balancer):
        proposals = [
            proposal("Top of Search", 20, 50),
            proposal("Product Pages", 20, 50),
            proposal("Rest of Search", 20, 50),
        ]
        balanced, _ = balancer.balance(proposals)
        zeroed = [p.entity.targeting for p in balanced if p.recommended_value == 0]
        assert zeroed == ["Product Pages"]

    def test_existing_zero_left_alone(self, balancer):
        proposals = [
            proposal("Top of Search", 20, 70),
            proposal("Product Pages", 40, 0),
            proposal("Rest of Search", 60, 110),
        ]
        balanced, campaigns = balancer.balance(proposals)
        assert campaigns == set()
        assert balanced == proposals

    def test_fewer_than_three_not_balanced(self, balancer):
        proposals = [proposal("Top of Search", 20, 70), proposal("Product Pages", 40, 90)]
        balanced, campaigns = balancer.balance(proposals)
        assert campaigns == set()
        assert all(p.recommended_value > 0 for p in balanced)

    def test_forced_no_op_dropped(self, balancer):
        proposals = [
            proposal("Top of Search", 0, 30),
            proposal("Product Pages", 40, 90),
            proposal("Rest of Search", 60, 110),
        ]
        balanced, campaigns = balancer.balance(proposals)
        assert campaigns == {"C2"}
        assert [p.entity.targeting for p in balanced] == ["Product Pages", "Rest of Search"]

    def test_campaigns_balanced_independently(self, balancer):
        proposals = [
            proposal("Top of Search", 20, 70, campaign_id="C2"),
            proposal("Product Pages", 40, 90, campaign_id="C2"),
            proposal("Rest of Search", 60, 110, campaign_id="C2"),
            proposal("Top of Search", 20, 70, campaign_id="C3"),
            proposal("Product Pages", 40, 0, campaign_id="C3"),
            proposal("Rest of Search", 60, 110, campaign_id="C3"),
        ]
        balanced, campaigns = balancer.balance(proposals)
        assert campaigns == {"C2"}
        assert len(balanced) == 6
        for campaign_id in ("C2", "C3"):
            members = [p for p in balanced if p.entity.campaign_id == campaign_id]
            assert any(p.recommended_value == 0 for p in members)
