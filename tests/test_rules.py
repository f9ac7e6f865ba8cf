"""Tests for the keyword bid and placement adjustment rules."""

import logging

import pytest

from bid_recommender.entities import WindowMetrics
from bid_recommender.rules import Action, KeywordBidRule, PlacementAdjustmentRule

from conftest import make_keyword, make_placement

CONVERTING = WindowMetrics(clicks=200, cost=80.0, sales=200.0, orders=10)


@pytest.fixture
def keyword_rule(settings):
    return KeywordBidRule(settings)


@pytest.fixture
def placement_rule(settings):
    return PlacementAdjustmentRule(settings)


class TestKeywordBidRule:
    """Keyword bids move by bid x target / weighted ACOS within caps and bounds."""

    def test_decrease_to_formula_bid(self, keyword_rule):
        result = keyword_rule.evaluate(make_keyword(bid=1.00), 0.40, 0.20, CONVERTING)
        assert result.action == Action.DECREASE
        assert result.recommended_value == 0.50
        assert "40.0%" in result.reason and "20.0%" in result.reason

    def test_increase_to_formula_bid(self, keyword_rule):
        result = keyword_rule.evaluate(make_keyword(bid=1.00), 0.16, 0.20, CONVERTING)
        assert result.action == Action.INCREASE
        assert result.recommended_value == 1.25

    def test_increase_is_capped(self, keyword_rule):
        result = keyword_rule.evaluate(make_keyword(bid=1.00), 0.05, 0.20, CONVERTING)
        assert result.recommended_value == 1.50
        assert "capped" in result.reason

    def test_decrease_is_capped(self, keyword_rule):
        result = keyword_rule.evaluate(make_keyword(bid=1.00), 1.00, 0.20, CONVERTING)
        assert result.recommended_value == 0.50

    def test_incremental_profile(self, settings):
        rule = KeywordBidRule({**settings, 'keyword_max_increase': 0.25, 'keyword_max_decrease': 0.25})
        down = rule.evaluate(make_keyword(bid=1.00), 0.40, 0.20, CONVERTING)
        up = rule.evaluate(make_keyword(bid=1.00), 0.05, 0.20, CONVERTING)
        assert down.recommended_value == 0.75
        assert up.recommended_value == 1.25

    @pytest.mark.parametrize("weighted", [0.171, 0.20, 0.229])
    def test_inside_band_gives_nothing(self, keyword_rule, weighted):
        assert keyword_rule.evaluate(make_keyword(bid=1.00), weighted, 0.20, CONVERTING) is None

    def test_just_outside_band(self, keyword_rule):
        result = keyword_rule.evaluate(make_keyword(bid=1.00), 0.24, 0.20, CONVERTING)
        assert result.action == Action.DECREASE
        assert result.recommended_value == 0.83

    def test_undecidable_gives_nothing(self, keyword_rule):
        assert keyword_rule.evaluate(make_keyword(bid=1.00), None, 0.20, CONVERTING) is None

    @pytest.mark.parametrize("bid", [None, 0.0])
    def test_missing_bid_gives_nothing(self, keyword_rule, bid):
        assert keyword_rule.evaluate(make_keyword(bid=bid), 0.40, 0.20, CONVERTING) is None

    def test_no_sales_high_clicks(self, keyword_rule):
        lifetime = WindowMetrics(clicks=150, cost=120.0, sales=0.0)
        result = keyword_rule.evaluate(make_keyword(bid=2.00), None, 0.20, lifetime)
        assert result.action == Action.DECREASE
        assert result.recommended_value == 1.40
        assert "No sales" in result.reason

    def test_no_sales_lower_tier(self, keyword_rule):
        lifetime = WindowMetrics(clicks=50, cost=40.0, sales=0.0)
        result = keyword_rule.evaluate(make_keyword(bid=2.00), None, 0.20, lifetime)
        assert result.recommended_value == 1.70

    def test_no_sales_below_threshold_waits(self, keyword_rule):
        lifetime = WindowMetrics(clicks=29, cost=20.0, sales=0.0)
        assert keyword_rule.evaluate(make_keyword(bid=2.00), None, 0.20, lifetime) is None

    def test_no_sales_cut_is_capped(self, settings):
        rule = KeywordBidRule({**settings, 'no_sales_max_reduction': 0.20})
        lifetime = WindowMetrics(clicks=500, cost=300.0, sales=0.0)
        result = rule.evaluate(make_keyword(bid=2.00), None, 0.20, lifetime)
        assert result.recommended_value == 1.60

    def test_absolute_floor(self, keyword_rule):
        result = keyword_rule.evaluate(make_keyword(bid=0.03), 0.90, 0.20, CONVERTING)
        assert result.recommended_value == 0.02

    def test_rounds_half_up_to_cents(self, keyword_rule):
        result = keyword_rule.evaluate(make_keyword(bid=0.05), 0.90, 0.20, CONVERTING)
        assert result.recommended_value == 0.03

    def test_floor_blocks_no_op(self, keyword_rule):
        assert keyword_rule.evaluate(make_keyword(bid=0.02), 0.90, 0.20, CONVERTING) is None

    def test_relative_floor_and_ceiling(self, settings):
        rule = KeywordBidRule({**settings, 'keyword_max_increase': 5.0, 'keyword_max_decrease': 0.95})
        down = rule.evaluate(make_keyword(bid=1.00), 5.00, 0.20, CONVERTING)
        up = rule.evaluate(make_keyword(bid=1.00), 0.01, 0.20, CONVERTING)
        assert down.recommended_value == 0.20
        assert up.recommended_value == 1.50

    def test_alternative_multiplier(self, settings):
        rule = KeywordBidRule({**settings, 'keyword_max_increase': 5.0, 'max_bid_multiplier': 2.0})
        result = rule.evaluate(make_keyword(bid=1.00), 0.05, 0.20, CONVERTING)
        assert result.recommended_value == 2.00

    @pytest.mark.parametrize("bid,weighted", [
        (0.37, 0.61), (1.13, 0.09), (3.33, 0.41), (0.07, 0.35), (12.5, 0.02),
    ])
    def test_bounds_always_hold(self, keyword_rule, bid, weighted):
        result = keyword_rule.evaluate(make_keyword(bid=bid), weighted, 0.20, CONVERTING)
        assert result is not None
        assert max(0.02, 0.20 * bid) - 1e-9 <= result.recommended_value <= 1.50 * bid + 1e-9
        assert round(result.recommended_value, 2) == result.recommended_value

    def test_no_sales_tiers(self, keyword_rule):
        assert keyword_rule.no_sales_reduction(1000) == 0.30
        assert keyword_rule.no_sales_reduction(100) == 0.30
        assert keyword_rule.no_sales_reduction(99) == 0.15
        assert keyword_rule.no_sales_reduction(10) == 0.0


class TestPlacementAdjustmentRule:
    """Placement adjustments move in percentage points, in steps of 5, within 0..900."""

    def test_high_acos_decreases(self, placement_rule):
        result = placement_rule.evaluate(make_placement(adjustment=50.0), 0.35, 0.20, CONVERTING)
        assert result.action == Action.DECREASE
        assert result.recommended_value == 30.0
        assert result.recommended_value % 5 == 0
        assert "exceeds target range" in result.reason

    def test_low_acos_increases(self, placement_rule):
        result = placement_rule.evaluate(make_placement(adjustment=50.0), 0.15, 0.20, CONVERTING)
        assert result.action == Action.INCREASE
        assert result.recommended_value == 65.0

    def test_step_is_capped(self, placement_rule):
        result = placement_rule.evaluate(make_placement(adjustment=100.0), 0.02, 0.20, CONVERTING)
        assert result.recommended_value == 150.0

    @pytest.mark.parametrize("acos", [0.185, 0.20, 0.215])
    def test_inside_relative_band(self, placement_rule, acos):
        assert placement_rule.evaluate(make_placement(adjustment=50.0), acos, 0.20, CONVERTING) is None

    def test_never_negative(self, placement_rule):
        result = placement_rule.evaluate(make_placement(adjustment=10.0), 0.80, 0.20, CONVERTING)
        assert result.recommended_value == 0.0

    def test_clamp_logs_warning(self, placement_rule, caplog):
        with caplog.at_level(logging.WARNING, logger='bid_recommender.rules'):
            placement_rule.evaluate(make_placement(adjustment=10.0), 0.80, 0.20, CONVERTING)
        assert any("clamped" in r.message and r.levelno == logging.WARNING for r in caplog.records)

    def test_never_above_maximum(self, placement_rule):
        result = placement_rule.evaluate(make_placement(adjustment=880.0), 0.05, 0.20, CONVERTING)
        assert result.recommended_value == 900.0

    def test_no_op_is_skipped(self, placement_rule):
        assert placement_rule.evaluate(make_placement(adjustment=0.0), 0.80, 0.20, CONVERTING) is None

    def test_no_sales_cuts_25_points(self, placement_rule):
        lifetime = WindowMetrics(clicks=60, cost=45.0, sales=0.0)
        result = placement_rule.evaluate(make_placement(adjustment=60.0), None, 0.20, lifetime)
        assert result.action == Action.DECREASE
        assert result.recommended_value == 35.0
        assert "No Sales" in result.reason

    def test_unknown_adjustment_treated_as_zero(self, placement_rule):
        result = placement_rule.evaluate(make_placement(adjustment=None), 0.10, 0.20, CONVERTING)
        assert result.current_value == 0.0
        assert result.recommended_value == 50.0

    @pytest.mark.parametrize("current,acos", [(0, 0.01), (35, 0.5), (455, 0.19), (900, 0.01), (5, 0.9)])
    def test_results_are_multiples_of_five(self, placement_rule, current, acos):
        result = placement_rule.evaluate(make_placement(adjustment=float(current)), acos, 0.30, CONVERTING)
        if result is not None:
            assert 0 <= result.recommended_value <= 900
            assert result.recommended_value % 5 == 0
