"""Tests for the cooldown gate and the T0 reset policy."""

from datetime import date, timedelta

import pytest

from bid_recommender.entities import BidChangeRecord, EntityKind
from bid_recommender.re_entry_control import BidChangeTracker, ReEntryController

from conftest import TODAY


def change(days_ago, previous, new):
    return BidChangeRecord(
        campaign_id="C1",
        ad_group_id="AG1",
        targeting="running shoes",
        kind=EntityKind.KEYWORD,
        date_adjusted=TODAY - timedelta(days=days_ago),
        previous_value=previous,
        new_value=new,
    )


class TestReEntryController:
    """Entities changed fewer than 14 days ago are not eligible."""

    @pytest.fixture
    def controller(self, settings):
        return ReEntryController(settings)

    def test_never_changed_is_eligible(self, controller):
        result = controller.check(None, TODAY)
        assert result.allowed
        assert result.days_since_change == 999

    def test_changed_ten_days_ago_blocked(self, controller):
        result = controller.check(TODAY - timedelta(days=10), TODAY)
        assert not result.allowed
        assert result.days_since_change == 10
        assert result.days_until_eligible == 4
        assert "cooldown" in result.reason

    def test_exactly_fourteen_days_allowed(self, controller):
        result = controller.check(TODAY - timedelta(days=14), TODAY)
        assert result.allowed

    def test_changed_today_blocked(self, controller):
        assert not controller.check(TODAY, TODAY).allowed

    def test_future_change_date_counts_as_today(self, controller):
        result = controller.check(TODAY + timedelta(days=3), TODAY)
        assert not result.allowed
        assert result.days_since_change == 0


class TestBidChangeTracker:
    """The T0 window starts at the last change, or the last material change."""

    def test_every_change_policy(self, settings):
        tracker = BidChangeTracker(settings)
        history = [change(40, 1.00, 0.70), change(5, 0.70, 0.71)]
        assert tracker.t0_start(history) == TODAY - timedelta(days=5)

    def test_material_change_policy_skips_small_moves(self, settings):
        tracker = BidChangeTracker({**settings, 't0_reset_policy': 'material_change',
                                    't0_materiality_threshold': 0.05})
        history = [change(40, 1.00, 0.70), change(5, 0.70, 0.71)]
        assert tracker.t0_start(history) == TODAY - timedelta(days=40)

    def test_material_change_without_previous_value(self, settings):
        tracker = BidChangeTracker({**settings, 't0_reset_policy': 'material_change'})
        assert tracker.t0_start([change(3, None, 0.50)]) == TODAY - timedelta(days=3)

    def test_no_history(self, settings):
        assert BidChangeTracker(settings).t0_start([]) is None

    def test_detect_changes_from_daily_bids(self, settings):
        tracker = BidChangeTracker(settings)
        rows = [
            {'campaign_id': 'C1', 'ad_group_id': 'AG1', 'targeting': 'shoes',
             'report_date': date(2025, 5, d), 'bid': bid}
            for d, bid in [(1, 0.50), (2, 0.50), (3, 0.60), (4, 0.60), (5, 0.45)]
        ]
        changes = tracker.detect_changes(rows)
        assert [(c.date_adjusted.day, c.previous_value, c.new_value) for c in changes] == [
            (3, 0.50, 0.60),
            (5, 0.60, 0.45),
        ]

    def test_detect_changes_skips_known_dates(self, settings):
        tracker = BidChangeTracker(settings)
        rows = [
            {'campaign_id': 'C1', 'ad_group_id': 'AG1', 'targeting': 'shoes',
             'report_date': date(2025, 5, d), 'bid': bid}
            for d, bid in [(1, 0.50), (2, 0.60), (3, 0.70)]
        ]
        changes = tracker.detect_changes(rows, known_dates=[date(2025, 5, 2)])
        assert [c.date_adjusted for c in changes] == [date(2025, 5, 3)]
