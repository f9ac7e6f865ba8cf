"""
Re-entry Control Module

Enforces the cooldown between bid changes and decides where the T0 window
(performance since the last bid change) starts.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from .entities import BidChangeRecord, EntityKind


@dataclass
class ReEntryControlResult:
    """Result of a cooldown check"""
    allowed: bool
    reason: str
    days_since_change: int
    days_until_eligible: int = 0
    last_change_date: Optional[date] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class ReEntryController:
    """
    Cooldown gate for keyword bids and placement adjustments

    An entity is eligible for a new recommendation only when at least
    `cooldown_days` have passed since its last change. Entities that were
    never changed count as `never_changed_days` old.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize Re-entry Controller

        Args:
            config: Configuration dictionary
        """
        self.config = config
        self.logger = logging.getLogger(__name__)

        self.cooldown_days = config.get('cooldown_days', 14)
        self.never_changed_days = config.get('never_changed_days', 999)

    def days_since_change(self, last_change_date: Optional[date], today: date) -> int:
        if last_change_date is None:
            return self.never_changed_days
        days = (today - last_change_date).days
        if days < 0:
            self.logger.warning(f"Last change date {last_change_date} is after {today}, treating as changed today")
            return 0
        return days

    def check(self, last_change_date: Optional[date], today: date) -> ReEntryControlResult:
        """
        Determine whether an entity may receive a new recommendation

        Args:
            last_change_date: Date of the most recent bid change, None if never changed
            today: Reference date of the run

        Returns:
            ReEntryControlResult with decision and reasoning
        """
        days = self.days_since_change(last_change_date, today)

        if days < self.cooldown_days:
            return ReEntryControlResult(
                allowed=False,
                reason=f"In cooldown period ({days}/{self.cooldown_days} days)",
                days_since_change=days,
                days_until_eligible=self.cooldown_days - days,
                last_change_date=last_change_date,
            )

        return ReEntryControlResult(
            allowed=True,
            reason='Never changed' if last_change_date is None else f"Last change {days} days ago",
            days_since_change=days,
            last_change_date=last_change_date,
        )


class BidChangeTracker:
    """
    Utility class for reading and deriving bid change history

    Decides which change resets the T0 window and derives change records
    from consecutive daily bid snapshots.
    """

    def __init__(self, config: Dict[str, Any]):
        self.logger = logging.getLogger(__name__)
        self.policy = config.get('t0_reset_policy', 'every_change')
        self.materiality_threshold = config.get('t0_materiality_threshold', 0.05)

    def last_change_date(self, history: Iterable[BidChangeRecord]) -> Optional[date]:
        dates = [record.date_adjusted for record in history]
        return max(dates) if dates else None

    def is_material(self, record: BidChangeRecord) -> bool:
        relative = record.relative_change
        # A change from an unknown or zero bid always counts
        if relative is None:
            return True
        return relative >= self.materiality_threshold

    def t0_start(self, history: Iterable[BidChangeRecord]) -> Optional[date]:
        """
        Start date of the T0 window under the configured reset policy

        Args:
            history: Bid change records of one entity

        Returns:
            Date of the most recent change that resets T0, None if none does
        """
        history = list(history)
        if self.policy == 'material_change':
            history = [record for record in history if self.is_material(record)]
        return self.last_change_date(history)

    def detect_changes(self, daily_bids: List[Dict[str, Any]],
                       known_dates: Optional[Iterable[date]] = None) -> List[BidChangeRecord]:
        """
        Derive change records from consecutive daily bids of one keyword

        Args:
            daily_bids: Rows with campaign_id, ad_group_id, targeting, report_date, bid
            known_dates: Dates already present in the change history

        Returns:
            New change records, oldest first
        """
        known = set(known_dates or [])
        rows = sorted(daily_bids, key=lambda row: row['report_date'])
        changes = []

        previous = None
        for row in rows:
            bid = row.get('bid')
            if bid is None:
                continue
            bid = float(bid)
            if previous is not None and bid != previous and row['report_date'] not in known:
                record = BidChangeRecord(
                    campaign_id=str(row['campaign_id']),
                    ad_group_id=str(row['ad_group_id']) if row.get('ad_group_id') is not None else None,
                    targeting=row['targeting'],
                    kind=EntityKind.KEYWORD,
                    date_adjusted=row['report_date'],
                    previous_value=previous,
                    new_value=bid,
                )
                changes.append(record)
                self.logger.debug(
                    f"Bid change: {record.targeting} {previous:.2f} -> {bid:.2f} on {record.date_adjusted}"
                )
            previous = bid

        return changes
