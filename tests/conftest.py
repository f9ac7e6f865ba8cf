"""Shared fixtures: an in-memory data source standing in for PostgreSQL."""

from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, List, Optional

import pytest

from bid_recommender.config import RecommenderConfig
from bid_recommender.efficiency import Weights
from bid_recommender.entities import BidChangeRecord, EntityKind, TargetingEntity
from bid_recommender.exceptions import DataSourceError, StoreWriteError
from bid_recommender.rule_engine import BidRecommendationEngine

TODAY = date(2025, 6, 1)


def make_keyword(campaign_id="C1", targeting="running shoes", bid=1.0, country="DE",
                 ad_group_id="AG1", match_type="exact", lifetime_cost=0.0):
    return TargetingEntity(
        country=country,
        campaign_id=campaign_id,
        ad_group_id=ad_group_id,
        targeting=targeting,
        kind=EntityKind.KEYWORD,
        match_type=match_type,
        campaign_name=f"Campaign {campaign_id}",
        ad_group_name=f"Ad group {ad_group_id}",
        current_value=bid,
        lifetime_cost=lifetime_cost,
    )


def make_placement(campaign_id="C2", placement="Top of Search", adjustment=50.0, country="DE",
                   lifetime_cost=0.0):
    return TargetingEntity(
        country=country,
        campaign_id=campaign_id,
        ad_group_id=None,
        targeting=placement,
        kind=EntityKind.PLACEMENT,
        campaign_name=f"Campaign {campaign_id}",
        current_value=adjustment,
        lifetime_cost=lifetime_cost,
    )


def day(days_ago, clicks=0, cost=0.0, sales=0.0, orders=0, today=TODAY):
    """One daily performance row"""
    return {
        'report_date': today - timedelta(days=days_ago),
        'clicks': clicks,
        'cost': cost,
        'sales': sales,
        'orders': orders,
    }


class FakeDataSource:
    """Implements the data source and store interface used by the engine"""

    def __init__(self):
        self.entities: Dict[str, List[TargetingEntity]] = defaultdict(list)
        self.daily: Dict[tuple, List[dict]] = defaultdict(list)
        self.weights: Dict[str, Weights] = {'ALL': Weights(t0=0.35, d30=0.25, d365=0.25, lifetime=0.15)}
        self.targets: Dict[str, Dict[str, float]] = defaultdict(dict)
        self.changes: Dict[tuple, List[BidChangeRecord]] = defaultdict(list)
        self.daily_bids: Dict[str, List[dict]] = defaultdict(list)
        self.saved = []
        self.implemented = set()
        self.failing_keys = set()
        self.save_failures_remaining = 0
        self.save_attempts = 0

    # setup helpers

    def add_entity(self, entity: TargetingEntity, rows: List[dict]) -> TargetingEntity:
        self.entities[entity.country].append(entity)
        self.daily[entity.key].extend(rows)
        return entity

    def set_target(self, country: str, campaign_id: str, target: float) -> None:
        self.targets[country][campaign_id] = target

    def add_change(self, entity: TargetingEntity, when: date, previous: Optional[float], new: float) -> None:
        self.changes[entity.key].append(BidChangeRecord(
            campaign_id=entity.campaign_id,
            ad_group_id=entity.ad_group_id,
            targeting=entity.targeting,
            kind=entity.kind,
            date_adjusted=when,
            previous_value=previous,
            new_value=new,
        ))

    # data source interface

    def get_targeting_entities(self, country, kind, campaign_ids=None, limit=500):
        entities = [e for e in self.entities.get(country, []) if e.kind == kind]
        if campaign_ids:
            entities = [e for e in entities if e.campaign_id in campaign_ids]
        entities.sort(key=lambda e: e.lifetime_cost, reverse=True)
        return entities[:limit]

    def get_window_totals(self, entity, start_date, end_date):
        if entity.key in self.failing_keys:
            raise DataSourceError(f"simulated failure for {entity.targeting}")
        totals = {'clicks': 0, 'cost': 0.0, 'sales': 0.0, 'orders': 0}
        for row in self.daily.get(entity.key, []):
            if start_date is not None and row['report_date'] < start_date:
                continue
            if row['report_date'] > end_date:
                continue
            for name in totals:
                totals[name] += row[name]
        return totals

    def get_weights(self, country):
        return self.weights.get(country) or self.weights.get('ALL')

    def get_acos_targets(self, country):
        return dict(self.targets.get(country, {}))

    def get_acos_target(self, campaign_id, country=None):
        for country_code, targets in self.targets.items():
            if country in (None, country_code) and campaign_id in targets:
                return targets[campaign_id]
        return None

    def get_last_change_date(self, entity):
        records = self.changes.get(entity.key, [])
        return max((r.date_adjusted for r in records), default=None)

    def get_bid_change_history(self, entity):
        return sorted(self.changes.get(entity.key, []), key=lambda r: r.date_adjusted)

    def get_daily_bids(self, country):
        return list(self.daily_bids.get(country, []))

    def get_change_dates(self, country, kind=EntityKind.KEYWORD):
        dates = defaultdict(list)
        for key, records in self.changes.items():
            for record in records:
                if record.kind == kind:
                    dates[(record.campaign_id, record.ad_group_id, record.targeting)].append(record.date_adjusted)
        return dates

    def record_bid_change(self, record, country=None):
        key = (record.campaign_id, record.ad_group_id, record.targeting, record.kind.value)
        if any(r.date_adjusted == record.date_adjusted for r in self.changes[key]):
            return None
        self.changes[key].append(record)
        return len(self.changes[key])

    # store interface

    def save_recommendation(self, recommendation):
        self.save_attempts += 1
        if self.save_failures_remaining > 0:
            self.save_failures_remaining -= 1
            raise StoreWriteError("simulated write failure")
        recommendation_id = len(self.saved) + 1
        self.saved.append(recommendation.with_id(recommendation_id))
        return recommendation_id

    def mark_implemented(self, recommendation_id):
        if recommendation_id in self.implemented:
            return False
        if not any(r.id == recommendation_id for r in self.saved):
            return False
        self.implemented.add(recommendation_id)
        return True


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def config():
    return RecommenderConfig(max_workers=4, write_retry_backoff_seconds=0, write_retry_max_wait_seconds=0)


@pytest.fixture
def settings(config):
    return config.to_dict()


@pytest.fixture
def data_source():
    return FakeDataSource()


@pytest.fixture
def engine(config, data_source):
    return BidRecommendationEngine(config, data_source)
