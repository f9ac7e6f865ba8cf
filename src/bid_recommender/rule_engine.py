"""
Main Bid Recommendation Engine implementation
"""

import logging
import threading
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .aggregator import MetricsAggregator
from .config import RecommenderConfig
from .efficiency import WeightedAcosResult, Weights, weighted_acos
from .entities import EntityKind, TargetingEntity, WindowSet
from .exceptions import DataSourceError, RecommendationRunError, RunConflictError, StoreWriteError
from .portfolio import PortfolioBalancer
from .re_entry_control import BidChangeTracker, ReEntryController
from .recommendations import Recommendation, RecommendationEngine
from .rules import KeywordBidRule, PlacementAdjustmentRule, RuleResult
from .telemetry import TelemetryClient

OUTCOME_PROPOSED = 'proposed'
OUTCOME_COOLDOWN = 'cooldown'
OUTCOME_INSUFFICIENT = 'insufficient_data'
OUTCOME_MISSING_TARGET = 'missing_target'
OUTCOME_MISSING_VALUE = 'missing_value'
OUTCOME_INSIDE_BAND = 'inside_band'
OUTCOME_NO_CHANGE = 'no_change'
OUTCOME_DATA_ERROR = 'data_error'


@dataclass
class EntityEvaluation:
    """First-pass result for a single entity"""
    entity: TargetingEntity
    outcome: str
    result: Optional[RuleResult] = None
    windows: Optional[WindowSet] = None
    efficiency: Optional[WeightedAcosResult] = None
    detail: str = ''


@dataclass
class RunSummary:
    """Counts of one country run"""
    country: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    dry_run: bool = False
    evaluated: int = 0
    keyword_recommendations: int = 0
    placement_recommendations: int = 0
    cooldown_suppressed: int = 0
    insufficient_data: int = 0
    missing_target: int = 0
    missing_value: int = 0
    inside_band: int = 0
    no_change: int = 0
    data_errors: int = 0
    write_failures: int = 0
    portfolio_balanced_campaigns: int = 0
    campaigns_with_both: List[str] = field(default_factory=list)
    recommendation_ids: List[int] = field(default_factory=list)

    @property
    def generated(self) -> int:
        return self.keyword_recommendations + self.placement_recommendations

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def count(self, outcome: str) -> None:
        attribute = {
            OUTCOME_COOLDOWN: 'cooldown_suppressed',
            OUTCOME_INSUFFICIENT: 'insufficient_data',
            OUTCOME_MISSING_TARGET: 'missing_target',
            OUTCOME_MISSING_VALUE: 'missing_value',
            OUTCOME_INSIDE_BAND: 'inside_band',
            OUTCOME_NO_CHANGE: 'no_change',
            OUTCOME_DATA_ERROR: 'data_errors',
        }.get(outcome)
        if attribute:
            setattr(self, attribute, getattr(self, attribute) + 1)

    def outcome_counts(self) -> Dict[str, int]:
        return {
            OUTCOME_PROPOSED: self.generated,
            OUTCOME_COOLDOWN: self.cooldown_suppressed,
            OUTCOME_INSUFFICIENT: self.insufficient_data,
            OUTCOME_MISSING_TARGET: self.missing_target,
            OUTCOME_MISSING_VALUE: self.missing_value,
            OUTCOME_INSIDE_BAND: self.inside_band,
            OUTCOME_NO_CHANGE: self.no_change,
            OUTCOME_DATA_ERROR: self.data_errors,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['started_at'] = self.started_at.isoformat()
        data['finished_at'] = self.finished_at.isoformat() if self.finished_at else None
        data['generated'] = self.generated
        return data


class BidRecommendationEngine:
    """Multi-timeframe weighted bid recommendation engine"""

    def __init__(self, config: RecommenderConfig, db_connector: Any,
                 telemetry: Optional[TelemetryClient] = None):
        """
        Initialize the Bid Recommendation Engine

        Args:
            config: Engine configuration
            db_connector: Data source and recommendation store (DatabaseConnector or compatible)
            telemetry: Optional telemetry client
        """
        self.config = config
        self.db = db_connector
        self.logger = logging.getLogger(__name__)

        settings = config.to_dict()
        self.aggregator = MetricsAggregator(config, db_connector)
        self.rules = {
            EntityKind.KEYWORD: KeywordBidRule(settings),
            EntityKind.PLACEMENT: PlacementAdjustmentRule(settings),
        }
        self.portfolio_balancer = PortfolioBalancer(settings)
        self.re_entry_controller = ReEntryController(settings)
        self.bid_change_tracker = BidChangeTracker(settings)
        self.recommendation_engine = RecommendationEngine(settings)
        self.telemetry = telemetry or TelemetryClient(settings)

        self._in_flight = set()
        self._in_flight_lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def generate_recommendations(self, country: str,
                                 campaign_filter: Optional[List[str]] = None) -> List[Recommendation]:
        """
        Generate and store recommendations for one country

        Args:
            country: Country code
            campaign_filter: Restrict to these campaign IDs (None for all)

        Returns:
            Stored recommendations
        """
        recommendations, _ = self.run_country(country, campaign_filter)
        return recommendations

    def run_country(self, country: str, campaign_filter: Optional[List[str]] = None,
                    today: Optional[date] = None,
                    dry_run: bool = False) -> Tuple[List[Recommendation], RunSummary]:
        """
        Evaluate every keyword and placement of a country

        Args:
            country: Country code
            campaign_filter: Restrict to these campaign IDs (None for all)
            today: Reference date (defaults to today)
            dry_run: Compute recommendations without storing them

        Returns:
            Tuple of (recommendations, run summary)

        Raises:
            RunConflictError: when a run for the same country is in flight
            RecommendationRunError: when nothing could be evaluated
        """
        with self._country_run(country):
            try:
                return self._run_country(country, campaign_filter, today or date.today(), dry_run)
            except RecommendationRunError as e:
                self.telemetry.record_run_failure(country, type(e).__name__)
                raise

    def generate_daily(self, countries: Optional[List[str]] = None, today: Optional[date] = None,
                       detect_bid_changes: bool = False, dry_run: bool = False) -> Dict[str, Any]:
        """
        Run every configured country, continuing past failing countries

        Args:
            countries: Countries to run (defaults to the configured list)
            today: Reference date (defaults to today)
            detect_bid_changes: Refresh bid change history from daily bids first
            dry_run: Compute recommendations without storing them

        Returns:
            Totals across countries with per-country summaries
        """
        countries = countries or self.config.countries
        totals = {
            'countries_processed': 0,
            'keyword_recommendations': 0,
            'placement_recommendations': 0,
            'failed_countries': {},
            'summaries': [],
            'recommendations': [],
        }

        for country in countries:
            try:
                if detect_bid_changes:
                    self.refresh_bid_changes(country)
                recommendations, summary = self.run_country(country, today=today, dry_run=dry_run)
            except RecommendationRunError as e:
                self.logger.error(f"Run for {country} failed: {e}")
                totals['failed_countries'][country] = str(e)
                continue

            totals['countries_processed'] += 1
            totals['keyword_recommendations'] += summary.keyword_recommendations
            totals['placement_recommendations'] += summary.placement_recommendations
            totals['summaries'].append(summary)
            totals['recommendations'].extend(recommendations)

        self.logger.info(
            f"Daily run complete: {totals['countries_processed']}/{len(countries)} countries, "
            f"{totals['keyword_recommendations']} keyword and "
            f"{totals['placement_recommendations']} placement recommendations"
        )
        return totals

    def refresh_bid_changes(self, country: str) -> int:
        """
        Derive bid change records from daily keyword bids and store the new ones

        Returns:
            Number of change records inserted
        """
        known = self.db.get_change_dates(country, EntityKind.KEYWORD)
        series: Dict[tuple, List[Dict[str, Any]]] = defaultdict(list)
        for row in self.db.get_daily_bids(country):
            key = (str(row['campaign_id']), row.get('ad_group_id'), row['targeting'], row.get('match_type'))
            series[key].append(row)

        inserted = 0
        for key, rows in series.items():
            known_dates = known.get(key[:3], [])
            for record in self.bid_change_tracker.detect_changes(rows, known_dates):
                if self.db.record_bid_change(record, country=country) is not None:
                    inserted += 1

        self.logger.info(f"Recorded {inserted} new bid changes for {country}")
        return inserted

    def mark_implemented(self, recommendation_id: int) -> bool:
        """Record that a recommendation was applied"""
        return self.db.mark_implemented(recommendation_id)

    def get_recommendations_summary(self, recommendations: List[Recommendation]) -> Dict[str, Any]:
        """Get summary of recommendations"""
        return self.recommendation_engine.generate_summary(recommendations)

    def export_recommendations(self, recommendations: List[Recommendation],
                               output_path: str, format: str = 'json') -> None:
        """Export recommendations to file ('json' or 'csv')"""
        self.recommendation_engine.export_recommendations(recommendations, output_path, format)

    # ------------------------------------------------------------------ #
    # Country run
    # ------------------------------------------------------------------ #

    @contextmanager
    def _country_run(self, country: str) -> Iterator[None]:
        with self._in_flight_lock:
            if country in self._in_flight:
                raise RunConflictError(f"A recommendation run for {country} is already in progress")
            self._in_flight.add(country)
        try:
            yield
        finally:
            with self._in_flight_lock:
                self._in_flight.discard(country)

    def _run_country(self, country: str, campaign_filter: Optional[List[str]],
                     today: date, dry_run: bool) -> Tuple[List[Recommendation], RunSummary]:
        summary = RunSummary(country=country, started_at=datetime.now(), dry_run=dry_run)
        self.logger.info(f"Starting recommendation run for {country} (reference date {today})")

        weights, targets = self._load_configuration(country)
        entities = self._load_entities(country, campaign_filter)
        summary.evaluated = len(entities)

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            evaluations = list(executor.map(
                lambda entity: self._evaluate_entity(entity, targets, weights, today), entities
            ))

        for evaluation in evaluations:
            summary.count(evaluation.outcome)

        if entities and summary.data_errors == len(entities):
            raise RecommendationRunError(
                f"Every one of {len(entities)} entities in {country} failed with a data error"
            )

        proposals = self._balance_placements(evaluations, summary)
        recommendations = self._build_recommendations(proposals, summary.started_at)

        if not dry_run:
            recommendations = self._persist(recommendations, summary)

        for rec in recommendations:
            if rec.recommendation_type == 'keyword_bid':
                summary.keyword_recommendations += 1
            else:
                summary.placement_recommendations += 1
        summary.campaigns_with_both = self.get_recommendations_summary(recommendations)['campaigns_with_both']
        summary.finished_at = datetime.now()

        self.telemetry.record_run_summary(summary)
        self.logger.info(
            f"Run for {country} finished: {summary.evaluated} evaluated, "
            f"{summary.keyword_recommendations} keyword / {summary.placement_recommendations} placement "
            f"recommendations, {summary.cooldown_suppressed} in cooldown, "
            f"{summary.data_errors} data errors, {summary.write_failures} write failures"
        )
        return self.recommendation_engine.sort_recommendations(recommendations), summary

    def _load_configuration(self, country: str) -> Tuple[Weights, Dict[str, float]]:
        try:
            weights = self.db.get_weights(country)
            targets = self.db.get_acos_targets(country)
        except DataSourceError as e:
            raise RecommendationRunError(f"Cannot load configuration for {country}: {e}") from e

        if weights is None:
            raise RecommendationRunError(f"No weight configuration for {country} and no 'ALL' default")
        if weights.usable_total <= 0:
            raise RecommendationRunError(f"Unusable weights for {country}: {weights.to_dict()}")
        if not weights.is_valid():
            self.logger.warning(f"Negative weights for {country} will be treated as 0: {weights.to_dict()}")
        if not targets:
            raise RecommendationRunError(f"No ACOS targets configured for {country}")

        self.logger.info(
            f"{country}: weights {weights.to_dict()} (from {weights.country}), {len(targets)} campaign targets"
        )
        return weights, targets

    def _load_entities(self, country: str, campaign_filter: Optional[List[str]]) -> List[TargetingEntity]:
        # Placements are never capped: the portfolio pass needs every placement of a campaign
        limits = {
            EntityKind.KEYWORD: self.config.max_entities_per_country,
            EntityKind.PLACEMENT: None,
        }
        entities = []
        try:
            for kind, limit in limits.items():
                entities.extend(self.db.get_targeting_entities(
                    country, kind, campaign_ids=campaign_filter, limit=limit,
                ))
        except DataSourceError as e:
            raise RecommendationRunError(f"Cannot list entities for {country}: {e}") from e
        return entities

    def _evaluate_entity(self, entity: TargetingEntity, targets: Dict[str, float],
                         weights: Weights, today: date) -> EntityEvaluation:
        """First pass: aggregate, weigh, gate and apply the rule for one entity"""
        target = targets.get(entity.campaign_id)
        if target is None:
            return EntityEvaluation(entity, OUTCOME_MISSING_TARGET)

        if entity.kind == EntityKind.KEYWORD and not entity.current_value:
            return EntityEvaluation(entity, OUTCOME_MISSING_VALUE)

        try:
            last_change = self.db.get_last_change_date(entity)
            gate = self.re_entry_controller.check(last_change, today)
            if not gate.allowed:
                return EntityEvaluation(entity, OUTCOME_COOLDOWN, detail=gate.reason)

            t0_start = last_change
            if self.config.t0_reset_policy != 'every_change':
                t0_start = self.bid_change_tracker.t0_start(self.db.get_bid_change_history(entity))

            windows = self.aggregator.aggregate(entity, today, t0_start)
        except DataSourceError as e:
            self.logger.error(f"Skipping {entity.display_name}: {e}")
            return EntityEvaluation(entity, OUTCOME_DATA_ERROR, detail=str(e))
        except Exception as e:
            self.logger.exception(f"Unexpected error evaluating {entity.display_name}: {e}")
            return EntityEvaluation(entity, OUTCOME_DATA_ERROR, detail=str(e))

        efficiency = weighted_acos(windows, weights, self.config.min_clicks)
        rule = self.rules[entity.kind]
        result = rule.evaluate(entity, efficiency.weighted_acos, target, windows.lifetime)

        if result is not None:
            return EntityEvaluation(entity, OUTCOME_PROPOSED, result, windows, efficiency)
        if not efficiency.decidable:
            return EntityEvaluation(entity, OUTCOME_INSUFFICIENT, windows=windows, efficiency=efficiency)
        if rule.is_inside_band(efficiency.weighted_acos, target):
            return EntityEvaluation(entity, OUTCOME_INSIDE_BAND, windows=windows, efficiency=efficiency)
        return EntityEvaluation(entity, OUTCOME_NO_CHANGE, windows=windows, efficiency=efficiency)

    def _balance_placements(self, evaluations: List[EntityEvaluation],
                            summary: RunSummary) -> List[EntityEvaluation]:
        """Second pass: portfolio balance over each campaign's placement proposals"""
        proposed = [e for e in evaluations if e.outcome == OUTCOME_PROPOSED]
        keyword_proposals = [e for e in proposed if e.entity.kind == EntityKind.KEYWORD]
        placement_proposals = [e for e in proposed if e.entity.kind == EntityKind.PLACEMENT]

        by_entity = {e.entity: e for e in placement_proposals}
        balanced_results, balanced_campaigns = self.portfolio_balancer.balance(
            [e.result for e in placement_proposals]
        )
        summary.portfolio_balanced_campaigns = len(balanced_campaigns)

        balanced = []
        for result in balanced_results:
            evaluation = by_entity[result.entity]
            balanced.append(EntityEvaluation(
                result.entity, OUTCOME_PROPOSED, result, evaluation.windows, evaluation.efficiency
            ))
        return keyword_proposals + balanced

    def _build_recommendations(self, proposals: List[EntityEvaluation],
                               created_at: datetime) -> List[Recommendation]:
        return [
            self.recommendation_engine.build(p.result, p.windows, p.efficiency, created_at)
            for p in proposals
        ]

    def _persist(self, recommendations: List[Recommendation], summary: RunSummary) -> List[Recommendation]:
        stored = []
        for rec in recommendations:
            try:
                recommendation_id = self._save_with_retry(rec)
            except StoreWriteError as e:
                self.logger.error(f"Dropping recommendation for {rec.targeting} ({rec.campaign_id}): {e}")
                summary.write_failures += 1
                continue
            stored.append(rec.with_id(recommendation_id))
            summary.recommendation_ids.append(recommendation_id)
        return stored

    def _save_with_retry(self, recommendation: Recommendation) -> int:
        retryer = Retrying(
            retry=retry_if_exception_type(StoreWriteError),
            stop=stop_after_attempt(self.config.write_retry_attempts),
            wait=wait_exponential(
                multiplier=self.config.write_retry_backoff_seconds,
                max=self.config.write_retry_max_wait_seconds,
            ),
            before_sleep=before_sleep_log(self.logger, logging.WARNING),
            reraise=True,
        )
        return retryer(self.db.save_recommendation, recommendation)
