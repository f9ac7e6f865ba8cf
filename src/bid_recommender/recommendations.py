"""
Recommendation records, summaries and export
"""

import csv
import json
import logging
from collections import Counter
from dataclasses import asdict, dataclass, fields, replace
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from .efficiency import Confidence, WeightedAcosResult, acos_value, classify_confidence
from .entities import EntityKind, WindowSet
from .rules import RuleResult

RECOMMENDATION_TYPES = {
    EntityKind.KEYWORD: 'keyword_bid',
    EntityKind.PLACEMENT: 'placement_adjustment',
}


@dataclass(frozen=True)
class Recommendation:
    """A proposed bid or placement adjustment with the data it was based on"""
    country: str
    campaign_id: str
    campaign_name: Optional[str]
    ad_group_id: Optional[str]
    ad_group_name: Optional[str]
    targeting: str
    match_type: Optional[str]
    recommendation_type: str  # 'keyword_bid', 'placement_adjustment'
    action: str  # 'increase', 'decrease'
    old_value: float
    recommended_value: float
    pre_acos_t0: Optional[float]
    pre_acos_d30: Optional[float]
    pre_acos_d365: Optional[float]
    pre_acos_lifetime: Optional[float]
    pre_clicks_t0: int
    pre_clicks_d30: int
    pre_clicks_d365: int
    pre_clicks_lifetime: int
    pre_cost_t0: float
    pre_cost_d30: float
    pre_cost_d365: float
    pre_cost_lifetime: float
    pre_orders_t0: int
    pre_orders_d30: int
    pre_orders_d365: int
    pre_orders_lifetime: int
    weighted_acos: Optional[float]
    acos_target: float
    confidence: str
    reason: str
    created_at: datetime
    implemented_at: Optional[datetime] = None
    id: Optional[int] = None

    @property
    def change(self) -> float:
        return self.recommended_value - self.old_value

    @property
    def change_percentage(self) -> float:
        if not self.old_value:
            return 0.0
        return self.change / self.old_value * 100

    @property
    def is_implemented(self) -> bool:
        return self.implemented_at is not None

    def mark_implemented(self, when: Optional[datetime] = None) -> 'Recommendation':
        return replace(self, implemented_at=when or datetime.now())

    def with_id(self, recommendation_id: int) -> 'Recommendation':
        return replace(self, id=recommendation_id)

    def to_record(self) -> Dict[str, Any]:
        """Column mapping used by the store"""
        return asdict(self)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> 'Recommendation':
        """Rebuild from a store row, ignoring unknown columns"""
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in record.items() if k in names})


class RecommendationEngine:
    """Builds, orders, summarises and exports recommendations"""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.logger = logging.getLogger(__name__)

    def build(self, result: RuleResult, windows: WindowSet, efficiency: WeightedAcosResult,
              created_at: Optional[datetime] = None) -> Recommendation:
        """
        Create a recommendation from a rule result and its window snapshot

        Args:
            result: Triggered rule result
            windows: Window metrics the decision was based on
            efficiency: Weighted ACOS result with per-window readings
            created_at: Creation timestamp (defaults to now)

        Returns:
            Recommendation ready to be stored
        """
        entity = result.entity
        snapshot: Dict[str, Any] = {}
        for window, metrics in windows.items():
            reading = efficiency.readings.get(window)
            snapshot[f'pre_acos_{window.value}'] = acos_value(reading) if reading is not None else None
            snapshot[f'pre_clicks_{window.value}'] = metrics.clicks
            snapshot[f'pre_cost_{window.value}'] = metrics.cost
            snapshot[f'pre_orders_{window.value}'] = metrics.orders

        return Recommendation(
            country=entity.country,
            campaign_id=entity.campaign_id,
            campaign_name=entity.campaign_name,
            ad_group_id=entity.ad_group_id,
            ad_group_name=entity.ad_group_name,
            targeting=entity.targeting,
            match_type=entity.match_type,
            recommendation_type=RECOMMENDATION_TYPES[entity.kind],
            action=result.action.value,
            old_value=result.current_value,
            recommended_value=result.recommended_value,
            weighted_acos=result.weighted_acos,
            acos_target=result.target_acos,
            confidence=classify_confidence(windows.lifetime.clicks).value,
            reason=result.reason,
            created_at=created_at or datetime.now(),
            **snapshot,
        )

    def sort_recommendations(self, recommendations: List[Recommendation]) -> List[Recommendation]:
        """Decreases first, then the largest relative moves"""
        return sorted(
            recommendations,
            key=lambda r: (r.action != 'decrease', -abs(r.change_percentage), r.campaign_id, r.targeting),
        )

    def filter_recommendations(self, recommendations: List[Recommendation],
                               recommendation_type: Optional[str] = None,
                               min_confidence: Optional[str] = None,
                               max_recommendations: Optional[int] = None) -> List[Recommendation]:
        """
        Filter recommendations by type and confidence

        Args:
            recommendations: Recommendations to filter
            recommendation_type: Keep only this type ('keyword_bid', 'placement_adjustment')
            min_confidence: Minimum confidence label ('Low' .. 'Extreme')
            max_recommendations: Maximum number of recommendations to return
        """
        order = [c.value for c in Confidence]
        filtered = recommendations
        if recommendation_type:
            filtered = [r for r in filtered if r.recommendation_type == recommendation_type]
        if min_confidence:
            threshold = order.index(min_confidence)
            filtered = [r for r in filtered if order.index(r.confidence) >= threshold]
        filtered = self.sort_recommendations(filtered)
        if max_recommendations is not None:
            filtered = filtered[:max_recommendations]
        return filtered

    def generate_summary(self, recommendations: List[Recommendation]) -> Dict[str, Any]:
        """Generate summary of recommendations"""
        if not recommendations:
            return {
                'total_recommendations': 0,
                'by_type': {},
                'by_action': {},
                'by_confidence': {},
                'by_country': {},
                'campaigns_with_both': [],
            }

        keyword_campaigns = {r.campaign_id for r in recommendations if r.recommendation_type == 'keyword_bid'}
        placement_campaigns = {
            r.campaign_id for r in recommendations if r.recommendation_type == 'placement_adjustment'
        }

        return {
            'total_recommendations': len(recommendations),
            'by_type': dict(Counter(r.recommendation_type for r in recommendations)),
            'by_action': dict(Counter(r.action for r in recommendations)),
            'by_confidence': dict(Counter(r.confidence for r in recommendations)),
            'by_country': dict(Counter(r.country for r in recommendations)),
            'campaigns_with_both': sorted(keyword_campaigns & placement_campaigns),
        }

    def export_recommendations(self, recommendations: List[Recommendation],
                               output_path: str, format: str = 'json') -> None:
        """
        Export recommendations to file

        Args:
            recommendations: List of recommendations
            output_path: Output file path
            format: Output format ('json', 'csv')
        """
        if format == 'json':
            self._export_json(recommendations, output_path)
        elif format == 'csv':
            self._export_csv(recommendations, output_path)
        else:
            raise ValueError(f"Unsupported format: {format}")

    def _row(self, rec: Recommendation) -> Dict[str, Any]:
        row = rec.to_record()
        row['created_at'] = rec.created_at.isoformat()
        row['implemented_at'] = rec.implemented_at.isoformat() if rec.implemented_at else None
        return row

    def _export_json(self, recommendations: List[Recommendation], output_path: str) -> None:
        """Export recommendations as JSON"""
        data = {
            'exported_at': datetime.now().isoformat(),
            'total_recommendations': len(recommendations),
            'summary': self.generate_summary(recommendations),
            'recommendations': [self._row(rec) for rec in recommendations],
        }

        with open(output_path, 'w') as f:
            json.dump(data, f, indent=2)

        self.logger.info(f"Exported {len(recommendations)} recommendations to {output_path}")

    def _export_csv(self, recommendations: List[Recommendation], output_path: str) -> None:
        """Export recommendations as CSV"""
        header = [f.name for f in fields(Recommendation)]

        with open(output_path, 'w', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=header)
            writer.writeheader()
            for rec in recommendations:
                writer.writerow(self._row(rec))

        self.logger.info(f"Exported {len(recommendations)} recommendations to {output_path}")
