"""
Rule implementations for keyword bids and placement adjustments
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import logging

from .entities import TargetingEntity, WindowMetrics
from .utils.units import format_percentage, round_currency, round_half_up, round_to_step


class Action(str, Enum):
    INCREASE = 'increase'
    DECREASE = 'decrease'


@dataclass
class RuleResult:
    """Result of a rule evaluation"""
    rule_name: str
    entity: TargetingEntity
    action: Action
    current_value: float
    recommended_value: float
    weighted_acos: Optional[float]
    target_acos: float
    reason: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def change(self) -> float:
        return self.recommended_value - self.current_value


class BaseRule(ABC):
    """Base class for all rules"""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)
        self.min_clicks = config.get('min_clicks', 30)

    @abstractmethod
    def evaluate(self, entity: TargetingEntity, weighted_acos: Optional[float],
                 target_acos: float, lifetime: WindowMetrics) -> Optional[RuleResult]:
        """
        Evaluate rule for one entity

        Args:
            entity: Targeting entity with its current bid or adjustment
            weighted_acos: Weighted ACOS across windows, None if undecidable
            target_acos: ACOS target of the entity's campaign
            lifetime: Lifetime window metrics

        Returns:
            RuleResult if a change is recommended, None otherwise
        """
        pass

    def is_no_sales(self, lifetime: WindowMetrics) -> bool:
        """Lifetime has clicks but never converted"""
        return lifetime.sales == 0 and lifetime.clicks >= self.min_clicks


class KeywordBidRule(BaseRule):
    """Moves a keyword bid towards the bid that would hit target ACOS"""

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.band = config.get('keyword_acos_band', 0.03)
        self.max_increase = config.get('keyword_max_increase', 0.50)
        self.max_decrease = config.get('keyword_max_decrease', 0.50)
        self.no_sales_tiers: List[Tuple[float, float]] = sorted(
            (tuple(tier) for tier in config.get('no_sales_click_tiers', [[100, 0.30], [30, 0.15]])),
            reverse=True,
        )
        self.no_sales_max_reduction = config.get('no_sales_max_reduction', 0.30)
        self.bid_floor = config.get('bid_floor', 0.02)
        self.bid_floor_ratio = config.get('bid_floor_ratio', 0.20)
        self.max_bid_multiplier = config.get('max_bid_multiplier', 1.50)

    def is_inside_band(self, weighted_acos: float, target_acos: float) -> bool:
        return target_acos - self.band <= weighted_acos <= target_acos + self.band

    def evaluate(self, entity: TargetingEntity, weighted_acos: Optional[float],
                 target_acos: float, lifetime: WindowMetrics) -> Optional[RuleResult]:
        """Evaluate keyword bid rule"""
        current_bid = entity.current_value
        if not current_bid or current_bid <= 0:
            return None

        if self.is_no_sales(lifetime):
            reduction = self.no_sales_reduction(lifetime.clicks)
            proposed = current_bid * (1 - reduction)
            reason = (
                f"No sales after {lifetime.clicks} lifetime clicks. "
                f"Reduce bid by {reduction:.0%}: {current_bid:.2f} -> {proposed:.2f}"
            )
            return self._build_result(entity, Action.DECREASE, current_bid, proposed,
                                      weighted_acos, target_acos, reason,
                                      {'rule': 'no_sales', 'reduction': reduction})

        if weighted_acos is None:
            return None

        if self.is_inside_band(weighted_acos, target_acos):
            return None

        if weighted_acos > target_acos:
            action = Action.DECREASE
            formula_bid = current_bid * target_acos / weighted_acos
            proposed = max(formula_bid, current_bid * (1 - self.max_decrease))
            direction = 'above'
        else:
            action = Action.INCREASE
            if weighted_acos > 0:
                formula_bid = current_bid * target_acos / weighted_acos
            else:
                # Spend-free sales: the formula is unbounded, take the cap
                formula_bid = current_bid * (1 + self.max_increase)
            proposed = min(formula_bid, current_bid * (1 + self.max_increase))
            direction = 'below'

        reason = (
            f"Weighted ACOS ({format_percentage(weighted_acos)}) is {direction} "
            f"target ({format_percentage(target_acos)}). "
            f"Formula bid {current_bid:.2f} x {format_percentage(target_acos)} / "
            f"{format_percentage(weighted_acos)} = {formula_bid:.2f}"
        )
        if proposed != formula_bid:
            reason += f", capped at {proposed:.2f}"

        return self._build_result(entity, action, current_bid, proposed,
                                  weighted_acos, target_acos, reason,
                                  {'rule': 'weighted_acos', 'formula_bid': formula_bid})

    def no_sales_reduction(self, clicks: int) -> float:
        """Bid cut for a keyword that never converted, from the click tiers"""
        for min_clicks, reduction in self.no_sales_tiers:
            if clicks >= min_clicks:
                return min(reduction, self.no_sales_max_reduction)
        return 0.0

    def bid_bounds(self, current_bid: float) -> Tuple[float, float]:
        floor = max(self.bid_floor, self.bid_floor_ratio * current_bid)
        cap = max(floor, self.max_bid_multiplier * current_bid)
        return floor, cap

    def clamp_bid(self, entity: TargetingEntity, current_bid: float, proposed: float) -> float:
        """Clamp to the safeguard range and round to cents"""
        floor, cap = self.bid_bounds(current_bid)
        if proposed < floor or proposed > cap:
            self.logger.warning(
                f"Proposed bid {proposed:.4f} for {entity.display_name} outside "
                f"[{floor:.4f}, {cap:.4f}], clamping"
            )
            proposed = min(max(proposed, floor), cap)
        return round_currency(proposed, floor, cap)

    def _build_result(self, entity: TargetingEntity, action: Action, current_bid: float,
                      proposed: float, weighted_acos: Optional[float], target_acos: float,
                      reason: str, metadata: Dict[str, Any]) -> Optional[RuleResult]:
        recommended = self.clamp_bid(entity, current_bid, proposed)
        if recommended == round_currency(current_bid):
            return None
        return RuleResult(
            rule_name='KEYWORD_BID_RULE',
            entity=entity,
            action=action,
            current_value=current_bid,
            recommended_value=recommended,
            weighted_acos=weighted_acos,
            target_acos=target_acos,
            reason=reason,
            metadata=metadata,
        )


class PlacementAdjustmentRule(BaseRule):
    """Moves a placement bid adjustment (in percent) towards target ACOS"""

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.band = config.get('placement_acos_band', 0.10)
        self.step_factor = config.get('placement_step_factor', 50.0)
        self.max_step = config.get('placement_max_step', 50.0)
        self.no_sales_step = config.get('placement_no_sales_step', 25.0)
        self.min_adjustment = config.get('placement_min_adjustment', 0.0)
        self.max_adjustment = config.get('placement_max_adjustment', 900.0)
        self.rounding_step = config.get('placement_rounding_step', 5)

    def target_range(self, target_acos: float) -> Tuple[float, float]:
        return target_acos * (1 - self.band), target_acos * (1 + self.band)

    def is_inside_band(self, weighted_acos: float, target_acos: float) -> bool:
        lower, upper = self.target_range(target_acos)
        return lower <= weighted_acos <= upper

    def evaluate(self, entity: TargetingEntity, weighted_acos: Optional[float],
                 target_acos: float, lifetime: WindowMetrics) -> Optional[RuleResult]:
        """Evaluate placement adjustment rule"""
        current = entity.current_value if entity.current_value is not None else 0.0
        lower, upper = self.target_range(target_acos)
        range_text = f"({format_percentage(lower)}-{format_percentage(upper)})"

        if self.is_no_sales(lifetime):
            proposed = self.clamp_adjustment(entity, current - self.no_sales_step)
            reason = (
                f"Placement ACOS (No Sales, {lifetime.clicks} clicks) exceeds target range {range_text}. "
                f"Adjust from {current:.0f}% to {proposed:.0f}%"
            )
            return self._build_result(entity, Action.DECREASE, current, proposed,
                                      weighted_acos, target_acos, reason, {'rule': 'no_sales'})

        if weighted_acos is None:
            return None

        if self.is_inside_band(weighted_acos, target_acos):
            return None

        if weighted_acos > 0:
            step = round_half_up((target_acos / weighted_acos - 1) * self.step_factor)
        else:
            step = self.max_step
        step = max(-self.max_step, min(self.max_step, step))

        proposed = self.clamp_adjustment(entity, current + step)
        if weighted_acos > upper:
            action = Action.DECREASE
            direction = 'exceeds'
        else:
            action = Action.INCREASE
            direction = 'is below'

        reason = (
            f"Placement ACOS ({format_percentage(weighted_acos)}) {direction} target range {range_text}. "
            f"Adjust from {current:.0f}% to {proposed:.0f}%"
        )
        return self._build_result(entity, action, current, proposed,
                                  weighted_acos, target_acos, reason, {'rule': 'weighted_acos', 'step': step})

    def clamp_adjustment(self, entity: TargetingEntity, proposed: float) -> float:
        """Clamp to the allowed range and round to the configured step"""
        if proposed < self.min_adjustment or proposed > self.max_adjustment:
            self.logger.warning(
                f"Placement adjustment {proposed:.1f}% for {entity.display_name} clamped to "
                f"[{self.min_adjustment:.0f}, {self.max_adjustment:.0f}]"
            )
        clamped = min(max(proposed, self.min_adjustment), self.max_adjustment)
        rounded = round_to_step(clamped, self.rounding_step)
        return min(max(rounded, self.min_adjustment), self.max_adjustment)

    def _build_result(self, entity: TargetingEntity, action: Action, current: float,
                      proposed: float, weighted_acos: Optional[float], target_acos: float,
                      reason: str, metadata: Dict[str, Any]) -> Optional[RuleResult]:
        if proposed == current:
            return None
        return RuleResult(
            rule_name='PLACEMENT_ADJUSTMENT_RULE',
            entity=entity,
            action=action,
            current_value=current,
            recommended_value=proposed,
            weighted_acos=weighted_acos,
            target_acos=target_acos,
            reason=reason,
            metadata=metadata,
        )
