"""
Weighted efficiency calculator and confidence classifier

ACOS readings are tagged values: a window either has an ACOS, has no sales
despite enough clicks, or does not have enough data to say anything.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional, Union

from .entities import Window, WindowMetrics, WindowSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Acos:
    """Window with attributed sales; value = cost / sales"""
    value: float


@dataclass(frozen=True)
class NoSalesAboveThreshold:
    """Window with zero sales but at least the minimum number of clicks"""
    clicks: int


@dataclass(frozen=True)
class Insufficient:
    """Window with zero sales and too few clicks to judge"""
    clicks: int = 0


AcosReading = Union[Acos, NoSalesAboveThreshold, Insufficient]


def read_acos(metrics: WindowMetrics, min_clicks: int = 30) -> AcosReading:
    """Classify one window's metrics into an ACOS reading"""
    if metrics.sales > 0:
        return Acos(metrics.cost / metrics.sales)
    if metrics.clicks >= min_clicks:
        return NoSalesAboveThreshold(metrics.clicks)
    return Insufficient(metrics.clicks)


def acos_value(reading: AcosReading) -> Optional[float]:
    """Numeric ACOS of a reading, None unless it is an Acos"""
    if isinstance(reading, Acos):
        return reading.value
    return None


@dataclass(frozen=True)
class Weights:
    """Per-window weights of a country (or of the global 'ALL' row)"""
    t0: float
    d30: float
    d365: float
    lifetime: float
    country: str = 'ALL'

    @classmethod
    def from_mapping(cls, data: Mapping[str, float], country: str = 'ALL') -> 'Weights':
        return cls(
            t0=float(data['t0']),
            d30=float(data['d30']),
            d365=float(data['d365']),
            lifetime=float(data['lifetime']),
            country=country,
        )

    def for_window(self, window: Window) -> float:
        return getattr(self, window.value)

    @property
    def total(self) -> float:
        return self.t0 + self.d30 + self.d365 + self.lifetime

    @property
    def usable_total(self) -> float:
        """Sum of the weights that can contribute (negatives count as 0)"""
        return sum(max(self.for_window(w), 0.0) for w in Window)

    def is_valid(self) -> bool:
        return all(self.for_window(w) >= 0 for w in Window) and self.total > 0

    def to_dict(self) -> Dict[str, float]:
        return {w.value: self.for_window(w) for w in Window}


@dataclass
class WeightedAcosResult:
    """Outcome of combining the four window readings"""
    weighted_acos: Optional[float]
    readings: Dict[Window, AcosReading] = field(default_factory=dict)
    weight_used: float = 0.0

    @property
    def decidable(self) -> bool:
        return self.weighted_acos is not None


def weighted_acos(windows: WindowSet, weights: Weights, min_clicks: int = 30) -> WeightedAcosResult:
    """
    Combine window readings into one weighted ACOS.

    Only Acos readings contribute; the result is renormalised by the sum of
    the weights actually used, so a single window with data yields exactly
    that window's ACOS. The result is undecidable (None) when no window
    contributes.
    """
    readings: Dict[Window, AcosReading] = {}
    numerator = 0.0
    denominator = 0.0

    for window, metrics in windows.items():
        reading = read_acos(metrics, min_clicks)
        readings[window] = reading

        weight = weights.for_window(window)
        if weight < 0:
            logger.warning(f"Negative weight {weight} for window {window.value} ({weights.country}), treating as 0")
            weight = 0.0

        value = acos_value(reading)
        if value is not None and weight > 0:
            numerator += weight * value
            denominator += weight

    if denominator == 0:
        return WeightedAcosResult(weighted_acos=None, readings=readings, weight_used=0.0)

    return WeightedAcosResult(
        weighted_acos=numerator / denominator,
        readings=readings,
        weight_used=denominator,
    )


class Confidence(str, Enum):
    """Display label describing how much lifetime data backs a recommendation"""
    LOW = 'Low'
    OK = 'OK'
    GOOD = 'Good'
    HIGH = 'High'
    EXTREME = 'Extreme'


CONFIDENCE_THRESHOLDS = (
    (1000, Confidence.EXTREME),
    (300, Confidence.HIGH),
    (100, Confidence.GOOD),
    (30, Confidence.OK),
)


def classify_confidence(lifetime_clicks: int) -> Confidence:
    """Map lifetime clicks to a confidence label"""
    for threshold, label in CONFIDENCE_THRESHOLDS:
        if lifetime_clicks >= threshold:
            return label
    return Confidence.LOW
