"""
Core data types shared by the aggregator, rules and store
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Iterator, Optional, Tuple


class EntityKind(str, Enum):
    """Kind of targeting entity a recommendation applies to"""
    KEYWORD = 'keyword'
    PLACEMENT = 'placement'


class Window(str, Enum):
    """Historical windows evaluated for every entity"""
    T0 = 't0'
    D30 = 'd30'
    D365 = 'd365'
    LIFETIME = 'lifetime'


@dataclass(frozen=True)
class TargetingEntity:
    """
    A keyword or placement inside a campaign.

    Identity is (campaign_id, ad_group_id, targeting, kind). Display names,
    the current bid or adjustment and the lifetime cost used for ordering do
    not take part in equality.
    """
    country: str
    campaign_id: str
    ad_group_id: Optional[str]
    targeting: str
    kind: EntityKind
    match_type: Optional[str] = None
    campaign_name: Optional[str] = field(default=None, compare=False)
    ad_group_name: Optional[str] = field(default=None, compare=False)
    current_value: Optional[float] = field(default=None, compare=False)
    lifetime_cost: float = field(default=0.0, compare=False)

    @property
    def key(self) -> Tuple[str, Optional[str], str, str]:
        return (self.campaign_id, self.ad_group_id, self.targeting, self.kind.value)

    @property
    def display_name(self) -> str:
        if self.kind == EntityKind.PLACEMENT:
            return f"{self.campaign_name or self.campaign_id} / {self.targeting}"
        return f"{self.ad_group_name or self.ad_group_id} / {self.targeting}"


@dataclass(frozen=True)
class WindowMetrics:
    """Aggregated performance of one entity over one window"""
    clicks: int = 0
    cost: float = 0.0
    sales: float = 0.0
    orders: int = 0

    def __post_init__(self):
        for name in ('clicks', 'cost', 'sales', 'orders'):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")


@dataclass(frozen=True)
class WindowSet:
    """The four window aggregates of one entity"""
    t0: WindowMetrics
    d30: WindowMetrics
    d365: WindowMetrics
    lifetime: WindowMetrics

    def get(self, window: Window) -> WindowMetrics:
        return getattr(self, window.value)

    def items(self) -> Iterator[Tuple[Window, WindowMetrics]]:
        for window in Window:
            yield window, self.get(window)


@dataclass(frozen=True)
class BidChangeRecord:
    """A single observed change of a bid or placement adjustment"""
    campaign_id: str
    ad_group_id: Optional[str]
    targeting: str
    kind: EntityKind
    date_adjusted: date
    previous_value: Optional[float]
    new_value: float

    @property
    def relative_change(self) -> Optional[float]:
        if not self.previous_value:
            return None
        return abs(self.new_value - self.previous_value) / self.previous_value
