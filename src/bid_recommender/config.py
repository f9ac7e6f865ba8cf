"""
Configuration module for the Bid Recommendation Engine
"""

import json
import logging
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

T0_POLICIES = ('every_change', 'material_change')

DEFAULT_COUNTRIES = ['DE', 'FR', 'IT', 'ES', 'NL', 'BE', 'AT', 'PL', 'SE', 'UK', 'US']


@dataclass
class RecommenderConfig:
    """Thresholds, caps and runtime knobs for the recommendation engine"""

    # Data sufficiency
    min_clicks: int = 30  # Minimum clicks before a zero-sales window counts as "no sales"

    # Window lengths
    short_window_days: int = 30
    long_window_days: int = 365
    earliest_data_date: Optional[str] = None  # ISO date bounding the lifetime window

    # Default window weights (global 'ALL' row)
    default_weights: Dict[str, float] = field(default_factory=lambda: {
        't0': 0.35,
        'd30': 0.25,
        'd365': 0.25,
        'lifetime': 0.15,
    })

    # Keyword bid rules
    keyword_acos_band: float = 0.03  # Absolute band around target ACOS
    keyword_max_increase: float = 0.50  # Max relative increase per recommendation
    keyword_max_decrease: float = 0.50  # Max relative decrease per recommendation
    no_sales_click_tiers: List[List[float]] = field(default_factory=lambda: [
        [100, 0.30],
        [30, 0.15],
    ])  # [min lifetime clicks, bid reduction], highest tier first
    no_sales_max_reduction: float = 0.30
    bid_floor: float = 0.02  # Absolute minimum bid
    bid_floor_ratio: float = 0.20  # Minimum bid as a share of the current bid
    max_bid_multiplier: float = 1.50  # Maximum bid as a multiple of the current bid

    # Placement adjustment rules
    placement_acos_band: float = 0.10  # Relative band (target x 0.9 .. target x 1.1)
    placement_step_factor: float = 50.0  # Percentage points per unit of target/acos deviation
    placement_max_step: float = 50.0  # Max percentage points moved per recommendation
    placement_no_sales_step: float = 25.0
    placement_min_adjustment: float = 0.0
    placement_max_adjustment: float = 900.0
    placement_rounding_step: int = 5
    portfolio_min_placements: int = 3

    # Re-entry control
    cooldown_days: int = 14
    never_changed_days: int = 999
    t0_reset_policy: str = 'every_change'
    t0_materiality_threshold: float = 0.05  # Relative bid change that resets T0 under 'material_change'

    # Batch settings
    countries: List[str] = field(default_factory=lambda: list(DEFAULT_COUNTRIES))
    max_entities_per_country: int = 500
    max_workers: int = 8

    # Persistence
    write_retry_attempts: int = 2  # Initial attempt plus one retry
    write_retry_backoff_seconds: float = 0.5
    write_retry_max_wait_seconds: float = 5.0

    # Telemetry
    enable_telemetry: bool = True

    @classmethod
    def from_file(cls, config_path: str) -> 'RecommenderConfig':
        """Load configuration from JSON file"""
        try:
            with open(config_path, 'r') as f:
                config_data = json.load(f)
        except FileNotFoundError:
            logger.warning(f"Config file {config_path} not found, using defaults")
            return cls()
        return cls(**config_data)

    def to_file(self, config_path: str) -> None:
        """Save configuration to JSON file"""
        with open(config_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    def to_dict(self) -> Dict:
        return asdict(self)

    def validate(self) -> bool:
        """Validate configuration values"""
        errors = []

        if self.min_clicks < 0:
            errors.append("Minimum clicks must be non-negative")

        if self.short_window_days < 1 or self.long_window_days < 1:
            errors.append("Window lengths must be at least 1 day")

        if self.short_window_days >= self.long_window_days:
            errors.append("Short window must be shorter than long window")

        expected_keys = {'t0', 'd30', 'd365', 'lifetime'}
        if set(self.default_weights.keys()) != expected_keys:
            errors.append(f"Default weights must define exactly {sorted(expected_keys)}")
        elif any(w < 0 for w in self.default_weights.values()):
            errors.append("Default weights must be non-negative")
        elif abs(sum(self.default_weights.values()) - 1.0) > 0.01:
            errors.append("Default weights must sum to 1.0")

        if self.keyword_acos_band < 0:
            errors.append("Keyword ACOS band must be non-negative")

        if self.keyword_max_increase <= 0 or self.keyword_max_decrease <= 0 or self.keyword_max_decrease >= 1:
            errors.append("Keyword change caps must be positive and the decrease cap below 1")

        if not self.no_sales_click_tiers:
            errors.append("At least one no-sales click tier is required")
        for tier in self.no_sales_click_tiers:
            if len(tier) != 2 or tier[0] < 0 or not 0 < tier[1] < 1:
                errors.append(f"Invalid no-sales tier {tier}: expected [clicks >= 0, 0 < reduction < 1]")

        if not 0 < self.no_sales_max_reduction < 1:
            errors.append("No-sales max reduction must be between 0 and 1")

        if self.bid_floor <= 0:
            errors.append("Bid floor must be positive")

        if not 0 <= self.bid_floor_ratio < 1:
            errors.append("Bid floor ratio must be between 0 and 1")

        if self.max_bid_multiplier <= 1:
            errors.append("Max bid multiplier must be greater than 1")

        if not 0 <= self.placement_acos_band < 1:
            errors.append("Placement ACOS band must be between 0 and 1")

        if self.placement_max_step <= 0 or self.placement_step_factor <= 0:
            errors.append("Placement step settings must be positive")

        if self.placement_min_adjustment < 0 or self.placement_min_adjustment >= self.placement_max_adjustment:
            errors.append("Placement adjustment range must be non-negative and non-empty")

        if self.placement_rounding_step < 1:
            errors.append("Placement rounding step must be at least 1")

        if self.portfolio_min_placements < 2:
            errors.append("Portfolio balance needs at least 2 placements")

        if self.cooldown_days < 0:
            errors.append("Cooldown days must be non-negative")

        if self.never_changed_days < self.cooldown_days:
            errors.append("Never-changed days must not be below the cooldown")

        if self.t0_reset_policy not in T0_POLICIES:
            errors.append(f"T0 reset policy must be one of {T0_POLICIES}")

        if self.t0_materiality_threshold < 0:
            errors.append("T0 materiality threshold must be non-negative")

        if not self.countries:
            errors.append("At least one country must be configured")

        if self.max_entities_per_country < 1:
            errors.append("Max entities per country must be at least 1")

        if self.max_workers < 1:
            errors.append("Max workers must be at least 1")

        if self.write_retry_attempts < 1:
            errors.append("Write retry attempts must be at least 1")

        if self.write_retry_backoff_seconds < 0 or self.write_retry_max_wait_seconds < 0:
            errors.append("Write retry waits must be non-negative")

        if errors:
            raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")

        return True
