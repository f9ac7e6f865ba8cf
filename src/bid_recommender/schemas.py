"""
Pydantic schemas for configuration updates and history queries
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .efficiency import Weights

WEIGHT_SUM_TOLERANCE = 0.01


class WeightsUpdateRequest(BaseModel):
    """Window weights update for one country ('ALL' is the global default)"""
    country: str = Field(default='ALL', min_length=2, max_length=3, description="Country code or ALL")
    t0: float = Field(..., ge=0, le=1, description="Weight of performance since last change")
    d30: float = Field(..., ge=0, le=1, description="Weight of the last 30 days")
    d365: float = Field(..., ge=0, le=1, description="Weight of the last 365 days")
    lifetime: float = Field(..., ge=0, le=1, description="Weight of all history")

    @field_validator('country')
    @classmethod
    def upper_country(cls, value: str) -> str:
        return value.upper()

    @model_validator(mode='after')
    def check_sum(self) -> 'WeightsUpdateRequest':
        total = self.t0 + self.d30 + self.d365 + self.lifetime
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            raise ValueError(f"Weights must sum to 1.0 (got {total:.3f})")
        return self

    def to_weights(self) -> Weights:
        return Weights(t0=self.t0, d30=self.d30, d365=self.d365, lifetime=self.lifetime, country=self.country)


class AcosTargetUpdateRequest(BaseModel):
    """ACOS target of one campaign, as a fraction"""
    country: str = Field(..., min_length=2, max_length=3)
    campaign_id: str = Field(..., min_length=1)
    campaign_name: Optional[str] = None
    acos_target: float = Field(..., gt=0, le=1.0, description="Target ACOS (0-1.0)")

    @field_validator('country')
    @classmethod
    def upper_country(cls, value: str) -> str:
        return value.upper()


class HistoryQuery(BaseModel):
    """Filters for the recommendation history"""
    country: Optional[str] = None
    campaign_id: Optional[str] = None
    recommendation_type: Optional[str] = Field(
        default=None, pattern='^(keyword_bid|placement_adjustment)$'
    )
    implemented_only: bool = False
    limit: int = Field(default=100, ge=1, le=10000)
