"""
Bid Recommendation Engine
=========================

Recommends keyword bids and placement bid adjustments by comparing a
weighted, multi-timeframe ACOS against per-campaign targets, with
minimum-click thresholds, change caps, a cooldown between changes and a
portfolio balance across a campaign's placements.

Version: 1.0.0
"""

from .config import RecommenderConfig
from .database import DatabaseConnector
from .efficiency import (
    Acos,
    Confidence,
    Insufficient,
    NoSalesAboveThreshold,
    Weights,
    classify_confidence,
    weighted_acos,
)
from .entities import BidChangeRecord, EntityKind, TargetingEntity, Window, WindowMetrics, WindowSet
from .exceptions import DataSourceError, RecommendationRunError, RunConflictError, StoreWriteError
from .portfolio import PortfolioBalancer
from .re_entry_control import BidChangeTracker, ReEntryController, ReEntryControlResult
from .recommendations import Recommendation, RecommendationEngine
from .rule_engine import BidRecommendationEngine, RunSummary
from .rules import KeywordBidRule, PlacementAdjustmentRule, RuleResult

__version__ = "1.0.0"
__all__ = [
    # Core Engine
    "BidRecommendationEngine",
    "RunSummary",
    # Rules
    "KeywordBidRule",
    "PlacementAdjustmentRule",
    "RuleResult",
    "PortfolioBalancer",
    # Efficiency
    "Acos",
    "NoSalesAboveThreshold",
    "Insufficient",
    "Weights",
    "Confidence",
    "weighted_acos",
    "classify_confidence",
    # Data model
    "TargetingEntity",
    "EntityKind",
    "Window",
    "WindowMetrics",
    "WindowSet",
    "BidChangeRecord",
    # Recommendation System
    "RecommendationEngine",
    "Recommendation",
    # Re-entry Control
    "ReEntryController",
    "ReEntryControlResult",
    "BidChangeTracker",
    # Database
    "DatabaseConnector",
    # Configuration
    "RecommenderConfig",
    # Errors
    "DataSourceError",
    "StoreWriteError",
    "RecommendationRunError",
    "RunConflictError",
]
