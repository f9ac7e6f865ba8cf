"""
Exceptions raised by the bid recommendation engine
"""


class DataSourceError(Exception):
    """Raised when performance data for an entity cannot be read"""


class StoreWriteError(Exception):
    """Raised when a recommendation cannot be written to the store"""


class RecommendationRunError(Exception):
    """Raised when a country run cannot produce any result at all"""


class RunConflictError(RecommendationRunError):
    """Raised when a run for the same country is already in flight"""
