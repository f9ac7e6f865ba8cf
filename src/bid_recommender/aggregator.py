"""
Metrics aggregator: sums daily performance into the four evaluation windows
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Mapping, Optional

from .config import RecommenderConfig
from .entities import TargetingEntity, Window, WindowMetrics, WindowSet
from .exceptions import DataSourceError


@dataclass(frozen=True)
class DateRange:
    """Inclusive date range; start None means unbounded"""
    start: Optional[date]
    end: date


class MetricsAggregator:
    """Reads window totals for an entity from a data source"""

    def __init__(self, config: RecommenderConfig, data_source: Any):
        self.config = config
        self.data_source = data_source
        self.logger = logging.getLogger(__name__)
        self.earliest_data_date = (
            date.fromisoformat(config.earliest_data_date) if config.earliest_data_date else None
        )

    def window_ranges(self, today: date, t0_start: Optional[date]) -> Dict[Window, DateRange]:
        """
        Compute the date range of each window

        Args:
            today: Reference date (inclusive end of every window)
            t0_start: Date of the last (relevant) bid change, None if never changed

        Returns:
            Mapping of window to date range
        """
        lifetime_start = self.earliest_data_date
        t0 = t0_start if t0_start is not None else lifetime_start
        if t0 is not None and lifetime_start is not None and t0 < lifetime_start:
            t0 = lifetime_start

        return {
            Window.T0: DateRange(t0, today),
            Window.D30: DateRange(today - timedelta(days=self.config.short_window_days), today),
            Window.D365: DateRange(today - timedelta(days=self.config.long_window_days), today),
            Window.LIFETIME: DateRange(lifetime_start, today),
        }

    def aggregate(self, entity: TargetingEntity, today: date, t0_start: Optional[date]) -> WindowSet:
        """
        Aggregate clicks, cost, sales and orders for every window

        Raises:
            DataSourceError: when the data source fails or returns invalid totals
        """
        metrics = {}
        for window, date_range in self.window_ranges(today, t0_start).items():
            try:
                totals = self.data_source.get_window_totals(entity, date_range.start, date_range.end)
            except DataSourceError:
                raise
            except Exception as e:
                raise DataSourceError(
                    f"Failed to read {window.value} totals for {entity.display_name}: {e}"
                ) from e
            metrics[window.value] = self._to_metrics(entity, window, totals)

        return WindowSet(**metrics)

    def _to_metrics(self, entity: TargetingEntity, window: Window,
                    totals: Optional[Mapping[str, Any]]) -> WindowMetrics:
        if not totals:
            return WindowMetrics()
        try:
            return WindowMetrics(
                clicks=int(totals.get('clicks') or 0),
                cost=float(totals.get('cost') or 0),
                sales=float(totals.get('sales') or 0),
                orders=int(totals.get('orders') or 0),
            )
        except (TypeError, ValueError) as e:
            raise DataSourceError(
                f"Invalid {window.value} totals for {entity.display_name}: {e}"
            ) from e
