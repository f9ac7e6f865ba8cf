"""
Lightweight telemetry helper backed by prometheus_client.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest


class TelemetryClient:
    """Simple telemetry helper supporting increment/gauge/observe."""

    def __init__(self, config: Dict[str, Any], registry: Optional[CollectorRegistry] = None):
        self.logger = logging.getLogger(__name__)
        self.enabled = config.get('enable_telemetry', True)
        self.registry = registry or CollectorRegistry()
        self._counters: Dict[Tuple[str, Tuple[str, ...]], Counter] = {}
        self._gauges: Dict[Tuple[str, Tuple[str, ...]], Gauge] = {}
        self._histograms: Dict[Tuple[str, Tuple[str, ...]], Histogram] = {}

    def increment(self, name: str, value: float = 1.0, labels: Optional[Dict[str, str]] = None) -> None:
        if not self.enabled:
            return
        labels = labels or {}
        self._get_counter(name, labels).labels(**labels).inc(value)

    def gauge(self, name: str, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        if not self.enabled:
            return
        labels = labels or {}
        self._get_gauge(name, labels).labels(**labels).set(value)

    def observe(self, name: str, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        if not self.enabled:
            return
        labels = labels or {}
        self._get_histogram(name, labels).labels(**labels).observe(value)

    def export(self) -> bytes:
        """Current metrics in the Prometheus text format"""
        return generate_latest(self.registry)

    # ------------------------------------------------------------------ #
    # Run metrics
    # ------------------------------------------------------------------ #

    def record_run_summary(self, summary: Any) -> None:
        """
        Record the counts of one country run

        Args:
            summary: RunSummary of the finished run
        """
        labels = {'country': summary.country}
        for outcome, count in summary.outcome_counts().items():
            self.increment('bid_recommender_entities_total', count, {**labels, 'outcome': outcome})
        self.increment('bid_recommender_recommendations_total', summary.keyword_recommendations,
                       {**labels, 'type': 'keyword_bid'})
        self.increment('bid_recommender_recommendations_total', summary.placement_recommendations,
                       {**labels, 'type': 'placement_adjustment'})
        self.gauge('bid_recommender_portfolio_balanced_campaigns', summary.portfolio_balanced_campaigns, labels)
        self.observe('bid_recommender_run_seconds', summary.duration_seconds, labels)

    def record_run_failure(self, country: str, error_type: str) -> None:
        self.increment('bid_recommender_run_failures_total', 1, {'country': country, 'error': error_type})

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _metric_key(self, name: str, labels: Dict[str, str]) -> Tuple[str, Tuple[str, ...]]:
        return name, tuple(sorted(labels.keys()))

    def _get_counter(self, name: str, labels: Dict[str, str]) -> Counter:
        key = self._metric_key(name, labels)
        if key not in self._counters:
            self._counters[key] = Counter(name, f"{name} counter", labelnames=list(key[1]),
                                          registry=self.registry)
        return self._counters[key]

    def _get_gauge(self, name: str, labels: Dict[str, str]) -> Gauge:
        key = self._metric_key(name, labels)
        if key not in self._gauges:
            self._gauges[key] = Gauge(name, f"{name} gauge", labelnames=list(key[1]),
                                      registry=self.registry)
        return self._gauges[key]

    def _get_histogram(self, name: str, labels: Dict[str, str]) -> Histogram:
        key = self._metric_key(name, labels)
        if key not in self._histograms:
            self._histograms[key] = Histogram(name, f"{name} histogram", labelnames=list(key[1]),
                                              registry=self.registry)
        return self._histograms[key]
