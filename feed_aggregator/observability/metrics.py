"""
Prometheus metrics for monitoring the feed pipeline.

Defines and exposes metrics for:
- Items fetched and admitted per source
- Source fetch failures
- Cycle outcomes and latency
- Rejected triggers (busy / throttled)
- Feed and ledger size

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from feed_aggregator.config.settings import get_settings

logger = logging.getLogger(__name__)

# Cycles are dominated by Apify polling, so buckets reach several minutes
CYCLE_BUCKETS = (0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0)
FETCH_BUCKETS = (0.1, 0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 120.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the feed pipeline.

    Usage:
        metrics = get_metrics()
        metrics.start_server()
        metrics.record_fetch("twitter", count=12, latency=31.5)
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """Initialize Prometheus metrics."""
        self._registry = registry or REGISTRY

        self.items_fetched = Counter(
            "feed_aggregator_items_fetched_total",
            "Items returned by source adapters",
            ["source"],
            registry=self._registry,
        )

        self.items_admitted = Counter(
            "feed_aggregator_items_admitted_total",
            "Items newly admitted to the feed",
            ["source"],
            registry=self._registry,
        )

        self.source_errors = Counter(
            "feed_aggregator_source_errors_total",
            "Source fetches that failed",
            ["source"],
            registry=self._registry,
        )

        self.cycles = Counter(
            "feed_aggregator_cycles_total",
            "Merge cycles by outcome",
            ["outcome"],  # success, failed
            registry=self._registry,
        )

        self.triggers_rejected = Counter(
            "feed_aggregator_triggers_rejected_total",
            "Triggers rejected by the scheduler gate",
            ["reason"],  # busy, throttled
            registry=self._registry,
        )

        self.cycle_latency = Histogram(
            "feed_aggregator_cycle_latency_seconds",
            "Wall time of a full merge cycle",
            buckets=CYCLE_BUCKETS,
            registry=self._registry,
        )

        self.fetch_latency = Histogram(
            "feed_aggregator_fetch_latency_seconds",
            "Time to fetch one source",
            ["source"],
            buckets=FETCH_BUCKETS,
            registry=self._registry,
        )

        self.feed_size = Gauge(
            "feed_aggregator_feed_size",
            "Items in the persisted feed",
            registry=self._registry,
        )

        self.seen_ids = Gauge(
            "feed_aggregator_seen_ids",
            "Identifiers in the persisted seen ledger",
            registry=self._registry,
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=self._registry)
        logger.info(f"Prometheus metrics server started on port {port}")

    # Convenience methods

    def record_fetch(
        self,
        source: str,
        count: int,
        latency: float | None = None,
        failed: bool = False,
    ) -> None:
        """
        Record the outcome of one source fetch.

        Args:
            source: Source tag
            count: Items returned
            latency: Optional fetch latency in seconds
            failed: Whether the fetch failed
        """
        self.items_fetched.labels(source=source).inc(count)
        if failed:
            self.source_errors.labels(source=source).inc()
        if latency is not None:
            self.fetch_latency.labels(source=source).observe(latency)

    def record_admitted(self, source: str, count: int = 1) -> None:
        self.items_admitted.labels(source=source).inc(count)

    def record_cycle(self, outcome: str, latency: float | None = None) -> None:
        """
        Record a finished cycle.

        Args:
            outcome: success or failed
            latency: Optional cycle wall time in seconds
        """
        self.cycles.labels(outcome=outcome).inc()
        if latency is not None:
            self.cycle_latency.observe(latency)

    def record_rejected_trigger(self, reason: str) -> None:
        self.triggers_rejected.labels(reason=reason).inc()

    def set_state_size(self, feed_size: int, seen_ids: int) -> None:
        self.feed_size.set(feed_size)
        self.seen_ids.set(seen_ids)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
