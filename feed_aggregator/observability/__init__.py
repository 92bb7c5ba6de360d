"""Observability layer - logging and metrics."""

from feed_aggregator.observability.logging import log_context, setup_logging
from feed_aggregator.observability.metrics import MetricsCollector, get_metrics

__all__ = ["setup_logging", "log_context", "MetricsCollector", "get_metrics"]
