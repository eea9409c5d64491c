"""
Query latency metrics published to Prometheus

Usage:
    from pgotel.metrics import default_latency_recorder

    recorder = default_latency_recorder()
    recorder.record(1250, [("method", "SELECT"), ("status", "OK")])
"""

import logging
from typing import Callable, TypeVar

from prometheus_client import REGISTRY, CollectorRegistry

from .latency import LATENCY_BUCKETS, LATENCY_METRIC_NAME, LatencyRecorder

logger = logging.getLogger(__name__)

# Type variable for metric types
T = TypeVar("T")


def get_or_create_metric(
    metric_factory: Callable[[], T],
    metric_name: str,
    registry: CollectorRegistry = REGISTRY,
) -> T:
    """
    Create a metric or return the one already registered under metric_name.

    Args:
        metric_factory: Callable that creates the metric (e.g., lambda: Histogram(...))
        metric_name: Name of the metric for lookup if already registered
        registry: Prometheus registry to use (default: global REGISTRY)

    Returns:
        The metric instance (either newly created or existing)

    Example:
        LATENCY = get_or_create_metric(
            lambda: Histogram("sql_latency_microseconds", "Latency", ["method"]),
            "sql_latency_microseconds"
        )
    """
    try:
        return metric_factory()
    except ValueError:
        # Metric already registered, get existing one
        existing = registry._names_to_collectors.get(metric_name)
        if existing is not None:
            return existing
        raise


def default_latency_recorder(
    registry: CollectorRegistry = REGISTRY,
) -> LatencyRecorder:
    """
    Latency recorder bound to the process-wide histogram in registry.

    Safe to call repeatedly: every call records into the same histogram.
    """
    histogram = get_or_create_metric(
        lambda: LatencyRecorder(registry=registry).latency,
        LATENCY_METRIC_NAME,
        registry=registry,
    )
    return LatencyRecorder(registry=registry, histogram=histogram)


__all__ = [
    "LatencyRecorder",
    "LATENCY_BUCKETS",
    "LATENCY_METRIC_NAME",
    "default_latency_recorder",
    "get_or_create_metric",
]
