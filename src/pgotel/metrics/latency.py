"""
Query latency instrument.

One histogram per process records the duration of every traced query in
microseconds. Prometheus metrics are safe for concurrent use, so any
number of threads may record through the same LatencyRecorder.
"""

import logging
from collections.abc import Sequence
from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Histogram

from pgotel.tracing.attributes import LATENCY_LABELS

logger = logging.getLogger(__name__)

LATENCY_METRIC_NAME = "sql_latency_microseconds"

# 100us .. 30s
LATENCY_BUCKETS = (
    100, 250, 500, 1_000, 2_500, 5_000, 10_000, 25_000, 50_000,
    100_000, 250_000, 500_000, 1_000_000, 2_500_000, 5_000_000,
    10_000_000, 30_000_000,
)


class LatencyRecorder:
    """
    Records query latency with method, instance, table and status labels

    Labels the caller does not supply are recorded as empty strings, since
    a Prometheus metric has a fixed label set.
    """

    def __init__(
        self,
        registry: Optional[CollectorRegistry] = None,
        histogram: Optional[Histogram] = None,
    ):
        """
        Initialize latency recorder

        Args:
            registry: Custom Prometheus registry (default: global REGISTRY)
            histogram: Already registered histogram to record into
        """
        self.registry = registry or REGISTRY

        if histogram is None:
            histogram = Histogram(
                LATENCY_METRIC_NAME,
                "The latency of SQL queries in microseconds",
                list(LATENCY_LABELS),
                buckets=LATENCY_BUCKETS,
                registry=self.registry,
            )
        self.latency = histogram

    def record(self, value: int, labels: Sequence[tuple[str, str]]) -> None:
        """
        Record one query duration

        Args:
            value: Elapsed time in microseconds
            labels: Ordered (key, value) label pairs; later pairs win
        """
        values = dict.fromkeys(LATENCY_LABELS, "")
        for key, label_value in labels:
            if key in values:
                values[key] = label_value
            else:
                logger.debug(f"Dropping unknown latency label: {key}")

        self.latency.labels(**values).observe(value)
