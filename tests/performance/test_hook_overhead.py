"""
Overhead measurements for the query hook.
Reports per-statement cost without enforcing thresholds.

Run with: pytest tests/performance/test_hook_overhead.py -v -s -m performance
"""

import time

import pytest
from opentelemetry import context as otel_context

from pgotel import HookConfig, QueryResult, QueryTelemetryHook

ITERATIONS = 20_000

pytestmark = pytest.mark.performance


def measure(hook, make_event, ctx, iterations=ITERATIONS) -> float:
    """Average microseconds spent in before_query + after_query."""
    event = make_event(result=QueryResult(rows_returned=1))
    start = time.perf_counter()
    for _ in range(iterations):
        query_ctx = hook.before_query(ctx, event)
        hook.after_query(query_ctx, event)
    return (time.perf_counter() - start) / iterations * 1_000_000


class TestHookOverhead:
    """Measure and report hook overhead per statement."""

    def test_untraced_fast_path(self, tracer, span_exporter, make_event):
        # Arrange
        hook = QueryTelemetryHook(tracer=tracer)

        # Act
        per_call = measure(hook, make_event, otel_context.get_current())

        # Assert
        print(f"\nUntraced hook overhead: {per_call:.2f} us/statement")
        assert len(span_exporter.get_finished_spans()) == 0

    def test_traced_statement(self, tracer, span_exporter, parent_context, make_event):
        # Arrange
        hook = QueryTelemetryHook(tracer=tracer)

        # Act
        per_call = measure(hook, make_event, parent_context, iterations=2_000)

        # Assert
        print(f"\nTraced hook overhead: {per_call:.2f} us/statement")
        assert len(span_exporter.get_finished_spans()) == 2_000

    def test_metrics_only(self, tracer, latency_recorder, make_event):
        hook = QueryTelemetryHook(
            config=HookConfig(allow_metric=True),
            tracer=tracer,
            latency_recorder=latency_recorder,
        )

        per_call = measure(hook, make_event, otel_context.get_current())

        print(f"\nMetrics-only hook overhead: {per_call:.2f} us/statement")
