"""
Pytest configuration and fixtures for pgotel tests.
Provides an in-memory tracer, isolated metric registries and event factories.
"""

import os
import time
from collections.abc import Iterator

import pytest
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from prometheus_client import CollectorRegistry

from pgotel.events import QueryEvent
from pgotel.metrics import LatencyRecorder


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "performance: mark test as performance test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


@pytest.fixture(autouse=True)
def set_test_env_vars() -> None:
    """Set default test environment variables if not already set."""
    defaults = {
        "POSTGRES_HOST": "localhost",
        "POSTGRES_PORT": "5432",
        "POSTGRES_DB": "pgotel_test",
        "POSTGRES_USER": "postgres",
        "POSTGRES_PASSWORD": "postgres",
    }

    for key, value in defaults.items():
        if key not in os.environ:
            os.environ[key] = value


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    """Exporter collecting finished spans."""
    return InMemorySpanExporter()


@pytest.fixture
def tracer_provider(span_exporter: InMemorySpanExporter) -> Iterator[TracerProvider]:
    """Tracer provider exporting synchronously to span_exporter."""
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    yield provider
    provider.shutdown()


@pytest.fixture
def tracer(tracer_provider: TracerProvider) -> trace.Tracer:
    return tracer_provider.get_tracer("tests")


@pytest.fixture
def parent_context(tracer: trace.Tracer):
    """Context carrying a recording root span (never ended)."""
    root = tracer.start_span("root")
    return trace.set_span_in_context(root)


@pytest.fixture
def registry() -> CollectorRegistry:
    """Isolated Prometheus registry."""
    return CollectorRegistry()


@pytest.fixture
def latency_recorder(registry: CollectorRegistry) -> LatencyRecorder:
    return LatencyRecorder(registry=registry)


def substitute_params(query: str, params: list) -> str:
    """Replace each ? placeholder with the repr of the next parameter."""
    for value in params:
        query = query.replace("?", repr(value), 1)
    return query


@pytest.fixture
def make_event():
    """Factory for query events with ?-style parameter substitution."""

    def _make(query="SELECT * FROM customers WHERE id = ?", params=None, **kwargs) -> QueryEvent:
        kwargs.setdefault("formatter", substitute_params)
        kwargs.setdefault("unformatter", lambda q, _params: q)
        return QueryEvent(
            start_time=time.monotonic(),
            query=query,
            params=[1] if params is None else params,
            **kwargs,
        )

    return _make
