"""
OpenTelemetry instrumentation for PostgreSQL queries

Provides:
- tracing: query hook emitting spans and latency metrics
- metrics: Prometheus latency histogram
- cursor: psycopg2 connection and cursor running query hooks
"""

__version__ = "1.0.0"

from .config import HookConfig
from .cursor import TracedConnection, TracedCursor, connect
from .events import (
    ConnectionOptions,
    MultiRowsError,
    NoRowsError,
    PgOtelError,
    QueryEvent,
    QueryFormatError,
    QueryOp,
    QueryResult,
    Table,
    TaggedQuery,
)
from .tracing import CallerResolver, QueryTelemetryHook

__all__ = [
    "__version__",
    "HookConfig",
    "QueryTelemetryHook",
    "CallerResolver",
    "QueryEvent",
    "QueryResult",
    "QueryOp",
    "TaggedQuery",
    "Table",
    "ConnectionOptions",
    "PgOtelError",
    "QueryFormatError",
    "NoRowsError",
    "MultiRowsError",
    "TracedConnection",
    "TracedCursor",
    "connect",
]
