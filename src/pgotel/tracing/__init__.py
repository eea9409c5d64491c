"""
Distributed tracing of PostgreSQL queries using OpenTelemetry.

Provides:
- QueryTelemetryHook: spans and latency metrics for each statement
- CallerResolver: attribution of queries to application code
- get_tracer: tracer used for query spans
"""

from .caller import Caller, CallerResolver, StackFrame, first_external_frame
from .hook import QueryTelemetryHook, operation_name
from .tracer import get_tracer

__all__ = [
    "QueryTelemetryHook",
    "operation_name",
    "CallerResolver",
    "Caller",
    "StackFrame",
    "first_external_frame",
    "get_tracer",
]
