"""
OpenTelemetry query hook.

QueryTelemetryHook is driven by the SQL client integration around every
statement: before_query opens a span when someone is tracing, after_query
turns the finished QueryEvent into span name, attributes, status and a
latency sample.
"""

import logging
import time
from contextlib import ExitStack
from typing import Any

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import SpanKind, Status, StatusCode

from pgotel.config import HookConfig
from pgotel.events import (
    EXPECTED_ERRORS,
    ConnectionOptions,
    ConnectionOptionsProvider,
    QueryEvent,
    QueryFormatError,
    QueryOp,
    QueryOperation,
    Table,
    TableModel,
)
from pgotel.metrics import LatencyRecorder, default_latency_recorder

from .attributes import (
    ATTR_DB_CONNECTION_STRING,
    ATTR_DB_NAME,
    ATTR_DB_ROWS_AFFECTED,
    ATTR_DB_STATEMENT,
    ATTR_DB_SYSTEM,
    ATTR_DB_USER,
    ATTR_FRAME_FILE,
    ATTR_FRAME_FUNC,
    ATTR_FRAME_LINE,
    DB_SYSTEM,
    LABEL_INSTANCE,
    LABEL_METHOD,
    LABEL_TABLE,
    OPERATION_NAME_LIMIT,
    STATEMENT_LIMIT,
    STATUS_ERROR_LABEL,
    STATUS_OK_LABEL,
)
from .caller import CallerResolver
from .tracer import get_tracer

logger = logging.getLogger(__name__)


def operation_name(statement: str) -> str:
    """
    Derive a low-cardinality operation name from statement text.

    The first word of the statement, capped at 20 characters.

    Example:
        >>> operation_name("  SELECT * FROM t WHERE id=1")
        'SELECT'
    """
    name = statement.lstrip()
    idx = name.find(" ")
    if idx > 0:
        name = name[:idx]
    return name[:OPERATION_NAME_LIMIT].strip()


def _capability(obj: Any, capability: type, method: str) -> Any:
    """
    Result of obj.<method>() when obj provides the capability, else None.

    Protocol checks only see that the attribute exists, so a plain field of
    the same name, or a method that fails, counts as no capability.
    """
    if not isinstance(obj, capability):
        return None
    func = getattr(obj, method, None)
    if not callable(func):
        return None
    try:
        return func()
    except (TypeError, AttributeError) as e:
        logger.debug(f"Ignoring {capability.__name__} of {type(obj).__name__}: {e}")
        return None


class QueryTelemetryHook:
    """
    Query hook emitting spans and latency metrics for each statement.

    Spans are only created below a recording parent span. Latency is
    recorded for every statement when allow_metric is enabled, traced or not.

    Example:
        >>> hook = QueryTelemetryHook(config=HookConfig(allow_metric=True))
        >>> ctx = hook.before_query(None, event)
        >>> ...  # execute the statement, fill event.result / event.err
        >>> hook.after_query(ctx, event)
    """

    def __init__(
        self,
        config: HookConfig | None = None,
        tracer: trace.Tracer | None = None,
        latency_recorder: LatencyRecorder | None = None,
    ):
        """
        Args:
            config: Hook options (default: caller and metrics disabled)
            tracer: Tracer for query spans (default: from the global provider)
            latency_recorder: Latency instrument (default: process-wide histogram,
                created only when allow_metric is enabled)
        """
        self.config = config or HookConfig()
        self._tracer = tracer or get_tracer()

        self._latency = latency_recorder
        if self.config.allow_metric and self._latency is None:
            self._latency = default_latency_recorder()

        self._resolver: CallerResolver | None = None
        if self.config.caller:
            self._resolver = CallerResolver(self.config.caller_package)

    @property
    def caller(self) -> bool:
        return self.config.caller

    @property
    def allow_metric(self) -> bool:
        return self.config.allow_metric

    def before_query(self, ctx: Context | None, event: QueryEvent) -> Context | None:
        """
        Start a query span when the context carries a recording span.

        The span is unnamed until after_query knows the operation.

        Returns:
            Context carrying the new span, or ctx unchanged
        """
        if not trace.get_current_span(ctx).is_recording():
            return ctx

        span = self._tracer.start_span("", context=ctx, kind=SpanKind.CLIENT)
        return trace.set_span_in_context(span, ctx)

    def after_query(self, ctx: Context | None, event: QueryEvent) -> None:
        """
        Describe a finished query on its span and the latency metric.

        The span is ended and latency recorded even when the statement text
        cannot be rendered.

        A failed statement sets ERROR status. NoRowsError and MultiRowsError
        are expected outcomes and get no description. Any other error is
        also recorded as an exception event, and its message becomes the
        status description so that backends listing failed spans show the
        cause without opening the events.

        Capabilities of the query, connection and first parameter that
        cannot be used are skipped; they never fail the hook.

        Raises:
            QueryFormatError: If the statement cannot be rendered to text
        """
        span = trace.get_current_span(ctx)
        recording = span.is_recording()
        if not recording and not self.allow_metric:
            return

        labels: list[tuple[str, str]] = []
        with ExitStack() as stack:
            if recording:
                stack.callback(span.end)
            if self.allow_metric:
                stack.callback(self._record_latency, event, labels)

            op = _capability(event.query, QueryOperation, "operation")

            # Inserted values stay out of telemetry
            try:
                if op == QueryOp.INSERT:
                    query = event.unformatted_query()
                else:
                    query = event.formatted_query()
            except QueryFormatError as e:
                logger.debug(f"Cannot render statement for telemetry: {e}")
                raise

            name = str(op) if op else operation_name(query)
            if recording:
                span.update_name(name)
            labels.append((LABEL_METHOD, name))

            if len(query) > STATEMENT_LIMIT:
                query = query[:STATEMENT_LIMIT]

            attrs: dict[str, Any] = {}
            if self._resolver is not None:
                caller = self._resolver.resolve()
                attrs[ATTR_FRAME_FUNC] = caller.function
                attrs[ATTR_FRAME_FILE] = caller.file
                attrs[ATTR_FRAME_LINE] = caller.line

            attrs[ATTR_DB_SYSTEM] = DB_SYSTEM
            attrs[ATTR_DB_STATEMENT] = query

            opts = _capability(event.db, ConnectionOptionsProvider, "options")
            if isinstance(opts, ConnectionOptions):
                attrs[ATTR_DB_CONNECTION_STRING] = opts.addr
                attrs[ATTR_DB_USER] = opts.user
                attrs[ATTR_DB_NAME] = opts.database
                if opts.database:
                    labels.append((LABEL_INSTANCE, opts.database))

            table = None
            if event.params:
                table = _capability(event.params[0], TableModel, "table")
            if isinstance(table, Table) and table.model_name:
                labels.append((LABEL_TABLE, table.model_name))

            if event.err is not None:
                if recording:
                    if isinstance(event.err, EXPECTED_ERRORS):
                        span.set_status(Status(StatusCode.ERROR))
                    else:
                        span.record_exception(event.err)
                        span.set_status(Status(StatusCode.ERROR, str(event.err)))
                labels.append(STATUS_ERROR_LABEL)
            elif event.result is not None:
                rows = event.result.rows_affected
                if rows == 0:
                    rows = event.result.rows_returned
                attrs[ATTR_DB_ROWS_AFFECTED] = rows
                labels.append(STATUS_OK_LABEL)

            if recording:
                span.set_attributes(attrs)

    def _record_latency(self, event: QueryEvent, labels: list[tuple[str, str]]) -> None:
        elapsed = int((time.monotonic() - event.start_time) * 1_000_000)
        self._latency.record(elapsed, labels)
