"""
psycopg2 integration.

TracedConnection hands out TracedCursor instances, which build a
QueryEvent for each execute()/executemany() and run the connection's
query hooks around the statement.

Example:
    >>> conn = connect("dbname=app", hooks=[QueryTelemetryHook()])
    >>> with conn.cursor() as cur:
    ...     cur.execute("SELECT * FROM customers WHERE id = %s", (42,))
"""

import logging
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any

import psycopg2
import psycopg2.extensions
from opentelemetry import context as otel_context
from psycopg2 import sql

from pgotel.events import (
    ConnectionOptions,
    MultiRowsError,
    NoRowsError,
    QueryEvent,
    QueryFormatError,
    QueryResult,
    TaggedQuery,
)

logger = logging.getLogger(__name__)


def param_list(vars: Any) -> list[Any]:
    """Bound parameters of a statement as an ordered list."""
    if vars is None:
        return []
    if isinstance(vars, Mapping) or isinstance(vars, (str, bytes)):
        return [vars]
    if isinstance(vars, (list, tuple)):
        return list(vars)
    return [vars]


def query_result(cursor: Any) -> QueryResult:
    """
    Row counts of the last statement run on cursor.

    psycopg2 reports a single rowcount: rows returned for statements that
    produce a result set, rows affected otherwise.
    """
    rowcount = max(cursor.rowcount, 0)
    if cursor.description is None:
        return QueryResult(rows_affected=rowcount)
    return QueryResult(rows_returned=rowcount)


def options_from_info(info: Any) -> ConnectionOptions:
    """Connection options from a psycopg2 ConnectionInfo."""
    host = info.host or ""
    addr = f"{host}:{info.port}" if info.port else host
    return ConnectionOptions(
        addr=addr,
        user=info.user or "",
        database=info.dbname or "",
    )


class TracedCursor(psycopg2.extensions.cursor):
    """
    Cursor running its connection's query hooks around each statement.

    Hooks see the event before execution and, exactly once, after it, also
    when the statement fails. Driver errors are always re-raised unchanged.
    """

    def execute(self, query, vars=None):
        execute = super().execute
        statement = _statement(query)
        return self._traced(
            query,
            param_list(vars),
            lambda q, _params: self.mogrify(q, vars),
            lambda: execute(statement, vars),
        )

    def executemany(self, query, vars_list):
        # Rows are not substituted: the statement text is reported as written
        vars_list = list(vars_list)
        executemany = super().executemany
        statement = _statement(query)
        return self._traced(
            query,
            vars_list,
            None,
            lambda: executemany(statement, vars_list),
        )

    def execute_one(self, query, vars=None) -> tuple:
        """
        Execute a statement that must return exactly one row and fetch it.

        Raises:
            NoRowsError: If the statement returned no rows
            MultiRowsError: If the statement returned more than one row
        """
        execute = super().execute
        statement = _statement(query)
        return self._traced(
            query,
            param_list(vars),
            lambda q, _params: self.mogrify(q, vars),
            lambda: self._fetch_one(execute, statement, vars),
        )

    def _fetch_one(self, execute: Callable[[Any, Any], Any], statement: Any, vars: Any) -> tuple:
        execute(statement, vars)
        rows = self.fetchmany(2)
        if not rows:
            raise NoRowsError()
        if len(rows) > 1:
            raise MultiRowsError()
        return rows[0]

    def _unformat(self, query: Any, _params: list[Any]) -> str | bytes:
        if isinstance(query, sql.Composable):
            return query.as_string(self.connection)
        return query

    def _traced(
        self,
        query: Any,
        params: list[Any],
        formatter: Callable[[Any, list[Any]], str | bytes] | None,
        run: Callable[[], Any],
    ) -> Any:
        hooks = tuple(getattr(self.connection, "query_hooks", ()))
        if not hooks:
            return run()

        event = QueryEvent(
            start_time=time.monotonic(),
            query=query,
            params=params,
            db=self.connection,
            formatter=formatter,
            unformatter=self._unformat,
        )

        contexts = []
        ctx = otel_context.get_current()
        for hook in hooks:
            ctx = hook.before_query(ctx, event)
            contexts.append(ctx)

        try:
            value = run()
        except BaseException as e:
            # Interrupts and timeouts included: every started span must end
            event.err = e
            self._after_query(hooks, contexts, event, failed=True)
            raise

        event.result = query_result(self)
        self._after_query(hooks, contexts, event, failed=False)
        return value

    def _after_query(
        self,
        hooks: tuple,
        contexts: list,
        event: QueryEvent,
        failed: bool,
    ) -> None:
        hook_error = None
        for hook, ctx in zip(reversed(hooks), reversed(contexts)):
            try:
                hook.after_query(ctx, event)
            except Exception as e:
                if failed:
                    # The statement error is the one the caller needs to see
                    logger.warning(f"Query telemetry incomplete for failed statement: {e}")
                elif hook_error is None:
                    hook_error = e
                else:
                    logger.warning(f"Query hook {type(hook).__name__} failed: {e}")

        if hook_error is not None:
            raise hook_error


class TracedConnection(psycopg2.extensions.connection):
    """
    Connection whose cursors run query hooks.

    Passing another cursor_factory to cursor() bypasses the hooks.
    """

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.query_hooks: list = []
        self.cursor_factory = TracedCursor

    def add_query_hook(self, hook: Any) -> None:
        """Register a hook with before_query/after_query methods."""
        self.query_hooks.append(hook)
        logger.debug(f"Query hook registered: {type(hook).__name__}")

    def options(self) -> ConnectionOptions:
        return options_from_info(self.info)


def _statement(query: Any) -> Any:
    if isinstance(query, TaggedQuery):
        return query.sql
    return query


def connect(dsn: str | None = None, hooks: Iterable[Any] = (), **kwargs: Any) -> TracedConnection:
    """
    Open a PostgreSQL connection whose cursors run hooks.

    Args:
        dsn: libpq connection string
        hooks: Query hooks to register
        **kwargs: Further psycopg2.connect() arguments

    Returns:
        TracedConnection
    """
    conn = psycopg2.connect(dsn, connection_factory=TracedConnection, **kwargs)
    for hook in hooks:
        conn.add_query_hook(hook)
    return conn
