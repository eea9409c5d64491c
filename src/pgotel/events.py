"""
Query events produced by the SQL client integration.

A QueryEvent describes a single query attempt: what was sent, with which
parameters, on which connection, and how it ended. Optional behaviour of
the query object, its first parameter and the connection is exposed through
small capability protocols checked with isinstance().
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class PgOtelError(Exception):
    """Base exception for pgotel errors."""

    pass


class QueryFormatError(PgOtelError):
    """Raised when a statement cannot be rendered to text."""

    pass


class NoRowsError(PgOtelError):
    """Raised when a single-row query returned no rows."""

    def __init__(self, message: str = "pg: no rows in result set"):
        super().__init__(message)


class MultiRowsError(PgOtelError):
    """Raised when a single-row query returned more than one row."""

    def __init__(self, message: str = "pg: multiple rows in result set"):
        super().__init__(message)


# Expected outcomes of single-row queries, reported as plain error status
EXPECTED_ERRORS = (NoRowsError, MultiRowsError)


class QueryOp(str, Enum):
    """Typed operation of a query built by a model layer."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    SELECT = "SELECT"
    DELETE = "DELETE"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Table:
    """Table metadata of a model."""

    model_name: str
    name: str = ""


@dataclass(frozen=True)
class ConnectionOptions:
    """Connection settings a connection handle exposes."""

    addr: str = ""
    user: str = ""
    database: str = ""


@dataclass(frozen=True)
class QueryResult:
    """Row counts reported by the driver for an executed statement."""

    rows_affected: int = 0
    rows_returned: int = 0


@runtime_checkable
class QueryOperation(Protocol):
    """Query object that knows its operation."""

    def operation(self) -> QueryOp | None: ...


@runtime_checkable
class TableModel(Protocol):
    """Parameter that maps to a database table."""

    def table(self) -> Table: ...


@runtime_checkable
class ConnectionOptionsProvider(Protocol):
    """Connection handle exposing its options."""

    def options(self) -> ConnectionOptions: ...


@dataclass
class TaggedQuery:
    """
    SQL text tagged with its operation.

    Passing a TaggedQuery instead of a plain string names the span and the
    method label after the operation rather than the statement text.

    Example:
        >>> cursor.execute(TaggedQuery("INSERT INTO t (v) VALUES (%s)", QueryOp.INSERT), (1,))
    """

    sql: Any
    op: QueryOp | None = None

    def operation(self) -> QueryOp | None:
        return self.op


def _render(
    renderer: Callable[[Any, list[Any]], str | bytes] | None,
    query: Any,
    params: list[Any],
) -> str:
    if renderer is None:
        text = query
    else:
        try:
            text = renderer(query, params)
        except QueryFormatError:
            raise
        except Exception as e:
            raise QueryFormatError(f"cannot format query: {e}") from e

    if isinstance(text, bytes):
        return text.decode("utf-8", errors="replace")
    if not isinstance(text, str):
        raise QueryFormatError(f"cannot format query of type {type(text).__name__}")
    return text


@dataclass
class QueryEvent:
    """
    One query attempt as seen by a query hook.

    The integration fills the event in two stages: query, params, db and
    start_time before execution; result or err afterwards. Hooks only read it.

    Attributes:
        start_time: time.monotonic() reading taken before execution
        query: Query object (str, psycopg2 Composable or TaggedQuery)
        params: Bound parameters, in order
        db: Originating connection handle
        result: Row counts of a successful statement
        err: Exception raised by the statement, if any
        formatter: Renders (query, params) with parameters substituted
        unformatter: Renders (query, params) without parameter substitution
        stash: Free-form storage for integrations
    """

    start_time: float
    query: Any
    params: list[Any] = field(default_factory=list)
    db: Any = None
    result: QueryResult | None = None
    err: BaseException | None = None
    formatter: Callable[[Any, list[Any]], str | bytes] | None = None
    unformatter: Callable[[Any, list[Any]], str | bytes] | None = None
    stash: dict[str, Any] = field(default_factory=dict)

    def _sql(self) -> Any:
        if isinstance(self.query, TaggedQuery):
            return self.query.sql
        return self.query

    def unformatted_query(self) -> str:
        """
        Statement text with placeholders left in place.

        Raises:
            QueryFormatError: If the query cannot be rendered
        """
        return _render(self.unformatter, self._sql(), self.params)

    def formatted_query(self) -> str:
        """
        Statement text with parameters substituted inline.

        Raises:
            QueryFormatError: If the parameters cannot be bound
        """
        return _render(self.formatter, self._sql(), self.params)
