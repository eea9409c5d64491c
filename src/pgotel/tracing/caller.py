"""
Caller attribution for query spans.

Walks the interpreter stack to find the first frame that does not belong
to the SQL client library, so a span can point at the application code
that issued the query. Stack walking is comparatively expensive and only
runs when caller attribution is enabled.
"""

import sys
from collections.abc import Iterable, Iterator, Sequence
from types import FrameType
from typing import NamedTuple

# The driver's Python helpers (psycopg2.extras) count as library code
DRIVER_PACKAGE = "psycopg2"


class StackFrame(NamedTuple):
    """A single stack frame."""

    module: str
    function: str
    file: str
    line: int

    @property
    def qualified_name(self) -> str:
        if not self.module:
            return self.function
        return f"{self.module}.{self.function}"

    @property
    def short_name(self) -> str:
        """Qualified name reduced to the last module segment."""
        if not self.module:
            return self.function
        return f"{self.module.rpartition('.')[2]}.{self.function}"


class Caller(NamedTuple):
    """Resolved caller reported on spans."""

    function: str
    file: str
    line: int


def iter_frames(frame: FrameType | None, depth: int) -> Iterator[StackFrame]:
    """Yield up to depth frames, innermost first."""
    while frame is not None and depth > 0:
        code = frame.f_code
        yield StackFrame(
            module=frame.f_globals.get("__name__", ""),
            function=code.co_qualname,
            file=code.co_filename,
            line=frame.f_lineno,
        )
        frame = frame.f_back
        depth -= 1


def first_external_frame(frames: Iterable[StackFrame], package: str | Sequence[str]) -> Caller:
    """
    Select the first frame whose qualified name contains none of the packages.

    If every frame belongs to the library, the last one seen is reported.
    An empty stack yields an empty caller.

    Args:
        frames: Frames ordered innermost first
        package: Module path fragment(s) identifying library code

    Returns:
        Caller with the compact function name, file and line
    """
    packages = (package,) if isinstance(package, str) else tuple(package)

    last: StackFrame | None = None
    for last in frames:
        name = last.qualified_name
        if not any(p in name for p in packages):
            break

    if last is None:
        return Caller("", "", 0)
    return Caller(last.short_name, last.file, last.line)


class CallerResolver:
    """
    Resolves the application frame that issued a query.

    Example:
        >>> resolver = CallerResolver("pgotel")
        >>> caller = resolver.resolve()
    """

    def __init__(self, package: str, depth: int = 16):
        """
        Frames of the psycopg2 driver are skipped as well as those matching
        package.

        Args:
            package: Module path fragment identifying library code
            depth: Maximum number of frames to inspect
        """
        self.package = package
        self.depth = depth
        self._skipped = (package, DRIVER_PACKAGE)

    def resolve(self) -> Caller:
        """
        Find the first frame outside the library.

        The walk starts at the caller of the function that called resolve(),
        so neither resolve() nor the hook method invoking it is reported.
        """
        try:
            frame = sys._getframe(2)
        except ValueError:
            return Caller("", "", 0)
        return first_external_frame(iter_frames(frame, self.depth), self._skipped)
