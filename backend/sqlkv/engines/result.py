"""
Results of executed statements: ExecResult (writes), Rows (multi-row reads)
and Done, the uniform wrapper returned by dispatch().
"""

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from sqlkv.core.errors import ResultUnavailableError


@dataclass(frozen=True)
class ExecResult:
    """Outcome of an INSERT / UPDATE / DELETE."""

    rows_affected: int
    last_insert_id: int | None = None


class Rows:
    """
    Iterator over the rows of a multi-row query, yielded as dicts.

    Holds a pooled connection until close() is called; callers must close it
    on every exit path (or use it as a context manager).
    """

    def __init__(
        self,
        cursor: Any,
        conn: Any,
        release: Callable[[Any], None],
    ) -> None:
        self._cursor = cursor
        self._conn = conn
        self._release = release
        desc = cursor.description or ()
        self.columns: list[str] = [d[0] for d in desc]
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[dict[str, Any]]:
        while not self._closed:
            row = self._cursor.fetchone()
            if row is None:
                return
            yield dict(zip(self.columns, row, strict=True))

    def all(self) -> list[dict[str, Any]]:
        """Read every remaining row, then close."""
        try:
            return list(self)
        finally:
            self.close()

    def close(self) -> None:
        """Close the cursor and hand the connection back to its pool. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        try:
            self._cursor.close()
        finally:
            self._release(self._conn)

    def __enter__(self) -> "Rows":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


class Done:
    """
    Uniform result of dispatch(): at most one of result / row / rows, plus
    error and runtime (seconds, wall clock).
    """

    __slots__ = ("_result", "_row", "_rows", "error", "runtime")

    def __init__(
        self,
        *,
        result: ExecResult | None = None,
        row: dict[str, Any] | None = None,
        rows: Rows | None = None,
        error: BaseException | None = None,
        runtime: float = 0.0,
    ) -> None:
        self._result = result
        self._row = row
        self._rows = rows
        self.error = error
        self.runtime = runtime

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def result(self) -> ExecResult | None:
        return self._result

    def last_insert_id(self) -> int:
        if self._result is None:
            raise ResultUnavailableError("no write result")
        if self._result.last_insert_id is None:
            raise ResultUnavailableError("last insert id is not supported by this driver")
        return self._result.last_insert_id

    def rows_affected(self) -> int:
        if self._result is None:
            raise ResultUnavailableError("no write result")
        return self._result.rows_affected

    def row(self) -> dict[str, Any] | None:
        """Single row of a non-batch read; None if absent or not a single-row read."""
        return self._row

    def rows(self) -> Rows | None:
        """Row iterator of a batch read; None if not a batch read. Caller must close it."""
        return self._rows

    def close_rows(self) -> None:
        if self._rows is not None:
            self._rows.close()

    def raise_for_error(self) -> "Done":
        """Raise the stored error, if any; otherwise return self for chaining."""
        if self.error is not None:
            raise self.error
        return self

    def __repr__(self) -> str:
        kind = (
            "result" if self._result is not None
            else "row" if self._row is not None
            else "rows" if self._rows is not None
            else "empty"
        )
        return f"Done({kind}, error={self.error!r}, runtime={self.runtime:.6f})"
