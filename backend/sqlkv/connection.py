"""
Connection: thin handle over a registered ConnectionPool.

Primitives (execute / query_row / query_rows) acquire a pooled connection,
run one statement on a fresh cursor and release everything before returning,
except query_rows, whose Rows keeps the connection until closed. Driver
errors propagate unchanged.
"""

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from sqlkv.core.config import settings
from sqlkv.core.errors import EmptyBatchError
from sqlkv.core.pool.connect import column_names, row_to_dict
from sqlkv.core.pool.connect import execute as pool_execute
from sqlkv.core.pool.health import ping as pool_ping
from sqlkv.core.pool.pool import ConnectionPool
from sqlkv.engines.dispatcher import dispatch
from sqlkv.engines.result import Done, ExecResult, Rows
from sqlkv.engines.splitter import Dialect, format_sql
from sqlkv.models import (
    Descriptor,
    KeyValue,
    OperationEnum,
    Query,
    Statement,
)

_log = logging.getLogger(__name__)


def _exec_result(cur: Any) -> ExecResult:
    rowcount = cur.rowcount if cur.rowcount is not None and cur.rowcount >= 0 else 0
    last_id = getattr(cur, "lastrowid", None)
    return ExecResult(rows_affected=rowcount, last_insert_id=last_id)


class _Runner:
    """Statement execution on one raw connection; shared by Connection and Transaction."""

    _pool: ConnectionPool

    @property
    def dialect(self) -> Dialect:
        return self._pool.dialect

    def _log_statement(self, query: str, args: Sequence[Any] | None) -> None:
        if not settings.SQLKV_LOG_STATEMENTS:
            return
        if args is None:
            _log.debug("sql: %s", query)
        else:
            _log.debug("sql: %s", format_sql(query, args, self._pool.dialect))

    def _run_execute(self, conn: Any, query: str, args: Sequence[Any] | None) -> ExecResult:
        self._log_statement(query, args)
        cur = pool_execute(conn, query, args, driver=self._pool.driver)
        try:
            return _exec_result(cur)
        finally:
            cur.close()

    def _run_query_row(
        self, conn: Any, query: str, args: Sequence[Any] | None
    ) -> dict[str, Any] | None:
        self._log_statement(query, args)
        cur = pool_execute(conn, query, args, driver=self._pool.driver)
        try:
            row = cur.fetchone()
            if row is None:
                return None
            return row_to_dict(column_names(cur), row)
        finally:
            cur.close()


class Connection(_Runner):
    """
    Handle to a registered pool. Does not own the pool: valid only until the
    registry that issued it unregisters the name.
    """

    def __init__(self, pool: ConnectionPool, name: str = "") -> None:
        self._pool = pool
        self.name = name

    def __repr__(self) -> str:
        return f"Connection(name={self.name!r}, driver={self._pool.driver.value})"

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def execute(self, query: str, args: Sequence[Any] | None = None) -> ExecResult:
        """Run one write statement and commit it."""
        conn = self._pool.acquire()
        try:
            result = self._run_execute(conn, query, args)
            conn.commit()
            return result
        except Exception:
            _rollback_quiet(conn)
            raise
        finally:
            self._pool.release(conn)

    create = execute
    update = execute
    delete = execute

    def query_row(self, query: str, args: Sequence[Any] | None = None) -> dict[str, Any] | None:
        """Return the first row as a dict, or None when nothing matches."""
        conn = self._pool.acquire()
        try:
            return self._run_query_row(conn, query, args)
        finally:
            self._pool.release(conn)

    def query_rows(self, query: str, args: Sequence[Any] | None = None) -> Rows:
        """Return a Rows iterator. The caller must close it (or use ``with``)."""
        conn = self._pool.acquire()
        try:
            self._log_statement(query, args)
            cur = pool_execute(conn, query, args, driver=self._pool.driver)
        except Exception:
            self._pool.release(conn)
            raise
        return Rows(cur, conn, self._pool.release)

    def ping(self) -> None:
        conn = self._pool.acquire()
        try:
            pool_ping(conn, self._pool.driver)
        except Exception:
            self._pool.discard(conn)
            raise
        self._pool.release(conn)

    def stats(self) -> dict[str, int]:
        return self._pool.stats()

    def do(self, descriptor: Descriptor) -> Done:
        return dispatch(descriptor, self)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator["Transaction"]:
        """Commit on clean exit, roll back on exception. The connection is held until exit."""
        conn = self._pool.acquire()
        tx = Transaction(self._pool, conn)
        try:
            yield tx
            tx._finish()
            conn.commit()
        except BaseException:
            tx._finish()
            _rollback_quiet(conn)
            raise
        finally:
            self._pool.release(conn)

    def exec_tx(self, query: str, *args: Any) -> ExecResult:
        """Run one statement in its own transaction."""
        with self.transaction() as tx:
            return tx.execute(query, args or None)

    def exec_batch_tx(self, *statements: Statement | tuple[str, Sequence[Any]]) -> ExecResult:
        """Run statements in one transaction; returns the result of the last one."""
        if not statements:
            raise EmptyBatchError()
        with self.transaction() as tx:
            for stmt in statements:
                query, args = Statement(*stmt)
                result = tx.execute(query, args)
        return result

    # ------------------------------------------------------------------
    # Convenience CRUD (raise on error)
    # ------------------------------------------------------------------

    def insert(self, table: str, values: KeyValue) -> ExecResult:
        done = self.do(Descriptor(op=OperationEnum.CREATE, table=table, values=values))
        done.raise_for_error()
        return done.result  # type: ignore[return-value]

    def update_where(self, table: str, values: KeyValue, where: KeyValue) -> ExecResult:
        done = self.do(
            Descriptor(op=OperationEnum.UPDATE, table=table, values=values, where=where)
        )
        done.raise_for_error()
        return done.result  # type: ignore[return-value]

    def delete_where(self, table: str, where: KeyValue) -> ExecResult:
        done = self.do(Descriptor(op=OperationEnum.DELETE, table=table, where=where))
        done.raise_for_error()
        return done.result  # type: ignore[return-value]

    def select_row(
        self, table: str, fields: Sequence[str] = (), where: KeyValue | None = None
    ) -> dict[str, Any] | None:
        done = self.do(
            Descriptor(
                op=OperationEnum.READ,
                table=table,
                query=Query(fields=tuple(fields)),
                where=where or {},
            )
        )
        return done.raise_for_error().row()

    def select_rows(
        self, table: str, fields: Sequence[str] = (), where: KeyValue | None = None
    ) -> Rows:
        """Multi-row select; the caller must close the returned Rows."""
        done = self.do(
            Descriptor(
                op=OperationEnum.READ,
                table=table,
                query=Query(fields=tuple(fields), batch=True),
                where=where or {},
            )
        )
        return done.raise_for_error().rows()  # type: ignore[return-value]


class Transaction(_Runner):
    """Statements on one held connection; committed or rolled back by Connection.transaction()."""

    def __init__(self, pool: ConnectionPool, conn: Any) -> None:
        self._pool = pool
        self._conn = conn
        self._open_rows: list[Rows] = []

    def execute(self, query: str, args: Sequence[Any] | None = None) -> ExecResult:
        return self._run_execute(self._conn, query, args)

    def query_row(self, query: str, args: Sequence[Any] | None = None) -> dict[str, Any] | None:
        return self._run_query_row(self._conn, query, args)

    def query_rows(self, query: str, args: Sequence[Any] | None = None) -> Rows:
        """Rows bound to the transaction; closing them only closes the cursor."""
        self._log_statement(query, args)
        cur = pool_execute(self._conn, query, args, driver=self._pool.driver)
        rows = Rows(cur, self._conn, lambda _conn: None)
        self._open_rows.append(rows)
        return rows

    def _finish(self) -> None:
        for rows in self._open_rows:
            try:
                rows.close()
            except Exception as e:
                _log.warning("closing transaction rows failed: %s", e)
        self._open_rows = []


def _rollback_quiet(conn: Any) -> None:
    try:
        conn.rollback()
    except Exception as e:
        _log.warning("rollback failed: %s", e)
