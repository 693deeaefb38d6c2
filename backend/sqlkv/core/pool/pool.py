"""
Bounded connection pool for one registered DSN.

Reuses raw driver connections to avoid open/close on every call. Enforces
max open (blocking acquire), max idle, max lifetime and max idle time, and
pings connections that sat idle longer than SQLKV_PING_IDLE_THRESHOLD before
handing them out again.
"""

import logging
import threading
import time
from collections.abc import Callable
from typing import Any, NamedTuple

from sqlkv.core.config import settings
from sqlkv.core.errors import PoolClosedError
from sqlkv.models import Config, DriverEnum

from .connect import connect, dialect_for, resolve_driver
from .health import health_check

_log = logging.getLogger(__name__)


class _PoolEntry(NamedTuple):
    conn: Any
    created_at: float  # time.monotonic() when the connection was opened
    last_used: float   # time.monotonic() when last returned to pool


class ConnectionPool:
    """Per-DSN connection pool with health-check, max-lifetime and max-idle-time."""

    def __init__(
        self,
        config: Config,
        *,
        connector: Callable[[str], Any] | None = None,
    ) -> None:
        self.config = config
        self.driver: DriverEnum = resolve_driver(config.dsn)
        self.dialect = dialect_for(self.driver)
        self._connector = connector or connect
        self._idle: list[_PoolEntry] = []
        # id(conn) -> created_at for connections currently handed out
        self._in_use: dict[int, float] = {}
        # connections being opened outside the lock, counted against max_open_conns
        self._opening = 0
        self._cond = threading.Condition(threading.Lock())
        self._closed = False
        self._wait_count = 0
        self._max_idle_closed = 0
        self._max_lifetime_closed = 0
        self._max_idle_time_closed = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def acquire(self) -> Any:
        """Get a healthy connection (from the idle list or freshly opened)."""
        while True:
            entry = self._checkout()
            if entry is None:
                break
            if self._is_expired(entry):
                self._discard(entry.conn, reason="max_lifetime")
                continue
            if self._is_idle_too_long(entry):
                self._discard(entry.conn, reason="max_idle_time")
                continue
            idle_sec = time.monotonic() - entry.last_used
            if idle_sec > settings.SQLKV_PING_IDLE_THRESHOLD and not self._is_alive(entry.conn):
                self._discard(entry.conn, reason="ping")
                continue
            return entry.conn

        # Slot reserved by _checkout; open outside the lock.
        try:
            conn = self._connector(self.config.dsn)
        except BaseException:
            with self._cond:
                self._opening -= 1
                self._cond.notify()
            raise
        with self._cond:
            self._opening -= 1
            self._in_use[id(conn)] = time.monotonic()
        return conn

    def release(self, conn: Any) -> None:
        """Return a connection to the pool (or close it if the pool is full, closed or the conn is stale)."""
        try:
            conn.rollback()
        except Exception as e:
            _log.debug("rollback on release failed, dropping connection: %s", e)
            self._forget(conn)
            self._close_quiet(conn)
            return

        now = time.monotonic()
        with self._cond:
            created_at = self._in_use.pop(id(conn), now)
            self._cond.notify()
            entry = _PoolEntry(conn=conn, created_at=created_at, last_used=now)
            keep = (
                not self._closed
                and not self._is_expired(entry)
                and len(self._idle) < self.config.max_idle_conns
            )
            if keep:
                self._idle.append(entry)
                return
            if not self._closed:
                if self._is_expired(entry):
                    self._max_lifetime_closed += 1
                else:
                    self._max_idle_closed += 1

        self._close_quiet(conn)

    def discard(self, conn: Any) -> None:
        """Close a broken connection instead of returning it to the pool."""
        self._forget(conn)
        self._close_quiet(conn)

    def close(self) -> None:
        """
        Close every idle connection and refuse further acquires.

        Connections still handed out are closed when released. Every idle
        connection is attempted; the first close error is raised afterwards.
        """
        with self._cond:
            self._closed = True
            entries = self._idle
            self._idle = []
            self._cond.notify_all()
        first_error: Exception | None = None
        for e in entries:
            try:
                e.conn.close()
            except Exception as exc:
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error

    def stats(self) -> dict[str, int]:
        """Return pool statistics for monitoring."""
        with self._cond:
            in_use = len(self._in_use)
            idle = len(self._idle)
            return {
                "max_open_connections": self.config.max_open_conns,
                "open_connections": in_use + idle,
                "in_use": in_use,
                "idle": idle,
                "wait_count": self._wait_count,
                "max_idle_closed": self._max_idle_closed,
                "max_lifetime_closed": self._max_lifetime_closed,
                "max_idle_time_closed": self._max_idle_time_closed,
            }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _checkout(self) -> _PoolEntry | None:
        """
        Pop an idle entry, or reserve a slot for a new connection (returns None).

        Blocks while max_open_conns connections are open and none is idle.
        """
        max_open = self.config.max_open_conns
        with self._cond:
            waited = False
            while True:
                if self._closed:
                    raise PoolClosedError("connection pool is closed")
                if self._idle:
                    entry = self._idle.pop()
                    self._in_use[id(entry.conn)] = entry.created_at
                    return entry
                if max_open <= 0 or len(self._in_use) + self._opening < max_open:
                    self._opening += 1
                    return None
                if not waited:
                    self._wait_count += 1
                    waited = True
                self._cond.wait()

    def _forget(self, conn: Any) -> None:
        with self._cond:
            self._in_use.pop(id(conn), None)
            self._cond.notify()

    def _discard(self, conn: Any, *, reason: str) -> None:
        _log.debug("evicting pooled connection (%s)", reason)
        with self._cond:
            if reason == "max_lifetime":
                self._max_lifetime_closed += 1
            elif reason == "max_idle_time":
                self._max_idle_time_closed += 1
        self.discard(conn)

    def _is_expired(self, entry: _PoolEntry) -> bool:
        max_lifetime = self.config.max_lifetime
        if max_lifetime <= 0:
            return False
        return (time.monotonic() - entry.created_at) > max_lifetime

    def _is_idle_too_long(self, entry: _PoolEntry) -> bool:
        max_idle_time = self.config.max_idle_time
        if max_idle_time <= 0:
            return False
        return (time.monotonic() - entry.last_used) > max_idle_time

    def _is_alive(self, conn: Any) -> bool:
        return health_check(conn, self.driver)

    @staticmethod
    def _close_quiet(conn: Any) -> None:
        try:
            conn.close()
        except Exception as e:
            _log.warning("closing pooled connection failed: %s", e)
