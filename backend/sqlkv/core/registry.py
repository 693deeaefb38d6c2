"""
Connection registry: name -> ConnectionPool.

Registration is all-or-nothing per call and fails closed on duplicate names.
Lookups take the shared side of a reader/writer lock; register, unregister
and the close sweep take the exclusive side.
"""

import logging
import threading
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from sqlkv.connection import Connection
from sqlkv.core.errors import (
    AlreadyRegisteredError,
    ConfigInvalidError,
    ConnectionOpenFailedError,
    ConnectionUnreachableError,
    EmptyNameError,
    NotRegisteredError,
    TeardownError,
)
from sqlkv.core.pool.connect import connect, resolve_driver
from sqlkv.core.pool.health import ping
from sqlkv.core.pool.pool import ConnectionPool
from sqlkv.models import Config, validate_configs

_log = logging.getLogger(__name__)


class _RWLock:
    """Many concurrent readers or one writer; writers are not starved by new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class Registry:
    """
    Named set of connection pools with explicit construction and teardown.

    Usable as a context manager: ``with Registry() as reg: ...`` closes every
    pool on exit.
    """

    def __init__(self, *, connector: Callable[[str], Any] | None = None) -> None:
        self._pools: dict[str, ConnectionPool] = {}
        self._lock = _RWLock()
        self._connector = connector or connect

    def register(self, configs: Mapping[str, Config | Mapping[str, Any]]) -> None:
        """
        Open, ping and store one pool per name.

        Every config is validated before anything is opened. If any pool fails
        to open or ping, the pools opened by this call are closed and nothing
        is stored.
        """
        validated = validate_configs(configs)
        for name, config in validated.items():
            try:
                resolve_driver(config.dsn)
            except ConfigInvalidError as e:
                raise ConfigInvalidError(f"connection {name!r}: {e}") from e
        with self._lock.write():
            for name in validated:
                if not name:
                    raise EmptyNameError()
                if name in self._pools:
                    raise AlreadyRegisteredError(name)

            opened: dict[str, ConnectionPool] = {}
            try:
                for name, config in validated.items():
                    opened[name] = self._open(name, config)
            except Exception:
                for name, pool in opened.items():
                    try:
                        pool.close()
                    except Exception as e:
                        _log.warning("closing pool %r after failed register: %s", name, e)
                raise
            self._pools.update(opened)
        for name in opened:
            _log.info("registered connection %r (%s)", name, opened[name].driver.value)

    def register_one(self, name: str, config: Config | Mapping[str, Any]) -> None:
        self.register({name: config})

    def lookup(self, name: str) -> Connection:
        if not name:
            raise EmptyNameError()
        with self._lock.read():
            pool = self._pools.get(name)
        if pool is None:
            raise NotRegisteredError(name)
        return Connection(pool, name)

    def names(self) -> list[str]:
        with self._lock.read():
            return list(self._pools)

    def __contains__(self, name: object) -> bool:
        with self._lock.read():
            return name in self._pools

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._pools)

    def unregister(self, name: str) -> None:
        """Remove and close one pool."""
        if not name:
            raise EmptyNameError()
        with self._lock.write():
            pool = self._pools.pop(name, None)
            if pool is None:
                raise NotRegisteredError(name)
            try:
                pool.close()
            except Exception as e:
                raise TeardownError([(name, e)]) from e
        _log.info("unregistered connection %r", name)

    def unregister_all(self) -> None:
        """
        Close every pool and clear the mapping. Idempotent.

        Every close is attempted; failures are collected and raised together
        as one TeardownError after the mapping has been cleared.
        """
        errors: list[tuple[str, BaseException]] = []
        with self._lock.write():
            pools = self._pools
            self._pools = {}
            for name, pool in pools.items():
                try:
                    pool.close()
                except Exception as e:
                    _log.warning("closing pool %r failed: %s", name, e)
                    errors.append((name, e))
        if pools:
            _log.info("unregistered %d connection(s)", len(pools))
        if errors:
            raise TeardownError(errors)

    def __enter__(self) -> "Registry":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.unregister_all()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _open(self, name: str, config: Config) -> ConnectionPool:
        pool = ConnectionPool(config, connector=self._connector)
        try:
            conn = pool.acquire()
        except Exception as e:
            pool.close()
            raise ConnectionOpenFailedError(f"connection {name!r}: open failed: {e}") from e
        try:
            ping(conn, pool.driver)
        except Exception as e:
            pool.discard(conn)
            pool.close()
            raise ConnectionUnreachableError(f"connection {name!r}: ping failed: {e}") from e
        pool.release(conn)
        return pool


# ---------------------------------------------------------------------------
# Default registry (convenience for callers that do not inject their own)
# ---------------------------------------------------------------------------

_default_registry: Registry | None = None
_default_lock = threading.Lock()


def get_registry() -> Registry:
    """Return the process-wide default Registry (thread-safe double-checked locking)."""
    global _default_registry
    if _default_registry is None:
        with _default_lock:
            if _default_registry is None:
                _default_registry = Registry()
    return _default_registry


def register(configs: Mapping[str, Config | Mapping[str, Any]]) -> None:
    get_registry().register(configs)


def lookup(name: str) -> Connection:
    return get_registry().lookup(name)


def unregister_all() -> None:
    get_registry().unregister_all()
