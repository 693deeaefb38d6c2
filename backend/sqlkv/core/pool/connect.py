"""
Driver connection helpers.

Resolves a DSN URL to a driver: pymysql (MySQL), psycopg (PostgreSQL) or
sqlite3 (SQLite). No driver layer of our own: the DSN is enough to open a
raw DB-API connection.
"""

import logging
import sqlite3
from typing import Any

import psycopg
import pymysql
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from sqlkv.core.config import settings
from sqlkv.core.errors import ConfigInvalidError
from sqlkv.engines.splitter import (
    MYSQL_DIALECT,
    POSTGRES_DIALECT,
    SQLITE_DIALECT,
    Dialect,
)
from sqlkv.models import DriverEnum

_log = logging.getLogger(__name__)

_BACKEND_ALIASES = {
    "mysql": DriverEnum.MYSQL,
    "mariadb": DriverEnum.MYSQL,
    "postgresql": DriverEnum.POSTGRES,
    "postgres": DriverEnum.POSTGRES,
    "sqlite": DriverEnum.SQLITE,
}

_DIALECTS = {
    DriverEnum.MYSQL: MYSQL_DIALECT,
    DriverEnum.POSTGRES: POSTGRES_DIALECT,
    DriverEnum.SQLITE: SQLITE_DIALECT,
}


def parse_dsn(dsn: str) -> URL:
    """Parse a DSN URL (``mysql://u:p@host:3306/db``), raising ConfigInvalidError if malformed."""
    try:
        return make_url(dsn)
    except (ArgumentError, ValueError) as e:
        # make_url raises a bare ValueError for a non-numeric port
        raise ConfigInvalidError(f"invalid dsn: {e}") from e


def resolve_driver(dsn: str | URL) -> DriverEnum:
    """
    Map the DSN scheme to a driver.

    In-memory SQLite is rejected: every pooled connection would open its own
    private, empty database.
    """
    url = parse_dsn(dsn) if isinstance(dsn, str) else dsn
    backend = url.get_backend_name()
    driver = _BACKEND_ALIASES.get(backend)
    if driver is None:
        raise ConfigInvalidError(f"unsupported dsn scheme: {backend}")
    if driver == DriverEnum.SQLITE and url.database in (None, "", ":memory:"):
        raise ConfigInvalidError("in-memory sqlite is not supported, use a file path")
    return driver


def dialect_for(driver: DriverEnum) -> Dialect:
    return _DIALECTS[driver]


def connect(dsn: str) -> Any:
    """
    Open a raw DB-API connection for *dsn*.

    - mysql[+pymysql]://user:pw@host:3306/db?charset=utf8mb4
    - postgresql[+psycopg]://user:pw@host:5432/db
    - sqlite:///relative.db, sqlite:////abs/path.db
    """
    url = parse_dsn(dsn)
    driver = resolve_driver(url)
    timeout = settings.SQLKV_CONNECT_TIMEOUT

    if driver == DriverEnum.SQLITE:
        # Pooled connections move between threads; the pool serialises their use.
        return sqlite3.connect(
            url.database,
            timeout=timeout,
            check_same_thread=False,
        )
    if driver == DriverEnum.MYSQL:
        return pymysql.connect(
            host=url.host or "localhost",
            port=int(url.port or 3306),
            database=url.database,
            user=url.username,
            password=url.password or "",
            charset=str(url.query.get("charset", "utf8mb4")),
            connect_timeout=timeout,
        )
    if driver == DriverEnum.POSTGRES:
        return psycopg.connect(
            host=url.host or "localhost",
            port=int(url.port or 5432),
            dbname=url.database,
            user=url.username,
            password=url.password or "",
            connect_timeout=timeout,
        )
    raise ConfigInvalidError(f"unsupported driver: {driver}")


def execute(
    conn: Any,
    sql: str,
    params: list | tuple | None = None,
    *,
    driver: DriverEnum | None = None,
) -> Any:
    """
    Execute SQL and return the cursor. Caller reads rows or rowcount, then closes it.

    - driver: used for SQLKV_STATEMENT_TIMEOUT (Postgres: statement_timeout,
      MySQL: max_execution_time). When set, applies timeout in ms before the
      query and resets after.
    - params: None sends *sql* untouched. Any sequence, even an empty one,
      goes through the driver's placeholder substitution, which also turns
      `%%` back into `%` for pymysql and psycopg.
    """
    timeout_sec = settings.SQLKV_STATEMENT_TIMEOUT
    use_timeout = (
        timeout_sec is not None
        and timeout_sec > 0
        and driver in (DriverEnum.POSTGRES, DriverEnum.MYSQL)
    )

    if use_timeout:
        timeout_ms = int(timeout_sec * 1000)
        cur_set = conn.cursor()
        try:
            if driver == DriverEnum.POSTGRES:
                cur_set.execute(f"SET statement_timeout = {timeout_ms}")
            else:
                cur_set.execute(f"SET SESSION max_execution_time = {timeout_ms}")
        finally:
            cur_set.close()

    cur = conn.cursor()
    try:
        if params is not None:
            cur.execute(sql, tuple(params))
        else:
            cur.execute(sql)
    except Exception:
        cur.close()
        raise
    finally:
        if use_timeout:
            # Fails inside an aborted Postgres transaction; the query error wins.
            try:
                cur_reset = conn.cursor()
                if driver == DriverEnum.POSTGRES:
                    cur_reset.execute("SET statement_timeout = 0")
                else:
                    cur_reset.execute("SET SESSION max_execution_time = 0")
                cur_reset.close()
            except Exception as e:
                _log.warning("statement timeout reset failed: %s", e)

    return cur


def column_names(cursor: Any) -> list[str]:
    desc = cursor.description
    if not desc:
        return []
    return [d[0] for d in desc]


def row_to_dict(names: list[str], row: Any) -> dict[str, Any]:
    return dict(zip(names, row, strict=True))

