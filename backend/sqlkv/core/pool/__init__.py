"""
DB connection and connection pool for registered DSNs.

No driver layer: pymysql and psycopg are installed via pip, sqlite3 ships with
Python; the DSN scheme picks the driver.
"""

from .connect import (
    connect,
    dialect_for,
    execute,
    parse_dsn,
    resolve_driver,
)
from .health import health_check, ping
from .pool import ConnectionPool

__all__ = [
    "connect",
    "execute",
    "dialect_for",
    "parse_dsn",
    "resolve_driver",
    "health_check",
    "ping",
    "ConnectionPool",
]
