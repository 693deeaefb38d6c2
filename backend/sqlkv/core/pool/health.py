"""
Connection health check for pooled DBs.
"""

from typing import Any

from sqlkv.models import DriverEnum

from .connect import execute


def ping(conn: Any, driver: DriverEnum | None = None) -> None:
    """Run SELECT 1; raises the driver error if the connection is unusable."""
    cur = execute(conn, "SELECT 1", driver=driver)
    try:
        cur.fetchone()
    finally:
        cur.close()


def health_check(conn: Any, driver: DriverEnum | None = None) -> bool:
    """
    Run SELECT 1 and return True if no exception. Postgres, MySQL and SQLite all support SELECT 1.
    """
    try:
        ping(conn, driver)
        return True
    except Exception:
        return False
