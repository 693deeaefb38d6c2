"""
Error kinds raised by the registry, pools, connections and dispatcher.

Every error derives from SqlkvError and from the closest builtin, so callers
can catch either ``SqlkvError`` or e.g. ``ValueError`` / ``LookupError``.
"""

from __future__ import annotations


class SqlkvError(Exception):
    """Base class for all sqlkv errors."""

    pass


class ConfigInvalidError(SqlkvError, ValueError):
    """Raised when a Config fails validation (empty DSN, negative pool sizes)."""

    pass


class ConnectionOpenFailedError(SqlkvError, ConnectionError):
    """Raised when the driver cannot open a connection during registration."""

    pass


class ConnectionUnreachableError(SqlkvError, ConnectionError):
    """Raised when the liveness ping fails during registration."""

    pass


class EmptyNameError(SqlkvError, ValueError):
    """Raised when a connection name is empty."""

    def __init__(self, message: str = "connection name is empty") -> None:
        super().__init__(message)


class NotRegisteredError(SqlkvError, LookupError):
    """Raised when looking up a connection name that is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"connection {name!r} is not registered")
        self.name = name


class AlreadyRegisteredError(SqlkvError, ValueError):
    """Raised when registering a connection name that already exists."""

    def __init__(self, name: str) -> None:
        super().__init__(f"connection {name!r} is already registered")
        self.name = name


class InvalidOperationError(SqlkvError, ValueError):
    """Raised when a descriptor has an unknown operation kind or no table."""

    pass


class EmptyValueMapError(SqlkvError, ValueError):
    """Raised when a create/update is given no values."""

    pass


class EmptyConditionMapError(SqlkvError, ValueError):
    """Raised when an update/delete is given no conditions."""

    pass


class ResultUnavailableError(SqlkvError, LookupError):
    """Raised when a write-result accessor is used but no write result was produced."""

    def __init__(self, message: str = "result is not available") -> None:
        super().__init__(message)


class UnsupportedValueError(SqlkvError, TypeError):
    """Raised when a KeyValue holds a value that is not a supported scalar."""

    pass


class EmptyBatchError(SqlkvError, ValueError):
    """Raised when a batch transaction is submitted with no statements."""

    def __init__(self, message: str = "empty transaction batch") -> None:
        super().__init__(message)


class PoolClosedError(SqlkvError, RuntimeError):
    """Raised when acquiring from a pool that has been closed."""

    pass


class TeardownError(SqlkvError):
    """
    Raised after a close sweep in which one or more pools failed to close.

    ``errors`` holds every failure as ``(name, exception)``; the sweep itself
    always runs to the end before this is raised.
    """

    def __init__(self, errors: list[tuple[str, BaseException]]) -> None:
        self.errors = list(errors)
        detail = "; ".join(f"{name}: {exc}" for name, exc in self.errors)
        super().__init__(f"{len(self.errors)} pool(s) failed to close: {detail}")
