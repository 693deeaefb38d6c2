"""
sqlkv models.

Config (pool registration input), OperationEnum, Query, Descriptor (one CRUD
call) and Statement (one entry of a batch transaction).
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, NamedTuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sqlkv.core.errors import ConfigInvalidError

# Values a KeyValue may carry; anything else is rejected by the splitter.
Scalar = Union[None, bool, int, float, Decimal, str, bytes, datetime, date, time]
SCALAR_TYPES: tuple[type, ...] = (
    type(None),
    bool,
    int,
    float,
    Decimal,
    str,
    bytes,
    datetime,
    date,
    time,
)

KeyValue = Mapping[str, Scalar]


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class DriverEnum(str, Enum):
    """Supported database drivers (resolved from the DSN scheme)."""

    MYSQL = "mysql"
    POSTGRES = "postgresql"
    SQLITE = "sqlite"


class OperationEnum(str, Enum):
    """CRUD operation kind of a Descriptor."""

    CREATE = "create"
    UPDATE = "update"
    READ = "read"
    DELETE = "delete"


# ---------------------------------------------------------------------------
# Config - pool registration input
# ---------------------------------------------------------------------------


class Config(BaseModel):
    """Connection pool configuration. Durations are in seconds; 0 means unlimited."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    dsn: str = Field(..., min_length=1)
    max_open_conns: int = Field(default=0, ge=0)
    max_idle_conns: int = Field(default=2, ge=0)
    max_lifetime: float = Field(default=0, ge=0)
    max_idle_time: float = Field(default=0, ge=0)

    @classmethod
    def parse(cls, value: "Config | Mapping[str, Any]") -> "Config":
        """Return *value* as a Config, raising ConfigInvalidError on bad input."""
        if isinstance(value, Config):
            return value
        if not isinstance(value, Mapping):
            raise ConfigInvalidError(
                f"config must be a Config or mapping, got {type(value).__name__}"
            )
        try:
            return cls.model_validate(dict(value))
        except ValidationError as e:
            raise ConfigInvalidError(f"incorrect config parameters: {e}") from e


def validate_configs(
    configs: Mapping[str, "Config | Mapping[str, Any]"],
) -> dict[str, Config]:
    """Validate every config of a name -> config mapping before anything is opened."""
    out: dict[str, Config] = {}
    for name, raw in configs.items():
        try:
            out[name] = Config.parse(raw)
        except ConfigInvalidError as e:
            raise ConfigInvalidError(f"connection {name!r}: {e}") from e
    return out


# ---------------------------------------------------------------------------
# Descriptor - one CRUD operation
# ---------------------------------------------------------------------------


@dataclass
class Query:
    """Read options: projected fields (empty = ``*``) and batch (multi-row) mode."""

    fields: Sequence[str] = ()
    batch: bool = False


@dataclass
class Descriptor:
    """
    One CRUD operation prior to SQL generation.

    - values: columns to write (CREATE / UPDATE)
    - where: conditions to match (UPDATE / DELETE / READ)
    """

    op: OperationEnum | None = None
    table: str = ""
    query: Query = field(default_factory=Query)
    values: KeyValue = field(default_factory=dict)
    where: KeyValue = field(default_factory=dict)


DescriptorOption = Callable[[Descriptor], None]


def with_op(op: OperationEnum) -> DescriptorOption:
    def apply(d: Descriptor) -> None:
        d.op = op

    return apply


def with_table(table: str) -> DescriptorOption:
    def apply(d: Descriptor) -> None:
        d.table = table

    return apply


def with_query(fields: Sequence[str], batch: bool = False) -> DescriptorOption:
    def apply(d: Descriptor) -> None:
        d.query = Query(fields=tuple(fields), batch=batch)

    return apply


def with_values(values: KeyValue) -> DescriptorOption:
    def apply(d: Descriptor) -> None:
        d.values = values

    return apply


def with_where(where: KeyValue) -> DescriptorOption:
    def apply(d: Descriptor) -> None:
        d.where = where

    return apply


def new_descriptor(*options: DescriptorOption) -> Descriptor:
    """Build a Descriptor from option helpers, e.g. ``new_descriptor(with_op(...), with_table("t"))``."""
    d = Descriptor()
    for apply in options:
        apply(d)
    return d


# ---------------------------------------------------------------------------
# Statement - one entry of a batch transaction
# ---------------------------------------------------------------------------


class Statement(NamedTuple):
    query: str
    args: Sequence[Any] | None = None
