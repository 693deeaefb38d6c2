"""
KeyValue splitter: turn a column -> value mapping into SQL fragments plus args.

Field list, placeholder list and args are always produced in one pass over the
mapping, so they correspond position by position within a single call. Never
mix the output of two separate calls.
"""

from collections.abc import Iterable, Sequence
from typing import Any, NamedTuple

from sqlkv.core.errors import UnsupportedValueError
from sqlkv.models import SCALAR_TYPES, KeyValue


class Dialect(NamedTuple):
    """Identifier quote character and positional placeholder of a driver."""

    quote: str
    placeholder: str


DEFAULT_DIALECT = Dialect(quote="`", placeholder="?")
MYSQL_DIALECT = Dialect(quote="`", placeholder="%s")
POSTGRES_DIALECT = Dialect(quote='"', placeholder="%s")
SQLITE_DIALECT = Dialect(quote="`", placeholder="?")


def quote_identifier(name: str, dialect: Dialect = DEFAULT_DIALECT) -> str:
    """
    Wrap *name* in the dialect's quote character, doubling any embedded quote.

    For ``%s`` dialects a literal ``%`` is doubled as well, since pymysql and
    psycopg treat every ``%`` in the statement as the start of a placeholder.
    """
    if not isinstance(name, str) or name == "":
        raise UnsupportedValueError(f"field name must be a non-empty string, got {name!r}")
    q = dialect.quote
    name = name.replace(q, q + q)
    if dialect.placeholder == "%s":
        name = name.replace("%", "%%")
    return q + name + q


def join_fields(names: Iterable[str], dialect: Dialect = DEFAULT_DIALECT) -> str:
    """Quote and comma-join field names: ``a, b`` -> `` `a`,`b` ``."""
    return ",".join(quote_identifier(n, dialect) for n in names)


def _check_value(name: str, value: Any) -> None:
    if not isinstance(value, SCALAR_TYPES):
        raise UnsupportedValueError(
            f"unsupported value for field {name!r}: {type(value).__name__}"
        )


def split(
    kv: KeyValue, dialect: Dialect = DEFAULT_DIALECT
) -> tuple[str, str, list[Any]]:
    """
    Split for INSERT: (`` `a`,`b` ``, ``?,?``, [va, vb]).

    Empty mapping returns ("", "", []).
    """
    if not kv:
        return "", "", []
    fields: list[str] = []
    args: list[Any] = []
    for name, value in kv.items():
        _check_value(name, value)
        fields.append(quote_identifier(name, dialect))
        args.append(value)
    placeholders = ",".join(dialect.placeholder for _ in fields)
    return ",".join(fields), placeholders, args


def split_assign(
    kv: KeyValue, dialect: Dialect = DEFAULT_DIALECT, sep: str = ","
) -> tuple[str, list[Any]]:
    """
    Split for SET / WHERE: (`` `a`=?,`b`=? ``, [va, vb]).

    Empty mapping returns ("", []).
    """
    if not kv:
        return "", []
    parts: list[str] = []
    args: list[Any] = []
    for name, value in kv.items():
        _check_value(name, value)
        parts.append(f"{quote_identifier(name, dialect)}={dialect.placeholder}")
        args.append(value)
    return sep.join(parts), args


def split_where(
    kv: KeyValue, dialect: Dialect = DEFAULT_DIALECT
) -> tuple[str, list[Any]]:
    """Split conditions joined with AND: (`` `a`=? AND `b`=? ``, [va, vb])."""
    return split_assign(kv, dialect, sep=" AND ")


def _literal(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, bytes):
        return "X'" + value.hex() + "'"
    return "'" + str(value).replace("'", "''") + "'"


def format_sql(
    query: str, args: Sequence[Any], dialect: Dialect = DEFAULT_DIALECT
) -> str:
    """
    Interpolate args into placeholders for log output only; never execute the result.

    Placeholders inside quoted identifiers and string literals are not
    substituted. Extra placeholders (more than args) are left as-is.
    """
    token = dialect.placeholder
    percent = token == "%s"
    quotes = {dialect.quote, "'", '"'}
    out: list[str] = []
    n = 0
    i = 0
    open_quote = None
    while i < len(query):
        if percent and query.startswith("%%", i):
            out.append("%")
            i += 2
            continue
        ch = query[i]
        if open_quote is not None:
            # a doubled quote closes and reopens, which prints the same
            if ch == open_quote:
                open_quote = None
        elif ch in quotes:
            open_quote = ch
        elif query.startswith(token, i):
            out.append(_literal(args[n]) if n < len(args) else token)
            n += 1
            i += len(token)
            continue
        out.append(ch)
        i += 1
    return "".join(out)
