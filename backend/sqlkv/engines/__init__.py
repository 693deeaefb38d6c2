"""
Engines: KeyValue splitter, operation dispatcher and result wrapper.
"""

from sqlkv.engines.dispatcher import build_statement, dispatch
from sqlkv.engines.result import Done, ExecResult, Rows
from sqlkv.engines.splitter import (
    DEFAULT_DIALECT,
    Dialect,
    format_sql,
    join_fields,
    quote_identifier,
    split,
    split_assign,
    split_where,
)

__all__ = [
    "DEFAULT_DIALECT",
    "Dialect",
    "Done",
    "ExecResult",
    "Rows",
    "build_statement",
    "dispatch",
    "format_sql",
    "join_fields",
    "quote_identifier",
    "split",
    "split_assign",
    "split_where",
]
