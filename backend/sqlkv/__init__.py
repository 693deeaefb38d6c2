"""
sqlkv: named connection pools plus a small CRUD statement builder.

    with Registry() as reg:
        reg.register({"main": Config(dsn="sqlite:///app.db")})
        conn = reg.lookup("main")
        done = conn.do(Descriptor(op=OperationEnum.CREATE, table="profile",
                                  values={"first_name": "foo", "last_name": "bar"}))
        done.raise_for_error()
"""

from sqlkv.connection import Connection, Transaction
from sqlkv.core.errors import (
    AlreadyRegisteredError,
    ConfigInvalidError,
    ConnectionOpenFailedError,
    ConnectionUnreachableError,
    EmptyBatchError,
    EmptyConditionMapError,
    EmptyNameError,
    EmptyValueMapError,
    InvalidOperationError,
    NotRegisteredError,
    PoolClosedError,
    ResultUnavailableError,
    SqlkvError,
    TeardownError,
    UnsupportedValueError,
)
from sqlkv.core.registry import (
    Registry,
    get_registry,
    lookup,
    register,
    unregister_all,
)
from sqlkv.engines import (
    Dialect,
    Done,
    ExecResult,
    Rows,
    build_statement,
    dispatch,
    format_sql,
    join_fields,
    split,
    split_assign,
    split_where,
)
from sqlkv.models import (
    Config,
    Descriptor,
    DriverEnum,
    KeyValue,
    OperationEnum,
    Query,
    Statement,
    new_descriptor,
    with_op,
    with_query,
    with_table,
    with_values,
    with_where,
)

__all__ = [
    "AlreadyRegisteredError",
    "Config",
    "ConfigInvalidError",
    "Connection",
    "ConnectionOpenFailedError",
    "ConnectionUnreachableError",
    "Descriptor",
    "Dialect",
    "Done",
    "DriverEnum",
    "EmptyBatchError",
    "EmptyConditionMapError",
    "EmptyNameError",
    "EmptyValueMapError",
    "ExecResult",
    "InvalidOperationError",
    "KeyValue",
    "NotRegisteredError",
    "OperationEnum",
    "PoolClosedError",
    "Query",
    "Registry",
    "ResultUnavailableError",
    "Rows",
    "SqlkvError",
    "Statement",
    "TeardownError",
    "Transaction",
    "UnsupportedValueError",
    "build_statement",
    "dispatch",
    "format_sql",
    "get_registry",
    "join_fields",
    "lookup",
    "new_descriptor",
    "register",
    "split",
    "split_assign",
    "split_where",
    "unregister_all",
    "with_op",
    "with_query",
    "with_table",
    "with_values",
    "with_where",
]
