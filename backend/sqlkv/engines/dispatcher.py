"""
Operation dispatcher: Descriptor -> parameterized SQL -> Connection primitive -> Done.

Single-shot dispatch on descriptor.op:
- CREATE: INSERT INTO {table}({fields}) VALUES({placeholders})
- UPDATE: UPDATE {table} SET {assignments} WHERE {conditions}
  (args = value args followed by condition args, matching placeholder order)
- READ:   SELECT {fields} FROM {table} WHERE {conditions}
  (batch -> query_rows, else query_row; WHERE omitted without conditions)
- DELETE: DELETE FROM {table} WHERE {conditions}

Never raises: bad descriptors and driver errors land in Done.error.
"""

import time
from typing import TYPE_CHECKING, Any

from sqlkv.core.errors import (
    EmptyConditionMapError,
    EmptyValueMapError,
    InvalidOperationError,
)
from sqlkv.engines.result import Done
from sqlkv.engines.splitter import (
    DEFAULT_DIALECT,
    Dialect,
    join_fields,
    split,
    split_assign,
    split_where,
)
from sqlkv.models import Descriptor, OperationEnum

if TYPE_CHECKING:
    from sqlkv.connection import Connection

RAW_INSERT = "INSERT INTO {table}({fields}) VALUES({placeholders})"
RAW_UPDATE = "UPDATE {table} SET {assignments} WHERE {conditions}"
RAW_DELETE = "DELETE FROM {table} WHERE {conditions}"
RAW_QUERY = "SELECT {fields} FROM {table} WHERE {conditions}"
RAW_QUERY_ALL_ROWS = "SELECT {fields} FROM {table}"


def build_statement(
    descriptor: Descriptor, dialect: Dialect = DEFAULT_DIALECT
) -> tuple[str, list[Any]]:
    """
    Build (sql, args) for a descriptor without executing it.

    Raises InvalidOperationError, EmptyValueMapError, EmptyConditionMapError
    or UnsupportedValueError.
    """
    op = descriptor.op
    if op not in tuple(OperationEnum):
        raise InvalidOperationError(f"invalid operation: {op!r}")
    table = descriptor.table
    if not table or not isinstance(table, str):
        raise InvalidOperationError("table name is required")

    if op == OperationEnum.CREATE:
        if not descriptor.values:
            raise EmptyValueMapError("create requires at least one value")
        fields, placeholders, args = split(descriptor.values, dialect)
        return RAW_INSERT.format(table=table, fields=fields, placeholders=placeholders), args

    if op == OperationEnum.UPDATE:
        if not descriptor.values:
            raise EmptyValueMapError("update requires at least one value")
        if not descriptor.where:
            raise EmptyConditionMapError("update requires at least one condition")
        assignments, value_args = split_assign(descriptor.values, dialect)
        conditions, where_args = split_where(descriptor.where, dialect)
        sql = RAW_UPDATE.format(table=table, assignments=assignments, conditions=conditions)
        return sql, value_args + where_args

    if op == OperationEnum.DELETE:
        if not descriptor.where:
            raise EmptyConditionMapError("delete requires at least one condition")
        conditions, args = split_where(descriptor.where, dialect)
        return RAW_DELETE.format(table=table, conditions=conditions), args

    # READ
    search = "*"
    if descriptor.query.fields:
        search = join_fields(descriptor.query.fields, dialect)
    conditions, args = split_where(descriptor.where, dialect)
    if not conditions:
        return RAW_QUERY_ALL_ROWS.format(fields=search, table=table), args
    return RAW_QUERY.format(fields=search, table=table, conditions=conditions), args


def dispatch(descriptor: Descriptor, conn: "Connection") -> Done:
    """Build the statement for *descriptor*, run it on *conn* and wrap the outcome."""
    started = time.perf_counter()
    try:
        sql, args = build_statement(descriptor, conn.dialect)
    except Exception as e:
        return Done(error=e, runtime=time.perf_counter() - started)

    try:
        if descriptor.op == OperationEnum.READ:
            if descriptor.query.batch:
                done = Done(rows=conn.query_rows(sql, args))
            else:
                done = Done(row=conn.query_row(sql, args))
        else:
            done = Done(result=conn.execute(sql, args))
    except Exception as e:
        done = Done(error=e)
    done.runtime = time.perf_counter() - started
    return done
