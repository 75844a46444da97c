"""INSERT, UPDATE and DELETE statement builders.

Column names always come from the table schema, in declared order; keys of
the candidate record that are not real columns (including the synthetic
``<column>_display`` labels) are never written.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from schema_crud_mcp.exceptions import SchemaError, ValidationError
from schema_crud_mcp.schema_tools.models import Column, TableSchema

from .fragments import QueryFragments
from .identifiers import POSTGRES, SqlStyle


@dataclass(frozen=True)
class Statement:
    """A rendered statement with positional parameters."""

    sql: str
    params: tuple[Any, ...]


def require_primary_key(schema: TableSchema) -> str:
    """Return the primary key column name or raise `SchemaError`."""
    if schema.primary_key is None:
        msg = f"Table '{schema.table_name}' has no primary key"
        raise SchemaError(msg)
    return schema.primary_key


def _require_mapping(schema: TableSchema, data: object) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        msg = f"Record data for table '{schema.table_name}' must be a mapping"
        raise ValidationError(msg)
    return data


def insertable_columns(schema: TableSchema, data: Mapping[str, Any]) -> list[Column]:
    """Columns present in `data` with a non-empty value, minus auto-increment keys."""
    return [
        col
        for col in schema.columns
        if col.name in data
        and data[col.name] is not None
        and data[col.name] != ""
        and not col.is_auto_increment
    ]


def updatable_columns(schema: TableSchema, data: Mapping[str, Any]) -> list[Column]:
    """Columns present in `data` with a non-null value, minus the primary key.

    Unlike inserts, an empty string is a legitimate new value here.
    """
    return [
        col
        for col in schema.columns
        if col.name in data and data[col.name] is not None and not col.is_primary_key
    ]


def build_insert(
    schema: TableSchema, data: Mapping[str, Any], *, style: SqlStyle = POSTGRES
) -> Statement:
    """Build ``INSERT ... RETURNING *`` for the usable part of `data`.

    Raises:
        ValidationError: If no column of `data` can be inserted
    """
    data = _require_mapping(schema, data)
    columns = insertable_columns(schema, data)
    if not columns:
        msg = f"No valid data provided to insert into '{schema.table_name}'"
        raise ValidationError(msg)

    frags = QueryFragments()
    placeholders = [frags.bind(data[col.name]) for col in columns]
    names = ", ".join(style.quote(col.name) for col in columns)
    sql = (
        f"INSERT INTO {style.quote(schema.table_name)} ({names}) "
        f"VALUES ({', '.join(placeholders)}) RETURNING *"
    )
    return Statement(sql=sql, params=tuple(frags.params))


def build_update(
    schema: TableSchema,
    record_id: Any,
    data: Mapping[str, Any],
    *,
    style: SqlStyle = POSTGRES,
) -> Statement:
    """Build ``UPDATE ... WHERE pk = $n RETURNING *``.

    Soft-deleted rows are not updated unless the update sets the soft-delete
    column itself.

    Raises:
        SchemaError: If the table has no primary key
        ValidationError: If no column of `data` can be updated
    """
    pk = require_primary_key(schema)
    data = _require_mapping(schema, data)
    columns = updatable_columns(schema, data)
    if not columns:
        msg = f"No valid data provided to update '{schema.table_name}' id {record_id!r}"
        raise ValidationError(msg)

    frags = QueryFragments()
    assignments = [f"{style.quote(col.name)} = {frags.bind(data[col.name])}" for col in columns]
    conditions = [f"{style.quote(pk)} = {frags.bind(record_id)}"]
    soft_delete = schema.soft_delete_column
    if soft_delete and soft_delete not in {col.name for col in columns}:
        conditions.append(f"{style.quote(soft_delete)} = FALSE")

    sql = (
        f"UPDATE {style.quote(schema.table_name)} SET {', '.join(assignments)} "
        f"WHERE {' AND '.join(conditions)} RETURNING *"
    )
    return Statement(sql=sql, params=tuple(frags.params))


def build_delete(schema: TableSchema, record_id: Any, *, style: SqlStyle = POSTGRES) -> Statement:
    """Build a soft delete when the table has a soft-delete column, else a hard delete.

    A soft delete only matches rows that are not already deleted, so deleting
    twice finds nothing the second time.

    Raises:
        SchemaError: If the table has no primary key
    """
    pk = require_primary_key(schema)
    table_sql = style.quote(schema.table_name)
    pk_sql = style.quote(pk)
    soft_delete = schema.soft_delete_column
    if soft_delete:
        flag_sql = style.quote(soft_delete)
        sql = (
            f"UPDATE {table_sql} SET {flag_sql} = TRUE "
            f"WHERE {pk_sql} = $1 AND {flag_sql} = FALSE RETURNING *"
        )
    else:
        sql = f"DELETE FROM {table_sql} WHERE {pk_sql} = $1 RETURNING *"
    return Statement(sql=sql, params=(record_id,))
