"""Table schema provider backed by SQLAlchemy reflection.

This module provides the SchemaProvider class that turns SQLAlchemy inspector
output into immutable `TableSchema` snapshots. Snapshots are memoized per
table name; call `invalidate` after DDL changes.

Classes:
- SchemaProvider: Reflects and memoizes table schemas
"""

from __future__ import annotations

from collections.abc import Iterable
import threading
from typing import Any

from fastmcp.utilities.logging import get_logger
import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.exc import CompileError, SQLAlchemyError

from schema_crud_mcp.exceptions import SchemaError, StorageError

from .constants import Constants, DataType
from .models import (
    Column,
    ForeignKey,
    TableSchema,
    find_soft_delete_column,
    normalize_data_type,
)

_logger = get_logger(__name__)


def _type_string(sa_type: Any) -> str:
    try:
        return str(sa_type)
    except CompileError:
        return type(sa_type).__name__


class SchemaProvider:
    """Reflect table metadata and hand out `TableSchema` snapshots.

    Attributes:
        engine: SQLAlchemy engine for database connections
        soft_delete_columns: Column names recognized as soft-delete flags
    """

    def __init__(
        self,
        engine: Engine,
        *,
        soft_delete_columns: Iterable[str] = Constants.DEFAULT_SOFT_DELETE_COLUMNS,
    ) -> None:
        self.engine = engine
        self.soft_delete_columns = tuple(soft_delete_columns)
        self._cache: dict[str, TableSchema] = {}
        self._lock = threading.Lock()

    def list_tables(self) -> list[str]:
        """List table names in the default schema.

        Raises:
            StorageError: If the database cannot be inspected
        """
        try:
            with self.engine.connect() as conn:
                names = sa.inspect(conn).get_table_names()
        except SQLAlchemyError as e:
            msg = f"Failed to list tables: {e}"
            raise StorageError(msg) from e
        return sorted(names)

    def get_table_schema(self, table_name: str) -> TableSchema:
        """Return the schema snapshot for `table_name`.

        Raises:
            SchemaError: If the table does not exist
            StorageError: If reflection fails at the database level
        """
        if not isinstance(table_name, str) or not table_name:
            msg = f"Invalid table name: {table_name!r}"
            raise SchemaError(msg)

        with self._lock:
            cached = self._cache.get(table_name)
        if cached is not None:
            return cached

        table_schema = self._reflect_table(table_name)
        with self._lock:
            return self._cache.setdefault(table_name, table_schema)

    def invalidate(self, table_name: str | None = None) -> None:
        """Drop memoized snapshots (all of them when `table_name` is None)."""
        with self._lock:
            if table_name is None:
                self._cache.clear()
            else:
                self._cache.pop(table_name, None)

    # ---- internals ---------------------------------------------------------
    def _reflect_table(self, table_name: str) -> TableSchema:
        _logger.debug("Reflecting table: %s", table_name)
        try:
            with self.engine.connect() as conn:
                insp = sa.inspect(conn)
                if not insp.has_table(table_name):
                    msg = f"Table '{table_name}' does not exist"
                    raise SchemaError(msg)
                columns_metadata = insp.get_columns(table_name)
                pk_constraint = insp.get_pk_constraint(table_name)
                fk_constraints = insp.get_foreign_keys(table_name)
        except SQLAlchemyError as e:
            msg = f"Failed to reflect table '{table_name}': {e}"
            raise StorageError(msg) from e

        pk_cols: list[str] = list(pk_constraint.get("constrained_columns") or [])
        primary_key = pk_cols[0] if len(pk_cols) == 1 else None
        if len(pk_cols) > 1:
            _logger.warning(
                "Table %s has a composite primary key (%s); treating it as keyless",
                table_name,
                ", ".join(pk_cols),
            )

        column_names = {col["name"] for col in columns_metadata}
        foreign_keys = self._foreign_keys(table_name, fk_constraints, column_names)
        fk_columns = {fk.column_name for fk in foreign_keys}

        columns: list[Column] = []
        for col in columns_metadata:
            raw_type = _type_string(col["type"])
            data_type = normalize_data_type(raw_type)
            default = col.get("default")
            length = getattr(col["type"], "length", None)
            is_pk = col["name"] in pk_cols
            columns.append(
                Column(
                    name=col["name"],
                    data_type=data_type,
                    raw_type=raw_type,
                    is_nullable=bool(col.get("nullable", True)),
                    column_default=None if default is None else str(default),
                    is_primary_key=is_pk,
                    is_auto_increment=(
                        col["name"] == primary_key
                        and self._is_auto_increment(col, raw_type, data_type)
                    ),
                    is_foreign_key=col["name"] in fk_columns,
                    max_length=length if isinstance(length, int) else None,
                )
            )

        return TableSchema(
            table_name=table_name,
            columns=tuple(columns),
            foreign_keys=tuple(foreign_keys),
            primary_key=primary_key,
            soft_delete_column=find_soft_delete_column(columns, self.soft_delete_columns),
        )

    def _foreign_keys(
        self,
        table_name: str,
        fk_constraints: list[Any],
        column_names: set[str],
    ) -> list[ForeignKey]:
        fks: list[ForeignKey] = []
        seen: set[str] = set()
        for fk in fk_constraints:
            ref_table = fk.get("referred_table")
            constrained_cols = fk.get("constrained_columns") or []
            referred_cols = fk.get("referred_columns") or []
            if not ref_table:
                continue
            for local_col, ref_col in zip(constrained_cols, referred_cols, strict=False):
                if local_col not in column_names:
                    _logger.warning(
                        "Foreign key on %s.%s references a missing column; skipped",
                        table_name,
                        local_col,
                    )
                    continue
                if local_col in seen:
                    continue
                seen.add(local_col)
                fks.append(ForeignKey(local_col, ref_table, ref_col))
        return fks

    def _is_auto_increment(
        self, col: dict[str, Any], raw_type: str, data_type: DataType
    ) -> bool:
        default = col.get("default")
        if default is not None and Constants.SEQUENCE_DEFAULT_PATTERN.search(str(default)):
            return True
        if col.get("identity") or col.get("autoincrement") is True:
            return True
        # SQLite: a lone INTEGER PRIMARY KEY is an alias for the rowid
        return (
            self.engine.dialect.name == "sqlite"
            and data_type is DataType.INTEGER
            and raw_type.upper() == "INTEGER"
        )
