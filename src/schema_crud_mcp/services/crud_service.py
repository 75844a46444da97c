"""CRUD service for schema-crud-mcp.

This module provides the business-level operations exposed to callers:
create, read, read_one, update, delete and foreign-key options. It wires the
schema provider, the pure query builders and the statement executor
together; it holds no per-request state.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Any

from fastmcp.utilities.logging import get_logger
import sqlalchemy as sa

from schema_crud_mcp.exceptions import NotFoundError, SchemaError, StorageError
from schema_crud_mcp.execute.runner import SqlAlchemyExecutor, StatementExecutor
from schema_crud_mcp.query import (
    ListOptions,
    Pagination,
    SqlStyle,
    build_delete,
    build_insert,
    build_list_query,
    build_update,
    coerce_value,
    resolve_display_column,
    run_list_query,
)
from schema_crud_mcp.query.assembler import validate_pagination
from schema_crud_mcp.query.mutations import require_primary_key
from schema_crud_mcp.schema_tools.constants import Constants
from schema_crud_mcp.schema_tools.models import TableSchema
from schema_crud_mcp.schema_tools.reflection import SchemaProvider

_logger = get_logger(__name__)

_COERCION_ERRORS = (ValueError, TypeError, ArithmeticError)


@dataclass(frozen=True)
class ListResult:
    """One page of records with its pagination metadata."""

    data: list[dict[str, Any]]
    pagination: Pagination


@dataclass(frozen=True)
class ForeignKeyOption:
    """A selectable value for a foreign-key column."""

    value: Any
    label: Any
    data: dict[str, Any]


@dataclass(frozen=True)
class ForeignKeyOptions:
    """Selectable values for a foreign-key column and how they were labelled."""

    referenced_table: str
    options: list[ForeignKeyOption]
    display_column: str
    value_column: str


class CrudService:
    """Generic CRUD over any reflected table."""

    def __init__(
        self,
        engine: sa.Engine,
        *,
        provider: SchemaProvider | None = None,
        executor: StatementExecutor | None = None,
        style: SqlStyle | None = None,
        max_page_size: int = Constants.DEFAULT_MAX_PAGE_SIZE,
        fk_options_limit: int = Constants.DEFAULT_FK_OPTIONS_LIMIT,
    ) -> None:
        """Initialize the CRUD service.

        Args:
            engine: SQLAlchemy database engine
            provider: Schema provider; one is built over `engine` when omitted
            executor: Statement executor; defaults to a SQLAlchemy executor
            style: SQL rendering style; derived from the engine dialect by default
            max_page_size: Cap applied to caller-provided limits
            fk_options_limit: Rows loaded when building foreign-key options
        """
        self.engine = engine
        self.provider = provider or SchemaProvider(engine)
        self.executor = executor or SqlAlchemyExecutor(engine)
        self.style = style or SqlStyle.for_sqlalchemy(engine.dialect.name)
        self.max_page_size = max_page_size
        self.fk_options_limit = fk_options_limit
        # Data and count statements of a list read run side by side
        self._pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="crud-read")

    def close(self) -> None:
        """Release the read thread pool."""
        self._pool.shutdown(wait=True)

    # ---- schema -------------------------------------------------------------
    def list_tables(self) -> list[str]:
        return self.provider.list_tables()

    def describe_table(self, table: str) -> TableSchema:
        return self.provider.get_table_schema(table)

    # ---- create -------------------------------------------------------------
    def create(self, table: str, data: Mapping[str, Any]) -> dict[str, Any]:
        """Insert a record and return the stored row.

        Raises:
            SchemaError: If the table does not exist
            ValidationError: If `data` holds no insertable value
            StorageError: If the insert fails
        """
        schema = self.provider.get_table_schema(table)
        stmt = build_insert(schema, data, style=self.style)
        _logger.info("Creating record in %s (%d columns)", table, len(stmt.params))
        rows = self.executor.execute(stmt.sql, stmt.params)
        if not rows:
            msg = f"Insert into '{table}' returned no row"
            raise StorageError(msg)
        return rows[0]

    # ---- read ---------------------------------------------------------------
    def read(self, table: str, options: ListOptions | None = None) -> ListResult:
        """Read one page of records.

        Raises:
            SchemaError: If the table or a referenced table does not exist
            ValidationError: If pagination is invalid or filters are malformed
            StorageError: If a statement fails
        """
        return self._read(table, options or ListOptions(), cap=True)

    def _read(self, table: str, options: ListOptions, *, cap: bool) -> ListResult:
        validate_pagination(options.page, options.limit)
        if cap and options.limit > self.max_page_size:
            _logger.debug("Capping limit %d to %d", options.limit, self.max_page_size)
            options = replace(options, limit=self.max_page_size)

        schema = self.provider.get_table_schema(table)
        query = build_list_query(
            schema,
            options,
            related=self._related_schemas(schema, options),
            style=self.style,
        )
        rows, pagination = run_list_query(self.executor, schema, query, pool=self._pool)
        return ListResult(data=rows, pagination=pagination)

    def read_one(
        self, table: str, record_id: Any, include: Sequence[str] = ()
    ) -> dict[str, Any] | None:
        """Return the record whose primary key equals `record_id`, or None.

        Soft-deleted records are not returned.

        Raises:
            SchemaError: If the table does not exist or has no primary key
        """
        schema = self.provider.get_table_schema(table)
        pk = require_primary_key(schema)
        key = self._coerce_id(schema, record_id)
        if key is None:
            return None
        result = self.read(table, ListOptions(filters={pk: key}, include=tuple(include), limit=1))
        return result.data[0] if result.data else None

    # ---- update / delete ----------------------------------------------------
    def update(self, table: str, record_id: Any, data: Mapping[str, Any]) -> dict[str, Any]:
        """Update a record and return the stored row.

        Raises:
            SchemaError: If the table does not exist or has no primary key
            ValidationError: If `data` holds no updatable value
            NotFoundError: If no live record has `record_id`
            StorageError: If the update fails
        """
        schema = self.provider.get_table_schema(table)
        require_primary_key(schema)
        key = self._require_id(schema, record_id)
        stmt = build_update(schema, key, data, style=self.style)
        _logger.info("Updating %s id=%r (%d columns)", table, key, len(stmt.params) - 1)
        rows = self.executor.execute(stmt.sql, stmt.params)
        if not rows:
            msg = f"No record with id {record_id!r} in table '{table}'"
            raise NotFoundError(msg)
        return rows[0]

    def delete(self, table: str, record_id: Any) -> dict[str, Any]:
        """Soft-delete (when supported) or delete a record; return the affected row.

        Raises:
            SchemaError: If the table does not exist or has no primary key
            NotFoundError: If no live record has `record_id`
            StorageError: If the statement fails
        """
        schema = self.provider.get_table_schema(table)
        require_primary_key(schema)
        key = self._require_id(schema, record_id)
        stmt = build_delete(schema, key, style=self.style)
        mode = "soft" if schema.soft_delete_column else "hard"
        _logger.info("Deleting %s id=%r (%s delete)", table, key, mode)
        rows = self.executor.execute(stmt.sql, stmt.params)
        if not rows:
            msg = f"No record with id {record_id!r} in table '{table}'"
            raise NotFoundError(msg)
        return rows[0]

    # ---- foreign keys -------------------------------------------------------
    def get_foreign_key_options(self, table: str, column: str) -> ForeignKeyOptions:
        """List selectable values for the foreign-key column `table.column`.

        Raises:
            SchemaError: If the column is missing or not a foreign key
        """
        schema = self.provider.get_table_schema(table)
        fk = schema.foreign_key_for(column)
        if fk is None:
            if not schema.has_column(column):
                msg = f"Column '{column}' does not exist in table '{table}'"
            else:
                msg = f"Column '{column}' of table '{table}' is not a foreign key"
            raise SchemaError(msg)

        target = self.provider.get_table_schema(fk.foreign_table_name)
        display = resolve_display_column(target.columns, target.primary_key)
        # Options loads are bounded by their own limit, not the page size cap
        result = self._read(
            target.table_name,
            ListOptions(
                limit=self.fk_options_limit,
                order_by=display,
                auto_include_foreign_keys=False,
            ),
            cap=False,
        )
        options: list[ForeignKeyOption] = []
        for row in result.data:
            value = row.get(fk.foreign_column_name)
            label = row.get(display)
            options.append(
                ForeignKeyOption(
                    value=value,
                    label=value if label is None or label == "" else label,
                    data=row,
                )
            )
        _logger.info(
            "Loaded %d options for %s.%s from %s", len(options), table, column, target.table_name
        )
        return ForeignKeyOptions(
            referenced_table=target.table_name,
            options=options,
            display_column=display,
            value_column=fk.foreign_column_name,
        )

    # ---- internals ------------------------------------------------------------
    def _related_schemas(self, schema: TableSchema, options: ListOptions) -> dict[str, TableSchema]:
        wanted = set(options.include)
        return {
            fk.foreign_table_name: self.provider.get_table_schema(fk.foreign_table_name)
            for fk in schema.foreign_keys
            if options.auto_include_foreign_keys or fk.foreign_table_name in wanted
        }

    def _coerce_id(self, schema: TableSchema, record_id: Any) -> Any | None:
        """Convert `record_id` to the primary key's type; None when it cannot match any row."""
        pk_column = schema.primary_key_column()
        if pk_column is None or record_id is None or record_id == "":
            return None
        try:
            return coerce_value(pk_column, record_id)
        except _COERCION_ERRORS:
            _logger.debug("Id %r does not fit %s.%s", record_id, schema.table_name, pk_column.name)
            return None

    def _require_id(self, schema: TableSchema, record_id: Any) -> Any:
        key = self._coerce_id(schema, record_id)
        if key is None:
            msg = f"No record with id {record_id!r} in table '{schema.table_name}'"
            raise NotFoundError(msg)
        return key


__all__ = [
    "CrudService",
    "ForeignKeyOption",
    "ForeignKeyOptions",
    "ListResult",
]
