"""MCP tool registration for record CRUD.

Exposes `register_crud_tools`, which attaches create/list/get/update/delete
and foreign-key option tools to a FastMCP instance. Tools delegate to the
`CrudService` obtained via `CrudServiceManager` and translate `CrudError`
into `ToolError` so callers see the message.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from fastmcp import Context, FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.utilities.logging import get_logger
from pydantic import Field

from schema_crud_mcp.exceptions import CrudError, NotFoundError
from schema_crud_mcp.models import (
    ForeignKeyOptionsResult,
    PaginationModel,
    RecordListResult,
    RecordResult,
)
from schema_crud_mcp.query import ListOptions
from schema_crud_mcp.services.config_service import ConfigService
from schema_crud_mcp.services.crud_service import CrudService
from schema_crud_mcp.services.crud_service_manager import CrudServiceManager

_logger = get_logger(__name__)

TableArg = Annotated[str, Field(description="Table name as returned by list_tables")]
RecordIdArg = Annotated[
    str | int, Field(description="Primary key value of the record")
]
DataArg = Annotated[
    dict[str, Any],
    Field(
        description=(
            "Column values keyed by column name. Unknown columns and null values are "
            "ignored; auto-increment primary keys are ignored on create; the primary "
            "key is never updated."
        )
    ),
]
IncludeArg = Annotated[
    list[str] | None,
    Field(
        description=(
            "Referenced tables to join for '<column>_display' labels. Only used when "
            "auto_include_foreign_keys is false."
        )
    ),
]


async def _service(mgr: CrudServiceManager, ctx: Context) -> CrudService:
    try:
        return await mgr.get_crud_service()
    except (RuntimeError, ValueError) as exc:
        await ctx.error(f"CRUD service not ready: {exc}")
        raise


async def _fail(ctx: Context, action: str, exc: CrudError) -> ToolError:
    message = f"{action} failed: {exc}"
    await ctx.error(message)
    return ToolError(message)


def register_crud_tools(mcp: FastMCP, manager: CrudServiceManager | None = None) -> None:
    """Register record CRUD tools.

    Every tool works on any table of the connected database; columns, primary
    keys, foreign keys and soft-delete flags come from reflection.
    """

    mgr = manager or CrudServiceManager.get_instance()

    @mcp.tool
    async def create_record(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        table: TableArg,
        data: DataArg,
    ) -> RecordResult:
        """Insert a record and return it as stored, including generated values."""
        _logger.info("create_record: %s", table)
        service = await _service(mgr, ctx)
        try:
            row = service.create(table, data)
        except CrudError as exc:
            raise await _fail(ctx, "create_record", exc) from exc
        return RecordResult(table=table, data=row)

    @mcp.tool
    async def list_records(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        table: TableArg,
        page: Annotated[int, Field(description="1-based page number")] = 1,
        limit: Annotated[
            int | None,
            Field(description="Rows per page; defaults to the server page size and is capped"),
        ] = None,
        filters: Annotated[
            dict[str, Any] | None,
            Field(
                description=(
                    "Either flat {column: value} pairs (text columns match by substring, "
                    "other columns by equality) or a structured filter "
                    "{groups: [{conditions: [{field, operator, value, connective_to_next}], "
                    "connective}]} using the operators listed by describe_table."
                )
            ),
        ] = None,
        include: IncludeArg = None,
        order_by: Annotated[
            str | None,
            Field(description="Column to sort by; unknown columns fall back to the primary key"),
        ] = None,
        order_direction: Annotated[
            Literal["ASC", "DESC", "asc", "desc"], Field(description="Sort direction")
        ] = "ASC",
        *,
        auto_include_foreign_keys: Annotated[
            bool, Field(description="Join every foreign key for display labels")
        ] = True,
    ) -> RecordListResult:
        """List one page of records with optional filters, ordering and foreign-key labels.

        Soft-deleted records are never returned.
        """
        _logger.info("list_records: %s page=%s limit=%s", table, page, limit)
        service = await _service(mgr, ctx)
        options = ListOptions(
            page=page,
            limit=ConfigService.default_page_size() if limit is None else limit,
            filters=filters,
            include=tuple(include or ()),
            order_by=order_by,
            order_direction=order_direction,
            auto_include_foreign_keys=auto_include_foreign_keys,
        )
        try:
            result = service.read(table, options)
        except CrudError as exc:
            raise await _fail(ctx, "list_records", exc) from exc
        return RecordListResult(
            table=table,
            data=result.data,
            pagination=PaginationModel.from_pagination(result.pagination),
        )

    @mcp.tool
    async def get_record(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        table: TableArg,
        record_id: RecordIdArg,
        include: IncludeArg = None,
    ) -> RecordResult:
        """Fetch one live record by primary key, with foreign-key display labels."""
        _logger.info("get_record: %s id=%r", table, record_id)
        service = await _service(mgr, ctx)
        try:
            row = service.read_one(table, record_id, include=tuple(include or ()))
            if row is None:
                msg = f"No record with id {record_id!r} in table '{table}'"
                raise NotFoundError(msg)
        except CrudError as exc:
            raise await _fail(ctx, "get_record", exc) from exc
        return RecordResult(table=table, data=row)

    @mcp.tool
    async def update_record(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        table: TableArg,
        record_id: RecordIdArg,
        data: DataArg,
    ) -> RecordResult:
        """Update the given columns of a live record and return it as stored."""
        _logger.info("update_record: %s id=%r", table, record_id)
        service = await _service(mgr, ctx)
        try:
            row = service.update(table, record_id, data)
        except CrudError as exc:
            raise await _fail(ctx, "update_record", exc) from exc
        return RecordResult(table=table, data=row)

    @mcp.tool
    async def delete_record(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        table: TableArg,
        record_id: RecordIdArg,
    ) -> RecordResult:
        """Delete a record and return it.

        Tables with a soft-delete flag column get the flag set instead of a
        physical delete; deleting an already deleted record fails as not found.
        """
        _logger.info("delete_record: %s id=%r", table, record_id)
        service = await _service(mgr, ctx)
        try:
            row = service.delete(table, record_id)
        except CrudError as exc:
            raise await _fail(ctx, "delete_record", exc) from exc
        return RecordResult(table=table, data=row)

    @mcp.tool
    async def get_foreign_key_options(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        table: TableArg,
        column: Annotated[str, Field(description="Foreign-key column of `table`")],
    ) -> ForeignKeyOptionsResult:
        """List values a foreign-key column may take, each with a display label."""
        _logger.info("get_foreign_key_options: %s.%s", table, column)
        service = await _service(mgr, ctx)
        try:
            result = service.get_foreign_key_options(table, column)
        except CrudError as exc:
            raise await _fail(ctx, "get_foreign_key_options", exc) from exc
        return ForeignKeyOptionsResult.build(table, column, result)
