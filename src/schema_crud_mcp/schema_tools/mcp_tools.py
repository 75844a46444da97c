"""MCP tool registration for schema discovery.

Lets callers find tables and learn their columns, keys, soft-delete flag and
the filter operators each column accepts before using the CRUD tools.
"""

from __future__ import annotations

from typing import Annotated

from fastmcp import Context, FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.utilities.logging import get_logger
from pydantic import Field

from schema_crud_mcp.exceptions import CrudError
from schema_crud_mcp.models import TableDescription, TableListResult
from schema_crud_mcp.services.crud_service_manager import CrudServiceManager

_logger = get_logger(__name__)


def register_schema_tools(mcp: FastMCP, manager: CrudServiceManager | None = None) -> None:
    """Register schema discovery tools."""

    mgr = manager or CrudServiceManager.get_instance()

    @mcp.tool
    async def list_tables(ctx: Context) -> TableListResult:  # pyright: ignore[reportUnusedFunction]
        """List the tables of the connected database."""
        try:
            service = await mgr.get_crud_service()
        except (RuntimeError, ValueError) as exc:
            await ctx.error(f"CRUD service not ready: {exc}")
            raise
        try:
            tables = service.list_tables()
        except CrudError as exc:
            await ctx.error(f"list_tables failed: {exc}")
            raise ToolError(str(exc)) from exc
        _logger.info("list_tables: %d tables", len(tables))
        return TableListResult(tables=tables)

    @mcp.tool
    async def describe_table(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        table: Annotated[str, Field(description="Table name as returned by list_tables")],
    ) -> TableDescription:
        """Describe a table: columns, primary key, foreign keys, soft-delete flag and filter operators."""
        try:
            service = await mgr.get_crud_service()
        except (RuntimeError, ValueError) as exc:
            await ctx.error(f"CRUD service not ready: {exc}")
            raise
        try:
            schema = service.describe_table(table)
        except CrudError as exc:
            await ctx.error(f"describe_table failed: {exc}")
            raise ToolError(str(exc)) from exc
        return TableDescription.from_schema(schema)
