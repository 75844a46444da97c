"""FastMCP server implementation for schema-crud-mcp."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import dotenv
from fastmcp import FastMCP
from fastmcp.utilities.logging import get_logger
from starlette.requests import Request
from starlette.responses import JSONResponse

from schema_crud_mcp.crud.mcp_tools import register_crud_tools
from schema_crud_mcp.schema_tools.mcp_tools import register_schema_tools
from schema_crud_mcp.services.crud_service_manager import CrudServiceManager

# Load environment variables
dotenv.load_dotenv()

_logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_mcp_instance: FastMCP) -> AsyncGenerator[None]:
    """Start CRUD service initialization on startup and release it on shutdown."""
    manager = CrudServiceManager.get_instance()
    try:
        _logger.info("Starting CrudService initialization in background during lifespan startup")
        manager.start_background_initialization()
        yield
    finally:
        _logger.info("Shutting down CrudService during lifespan shutdown")
        await manager.shutdown()


mcp = FastMCP(
    instructions=(
        "Generic create/read/update/delete over the tables of a relational database. "
        "Call list_tables and describe_table first to learn columns, keys and filter "
        "operators, then use the record tools."
    ),
    lifespan=lifespan,
)

# -- Tool Registration -------------------------------------------------------
register_schema_tools(mcp)
register_crud_tools(mcp)


# -- Health Check ----------------------------------------------------------
@mcp.custom_route("/health", methods=["GET"])
async def health_check(_request: Request) -> JSONResponse:
    status = CrudServiceManager.get_instance().status()
    return JSONResponse(
        {
            "status": "healthy",
            "service": "schema-crud-mcp",
            "crud_service": status.phase.name.lower(),
        }
    )
