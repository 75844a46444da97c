"""Command-line entrypoint for the schema-crud-mcp FastMCP server."""

from __future__ import annotations

from fastmcp.utilities.logging import get_logger

from schema_crud_mcp.server import mcp

_logger = get_logger(__name__)


def main() -> None:
    """Start the schema-crud-mcp FastMCP server via CLI."""
    try:
        mcp.run()
    except KeyboardInterrupt:
        _logger.info("Interrupted by user. Exiting cleanly.")


if __name__ == "__main__":
    main()
