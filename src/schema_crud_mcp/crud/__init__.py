"""MCP tools for record-level CRUD operations."""

from .mcp_tools import register_crud_tools

__all__ = ["register_crud_tools"]
