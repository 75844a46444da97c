"""Configuration service for schema-crud-mcp.

This module provides configuration management and database connection utilities
for the schema-crud-mcp application. It centralizes environment variable handling
and database engine creation.
"""

from __future__ import annotations

import os

import sqlalchemy as sa

from schema_crud_mcp.schema_tools.constants import Constants


def _int_env(name: str, default: int, minimum: int) -> int:
    val = os.getenv(name, str(default))
    try:
        n = int(val)
    except ValueError:
        n = default
    return max(minimum, n)


class ConfigService:
    """Service for managing configuration and database connections."""

    @staticmethod
    def get_database_url() -> str:
        """Get database URL from environment variable.

        Returns:
            Database URL string

        Raises:
            ValueError: If SCHEMA_CRUD_MCP_DATABASE_URL environment variable is not set
        """
        database_url = os.getenv("SCHEMA_CRUD_MCP_DATABASE_URL")
        if not database_url:
            error_msg = "SCHEMA_CRUD_MCP_DATABASE_URL environment variable not set"
            raise ValueError(error_msg)
        return database_url

    @staticmethod
    def create_database_engine(url: str) -> sa.Engine:
        """Create SQLAlchemy database engine.

        Args:
            url: Database connection URL

        Returns:
            SQLAlchemy Engine instance
        """
        # Connections are checked before use; list reads hold two at once
        return sa.create_engine(url, pool_pre_ping=True)

    # ---- Page size budgets -----------------------------------------------
    @staticmethod
    def default_page_size() -> int:
        """Rows per page when the caller does not pass a limit."""
        return _int_env("SCHEMA_CRUD_MCP_DEFAULT_PAGE_SIZE", Constants.DEFAULT_PAGE_SIZE, 1)

    @staticmethod
    def max_page_size() -> int:
        """Upper bound applied to caller-provided limits."""
        return _int_env("SCHEMA_CRUD_MCP_MAX_PAGE_SIZE", Constants.DEFAULT_MAX_PAGE_SIZE, 1)

    @staticmethod
    def fk_options_limit() -> int:
        """Maximum referenced rows loaded to build foreign-key options."""
        return _int_env("SCHEMA_CRUD_MCP_FK_OPTIONS_LIMIT", Constants.DEFAULT_FK_OPTIONS_LIMIT, 1)

    @staticmethod
    def soft_delete_columns() -> tuple[str, ...]:
        """Column names recognized as soft-delete flags."""
        raw = os.getenv("SCHEMA_CRUD_MCP_SOFT_DELETE_COLUMNS")
        if not raw:
            return Constants.DEFAULT_SOFT_DELETE_COLUMNS
        names = tuple(name.strip() for name in raw.split(",") if name.strip())
        return names or Constants.DEFAULT_SOFT_DELETE_COLUMNS
