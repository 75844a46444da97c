"""schema-crud-mcp package for schema-driven CRUD over relational databases.

Provides Model Context Protocol (FastMCP) tools that reflect table schemas and
build parameterized queries for create, read, update and delete operations.
"""

from schema_crud_mcp.exceptions import (
    CrudError,
    FilterError,
    NotFoundError,
    SchemaError,
    StorageError,
    ValidationError,
)
from schema_crud_mcp.services import ConfigService, CrudService

__all__ = [  # noqa: RUF022
    # Errors
    "CrudError",
    "FilterError",
    "NotFoundError",
    "SchemaError",
    "StorageError",
    "ValidationError",
    # Services
    "ConfigService",
    "CrudService",
]
