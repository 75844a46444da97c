"""Services package for schema-crud-mcp.

Main Components:
- ConfigService: Configuration and database connection management
- CrudService: Generic create/read/update/delete over reflected tables
- CrudServiceManager: Process-wide CrudService lifecycle
"""

from .config_service import ConfigService
from .crud_service import CrudService, ForeignKeyOption, ForeignKeyOptions, ListResult
from .crud_service_manager import CrudServiceManager

__all__ = [
    "ConfigService",
    "CrudService",
    "CrudServiceManager",
    "ForeignKeyOption",
    "ForeignKeyOptions",
    "ListResult",
]
