"""Table schema metadata for schema-crud-mcp.

Reflects tables through SQLAlchemy into immutable snapshots that drive query
construction.

Main Components:
- SchemaProvider: Reflects and memoizes table schemas
- Data Models: Column, ForeignKey, TableSchema
- Constants & Enums: DataType, FilterOperator, Connective
"""

from .constants import Connective, Constants, DataType, FilterOperator
from .models import Column, ForeignKey, TableSchema, normalize_data_type
from .reflection import SchemaProvider

__all__ = [
    "Column",
    "Connective",
    "Constants",
    "DataType",
    "FilterOperator",
    "ForeignKey",
    "SchemaProvider",
    "TableSchema",
    "normalize_data_type",
]
