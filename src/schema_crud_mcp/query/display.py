"""Display-column heuristic for foreign-key labels."""

from __future__ import annotations

from collections.abc import Sequence

from schema_crud_mcp.schema_tools.constants import Constants, DataType
from schema_crud_mcp.schema_tools.models import Column


def is_nameable(column_name: str) -> bool:
    lowered = column_name.lower()
    return any(keyword in lowered for keyword in Constants.DISPLAY_NAME_KEYWORDS)


def resolve_display_column(columns: Sequence[Column], primary_key: str | None = None) -> str:
    """Pick the column that best labels a row for humans.

    First match in declared order wins:
    1. a column whose name contains name/nombre/title/titulo/description/descripcion
    2. the first text column
    3. the primary key
    4. the first column

    Raises:
        ValueError: If `columns` is empty
    """
    for col in columns:
        if is_nameable(col.name):
            return col.name
    for col in columns:
        if col.data_type is DataType.TEXT:
            return col.name
    if primary_key is not None:
        return primary_key
    if not columns:
        msg = "Cannot resolve a display column for a table without columns"
        raise ValueError(msg)
    return columns[0].name
