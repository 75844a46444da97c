"""Row post-processing: human-readable labels for foreign-key columns."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from schema_crud_mcp.schema_tools.constants import Constants
from schema_crud_mcp.schema_tools.models import ForeignKey, TableSchema


def synthetic_value_key(fk: ForeignKey) -> str:
    """Result key carrying the joined row's referenced value."""
    return f"{Constants.SYNTHETIC_PREFIX}{fk.column_name}_value"


def synthetic_label_key(fk: ForeignKey) -> str:
    """Result key carrying the joined row's display value."""
    return f"{Constants.SYNTHETIC_PREFIX}{fk.column_name}_label"


def display_key(column_name: str) -> str:
    return f"{column_name}{Constants.DISPLAY_SUFFIX}"


def attach_display_labels(
    rows: Iterable[dict[str, Any]],
    schema: TableSchema,
    joined: Iterable[ForeignKey],
) -> list[dict[str, Any]]:
    """Move joined display values onto ``<column>_display`` keys.

    A label is attached only when the join matched a row and the display
    value is not null. `<column>_display` is left alone when the table has a
    real column of that name. Synthetic keys never survive.
    """
    joined = list(joined)
    out: list[dict[str, Any]] = []
    for row in rows:
        record = dict(row)
        for fk in joined:
            matched = record.pop(synthetic_value_key(fk), None)
            label = record.pop(synthetic_label_key(fk), None)
            target = display_key(fk.column_name)
            if matched is None or label is None or schema.has_column(target):
                continue
            record[target] = label
        out.append(record)
    return out
