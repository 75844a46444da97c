"""Data models for table schema metadata.

This module contains the immutable snapshots produced by the schema provider
and consumed by the query engine. A `TableSchema` is built per table from
database reflection and never mutated afterwards.

Models:
- Column: Metadata about a single table column
- ForeignKey: Single-column foreign key reference
- TableSchema: Complete description of one table
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from .constants import TYPE_NAME_HINTS, DataType


def normalize_data_type(raw_type: str) -> DataType:
    """Map a reflected SQL type string to a `DataType` category.

    Example:
        >>> normalize_data_type("VARCHAR(50)")
        <DataType.TEXT: 'text'>
        >>> normalize_data_type("TIMESTAMP WITHOUT TIME ZONE")
        <DataType.TIMESTAMP: 'timestamp'>
    """
    lowered = raw_type.strip().lower()
    for hint, category in TYPE_NAME_HINTS:
        if hint in lowered:
            return category
    return DataType.OTHER


@dataclass(frozen=True)
class Column:
    """Metadata about a table column.

    Attributes:
        name: Column name as defined in the database
        data_type: Normalized type category
        raw_type: Type string as reflected
        is_nullable: Whether the column accepts NULL values
        column_default: Server default expression, if any
        is_primary_key: True if this column is (part of) the primary key
        is_auto_increment: True if the database assigns the value on insert
        is_foreign_key: True if a foreign key starts at this column
        max_length: Declared maximum length for character types
    """

    name: str
    data_type: DataType
    raw_type: str = ""
    is_nullable: bool = True
    column_default: str | None = None
    is_primary_key: bool = False
    is_auto_increment: bool = False
    is_foreign_key: bool = False
    max_length: int | None = None


@dataclass(frozen=True)
class ForeignKey:
    """Reference from a local column to a column of another table."""

    column_name: str
    foreign_table_name: str
    foreign_column_name: str


@dataclass(frozen=True)
class TableSchema:
    """Immutable description of a table.

    Attributes:
        table_name: Table name as defined in the database
        columns: Columns in declared order
        foreign_keys: Single-column foreign keys in declared order
        primary_key: Name of the single primary-key column, or None
        soft_delete_column: Name of the recognized soft-delete flag, or None
    """

    table_name: str
    columns: tuple[Column, ...]
    foreign_keys: tuple[ForeignKey, ...] = ()
    primary_key: str | None = None
    soft_delete_column: str | None = None
    _by_name: dict[str, Column] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_name", {col.name: col for col in self.columns})

    def column(self, name: str) -> Column | None:
        """Return the column called `name`, or None."""
        return self._by_name.get(name)

    def has_column(self, name: str) -> bool:
        return name in self._by_name

    @property
    def column_names(self) -> list[str]:
        return [col.name for col in self.columns]

    def foreign_key_for(self, column_name: str) -> ForeignKey | None:
        """Return the foreign key starting at `column_name`, if any."""
        for fk in self.foreign_keys:
            if fk.column_name == column_name:
                return fk
        return None

    def primary_key_column(self) -> Column | None:
        if self.primary_key is None:
            return None
        return self.column(self.primary_key)


def find_soft_delete_column(columns: Iterable[Column], names: Iterable[str]) -> str | None:
    """Return the first column (declared order) whose name is a soft-delete flag."""
    recognized = set(names)
    for col in columns:
        if col.name in recognized:
            return col.name
    return None
