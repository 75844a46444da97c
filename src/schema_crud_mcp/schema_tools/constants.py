"""Constants and enums for schema handling.

This module contains the data-type categories, recognized column-name sets,
and the filter operator table used throughout the CRUD engine.
"""

from __future__ import annotations

from enum import Enum
import re
from typing import Final


class DataType(str, Enum):
    """Normalized column data-type category."""

    TEXT = "text"
    INTEGER = "integer"
    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    DATE = "date"
    TIMESTAMP = "timestamp"
    TIME = "time"
    OTHER = "other"


class FilterOperator(str, Enum):
    """Operators accepted by structured filter conditions."""

    EQ = "="
    NE = "!="
    LIKE = "LIKE"
    NOT_LIKE = "NOT_LIKE"
    STARTS_WITH = "STARTS_WITH"
    ENDS_WITH = "ENDS_WITH"
    IS_NULL = "IS_NULL"
    IS_NOT_NULL = "IS_NOT_NULL"
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="
    BETWEEN = "BETWEEN"


class Connective(str, Enum):
    """Logical connective between conditions or groups."""

    AND = "AND"
    OR = "OR"


class Constants:
    """Configuration constants for the CRUD engine."""

    # Defaults
    DEFAULT_PAGE_SIZE: Final[int] = 50
    DEFAULT_MAX_PAGE_SIZE: Final[int] = 1000
    DEFAULT_FK_OPTIONS_LIMIT: Final[int] = 1000
    DEFAULT_SOFT_DELETE_COLUMNS: Final[tuple[str, ...]] = ("esta_borrado", "deleted", "is_deleted")

    # Column default expressions produced by sequence generators
    SEQUENCE_DEFAULT_PATTERN: Final[re.Pattern[str]] = re.compile(r"nextval\s*\(", re.IGNORECASE)

    # Column-name fragments that make a column a good human-readable label
    DISPLAY_NAME_KEYWORDS: Final[tuple[str, ...]] = (
        "name",
        "nombre",
        "title",
        "titulo",
        "description",
        "descripcion",
    )

    # Prefix of synthetic join columns; stripped by the post-processor
    SYNTHETIC_PREFIX: Final[str] = "_fk_"
    DISPLAY_SUFFIX: Final[str] = "_display"
    JOIN_ALIAS_SUFFIX: Final[str] = "_data"


# Ordered (type-name fragment, category) pairs; first match wins.
TYPE_NAME_HINTS: Final[tuple[tuple[str, DataType], ...]] = (
    ("[]", DataType.OTHER),
    ("array", DataType.OTHER),
    ("point", DataType.OTHER),
    ("timestamp", DataType.TIMESTAMP),
    ("datetime", DataType.TIMESTAMP),
    ("interval", DataType.OTHER),
    ("date", DataType.DATE),
    ("time", DataType.TIME),
    ("bool", DataType.BOOLEAN),
    ("bit", DataType.BOOLEAN),
    ("serial", DataType.INTEGER),
    ("int", DataType.INTEGER),
    ("numeric", DataType.NUMERIC),
    ("decimal", DataType.NUMERIC),
    ("float", DataType.NUMERIC),
    ("double", DataType.NUMERIC),
    ("real", DataType.NUMERIC),
    ("money", DataType.NUMERIC),
    ("char", DataType.TEXT),
    ("text", DataType.TEXT),
    ("clob", DataType.TEXT),
    ("string", DataType.TEXT),
    ("citext", DataType.TEXT),
)

FILTERABLE_TYPES: Final[frozenset[DataType]] = frozenset(
    {
        DataType.TEXT,
        DataType.INTEGER,
        DataType.NUMERIC,
        DataType.BOOLEAN,
        DataType.DATE,
        DataType.TIMESTAMP,
    }
)

ORDERED_TYPES: Final[frozenset[DataType]] = frozenset(
    {DataType.INTEGER, DataType.NUMERIC, DataType.DATE, DataType.TIMESTAMP}
)

NULL_CHECK_OPERATORS: Final[frozenset[FilterOperator]] = frozenset(
    {FilterOperator.IS_NULL, FilterOperator.IS_NOT_NULL}
)

TEXT_OPERATORS: Final[frozenset[FilterOperator]] = frozenset(
    {
        FilterOperator.LIKE,
        FilterOperator.NOT_LIKE,
        FilterOperator.STARTS_WITH,
        FilterOperator.ENDS_WITH,
    }
)

ORDERING_OPERATORS: Final[frozenset[FilterOperator]] = frozenset(
    {
        FilterOperator.GT,
        FilterOperator.LT,
        FilterOperator.GE,
        FilterOperator.LE,
        FilterOperator.BETWEEN,
    }
)
