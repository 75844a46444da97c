"""Filter compilation: caller filters to a parameterized WHERE fragment.

Two input shapes are accepted:

- Flat shorthand, a ``{column: value}`` mapping. String values on non-key text
  columns become case-insensitive substring matches; everything else is
  equality.
- Structured filters, ``{"groups": [{"operator": "AND", "conditions": [...]}]}``
  or a `FilterSpec`, with explicit operators and AND/OR connectives.

Filter input usually comes from loosely typed form state, so unknown fields,
operators that do not fit the column type, and values that cannot be coerced
are dropped instead of rejected. Only structurally malformed input raises
`FilterError`.

When the table has a soft-delete column and no applied filter condition
compares it, ``<col> = $1`` bound to False is always emitted first. A
structured condition on the flag that is dropped does not count.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Final

from fastmcp.utilities.logging import get_logger

from schema_crud_mcp.exceptions import FilterError
from schema_crud_mcp.schema_tools.constants import (
    FILTERABLE_TYPES,
    NULL_CHECK_OPERATORS,
    ORDERED_TYPES,
    ORDERING_OPERATORS,
    TEXT_OPERATORS,
    Connective,
    DataType,
    FilterOperator,
)
from schema_crud_mcp.schema_tools.models import Column, TableSchema

from .fragments import QueryFragments
from .identifiers import POSTGRES, SqlStyle

_logger = get_logger(__name__)

_TRUE_STRINGS: Final[frozenset[str]] = frozenset({"true", "t", "1", "yes", "y", "si", "sí"})
_FALSE_STRINGS: Final[frozenset[str]] = frozenset({"false", "f", "0", "no", "n"})

# Display order of operators offered for a column
_OPERATOR_ORDER: Final[tuple[FilterOperator, ...]] = (
    FilterOperator.EQ,
    FilterOperator.NE,
    FilterOperator.LIKE,
    FilterOperator.NOT_LIKE,
    FilterOperator.STARTS_WITH,
    FilterOperator.ENDS_WITH,
    FilterOperator.GT,
    FilterOperator.LT,
    FilterOperator.GE,
    FilterOperator.LE,
    FilterOperator.BETWEEN,
    FilterOperator.IS_NULL,
    FilterOperator.IS_NOT_NULL,
)

_COERCION_ERRORS = (ValueError, TypeError, ArithmeticError)


# ---- filter model -----------------------------------------------------------
@dataclass(frozen=True)
class FilterCondition:
    """A single comparison."""

    field: str
    operator: str
    value: Any = None
    connective_to_next: Connective = Connective.AND

    def is_empty(self) -> bool:
        if not self.field or not self.operator:
            return True
        if self.operator in {op.value for op in NULL_CHECK_OPERATORS}:
            return False
        return self.value is None or self.value == ""


@dataclass(frozen=True)
class FilterGroup:
    """Conditions joined by their own connectives.

    `connective` links this group to the previous one and is ignored for the
    first group.
    """

    conditions: tuple[FilterCondition, ...] = ()
    connective: Connective = Connective.AND


@dataclass(frozen=True)
class FilterSpec:
    """Ordered collection of filter groups."""

    groups: tuple[FilterGroup, ...] = ()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> FilterSpec:
        """Parse the wire shape produced by filter forms.

        Raises:
            FilterError: If the payload cannot be interpreted
        """
        raw_groups = payload.get("groups")
        if not isinstance(raw_groups, list | tuple):
            msg = "Filter 'groups' must be a list"
            raise FilterError(msg)
        return cls(groups=tuple(_parse_group(raw, i) for i, raw in enumerate(raw_groups)))


@dataclass(frozen=True)
class CompiledFilter:
    """WHERE conditions (ANDed together) with their bind values."""

    conditions: tuple[str, ...]
    params: tuple[Any, ...]

    @property
    def where_sql(self) -> str:
        return " AND ".join(self.conditions)


def _parse_connective(raw: object, where: str) -> Connective:
    if raw is None or raw == "":
        return Connective.AND
    if not isinstance(raw, str):
        msg = f"Connective in {where} must be a string, got {type(raw).__name__}"
        raise FilterError(msg)
    try:
        return Connective(raw.strip().upper())
    except ValueError as exc:
        msg = f"Unknown connective {raw!r} in {where}"
        raise FilterError(msg) from exc


def _parse_text(raw: object, name: str, where: str) -> str:
    if raw is None:
        return ""
    if not isinstance(raw, str):
        msg = f"Filter {name} in {where} must be a string, got {type(raw).__name__}"
        raise FilterError(msg)
    return raw.strip()


def _parse_condition(raw: object, where: str) -> FilterCondition:
    if isinstance(raw, FilterCondition):
        return raw
    if not isinstance(raw, Mapping):
        msg = f"Filter condition in {where} must be a mapping"
        raise FilterError(msg)
    connective = next(
        (raw[key] for key in ("connective_to_next", "logicalOperator", "connective") if key in raw),
        None,
    )
    return FilterCondition(
        field=_parse_text(raw.get("field"), "field", where),
        operator=_parse_text(raw.get("operator"), "operator", where).upper(),
        value=raw.get("value"),
        connective_to_next=_parse_connective(connective, where),
    )


def _parse_group(raw: object, index: int) -> FilterGroup:
    where = f"group {index}"
    if isinstance(raw, FilterGroup):
        return raw
    if not isinstance(raw, Mapping):
        msg = f"Filter {where} must be a mapping"
        raise FilterError(msg)
    raw_conditions = raw.get("conditions") or []
    if not isinstance(raw_conditions, list | tuple):
        msg = f"Filter {where} 'conditions' must be a list"
        raise FilterError(msg)
    return FilterGroup(
        conditions=tuple(
            _parse_condition(cond, f"{where}, condition {i}")
            for i, cond in enumerate(raw_conditions)
        ),
        connective=_parse_connective(raw.get("operator", raw.get("connective")), where),
    )


# ---- type rules ---------------------------------------------------------------
def operators_for(data_type: DataType) -> list[FilterOperator]:
    """Operators that may be applied to a column of `data_type`."""
    allowed = {
        FilterOperator.EQ,
        FilterOperator.NE,
        FilterOperator.IS_NULL,
        FilterOperator.IS_NOT_NULL,
    }
    if data_type is DataType.TEXT:
        allowed |= TEXT_OPERATORS
    elif data_type in ORDERED_TYPES:
        allowed |= ORDERING_OPERATORS
    return [op for op in _OPERATOR_ORDER if op in allowed]


def filterable_columns(schema: TableSchema) -> list[Column]:
    """Columns a structured filter may reference."""
    return [
        col
        for col in schema.columns
        if not col.is_primary_key and col.data_type in FILTERABLE_TYPES
    ]


def coerce_value(column: Column, value: Any) -> Any:
    """Convert a loosely typed filter value to the column's Python type.

    Raises:
        ValueError, TypeError or ArithmeticError: If the value does not fit
    """
    data_type = column.data_type
    if data_type is DataType.TEXT:
        if isinstance(value, str):
            return value
        if isinstance(value, int | float | Decimal) and not isinstance(value, bool):
            return str(value)
        msg = f"Cannot use {type(value).__name__} as text"
        raise TypeError(msg)

    if data_type is DataType.INTEGER:
        if isinstance(value, bool):
            msg = "Booleans are not integers here"
            raise TypeError(msg)
        if isinstance(value, int):
            return value
        if isinstance(value, float | Decimal):
            if value != int(value):
                msg = f"{value!r} is not integral"
                raise ValueError(msg)
            return int(value)
        if isinstance(value, str):
            return int(value.strip())
        msg = f"Cannot use {type(value).__name__} as integer"
        raise TypeError(msg)

    if data_type is DataType.NUMERIC:
        if isinstance(value, bool):
            msg = "Booleans are not numbers here"
            raise TypeError(msg)
        if isinstance(value, int | float | Decimal):
            return value
        if isinstance(value, str):
            number = Decimal(value.strip())
            if not number.is_finite():
                msg = f"{value!r} is not a finite number"
                raise ValueError(msg)
            return number
        msg = f"Cannot use {type(value).__name__} as number"
        raise TypeError(msg)

    if data_type is DataType.BOOLEAN:
        if isinstance(value, bool):
            return value
        if isinstance(value, int) and value in {0, 1}:
            return bool(value)
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_STRINGS:
                return True
            if lowered in _FALSE_STRINGS:
                return False
        msg = f"Cannot use {value!r} as boolean"
        raise ValueError(msg)

    if data_type is DataType.DATE:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            text = value.strip()
            try:
                return date.fromisoformat(text)
            except ValueError:
                return datetime.fromisoformat(text).date()
        msg = f"Cannot use {type(value).__name__} as date"
        raise TypeError(msg)

    if data_type is DataType.TIMESTAMP:
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime.combine(value, time())
        if isinstance(value, str):
            return datetime.fromisoformat(value.strip())
        msg = f"Cannot use {type(value).__name__} as timestamp"
        raise TypeError(msg)

    return value


def _split_range(value: Any) -> tuple[Any, Any] | None:
    if isinstance(value, str):
        parts = [part.strip() for part in value.split(",")]
    elif isinstance(value, list | tuple):
        parts = list(value)
    else:
        return None
    if len(parts) != 2 or any(part is None or part == "" for part in parts):
        return None
    return parts[0], parts[1]


# ---- compilation --------------------------------------------------------------
def compile_filters(
    schema: TableSchema,
    filters: Mapping[str, Any] | FilterSpec | None,
    *,
    style: SqlStyle = POSTGRES,
    start_index: int = 1,
) -> CompiledFilter:
    """Compile caller filters for `schema` into WHERE conditions.

    Args:
        schema: Table the filters apply to
        filters: Flat mapping, structured payload, `FilterSpec` or None
        style: Target dialect rendering
        start_index: Placeholder number of the first bound value

    Returns:
        CompiledFilter whose params line up with placeholders from `start_index`

    Raises:
        FilterError: If the filter input is structurally malformed
    """

    spec: FilterSpec | None = None
    flat: Mapping[str, Any] = {}
    if filters is None:
        pass
    elif isinstance(filters, FilterSpec):
        spec = filters
    elif isinstance(filters, Mapping):
        if isinstance(filters.get("groups"), list | tuple):
            spec = FilterSpec.from_payload(filters)
        else:
            flat = filters
    else:
        msg = (
            f"Filters for table '{schema.table_name}' must be a mapping, "
            f"got {type(filters).__name__}"
        )
        raise FilterError(msg)

    for key in flat:
        if not isinstance(key, str):
            msg = f"Filter field names must be strings, got {key!r}"
            raise FilterError(msg)

    soft_delete = schema.soft_delete_column

    if spec is None:
        frags = QueryFragments(start_index=start_index)
        if soft_delete and soft_delete not in flat:
            _inject_soft_delete(schema, frags, style)
        _compile_flat(schema, flat, frags, style)
        return CompiledFilter(conditions=tuple(frags.where), params=tuple(frags.params))

    # Only conditions that survive compilation count as mentioning the flag
    rendered: set[str] = set()
    user = QueryFragments(start_index=start_index + 1)
    user_sql = _compile_spec(schema, spec, user, style, rendered)
    if soft_delete and soft_delete not in rendered:
        frags = QueryFragments(start_index=start_index)
        _inject_soft_delete(schema, frags, style)
        if user_sql:
            frags.where.append(user_sql)
        frags.params.extend(user.params)
        return CompiledFilter(conditions=tuple(frags.where), params=tuple(frags.params))

    frags = QueryFragments(start_index=start_index)
    user_sql = _compile_spec(schema, spec, frags, style, set())
    if user_sql:
        frags.where.append(user_sql)
    return CompiledFilter(conditions=tuple(frags.where), params=tuple(frags.params))


def _inject_soft_delete(schema: TableSchema, frags: QueryFragments, style: SqlStyle) -> None:
    ref = style.column(schema.table_name, schema.soft_delete_column)
    frags.where.append(f"{ref} = {frags.bind(False)}")


def _compile_flat(
    schema: TableSchema,
    flat: Mapping[str, Any],
    frags: QueryFragments,
    style: SqlStyle,
) -> None:
    for field_name, value in flat.items():
        if value is None or value == "":
            continue
        col = schema.column(field_name)
        if col is None:
            _logger.debug("Ignoring filter on unknown column %s.%s", schema.table_name, field_name)
            continue
        ref = style.column(schema.table_name, col.name)
        if isinstance(value, str) and col.data_type is DataType.TEXT and not col.is_primary_key:
            frags.where.append(f"{ref} {style.like} {frags.bind(f'%{value}%')}")
            continue
        try:
            coerced = coerce_value(col, value)
        except _COERCION_ERRORS as exc:
            _logger.debug("Dropping filter %s.%s: %s", schema.table_name, col.name, exc)
            continue
        frags.where.append(f"{ref} = {frags.bind(coerced)}")


def _compile_spec(
    schema: TableSchema,
    spec: FilterSpec,
    frags: QueryFragments,
    style: SqlStyle,
    rendered: set[str],
) -> str:
    compiled_groups: list[tuple[Connective, str]] = []
    for group in spec.groups:
        parts: list[tuple[str, Connective]] = []
        for cond in group.conditions:
            sql = _compile_condition(schema, cond, frags, style)
            if sql is not None:
                parts.append((sql, cond.connective_to_next))
                rendered.add(cond.field)
        if not parts:
            continue
        text = parts[0][0]
        for (_, connective), (sql, _) in zip(parts, parts[1:], strict=False):
            text += f" {connective.value} {sql}"
        compiled_groups.append((group.connective, f"({text})"))

    if not compiled_groups:
        return ""
    joined = compiled_groups[0][1]
    for connective, sql in compiled_groups[1:]:
        joined += f" {connective.value} {sql}"
    return joined if len(compiled_groups) == 1 else f"({joined})"


def _compile_condition(
    schema: TableSchema,
    cond: FilterCondition,
    frags: QueryFragments,
    style: SqlStyle,
) -> str | None:
    """Render one condition, or return None when it has to be dropped.

    Nothing is bound until the condition is known to be valid.
    """
    if cond.is_empty():
        return None
    try:
        op = FilterOperator(cond.operator)
    except ValueError:
        _logger.debug("Dropping condition with unknown operator %r", cond.operator)
        return None

    col = schema.column(cond.field)
    if col is None:
        _logger.debug("Ignoring filter on unknown column %s.%s", schema.table_name, cond.field)
        return None
    if col.is_primary_key:
        _logger.debug("Ignoring filter on primary key %s.%s", schema.table_name, col.name)
        return None
    if col.data_type not in FILTERABLE_TYPES or op not in operators_for(col.data_type):
        _logger.debug(
            "Dropping %s on %s.%s (%s)", op.value, schema.table_name, col.name, col.data_type.value
        )
        return None

    ref = style.column(schema.table_name, col.name)

    if op is FilterOperator.IS_NULL:
        return f"{ref} IS NULL"
    if op is FilterOperator.IS_NOT_NULL:
        return f"{ref} IS NOT NULL"

    if op in TEXT_OPERATORS:
        text = str(cond.value)
        if op is FilterOperator.STARTS_WITH:
            pattern = f"{text}%"
        elif op is FilterOperator.ENDS_WITH:
            pattern = f"%{text}"
        else:
            pattern = f"%{text}%"
        sql_op = style.not_like if op is FilterOperator.NOT_LIKE else style.like
        return f"{ref} {sql_op} {frags.bind(pattern)}"

    if op is FilterOperator.BETWEEN:
        bounds = _split_range(cond.value)
        if bounds is None:
            _logger.debug("Dropping BETWEEN on %s.%s: need two values", schema.table_name, col.name)
            return None
        try:
            low, high = (coerce_value(col, bound) for bound in bounds)
        except _COERCION_ERRORS as exc:
            _logger.debug("Dropping BETWEEN on %s.%s: %s", schema.table_name, col.name, exc)
            return None
        return f"{ref} BETWEEN {frags.bind(low)} AND {frags.bind(high)}"

    try:
        coerced = coerce_value(col, cond.value)
    except _COERCION_ERRORS as exc:
        _logger.debug("Dropping %s on %s.%s: %s", op.value, schema.table_name, col.name, exc)
        return None
    return f"{ref} {op.value} {frags.bind(coerced)}"

