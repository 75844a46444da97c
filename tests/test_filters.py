from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from schema_crud_mcp.exceptions import FilterError
from schema_crud_mcp.query import (
    FilterCondition,
    FilterGroup,
    FilterSpec,
    SqlStyle,
    coerce_value,
    compile_filters,
    filterable_columns,
    operators_for,
)
from schema_crud_mcp.schema_tools.constants import Connective, DataType, FilterOperator
from schema_crud_mcp.schema_tools.models import Column, ForeignKey, TableSchema

SOFT = '"usuarios"."esta_borrado" = $1'


def _usuarios() -> TableSchema:
    return TableSchema(
        table_name="usuarios",
        columns=(
            Column("id", DataType.INTEGER, "INTEGER", is_primary_key=True, is_auto_increment=True),
            Column("nombre", DataType.TEXT, "VARCHAR(100)"),
            Column("email", DataType.TEXT, "TEXT"),
            Column("edad", DataType.INTEGER, "INTEGER"),
            Column("saldo", DataType.NUMERIC, "NUMERIC(10, 2)"),
            Column("activo", DataType.BOOLEAN, "BOOLEAN"),
            Column("creado", DataType.DATE, "DATE"),
            Column("perfil", DataType.OTHER, "JSONB"),
            Column("rol_id", DataType.INTEGER, "INTEGER", is_foreign_key=True),
            Column("esta_borrado", DataType.BOOLEAN, "BOOLEAN"),
        ),
        foreign_keys=(ForeignKey("rol_id", "roles", "id"),),
        primary_key="id",
        soft_delete_column="esta_borrado",
    )


def _codes() -> TableSchema:
    return TableSchema(
        table_name="codes",
        columns=(
            Column("code", DataType.TEXT, "VARCHAR(10)", is_primary_key=True),
            Column("label", DataType.TEXT, "TEXT"),
        ),
        primary_key="code",
    )


def _group(*conditions: FilterCondition, connective: Connective = Connective.AND) -> FilterGroup:
    return FilterGroup(conditions=tuple(conditions), connective=connective)


# ---- soft delete -------------------------------------------------------------
def test_no_filters_injects_soft_delete_first() -> None:
    compiled = compile_filters(_usuarios(), None)
    assert compiled.conditions == (SOFT,)
    assert compiled.params == (False,)


def test_no_soft_delete_column_means_no_conditions() -> None:
    compiled = compile_filters(_codes(), {})
    assert compiled.conditions == ()
    assert compiled.params == ()
    assert compiled.where_sql == ""


def test_explicit_soft_delete_filter_replaces_injection() -> None:
    compiled = compile_filters(_usuarios(), {"esta_borrado": True})
    assert compiled.conditions == ('"usuarios"."esta_borrado" = $1',)
    assert compiled.params == (True,)


def test_structured_soft_delete_reference_replaces_injection() -> None:
    spec = FilterSpec(groups=(_group(FilterCondition("esta_borrado", "=", "true")),))
    compiled = compile_filters(_usuarios(), spec)
    assert compiled.conditions == ('("usuarios"."esta_borrado" = $1)',)
    assert compiled.params == (True,)


def test_empty_soft_delete_condition_keeps_injection() -> None:
    payload = {
        "groups": [
            {
                "conditions": [
                    {"field": "nombre", "operator": "LIKE", "value": "an"},
                    {"field": "esta_borrado", "operator": "=", "value": ""},
                ]
            }
        ]
    }
    compiled = compile_filters(_usuarios(), payload)
    assert compiled.conditions == (SOFT, '("usuarios"."nombre" ILIKE $2)')
    assert compiled.params == (False, "%an%")


def test_dropped_soft_delete_condition_keeps_injection() -> None:
    spec = FilterSpec(groups=(_group(FilterCondition("esta_borrado", "LIKE", "x")),))
    compiled = compile_filters(_usuarios(), spec)
    assert compiled.conditions == (SOFT,)
    assert compiled.params == (False,)


def test_dropped_soft_delete_condition_respects_start_index() -> None:
    spec = FilterSpec(
        groups=(
            _group(
                FilterCondition("esta_borrado", "LIKE", "x"),
                FilterCondition("edad", ">", "18"),
            ),
        )
    )
    compiled = compile_filters(_usuarios(), spec, start_index=3)
    assert compiled.conditions == (
        '"usuarios"."esta_borrado" = $3',
        '("usuarios"."edad" > $4)',
    )
    assert compiled.params == (False, 18)


# ---- flat shorthand ----------------------------------------------------------
def test_flat_text_is_substring_match() -> None:
    compiled = compile_filters(_usuarios(), {"nombre": "ana"})
    assert compiled.conditions == (SOFT, '"usuarios"."nombre" ILIKE $2')
    assert compiled.params == (False, "%ana%")


def test_flat_sqlite_uses_like() -> None:
    compiled = compile_filters(_usuarios(), {"nombre": "ana"}, style=SqlStyle("sqlite"))
    assert compiled.conditions[1] == '"usuarios"."nombre" LIKE $2'


def test_flat_non_text_is_coerced_equality() -> None:
    compiled = compile_filters(_usuarios(), {"edad": "30", "activo": "false", "creado": "2024-01-31"})
    assert compiled.conditions == (
        SOFT,
        '"usuarios"."edad" = $2',
        '"usuarios"."activo" = $3',
        '"usuarios"."creado" = $4',
    )
    assert compiled.params == (False, 30, False, date(2024, 1, 31))


def test_flat_skips_empty_unknown_and_uncoercible() -> None:
    compiled = compile_filters(
        _usuarios(),
        {"nombre": "", "email": None, "apodo": "x", "edad": "treinta", "rol_id": 2},
    )
    assert compiled.conditions == (SOFT, '"usuarios"."rol_id" = $2')
    assert compiled.params == (False, 2)


def test_flat_primary_key_is_equality() -> None:
    compiled = compile_filters(_usuarios(), {"id": "7"})
    assert compiled.conditions == (SOFT, '"usuarios"."id" = $2')
    assert compiled.params == (False, 7)


def test_flat_text_primary_key_is_exact() -> None:
    compiled = compile_filters(_codes(), {"code": "AB"})
    assert compiled.conditions == ('"codes"."code" = $1',)
    assert compiled.params == ("AB",)


def test_flat_non_string_keys_are_rejected() -> None:
    with pytest.raises(FilterError, match="must be strings"):
        compile_filters(_usuarios(), {1: "x"})


@pytest.mark.parametrize("bad", [["nombre", "ana"], "nombre=ana", 42])
def test_non_mapping_filters_are_rejected(bad: object) -> None:
    with pytest.raises(FilterError, match="must be a mapping"):
        compile_filters(_usuarios(), bad)  # type: ignore[arg-type]


def test_start_index_offsets_placeholders() -> None:
    compiled = compile_filters(_usuarios(), {"nombre": "ana"}, start_index=4)
    assert compiled.conditions == (
        '"usuarios"."esta_borrado" = $4',
        '"usuarios"."nombre" ILIKE $5',
    )


# ---- structured filters --------------------------------------------------------
def test_single_group_with_or() -> None:
    payload = {
        "groups": [
            {
                "conditions": [
                    {"field": "nombre", "operator": "like", "value": "ana", "logicalOperator": "OR"},
                    {"field": "edad", "operator": ">", "value": "18"},
                ]
            }
        ]
    }
    compiled = compile_filters(_usuarios(), payload)
    assert compiled.conditions == (
        SOFT,
        '("usuarios"."nombre" ILIKE $2 OR "usuarios"."edad" > $3)',
    )
    assert compiled.params == (False, "%ana%", 18)


def test_multiple_groups_are_wrapped() -> None:
    spec = FilterSpec(
        groups=(
            _group(FilterCondition("nombre", "STARTS_WITH", "An")),
            _group(FilterCondition("edad", ">=", 18), connective=Connective.OR),
        )
    )
    compiled = compile_filters(_usuarios(), spec)
    assert compiled.conditions == (
        SOFT,
        '(("usuarios"."nombre" ILIKE $2) OR ("usuarios"."edad" >= $3))',
    )
    assert compiled.params == (False, "An%", 18)


@pytest.mark.parametrize(
    ("operator", "value", "sql", "param"),
    [
        ("=", "x", '"usuarios"."email" = $2', "x"),
        ("!=", "x", '"usuarios"."email" != $2', "x"),
        ("LIKE", "x", '"usuarios"."email" ILIKE $2', "%x%"),
        ("NOT_LIKE", "x", '"usuarios"."email" NOT ILIKE $2', "%x%"),
        ("STARTS_WITH", "x", '"usuarios"."email" ILIKE $2', "x%"),
        ("ENDS_WITH", "x", '"usuarios"."email" ILIKE $2', "%x"),
    ],
)
def test_text_operators(operator: str, value: str, sql: str, param: str) -> None:
    spec = FilterSpec(groups=(_group(FilterCondition("email", operator, value)),))
    compiled = compile_filters(_usuarios(), spec)
    assert compiled.conditions == (SOFT, f"({sql})")
    assert compiled.params == (False, param)


def test_null_checks_bind_nothing() -> None:
    spec = FilterSpec(
        groups=(
            _group(
                FilterCondition("email", "IS_NULL"),
                FilterCondition("creado", "IS_NOT_NULL"),
            ),
        )
    )
    compiled = compile_filters(_usuarios(), spec)
    assert compiled.conditions == (
        SOFT,
        '("usuarios"."email" IS NULL AND "usuarios"."creado" IS NOT NULL)',
    )
    assert compiled.params == (False,)


@pytest.mark.parametrize("value", ["18, 30", ["18", 30], (18, 30)])
def test_between(value: object) -> None:
    spec = FilterSpec(groups=(_group(FilterCondition("edad", "BETWEEN", value)),))
    compiled = compile_filters(_usuarios(), spec)
    assert compiled.conditions == (SOFT, '("usuarios"."edad" BETWEEN $2 AND $3)')
    assert compiled.params == (False, 18, 30)


@pytest.mark.parametrize(
    "condition",
    [
        FilterCondition("id", "=", 1),  # primary key
        FilterCondition("apodo", "=", "x"),  # unknown column
        FilterCondition("nombre", "REGEXP", "x"),  # unknown operator
        FilterCondition("nombre", ">", "x"),  # ordering on text
        FilterCondition("activo", "LIKE", "t"),  # pattern on boolean
        FilterCondition("perfil", "=", "{}"),  # not filterable
        FilterCondition("edad", "=", "viejo"),  # uncoercible
        FilterCondition("edad", "BETWEEN", "18"),  # single bound
        FilterCondition("edad", "=", ""),  # empty value
    ],
)
def test_invalid_conditions_are_dropped(condition: FilterCondition) -> None:
    spec = FilterSpec(
        groups=(_group(condition, FilterCondition("nombre", "=", "Ana")),)
    )
    compiled = compile_filters(_usuarios(), spec)
    assert compiled.conditions == (SOFT, '("usuarios"."nombre" = $2)')
    assert compiled.params == (False, "Ana")


def test_groups_left_empty_are_skipped() -> None:
    spec = FilterSpec(
        groups=(
            _group(FilterCondition("apodo", "=", "x")),
            _group(FilterCondition("edad", "<", 65), connective=Connective.OR),
        )
    )
    compiled = compile_filters(_usuarios(), spec)
    assert compiled.conditions == (SOFT, '("usuarios"."edad" < $2)')


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ({"groups": [1]}, "must be a mapping"),
        ({"groups": [{"conditions": "x"}]}, "'conditions' must be a list"),
        ({"groups": [{"conditions": [1]}]}, "condition in group 0"),
        ({"groups": [{"operator": "XOR", "conditions": []}]}, "Unknown connective"),
        ({"groups": [{"conditions": [{"field": 3, "operator": "="}]}]}, "field"),
    ],
)
def test_malformed_structured_filters(payload: dict[str, object], message: str) -> None:
    with pytest.raises(FilterError, match=message):
        compile_filters(_usuarios(), payload)


# ---- type rules ----------------------------------------------------------------
def test_operators_for_types() -> None:
    text_ops = operators_for(DataType.TEXT)
    assert FilterOperator.LIKE in text_ops
    assert FilterOperator.GT not in text_ops
    number_ops = operators_for(DataType.NUMERIC)
    assert FilterOperator.BETWEEN in number_ops
    assert FilterOperator.LIKE not in number_ops
    assert operators_for(DataType.BOOLEAN) == [
        FilterOperator.EQ,
        FilterOperator.NE,
        FilterOperator.IS_NULL,
        FilterOperator.IS_NOT_NULL,
    ]


def test_filterable_columns_excludes_pk_and_other() -> None:
    names = [col.name for col in filterable_columns(_usuarios())]
    assert "id" not in names
    assert "perfil" not in names
    assert names[0] == "nombre"


@pytest.mark.parametrize(
    ("data_type", "raw", "expected"),
    [
        (DataType.INTEGER, " 12 ", 12),
        (DataType.INTEGER, 4.0, 4),
        (DataType.NUMERIC, "1.50", Decimal("1.50")),
        (DataType.NUMERIC, 2, 2),
        (DataType.BOOLEAN, "Sí", True),
        (DataType.BOOLEAN, 0, False),
        (DataType.DATE, "2024-02-29T10:00:00", date(2024, 2, 29)),
        (DataType.TEXT, 5, "5"),
        (DataType.OTHER, {"a": 1}, {"a": 1}),
    ],
)
def test_coerce_value(data_type: DataType, raw: object, expected: object) -> None:
    assert coerce_value(Column("c", data_type), raw) == expected


@pytest.mark.parametrize(
    ("data_type", "raw"),
    [
        (DataType.INTEGER, True),
        (DataType.INTEGER, 1.5),
        (DataType.NUMERIC, "NaN"),
        (DataType.BOOLEAN, "maybe"),
        (DataType.DATE, "31/01/2024"),
        (DataType.TEXT, ["a"]),
    ],
)
def test_coerce_value_rejects(data_type: DataType, raw: object) -> None:
    with pytest.raises((ValueError, TypeError, ArithmeticError)):
        coerce_value(Column("c", data_type), raw)
