from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import pytest

from schema_crud_mcp.exceptions import SchemaError, ValidationError
from schema_crud_mcp.query import ListOptions, Pagination, SqlStyle, build_list_query, run_list_query
from schema_crud_mcp.schema_tools.constants import DataType
from schema_crud_mcp.schema_tools.models import Column, ForeignKey, TableSchema

JOIN = (
    'LEFT JOIN "roles" "rol_id_data" ON "usuarios"."rol_id" = "rol_id_data"."id"'
)


def _roles() -> TableSchema:
    return TableSchema(
        table_name="roles",
        columns=(
            Column("id", DataType.INTEGER, "INTEGER", is_primary_key=True),
            Column("codigo", DataType.TEXT, "TEXT"),
            Column("nombre", DataType.TEXT, "TEXT"),
        ),
        primary_key="id",
    )


def _usuarios() -> TableSchema:
    return TableSchema(
        table_name="usuarios",
        columns=(
            Column("id", DataType.INTEGER, "INTEGER", is_primary_key=True),
            Column("nombre", DataType.TEXT, "TEXT"),
            Column("rol_id", DataType.INTEGER, "INTEGER", is_foreign_key=True),
            Column("esta_borrado", DataType.BOOLEAN, "BOOLEAN"),
        ),
        foreign_keys=(ForeignKey("rol_id", "roles", "id"),),
        primary_key="id",
        soft_delete_column="esta_borrado",
    )


def _tareas() -> TableSchema:
    return TableSchema(
        table_name="tareas",
        columns=(
            Column("id", DataType.INTEGER, "INTEGER", is_primary_key=True),
            Column("titulo", DataType.TEXT, "TEXT"),
            Column("creado_por", DataType.INTEGER, "INTEGER", is_foreign_key=True),
            Column("asignado_a", DataType.INTEGER, "INTEGER", is_foreign_key=True),
        ),
        foreign_keys=(
            ForeignKey("creado_por", "usuarios", "id"),
            ForeignKey("asignado_a", "usuarios", "id"),
        ),
        primary_key="id",
    )


class _FakeExecutor:
    def __init__(self, rows: list[dict[str, Any]], total: int) -> None:
        self.rows = rows
        self.total = total
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def execute(self, sql: str, params: Sequence[Any]) -> list[dict[str, Any]]:
        self.calls.append((sql, tuple(params)))
        if sql.startswith("SELECT COUNT(*)"):
            return [{"total": self.total}]
        return [dict(row) for row in self.rows]


def test_default_list_query_joins_foreign_keys() -> None:
    query = build_list_query(_usuarios(), ListOptions(), related={"roles": _roles()})
    assert query.sql == (
        'SELECT "usuarios".*, "rol_id_data"."id" AS "_fk_rol_id_value", '
        '"rol_id_data"."nombre" AS "_fk_rol_id_label" '
        f'FROM "usuarios" {JOIN} '
        'WHERE "usuarios"."esta_borrado" = $1 '
        'ORDER BY "usuarios"."id" ASC LIMIT $2 OFFSET $3'
    )
    assert query.params == (False, 50, 0)
    assert query.count_sql == (
        f'SELECT COUNT(*) AS total FROM "usuarios" {JOIN} WHERE "usuarios"."esta_borrado" = $1'
    )
    assert query.count_params == (False,)
    assert [join.alias for join in query.joins] == ["rol_id_data"]
    assert query.joins[0].display_column == "nombre"


def test_filters_order_and_offset() -> None:
    options = ListOptions(
        page=3,
        limit=10,
        filters={"nombre": "ana"},
        order_by="nombre",
        order_direction="desc",
        auto_include_foreign_keys=False,
    )
    query = build_list_query(_usuarios(), options)
    assert query.sql == (
        'SELECT "usuarios".* FROM "usuarios" '
        'WHERE "usuarios"."esta_borrado" = $1 AND "usuarios"."nombre" ILIKE $2 '
        'ORDER BY "usuarios"."nombre" DESC LIMIT $3 OFFSET $4'
    )
    assert query.params == (False, "%ana%", 10, 20)
    assert query.count_params == (False, "%ana%")


def test_unknown_order_column_and_direction_fall_back() -> None:
    options = ListOptions(order_by="nope", order_direction="sideways", auto_include_foreign_keys=False)
    query = build_list_query(_usuarios(), options)
    assert 'ORDER BY "usuarios"."id" ASC' in query.sql


def test_keyless_table_has_no_order_by() -> None:
    schema = TableSchema(table_name="log", columns=(Column("msg", DataType.TEXT),))
    query = build_list_query(schema, ListOptions())
    assert query.sql == 'SELECT "log".* FROM "log" LIMIT $1 OFFSET $2'
    assert query.count_sql == 'SELECT COUNT(*) AS total FROM "log"'


def test_two_foreign_keys_to_same_table_get_distinct_aliases() -> None:
    query = build_list_query(_tareas(), ListOptions(), related={"usuarios": _usuarios()})
    assert [join.alias for join in query.joins] == ["creado_por_data", "asignado_a_data"]
    assert (
        'LEFT JOIN "usuarios" "creado_por_data" ON "tareas"."creado_por" = "creado_por_data"."id"'
        in query.sql
    )
    assert (
        'LEFT JOIN "usuarios" "asignado_a_data" ON "tareas"."asignado_a" = "asignado_a_data"."id"'
        in query.sql
    )
    assert '"asignado_a_data"."nombre" AS "_fk_asignado_a_label"' in query.sql


def test_include_without_auto_include() -> None:
    options = ListOptions(include=("roles", "paises"), auto_include_foreign_keys=False)
    query = build_list_query(_usuarios(), options, related={"roles": _roles()})
    assert [join.foreign_key.column_name for join in query.joins] == ["rol_id"]

    bare = build_list_query(_usuarios(), ListOptions(auto_include_foreign_keys=False))
    assert bare.joins == ()
    assert "JOIN" not in bare.sql


def test_missing_related_schema_is_a_schema_error() -> None:
    with pytest.raises(SchemaError, match="roles"):
        build_list_query(_usuarios(), ListOptions())


def test_missing_referenced_column_is_a_schema_error() -> None:
    roles = TableSchema(table_name="roles", columns=(Column("codigo", DataType.TEXT),))
    with pytest.raises(SchemaError, match=r"roles\.id"):
        build_list_query(_usuarios(), ListOptions(), related={"roles": roles})


@pytest.mark.parametrize(("page", "limit"), [(0, 10), (1, 0), (-1, 5), ("2", 10), (1, True)])
def test_invalid_pagination(page: Any, limit: Any) -> None:
    with pytest.raises(ValidationError, match="Pagination"):
        build_list_query(_usuarios(), ListOptions(page=page, limit=limit))


def test_sqlite_style_quoting_and_like() -> None:
    options = ListOptions(filters={"nombre": "a"}, auto_include_foreign_keys=False)
    query = build_list_query(_usuarios(), options, style=SqlStyle("sqlite"))
    assert '"usuarios"."nombre" LIKE $2' in query.sql


@pytest.mark.parametrize(
    ("page", "limit", "total", "expected"),
    [
        (1, 50, 0, (0, False, False)),
        (1, 50, 101, (3, True, False)),
        (3, 50, 101, (3, False, True)),
        (5, 10, 20, (2, False, True)),
    ],
)
def test_pagination_compute(page: int, limit: int, total: int, expected: tuple[int, bool, bool]) -> None:
    pagination = Pagination.compute(page, limit, total)
    assert (pagination.total_pages, pagination.has_next, pagination.has_prev) == expected


@pytest.mark.parametrize("use_pool", [False, True])
def test_run_list_query_attaches_labels(use_pool: bool) -> None:
    query = build_list_query(_usuarios(), ListOptions(limit=2), related={"roles": _roles()})
    executor = _FakeExecutor(
        rows=[
            {"id": 1, "nombre": "Ana", "rol_id": 1, "_fk_rol_id_value": 1, "_fk_rol_id_label": "Admin"},
            {"id": 2, "nombre": "Luis", "rol_id": None, "_fk_rol_id_value": None, "_fk_rol_id_label": None},
        ],
        total=3,
    )
    if use_pool:
        with ThreadPoolExecutor(max_workers=2) as pool:
            records, pagination = run_list_query(executor, _usuarios(), query, pool=pool)
    else:
        records, pagination = run_list_query(executor, _usuarios(), query)

    assert records == [
        {"id": 1, "nombre": "Ana", "rol_id": 1, "rol_id_display": "Admin"},
        {"id": 2, "nombre": "Luis", "rol_id": None},
    ]
    assert pagination == Pagination(page=1, limit=2, total=3, total_pages=2, has_next=True, has_prev=False)
    assert sorted(call[1] for call in executor.calls) == [(False,), (False, 2, 0)]
