from __future__ import annotations

import pytest
import sqlalchemy as sa
from sqlalchemy import text

from schema_crud_mcp.exceptions import StorageError
from schema_crud_mcp.execute.runner import SqlAlchemyExecutor, to_named_binds
from schema_crud_mcp.query import SqlStyle, map_sqlalchemy_to_sqlglot


def _mk_engine() -> sa.Engine:
    return sa.create_engine("sqlite+pysqlite:///:memory:")


def _setup_sqlite(engine: sa.Engine) -> None:
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE t(id INTEGER PRIMARY KEY, name TEXT)"))
        conn.execute(text("INSERT INTO t(name) VALUES ('Alice'),('Bob'),('Charlie')"))


def test_to_named_binds() -> None:
    sql, binds = to_named_binds('SELECT * FROM "t" WHERE "a" = $1 AND "b" IN ($2, $10)', list(range(10)))
    assert sql == 'SELECT * FROM "t" WHERE "a" = :p1 AND "b" IN (:p2, :p10)'
    assert binds["p1"] == 0
    assert binds["p10"] == 9


def test_to_named_binds_skips_quoted_identifiers() -> None:
    sql, binds = to_named_binds('SELECT "$1" FROM `x$2` WHERE "a""$3" = $1', ["v"])
    assert sql == 'SELECT "$1" FROM `x$2` WHERE "a""$3" = :p1'
    assert binds == {"p1": "v"}


def test_to_named_binds_rejects_missing_parameter() -> None:
    with pytest.raises(ValueError, match=r"\$2 has no parameter"):
        to_named_binds("SELECT $1, $2", [1])


def test_executor_returns_rows_as_dicts() -> None:
    engine = _mk_engine()
    _setup_sqlite(engine)
    executor = SqlAlchemyExecutor(engine)
    rows = executor.execute('SELECT "id", "name" FROM "t" WHERE "name" LIKE $1 ORDER BY "id"', ["%l%"])
    assert rows == [{"id": 1, "name": "Alice"}, {"id": 3, "name": "Charlie"}]


def test_executor_commits_and_returns_written_rows() -> None:
    engine = _mk_engine()
    _setup_sqlite(engine)
    executor = SqlAlchemyExecutor(engine)
    rows = executor.execute('UPDATE "t" SET "name" = $1 WHERE "id" = $2 RETURNING *', ["Bo", 2])
    assert rows == [{"id": 2, "name": "Bo"}]
    assert executor.execute('SELECT "name" FROM "t" WHERE "id" = $1', [2]) == [{"name": "Bo"}]


def test_executor_without_result_rows() -> None:
    engine = _mk_engine()
    _setup_sqlite(engine)
    assert SqlAlchemyExecutor(engine).execute('DELETE FROM "t" WHERE "id" = $1', [1]) == []


def test_executor_wraps_driver_errors() -> None:
    engine = _mk_engine()
    with pytest.raises(StorageError, match="no such table") as excinfo:
        SqlAlchemyExecutor(engine).execute('SELECT * FROM "missing"', [])
    assert isinstance(excinfo.value.__cause__, sa.exc.SQLAlchemyError)


@pytest.mark.parametrize(
    ("sa_name", "dialect", "like"),
    [
        ("postgresql", "postgres", "ILIKE"),
        ("duckdb", "duckdb", "ILIKE"),
        ("sqlite", "sqlite", "LIKE"),
        ("mariadb", "sql", "LIKE"),
        ("mysql", "sql", "LIKE"),
        ("firebird", "sql", "LIKE"),
    ],
)
def test_sql_style_for_sqlalchemy(sa_name: str, dialect: str, like: str) -> None:
    assert map_sqlalchemy_to_sqlglot(sa_name) == dialect
    style = SqlStyle.for_sqlalchemy(sa_name)
    assert style.dialect == dialect
    assert style.like == like


def test_quote_escapes_identifiers() -> None:
    assert SqlStyle("postgres").quote('we"ird') == '"we""ird"'
    assert SqlStyle("sqlite").quote("t") == '"t"'
    assert SqlStyle("postgres").column("t", "c") == '"t"."c"'
