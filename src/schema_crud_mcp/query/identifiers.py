"""Identifier quoting and dialect style for generated SQL.

Identifiers (table, column and alias names) are the only text ever
interpolated into statements, and only after they have been checked against
reflected schema metadata. Quoting goes through sqlglot so the rendered form
matches the active dialect. Values are never rendered here.

Supported engines are PostgreSQL, SQLite (3.35+) and DuckDB: every mutation
relies on `RETURNING *`. Other SQLAlchemy dialects fall back to generic
rendering.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from sqlglot import exp

SQLALCHEMY_TO_SQLGLOT: Final[dict[str, str]] = {
    "postgresql": "postgres",
    "postgres": "postgres",
    "sqlite": "sqlite",
    "duckdb": "duckdb",
}

# Dialects whose engines understand ILIKE / NOT ILIKE
_ILIKE_DIALECTS: Final[frozenset[str]] = frozenset({"postgres", "duckdb"})


def map_sqlalchemy_to_sqlglot(sa_dialect_name: str) -> str:
    """Map a SQLAlchemy dialect name to a sqlglot dialect name.

    Falls back to generic "sql" when unknown.
    """
    return SQLALCHEMY_TO_SQLGLOT.get(sa_dialect_name.lower(), "sql")


@dataclass(frozen=True)
class SqlStyle:
    """Rendering knobs for one target dialect."""

    dialect: str = "postgres"

    @classmethod
    def for_sqlalchemy(cls, sa_dialect_name: str) -> SqlStyle:
        return cls(dialect=map_sqlalchemy_to_sqlglot(sa_dialect_name))

    @property
    def supports_ilike(self) -> bool:
        return self.dialect in _ILIKE_DIALECTS

    @property
    def like(self) -> str:
        return "ILIKE" if self.supports_ilike else "LIKE"

    @property
    def not_like(self) -> str:
        return "NOT ILIKE" if self.supports_ilike else "NOT LIKE"

    def quote(self, name: str) -> str:
        """Render `name` as a quoted identifier."""
        ident = exp.to_identifier(name, quoted=True)
        return ident.sql(dialect=None if self.dialect == "sql" else self.dialect)

    def column(self, table: str, name: str) -> str:
        """Render a table-qualified column reference."""
        return f"{self.quote(table)}.{self.quote(name)}"


POSTGRES: Final[SqlStyle] = SqlStyle("postgres")
