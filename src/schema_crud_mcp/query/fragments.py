"""Clause accumulator for dynamically shaped statements.

Builders append clause fragments and bind values side by side, so the
positional placeholders (`$1`, `$2`, ...) always line up with `params`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


def placeholder(index: int) -> str:
    return f"${index}"


@dataclass
class QueryFragments:
    """Mutable aggregate of SELECT clause parts and their parameters.

    Attributes:
        select: Select-list expressions
        joins: Complete JOIN clauses
        where: WHERE conditions, ANDed together when rendered
        params: Bind values in placeholder order
        order_by: Rendered ORDER BY expression, or None
        start_index: Placeholder number of the first parameter
    """

    select: list[str] = field(default_factory=list)
    joins: list[str] = field(default_factory=list)
    where: list[str] = field(default_factory=list)
    params: list[Any] = field(default_factory=list)
    order_by: str | None = None
    start_index: int = 1

    def bind(self, value: Any) -> str:
        """Append `value` and return the placeholder that refers to it."""
        self.params.append(value)
        return placeholder(self.start_index + len(self.params) - 1)

    @property
    def next_index(self) -> int:
        return self.start_index + len(self.params)

    def where_sql(self) -> str:
        if not self.where:
            return ""
        return "WHERE " + " AND ".join(self.where)

    def from_sql(self, table_sql: str) -> str:
        parts = [f"FROM {table_sql}", *self.joins]
        where = self.where_sql()
        if where:
            parts.append(where)
        return " ".join(parts)
