"""Statement execution against the storage engine.

The query builders emit positional placeholders (`$1`, `$2`, ...). This
module provides:
- Rewriting of positional placeholders to SQLAlchemy named binds
- A SQLAlchemy-backed executor that runs one statement per transaction
- Translation of driver failures into `StorageError`
"""

from __future__ import annotations

from collections.abc import Sequence
import re
import time
from typing import Any, Protocol

from fastmcp.utilities.logging import get_logger
import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from schema_crud_mcp.exceptions import StorageError

_logger = get_logger(__name__)

# Quoted identifiers are skipped so a "$1" inside one is left alone
_PLACEHOLDER_PATTERN = re.compile(r'"(?:[^"]|"")*"|`(?:[^`]|``)*`|\$(\d+)')


class StatementExecutor(Protocol):
    """Storage boundary: run one statement and return its rows."""

    def execute(self, sql: str, params: Sequence[Any]) -> list[dict[str, Any]]: ...


def to_named_binds(sql: str, params: Sequence[Any]) -> tuple[str, dict[str, Any]]:
    """Rewrite `$n` placeholders to `:pn` and key the params accordingly.

    Raises:
        ValueError: If a placeholder has no matching parameter
    """
    def _replace(match: re.Match[str]) -> str:
        index = match.group(1)
        if index is None:
            return match.group(0)
        if not 1 <= int(index) <= len(params):
            msg = f"Placeholder ${index} has no parameter ({len(params)} given)"
            raise ValueError(msg)
        return f":p{index}"

    rewritten = _PLACEHOLDER_PATTERN.sub(_replace, sql)
    return rewritten, {f"p{i}": value for i, value in enumerate(params, start=1)}


class SqlAlchemyExecutor:
    """Execute statements through a SQLAlchemy engine.

    Each call checks out its own pooled connection and commits on success, so
    two calls may run concurrently from different threads.
    """

    def __init__(self, engine: sa.Engine) -> None:
        self.engine = engine

    def execute(self, sql: str, params: Sequence[Any]) -> list[dict[str, Any]]:
        statement, binds = to_named_binds(sql, params)
        _logger.debug("Executing (%d params): %s", len(binds), sql)
        start = time.perf_counter()
        try:
            with self.engine.begin() as conn:
                result = conn.execute(sa.text(statement), binds)
                rows = [dict(row) for row in result.mappings()] if result.returns_rows else []
        except SQLAlchemyError as exc:
            _logger.warning("Statement failed: %s", exc)
            raise StorageError(str(exc)) from exc
        _logger.debug(
            "Statement finished (elapsed_ms=%.1f, rows=%d)",
            (time.perf_counter() - start) * 1000.0,
            len(rows),
        )
        return rows
