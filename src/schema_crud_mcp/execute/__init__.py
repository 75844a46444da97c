"""Storage boundary for generated statements.

Exports the executor protocol, its SQLAlchemy implementation and the
placeholder rewriting helper.
"""

from __future__ import annotations

from .runner import SqlAlchemyExecutor, StatementExecutor, to_named_binds

__all__ = [
    "SqlAlchemyExecutor",
    "StatementExecutor",
    "to_named_binds",
]
