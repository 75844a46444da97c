"""Dynamic query construction for schema-driven CRUD.

Pure builders that turn table schemas and caller options into parameterized
SQL with positional placeholders (`$1`, `$2`, ...):

- compile_filters: flat or structured filters to WHERE conditions
- build_list_query / run_list_query: paginated SELECT with a matching COUNT
- build_insert / build_update / build_delete: mutation statements
- resolve_display_column / attach_display_labels: foreign-key labels
"""

from __future__ import annotations

from .assembler import (
    JoinedForeignKey,
    ListOptions,
    ListQuery,
    Pagination,
    build_list_query,
    run_list_query,
)
from .display import resolve_display_column
from .filters import (
    CompiledFilter,
    FilterCondition,
    FilterGroup,
    FilterSpec,
    coerce_value,
    compile_filters,
    filterable_columns,
    operators_for,
)
from .identifiers import SqlStyle, map_sqlalchemy_to_sqlglot
from .mutations import Statement, build_delete, build_insert, build_update
from .postprocess import attach_display_labels

__all__ = [
    "CompiledFilter",
    "FilterCondition",
    "FilterGroup",
    "FilterSpec",
    "JoinedForeignKey",
    "ListOptions",
    "ListQuery",
    "Pagination",
    "SqlStyle",
    "Statement",
    "attach_display_labels",
    "build_delete",
    "build_insert",
    "build_list_query",
    "build_update",
    "coerce_value",
    "compile_filters",
    "filterable_columns",
    "map_sqlalchemy_to_sqlglot",
    "operators_for",
    "resolve_display_column",
    "run_list_query",
]
