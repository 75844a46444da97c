"""List query assembly: SELECT/COUNT pairs with joins and pagination.

`build_list_query` is pure: it turns a table schema, the schemas of the
tables it references, and caller options into a data statement and a count
statement that share one FROM/JOIN/WHERE clause. `run_list_query` executes
the pair concurrently and shapes the result.

Every foreign key selected for joining gets its own ``LEFT JOIN`` aliased
``<column>_data``, so two foreign keys pointing at the same table never
collide.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from concurrent.futures import Executor
from dataclasses import dataclass
import math
from typing import TYPE_CHECKING, Any

from fastmcp.utilities.logging import get_logger

from schema_crud_mcp.exceptions import SchemaError, ValidationError
from schema_crud_mcp.schema_tools.constants import Constants
from schema_crud_mcp.schema_tools.models import ForeignKey, TableSchema

from .display import resolve_display_column
from .filters import FilterSpec, compile_filters
from .fragments import QueryFragments
from .identifiers import POSTGRES, SqlStyle
from .postprocess import attach_display_labels, synthetic_label_key, synthetic_value_key

if TYPE_CHECKING:
    from schema_crud_mcp.execute.runner import StatementExecutor

_logger = get_logger(__name__)

_DIRECTIONS = frozenset({"ASC", "DESC"})


@dataclass(frozen=True)
class ListOptions:
    """Caller options for a list read."""

    page: int = 1
    limit: int = Constants.DEFAULT_PAGE_SIZE
    filters: Mapping[str, Any] | FilterSpec | None = None
    include: Sequence[str] = ()
    order_by: str | None = None
    order_direction: str = "ASC"
    auto_include_foreign_keys: bool = True


@dataclass(frozen=True)
class JoinedForeignKey:
    """A foreign key resolved into a join."""

    foreign_key: ForeignKey
    alias: str
    display_column: str


@dataclass(frozen=True)
class ListQuery:
    """Data and count statements for one page of a table."""

    sql: str
    count_sql: str
    params: tuple[Any, ...]
    count_params: tuple[Any, ...]
    page: int
    limit: int
    joins: tuple[JoinedForeignKey, ...] = ()


@dataclass(frozen=True)
class Pagination:
    """Page metadata returned with every list read."""

    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def compute(cls, page: int, limit: int, total: int) -> Pagination:
        total_pages = math.ceil(total / limit)
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


def validate_pagination(page: object, limit: object) -> None:
    """Raise `ValidationError` unless page and limit are integers >= 1."""
    for name, value in (("page", page), ("limit", limit)):
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            msg = f"Pagination '{name}' must be an integer >= 1, got {value!r}"
            raise ValidationError(msg)


def normalize_direction(direction: str | None) -> str:
    normalized = (direction or "ASC").strip().upper()
    if normalized not in _DIRECTIONS:
        _logger.warning("Unsupported order direction %r; using ASC", direction)
        return "ASC"
    return normalized


def select_joined_foreign_keys(
    schema: TableSchema,
    include: Sequence[str],
    *,
    auto_include: bool,
) -> list[ForeignKey]:
    """Foreign keys to join: those targeting `include`, or all when auto-including."""
    wanted = set(include)
    targets = {fk.foreign_table_name for fk in schema.foreign_keys}
    unknown = sorted(wanted - targets)
    if unknown:
        _logger.warning(
            "Ignoring includes with no foreign key from %s: %s",
            schema.table_name,
            ", ".join(unknown),
        )
    return [
        fk for fk in schema.foreign_keys if auto_include or fk.foreign_table_name in wanted
    ]


def _order_clause(
    schema: TableSchema, order_by: str | None, direction: str, style: SqlStyle
) -> str | None:
    column = None
    if order_by:
        if schema.has_column(order_by):
            column = order_by
        else:
            _logger.debug(
                "Unknown order column %s.%s; falling back to primary key",
                schema.table_name,
                order_by,
            )
    column = column or schema.primary_key
    if column is None:
        return None
    return f"{style.column(schema.table_name, column)} {normalize_direction(direction)}"


def build_list_query(
    schema: TableSchema,
    options: ListOptions,
    *,
    related: Mapping[str, TableSchema] | None = None,
    style: SqlStyle = POSTGRES,
) -> ListQuery:
    """Assemble the data and count statements for `options`.

    Args:
        schema: Table being read
        options: Pagination, filters, includes and ordering
        related: Schemas of referenced tables keyed by table name
        style: Target dialect rendering

    Raises:
        ValidationError: If pagination values are invalid
        FilterError: If filters are malformed
        SchemaError: If a joined table's schema is missing or lacks the referenced column
    """
    validate_pagination(options.page, options.limit)
    related = related or {}
    table = schema.table_name
    table_sql = style.quote(table)

    frags = QueryFragments()
    frags.select.append(f"{table_sql}.*")

    joins: list[JoinedForeignKey] = []
    for fk in select_joined_foreign_keys(
        schema, options.include, auto_include=options.auto_include_foreign_keys
    ):
        target = related.get(fk.foreign_table_name)
        if target is None:
            msg = f"Schema for referenced table '{fk.foreign_table_name}' is not available"
            raise SchemaError(msg)
        if not target.has_column(fk.foreign_column_name):
            msg = (
                f"Referenced column '{fk.foreign_table_name}.{fk.foreign_column_name}' "
                f"of foreign key {table}.{fk.column_name} does not exist"
            )
            raise SchemaError(msg)

        alias = f"{fk.column_name}{Constants.JOIN_ALIAS_SUFFIX}"
        display = resolve_display_column(target.columns, target.primary_key)
        alias_sql = style.quote(alias)
        ref_sql = f"{alias_sql}.{style.quote(fk.foreign_column_name)}"
        frags.joins.append(
            f"LEFT JOIN {style.quote(target.table_name)} {alias_sql} "
            f"ON {style.column(table, fk.column_name)} = {ref_sql}"
        )
        frags.select.append(f"{ref_sql} AS {style.quote(synthetic_value_key(fk))}")
        frags.select.append(
            f"{alias_sql}.{style.quote(display)} AS {style.quote(synthetic_label_key(fk))}"
        )
        joins.append(JoinedForeignKey(foreign_key=fk, alias=alias, display_column=display))

    compiled = compile_filters(schema, options.filters, style=style, start_index=frags.next_index)
    frags.where.extend(compiled.conditions)
    frags.params.extend(compiled.params)
    frags.order_by = _order_clause(schema, options.order_by, options.order_direction, style)

    from_sql = frags.from_sql(table_sql)
    count_params = tuple(frags.params)
    count_sql = f"SELECT COUNT(*) AS total {from_sql}"

    offset = (options.page - 1) * options.limit
    limit_sql = frags.bind(options.limit)
    offset_sql = frags.bind(offset)
    parts = [f"SELECT {', '.join(frags.select)}", from_sql]
    if frags.order_by:
        parts.append(f"ORDER BY {frags.order_by}")
    parts.append(f"LIMIT {limit_sql} OFFSET {offset_sql}")

    return ListQuery(
        sql=" ".join(parts),
        count_sql=count_sql,
        params=tuple(frags.params),
        count_params=count_params,
        page=options.page,
        limit=options.limit,
        joins=tuple(joins),
    )


def run_list_query(
    executor: StatementExecutor,
    schema: TableSchema,
    query: ListQuery,
    *,
    pool: Executor | None = None,
) -> tuple[list[dict[str, Any]], Pagination]:
    """Execute a `ListQuery` and post-process its rows.

    The data and count statements are independent reads; with a `pool` they
    run concurrently.
    """
    if pool is None:
        rows = executor.execute(query.sql, query.params)
        count_rows = executor.execute(query.count_sql, query.count_params)
    else:
        data_future = pool.submit(executor.execute, query.sql, query.params)
        count_future = pool.submit(executor.execute, query.count_sql, query.count_params)
        rows = data_future.result()
        count_rows = count_future.result()

    total = int(count_rows[0]["total"]) if count_rows else 0
    records = attach_display_labels(rows, schema, [join.foreign_key for join in query.joins])
    _logger.info(
        "Read %d of %d rows from %s (page %d)", len(records), total, schema.table_name, query.page
    )
    return records, Pagination.compute(query.page, query.limit, total)
