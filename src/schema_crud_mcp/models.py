"""Pydantic models for MCP tool I/O.

Envelopes returned by the CRUD and schema tools. Record payloads stay plain
dictionaries keyed by column name; the envelopes only add the table name and
pagination or labelling metadata.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from schema_crud_mcp.query import Pagination, filterable_columns, operators_for
from schema_crud_mcp.schema_tools.models import TableSchema
from schema_crud_mcp.services.crud_service import ForeignKeyOptions

# -----------------------
# Record envelopes
# -----------------------


class PaginationModel(BaseModel):
    """Page metadata for a list read."""

    page: int = Field(description="1-based page number")
    limit: int = Field(description="Rows per page")
    total: int = Field(description="Rows matching the filters across all pages")
    total_pages: int = Field(description="ceil(total / limit)")
    has_next: bool
    has_prev: bool

    @classmethod
    def from_pagination(cls, pagination: Pagination) -> PaginationModel:
        return cls(
            page=pagination.page,
            limit=pagination.limit,
            total=pagination.total,
            total_pages=pagination.total_pages,
            has_next=pagination.has_next,
            has_prev=pagination.has_prev,
        )


class RecordResult(BaseModel):
    """A single stored record."""

    table: str
    data: dict[str, Any] = Field(description="Column values of the record")


class RecordListResult(BaseModel):
    """One page of records."""

    table: str
    data: list[dict[str, Any]] = Field(
        description=(
            "Records in page order. Joined foreign keys add a '<column>_display' label "
            "when the referenced row was found."
        )
    )
    pagination: PaginationModel


# -----------------------
# Foreign-key options
# -----------------------


class ForeignKeyOption(BaseModel):
    """A selectable value for a foreign-key column."""

    value: Any = Field(description="Referenced key value to store")
    label: Any = Field(description="Human-readable label; falls back to the value")
    data: dict[str, Any] = Field(description="Full referenced record")


class ForeignKeyOptionsResult(BaseModel):
    """Selectable values for one foreign-key column."""

    table: str
    column: str
    referenced_table: str
    value_column: str
    display_column: str
    options: list[ForeignKeyOption]

    @classmethod
    def build(cls, table: str, column: str, result: ForeignKeyOptions) -> ForeignKeyOptionsResult:
        return cls(
            table=table,
            column=column,
            referenced_table=result.referenced_table,
            value_column=result.value_column,
            display_column=result.display_column,
            options=[
                ForeignKeyOption(value=opt.value, label=opt.label, data=opt.data)
                for opt in result.options
            ],
        )


# -----------------------
# Schema descriptions
# -----------------------


class ColumnDescription(BaseModel):
    """One column of a table as seen by the CRUD tools."""

    name: str
    data_type: str = Field(description="Normalized type category")
    raw_type: str = Field(description="Type as reported by the database")
    nullable: bool
    default: str | None = None
    primary_key: bool = False
    auto_increment: bool = False
    max_length: int | None = None
    references: str | None = Field(
        default=None, description="'<table>.<column>' when this column is a foreign key"
    )
    filter_operators: list[str] = Field(
        default_factory=list,
        description="Operators accepted in structured filters; empty when not filterable",
    )


class TableDescription(BaseModel):
    """Schema of a table and how the CRUD tools treat it."""

    table: str
    primary_key: str | None = Field(
        description="Single-column primary key; null when absent or composite"
    )
    soft_delete_column: str | None = Field(
        description="Flag column set on delete instead of removing the row"
    )
    columns: list[ColumnDescription]

    @classmethod
    def from_schema(cls, schema: TableSchema) -> TableDescription:
        filterable = {col.name for col in filterable_columns(schema)}
        columns: list[ColumnDescription] = []
        for col in schema.columns:
            fk = schema.foreign_key_for(col.name)
            columns.append(
                ColumnDescription(
                    name=col.name,
                    data_type=col.data_type.value,
                    raw_type=col.raw_type,
                    nullable=col.is_nullable,
                    default=col.column_default,
                    primary_key=col.is_primary_key,
                    auto_increment=col.is_auto_increment,
                    max_length=col.max_length,
                    references=(
                        f"{fk.foreign_table_name}.{fk.foreign_column_name}" if fk else None
                    ),
                    filter_operators=(
                        [op.value for op in operators_for(col.data_type)]
                        if col.name in filterable
                        else []
                    ),
                )
            )
        return cls(
            table=schema.table_name,
            primary_key=schema.primary_key,
            soft_delete_column=schema.soft_delete_column,
            columns=columns,
        )


class TableListResult(BaseModel):
    """Tables available to the CRUD tools."""

    tables: list[str]
