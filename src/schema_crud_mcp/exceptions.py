"""Exception hierarchy for schema-crud-mcp.

All errors raised by the CRUD core derive from `CrudError`, so callers at the
tool boundary can translate them in one place. Messages always name the
table, column or id involved.

Exception Categories:
- Validation errors for empty payloads, bad pagination and malformed filters
- Not-found errors for absent target rows
- Schema errors for unknown tables, columns, foreign keys or missing primary keys
- Storage errors for failed statement execution
"""

from __future__ import annotations


class CrudError(Exception):
    """Base exception for CRUD operations."""


class ValidationError(CrudError):
    """Raised when a request carries no usable data.

    Typical causes:
    - No valid columns remain to insert or update
    - Pagination values below 1
    """


class FilterError(ValidationError):
    """Raised when a filter payload is structurally malformed.

    Unknown fields and incompatible operators are dropped, not reported;
    this error covers shapes that cannot be interpreted at all, such as a
    non-string field name or a condition that is not a mapping.
    """


class NotFoundError(CrudError):
    """Raised when the target row of an update, delete or lookup is absent."""


class SchemaError(CrudError):
    """Raised when schema metadata does not support the request.

    This covers unknown tables, columns that are not foreign keys, and
    tables without a single-column primary key when one is required.
    """


class StorageError(CrudError):
    """Raised when the storage engine fails to execute a statement.

    The original driver exception is chained as ``__cause__`` and its message
    is preserved. The core never retries.
    """
