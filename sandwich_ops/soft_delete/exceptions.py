"""Exceptions for soft delete operations.

Outcomes where a record is missing or already in the requested state are
returned as ``False`` by the service and never raised. Database failures are
SQLAlchemy errors and propagate unchanged.
"""

from typing import Optional


class SoftDeleteError(Exception):
    """Base exception for soft delete operations."""

    def __init__(self, message: str, entity_id: Optional[str] = None):
        self.entity_id = entity_id
        super().__init__(message)


class ConflictError(SoftDeleteError):
    """Raised when live dependent records block deleting a parent."""

    def __init__(
        self,
        message: str,
        entity_id: Optional[str] = None,
        blocking_count: int = 0,
        blocking_table: Optional[str] = None,
    ):
        self.blocking_count = blocking_count
        self.blocking_table = blocking_table
        super().__init__(message, entity_id=entity_id)


class UnknownTableError(SoftDeleteError):
    """Raised when a table name is not registered for soft delete."""

    def __init__(self, table_name: str):
        self.table_name = table_name
        super().__init__(f"Table '{table_name}' is not registered for soft delete")


class HardDeleteError(SoftDeleteError):
    """Raised when a live record is physically deleted through the ORM."""

    def __init__(self, table_name: str, entity_id: str):
        super().__init__(
            f"Hard delete attempted on live {table_name} record {entity_id}. "
            "Soft delete it first, then purge it.",
            entity_id=entity_id,
        )
