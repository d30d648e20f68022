"""
SQLAlchemy mixins for soft delete functionality.

Any table that takes part in the soft delete lifecycle carries a
``deleted_at``/``deleted_by`` pair. A row is live while ``deleted_at`` is null.
"""

import base64
import enum
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, Optional, Protocol, Type, runtime_checkable

from sqlalchemy import DateTime, String, event, inspect, select
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import Select

from .exceptions import HardDeleteError

SOFT_DELETE_COLUMNS = ("deleted_at", "deleted_by")


@runtime_checkable
class SoftDeletable(Protocol):
    """Capability interface the tombstone writer depends on."""

    id: Any
    deleted_at: Optional[datetime]
    deleted_by: Optional[str]


class SoftDeleteMixin:
    """
    Mixin to add soft delete columns to SQLAlchemy models.

    Usage:
        class Host(Base, SoftDeleteMixin):
            __tablename__ = 'hosts'
            id = Column(Integer, primary_key=True)
            name = Column(String)
    """

    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    deleted_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @classmethod
    def query_live(cls) -> Select:  # type: ignore[type-arg]
        """Return a select for live (non-deleted) records only."""
        return select(cls).where(cls.deleted_at.is_(None))

    @classmethod
    def query_deleted(cls) -> Select:  # type: ignore[type-arg]
        """Return a select for tombstoned records only."""
        return select(cls).where(cls.deleted_at.is_not(None))

    @classmethod
    def query_all(cls) -> Select:  # type: ignore[type-arg]
        """Return a select with no soft delete filter."""
        return select(cls)

    def to_snapshot(self) -> Dict[str, Any]:
        """Return a JSON-safe copy of every column, nulls included."""
        return snapshot_row(self)


def json_safe(value: Any) -> Any:
    """Convert a column value into a JSON-serializable form."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (Decimal, uuid.UUID)):
        return str(value)
    if isinstance(value, enum.Enum):
        return json_safe(value.value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, dict):
        return {str(k): json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [json_safe(v) for v in value]
    return str(value)


def snapshot_row(row: Any) -> Dict[str, Any]:
    """
    Capture a full image of a mapped row keyed by column name.

    Args:
        row: Mapped instance

    Returns:
        Dictionary with one entry per column
    """
    mapper = inspect(row).mapper
    data: Dict[str, Any] = {}
    for attr in mapper.column_attrs:
        column = attr.columns[0]
        data[column.name] = json_safe(getattr(row, attr.key))
    return data


def is_soft_deletable(model: Type[Any]) -> bool:
    """Check that a mapped class exposes ``id``, ``deleted_at`` and ``deleted_by``."""
    try:
        mapper = inspect(model)
    except NoInspectionAvailable:
        return False

    keys = {attr.key for attr in mapper.column_attrs}
    return "id" in keys and all(name in keys for name in SOFT_DELETE_COLUMNS)


def prevent_hard_delete(mapper: Any, connection: Any, target: Any) -> None:
    """
    Refuse ORM deletes of live soft-deletable rows.

    Connected to SQLAlchemy's before_delete event. Tombstoned rows may still be
    removed, which is what a purge does.
    """
    if isinstance(target, SoftDeleteMixin) and target.deleted_at is None:
        raise HardDeleteError(
            mapper.local_table.name, str(getattr(target, "id", "unknown"))
        )


def register_soft_delete_listeners(base_class: Type[Any]) -> None:
    """
    Register SQLAlchemy event listeners for soft delete functionality.

    Args:
        base_class: The declarative base class
    """
    for mapper in base_class.registry.mappers:
        if issubclass(mapper.class_, SoftDeleteMixin) and not event.contains(
            mapper.class_, "before_delete", prevent_hard_delete
        ):
            event.listen(mapper.class_, "before_delete", prevent_hard_delete)
