"""
Query-filtering convention for soft-deleted rows.

Nothing in the database hides tombstoned rows, so every read path builds its
statement through these helpers. The default mode shows live rows only.
"""

from enum import Enum
from typing import Any, List, Type

from sqlalchemy import and_, select
from sqlalchemy.sql import ColumnElement, Select


class VisibilityMode(str, Enum):
    """Which rows a read path returns."""

    LIVE = "live"
    WITH_DELETED = "with_deleted"
    ONLY_DELETED = "only_deleted"


def live_criterion(model: Type[Any]) -> ColumnElement[bool]:
    """``deleted_at IS NULL``"""
    return model.deleted_at.is_(None)


def deleted_criterion(model: Type[Any]) -> ColumnElement[bool]:
    """``deleted_at IS NOT NULL``"""
    return model.deleted_at.is_not(None)


def apply_visibility(
    stmt: Select,  # type: ignore[type-arg]
    model: Type[Any],
    mode: VisibilityMode = VisibilityMode.LIVE,
) -> Select:  # type: ignore[type-arg]
    """
    Add the soft delete predicate for ``mode`` to a select.

    Args:
        stmt: Statement selecting from ``model``
        model: Soft-deletable mapped class
        mode: Visibility mode

    Returns:
        Filtered statement
    """
    mode = VisibilityMode(mode)
    if mode is VisibilityMode.LIVE:
        return stmt.where(live_criterion(model))
    if mode is VisibilityMode.ONLY_DELETED:
        return stmt.where(deleted_criterion(model))
    return stmt


class SoftDeleteQuery:
    """
    Builder for soft-delete aware selects.

    Usage:
        stmt = SoftDeleteQuery(Host).where(Host.status == "active").statement()
        stmt = SoftDeleteQuery(Host).only_deleted().statement()
    """

    def __init__(self, model: Type[Any]):
        self.model = model
        self.mode = VisibilityMode.LIVE
        self._criteria: List[Any] = []
        self._order_by: List[Any] = []

    def with_deleted(self) -> "SoftDeleteQuery":
        """Include tombstoned rows."""
        self.mode = VisibilityMode.WITH_DELETED
        return self

    def only_deleted(self) -> "SoftDeleteQuery":
        """Return tombstoned rows only."""
        self.mode = VisibilityMode.ONLY_DELETED
        return self

    def visibility(self, mode: VisibilityMode) -> "SoftDeleteQuery":
        self.mode = VisibilityMode(mode)
        return self

    def where(self, *criteria: Any) -> "SoftDeleteQuery":
        self._criteria.extend(criteria)
        return self

    def order_by(self, *clauses: Any) -> "SoftDeleteQuery":
        self._order_by.extend(clauses)
        return self

    def statement(self) -> Select:  # type: ignore[type-arg]
        stmt = apply_visibility(select(self.model), self.model, self.mode)
        if self._criteria:
            stmt = stmt.where(and_(*self._criteria))
        if self._order_by:
            stmt = stmt.order_by(*self._order_by)
        return stmt
