"""
Deletion audit ledger.

Append-mostly history of every tombstone, restore and purge. All writes run
inside the caller's transaction so a tombstone and its entry commit together.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, desc, or_, select, update
from sqlalchemy.orm import Session

from .models import (
    DeletionAudit,
    DeletionAuditEntry,
    DeletionSummary,
    HistoryPage,
    decode_cursor,
    encode_cursor,
)

logger = logging.getLogger(__name__)


class DeletionLedger:
    """Reads and writes ``deletion_audit`` rows within a session."""

    def record_tombstone(
        self,
        session: Session,
        table_name: str,
        record_id: str,
        deleted_at: datetime,
        deleted_by: str,
        reason: str,
        record_data: Dict[str, Any],
    ) -> DeletionAudit:
        """
        Append the audit entry for one tombstone event.

        Args:
            session: Session holding the tombstone's transaction
            table_name: Source table
            record_id: Primary key of the record as text
            deleted_at: Tombstone timestamp
            deleted_by: Acting user
            reason: Deletion reason
            record_data: Row image captured before the update

        Returns:
            The new audit row
        """
        entry = DeletionAudit(
            table_name=table_name,
            record_id=record_id,
            deleted_at=deleted_at,
            deleted_by=deleted_by,
            deletion_reason=reason,
            record_data=record_data,
            can_restore=True,
        )
        session.add(entry)
        session.flush()
        return entry

    def mark_restored(
        self,
        session: Session,
        table_name: str,
        record_id: str,
        restored_by: str,
        restored_at: datetime,
    ) -> bool:
        """
        Mark the latest outstanding tombstone of a record as restored.

        Older entries from earlier delete/restore cycles are left alone.

        Returns:
            True if an entry was updated
        """
        entry = session.execute(
            select(DeletionAudit)
            .where(
                DeletionAudit.table_name == table_name,
                DeletionAudit.record_id == record_id,
                DeletionAudit.restored_at.is_(None),
                DeletionAudit.can_restore.is_(True),
            )
            .order_by(desc(DeletionAudit.deleted_at), desc(DeletionAudit.id))
            .limit(1)
        ).scalar_one_or_none()

        if entry is None:
            logger.warning(
                f"No outstanding audit entry for restored {table_name}:{record_id}"
            )
            return False

        entry.restored_at = restored_at
        entry.restored_by = restored_by
        session.flush()
        return True

    def revoke_restore(self, session: Session, table_name: str, record_id: str) -> int:
        """
        Mark every entry of a purged record as no longer restorable.

        Returns:
            Number of entries updated
        """
        result = session.execute(
            update(DeletionAudit)
            .where(
                DeletionAudit.table_name == table_name,
                DeletionAudit.record_id == record_id,
            )
            .values(can_restore=False)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)  # type: ignore[attr-defined]

    def _filtered(
        self, table_name: Optional[str], record_id: Optional[str]
    ) -> Any:
        stmt = select(DeletionAudit)
        if table_name:
            stmt = stmt.where(DeletionAudit.table_name == table_name)
        if record_id:
            stmt = stmt.where(DeletionAudit.record_id == record_id)
        return stmt

    def history(
        self,
        session: Session,
        table_name: Optional[str] = None,
        record_id: Optional[str] = None,
    ) -> List[DeletionAuditEntry]:
        """
        Every matching entry, most recent first.

        The result is not capped; use ``history_page`` for large ledgers.
        """
        stmt = self._filtered(table_name, record_id).order_by(
            desc(DeletionAudit.deleted_at), desc(DeletionAudit.id)
        )
        rows = session.execute(stmt).scalars().all()
        return [DeletionAuditEntry.model_validate(row) for row in rows]

    def history_page(
        self,
        session: Session,
        limit: int,
        table_name: Optional[str] = None,
        record_id: Optional[str] = None,
        cursor: Optional[str] = None,
    ) -> HistoryPage:
        """
        One page of matching entries, most recent first.

        Keyset pagination over ``(deleted_at, id)``, so pages stay stable while
        new deletions are appended.

        Raises:
            ValueError: If ``limit`` is not positive or ``cursor`` is malformed
        """
        if limit <= 0:
            raise ValueError("limit must be positive")

        stmt = self._filtered(table_name, record_id)
        if cursor:
            at, entry_id = decode_cursor(cursor)
            stmt = stmt.where(
                or_(
                    DeletionAudit.deleted_at < at,
                    and_(DeletionAudit.deleted_at == at, DeletionAudit.id < entry_id),
                )
            )

        stmt = stmt.order_by(
            desc(DeletionAudit.deleted_at), desc(DeletionAudit.id)
        ).limit(limit + 1)
        rows = list(session.execute(stmt).scalars().all())

        next_cursor = None
        if len(rows) > limit:
            rows = rows[:limit]
            last = rows[-1]
            next_cursor = encode_cursor(last.deleted_at, last.id)

        return HistoryPage(
            entries=[DeletionAuditEntry.model_validate(row) for row in rows],
            next_cursor=next_cursor,
        )

    def get_entry(self, session: Session, entry_id: int) -> Optional[DeletionAuditEntry]:
        """
        Fetch one entry by id.

        Args:
            session: Open session
            entry_id: Ledger entry id

        Returns:
            The entry, or None if no entry has that id
        """
        row = session.get(DeletionAudit, entry_id)
        if row is None:
            return None
        return DeletionAuditEntry.model_validate(row)

    def summarize(self, session: Session) -> DeletionSummary:
        """Aggregate statistics over the whole ledger."""
        summary = DeletionSummary()
        for entry in self.history(session):
            summary.add_entry(entry)
        return summary
