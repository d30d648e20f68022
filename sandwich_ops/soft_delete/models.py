"""
Data models for the deletion audit ledger.

``DeletionAudit`` is the database table; the pydantic models are what the
service hands back to callers.
"""

import base64
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
)

from ..database import Base


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class DeletionAudit(Base):  # type: ignore[valid-type,misc]
    """SQLAlchemy model for deletion audit entries."""

    __tablename__ = "deletion_audit"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Logical link to the tombstoned row, deliberately not a foreign key
    table_name = Column(String(100), nullable=False)
    record_id = Column(String(100), nullable=False)

    deleted_at = Column(DateTime(timezone=True), nullable=False, index=True)
    deleted_by = Column(String(100), nullable=False)
    deletion_reason = Column(Text, nullable=True)
    record_data = Column(JSON, nullable=True)

    can_restore = Column(Boolean, nullable=False, default=True)
    restored_at = Column(DateTime(timezone=True), nullable=True)
    restored_by = Column(String(100), nullable=True)

    __table_args__ = (
        Index("idx_deletion_audit_record", table_name, record_id),
        CheckConstraint(
            "(restored_at IS NULL AND restored_by IS NULL) OR "
            "(restored_at IS NOT NULL AND restored_by IS NOT NULL)",
            name="ck_deletion_audit_restore_consistency",
        ),
    )


class DeletionAuditEntry(BaseModel):
    """One tombstone event and what happened to it afterwards."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Surrogate key of the audit entry")
    table_name: str = Field(..., description="Source table of the record")
    record_id: str = Field(..., description="Primary key of the record as text")
    deleted_at: datetime = Field(..., description="When the record was tombstoned")
    deleted_by: str = Field(..., description="Actor that tombstoned the record")
    deletion_reason: Optional[str] = Field(None, description="Free-text reason")
    record_data: Optional[Dict[str, Any]] = Field(
        None, description="Snapshot of the row before it was tombstoned"
    )
    can_restore: bool = Field(True, description="False once the row was purged")
    restored_at: Optional[datetime] = Field(None, description="When it was restored")
    restored_by: Optional[str] = Field(None, description="Actor that restored it")

    @property
    def is_restored(self) -> bool:
        return self.restored_at is not None

    def to_log_format(self) -> str:
        """
        Convert to a single-line log string.

        Returns:
            Formatted log string
        """
        parts = [
            f"[{self.deleted_at.isoformat()}]",
            f"ACTOR={self.deleted_by}",
            f"RECORD={self.table_name}:{self.record_id}",
        ]
        if self.deletion_reason:
            parts.append(f"REASON='{self.deletion_reason}'")
        if self.restored_at:
            parts.append(f"RESTORED_BY={self.restored_by}")
        if not self.can_restore:
            parts.append("PURGED")
        return " ".join(parts)


class BulkDeleteResult(BaseModel):
    """Tally of a best-effort bulk soft delete."""

    success: int = Field(0, description="Records tombstoned", ge=0)
    failed: int = Field(0, description="Records left unchanged", ge=0)
    errors: List[str] = Field(
        default_factory=list, description="Why blocked records were refused"
    )

    @property
    def total(self) -> int:
        return self.success + self.failed


class HistoryPage(BaseModel):
    """One page of deletion history."""

    entries: List[DeletionAuditEntry] = Field(default_factory=list)
    next_cursor: Optional[str] = Field(
        None, description="Opaque cursor for the next page, None on the last page"
    )


class DeletionSummary(BaseModel):
    """Ledger statistics for reporting."""

    total_deletions: int = Field(0, description="Audit entries in the ledger")
    restorable: int = Field(0, description="Entries still awaiting a decision")
    restored: int = Field(0, description="Entries that were restored")
    purged: int = Field(0, description="Entries whose record was purged")
    by_table: Dict[str, int] = Field(
        default_factory=dict, description="Entries by table"
    )
    by_actor: Dict[str, int] = Field(
        default_factory=dict, description="Entries by deleting actor"
    )

    def add_entry(self, entry: DeletionAuditEntry) -> None:
        """Add one audit entry to the statistics."""
        self.total_deletions += 1

        if entry.restored_at is not None:
            self.restored += 1
        elif not entry.can_restore:
            self.purged += 1
        else:
            self.restorable += 1

        self.by_table[entry.table_name] = self.by_table.get(entry.table_name, 0) + 1
        self.by_actor[entry.deleted_by] = self.by_actor.get(entry.deleted_by, 0) + 1


def encode_cursor(deleted_at: datetime, entry_id: int) -> str:
    """Encode a keyset position as an opaque string."""
    payload = json.dumps({"at": deleted_at.isoformat(), "id": entry_id})
    return base64.urlsafe_b64encode(payload.encode()).decode("ascii")


def decode_cursor(cursor: str) -> Tuple[datetime, int]:
    """
    Decode a cursor produced by ``encode_cursor``.

    Raises:
        ValueError: If the cursor is malformed
    """
    try:
        payload = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
        return datetime.fromisoformat(payload["at"]), int(payload["id"])
    except (ValueError, KeyError, TypeError) as e:
        raise ValueError(f"Invalid history cursor: {cursor!r}") from e
