"""
Service layer for soft delete operations.

Owns the three lifecycle transitions of a soft-deletable record (tombstone,
restore, purge) and keeps the deletion audit ledger in step with them. Each
transition runs in one transaction, and the statement that mutates the row
also checks its precondition, so two callers racing on the same record cannot
both succeed.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import OpsConfig, get_config
from .ledger import DeletionLedger
from .mixins import snapshot_row
from .models import (
    BulkDeleteResult,
    DeletionAuditEntry,
    DeletionSummary,
    HistoryPage,
    utcnow,
)
from .query import SoftDeleteQuery
from .registry import TableRef, TableRegistry, coerce_id, table_name_of

logger = logging.getLogger(__name__)


def _lifecycle_values(model: Any, **values: Any) -> Dict[str, Any]:
    """SET clause for a tombstone or restore that leaves ``updated_at`` alone."""
    if "updated_at" in model.__table__.c:
        # Assigning the column to itself suppresses its onupdate default
        values["updated_at"] = model.updated_at
    return values


class SoftDeleteService:
    """
    Tombstone writer, restore/purge executor and ledger queries.

    Role checks are the caller's job; see ``sandwich_ops.admin``.

    Example:
        >>> service = SoftDeleteService(session_factory, registry)
        >>> service.soft_delete("hosts", 7, actor_id="admin-1", reason="duplicate entry")
        True
        >>> service.restore_record("hosts", 7, actor_id="admin-1")
        True
    """

    def __init__(
        self,
        session_factory: sessionmaker,  # type: ignore[type-arg]
        registry: Optional[TableRegistry] = None,
        config: Optional[OpsConfig] = None,
        ledger: Optional[DeletionLedger] = None,
    ):
        """
        Initialize the soft delete service.

        Args:
            session_factory: Factory producing sessions bound to the database
            registry: Registry used to resolve table names; classes can always
                be passed directly
            config: Configuration supplying defaults; the global one if omitted
            ledger: Deletion ledger; a default one if omitted
        """
        self.session_factory = session_factory
        self.registry = registry or TableRegistry()
        self.config = config or get_config()
        self.ledger = ledger or DeletionLedger()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Open a session whose work commits on success and rolls back on error."""
        with self.session_factory.begin() as session:
            yield session

    def _actor(self, actor_id: Optional[str]) -> str:
        return actor_id or self.config.default_actor_id

    def _shares_one_connection(self) -> bool:
        # StaticPool hands every thread the same DBAPI connection
        bind = self.session_factory.kw.get("bind")
        return isinstance(getattr(bind, "pool", None), StaticPool)

    # Lifecycle transitions

    def tombstone(
        self,
        session: Session,
        table: TableRef,
        record_id: Any,
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> bool:
        """
        Soft delete one record inside an open transaction.

        Building block for ``soft_delete`` and for cascades that must group
        several tombstones into one transaction.

        Returns:
            True if the record was live and is now tombstoned
        """
        model = self.registry.resolve(table)
        table_name = table_name_of(model)
        key = coerce_id(model, record_id)
        actor = self._actor(actor_id)
        reason = reason or self.config.default_deletion_reason

        existing = session.execute(
            select(model).where(model.id == key)
        ).scalar_one_or_none()
        if existing is None:
            logger.debug(f"Soft delete skipped, {table_name}:{record_id} not found")
            return False

        snapshot = snapshot_row(existing)
        deleted_at = utcnow()

        result = session.execute(
            update(model)
            .where(model.id == key, model.deleted_at.is_(None))
            .values(**_lifecycle_values(model, deleted_at=deleted_at, deleted_by=actor))
        )
        if not result.rowcount:  # type: ignore[attr-defined]
            logger.debug(f"Soft delete skipped, {table_name}:{record_id} already deleted")
            return False

        self.ledger.record_tombstone(
            session,
            table_name=table_name,
            record_id=str(key),
            deleted_at=deleted_at,
            deleted_by=actor,
            reason=reason,
            record_data=snapshot,
        )
        logger.info(f"Soft deleted {table_name}:{key} by {actor}: {reason}")
        return True

    def soft_delete(
        self,
        table: TableRef,
        record_id: Any,
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> bool:
        """
        Soft delete a record and append its audit entry atomically.

        Args:
            table: Mapped class or registered table name
            record_id: Primary key of the record
            actor_id: Acting user; defaults to the configured system actor
            reason: Deletion reason; defaults to the configured generic reason

        Returns:
            True if the record was tombstoned, False if it was missing or
            already deleted
        """
        with self.transaction() as session:
            return self.tombstone(session, table, record_id, actor_id, reason)

    def restore_record(
        self,
        table: TableRef,
        record_id: Any,
        actor_id: Optional[str] = None,
    ) -> bool:
        """
        Make a tombstoned record live again.

        Only the latest outstanding audit entry of the record is marked
        restored.

        Returns:
            True if the record was tombstoned and is now live
        """
        model = self.registry.resolve(table)
        table_name = table_name_of(model)
        key = coerce_id(model, record_id)
        actor = self._actor(actor_id)

        with self.transaction() as session:
            result = session.execute(
                update(model)
                .where(model.id == key, model.deleted_at.is_not(None))
                .values(**_lifecycle_values(model, deleted_at=None, deleted_by=None))
            )
            if not result.rowcount:  # type: ignore[attr-defined]
                logger.debug(f"Restore skipped, {table_name}:{record_id} is not deleted")
                return False

            self.ledger.mark_restored(
                session,
                table_name=table_name,
                record_id=str(key),
                restored_by=actor,
                restored_at=utcnow(),
            )

        logger.info(f"Restored {table_name}:{key} by {actor}")
        return True

    def permanently_delete_record(
        self,
        table: TableRef,
        record_id: Any,
        actor_id: Optional[str] = None,
    ) -> bool:
        """
        Physically remove a tombstoned record.

        Live records are never removed. The audit history is kept but can no
        longer be used to restore the record.

        Returns:
            True if the row was removed
        """
        model = self.registry.resolve(table)
        table_name = table_name_of(model)
        key = coerce_id(model, record_id)
        actor = self._actor(actor_id)

        with self.transaction() as session:
            result = session.execute(
                delete(model)
                .where(model.id == key, model.deleted_at.is_not(None))
                .execution_options(synchronize_session=False)
            )
            if not result.rowcount:  # type: ignore[attr-defined]
                logger.debug(f"Purge skipped, {table_name}:{record_id} is not deleted")
                return False

            revoked = self.ledger.revoke_restore(session, table_name, str(key))

        logger.info(
            f"Permanently deleted {table_name}:{key} by {actor} "
            f"({revoked} audit entries closed)"
        )
        return True

    def bulk_soft_delete(
        self,
        table: TableRef,
        record_ids: Iterable[Any],
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
        max_workers: Optional[int] = None,
    ) -> BulkDeleteResult:
        """
        Soft delete many records, each in its own transaction.

        A missing or already deleted id, or a database error on one id, counts
        as a failure and does not stop the batch. Nothing is rolled back
        across ids.

        Args:
            table: Mapped class or registered table name
            record_ids: Primary keys to delete
            actor_id: Acting user
            reason: Deletion reason; defaults to the configured bulk reason
            max_workers: Worker threads; defaults to ``bulk_max_workers``.
                Ignored on a single shared connection such as in-memory SQLite

        Returns:
            Success and failure counts
        """
        model = self.registry.resolve(table)
        reason = reason or self.config.bulk_deletion_reason
        workers = max_workers or self.config.bulk_max_workers
        ids: Sequence[Any] = list(record_ids)

        def _delete_one(record_id: Any) -> bool:
            try:
                return self.soft_delete(model, record_id, actor_id, reason)
            except SQLAlchemyError as e:
                logger.error(f"Error soft deleting record {record_id}: {e}")
                return False

        if workers > 1 and len(ids) > 1 and not self._shares_one_connection():
            with ThreadPoolExecutor(max_workers=min(workers, len(ids))) as pool:
                outcomes = list(pool.map(_delete_one, ids))
        else:
            outcomes = [_delete_one(record_id) for record_id in ids]

        result = BulkDeleteResult(
            success=sum(1 for ok in outcomes if ok),
            failed=sum(1 for ok in outcomes if not ok),
        )
        logger.info(
            f"Bulk soft delete on {table_name_of(model)}: "
            f"{result.success} succeeded, {result.failed} failed"
        )
        return result

    # Read helpers

    def is_record_deleted(self, table: TableRef, record_id: Any) -> bool:
        """
        Check whether a record is tombstoned.

        A record that does not exist counts as deleted.
        """
        model = self.registry.resolve(table)
        key = coerce_id(model, record_id)
        with self.transaction() as session:
            deleted_at = session.execute(
                select(model.deleted_at).where(model.id == key)
            ).first()
        return deleted_at is None or deleted_at[0] is not None

    def get_deleted_records(self, table: TableRef) -> List[Any]:
        """Return every tombstoned row of a table, most recently deleted first."""
        model = self.registry.resolve(table)
        stmt = (
            SoftDeleteQuery(model)
            .only_deleted()
            .order_by(model.deleted_at.desc())
            .statement()
        )
        with self.transaction() as session:
            return list(session.execute(stmt).scalars().all())

    # Ledger queries

    def get_deletion_history(
        self, table_name: Optional[str] = None, record_id: Optional[str] = None
    ) -> List[DeletionAuditEntry]:
        """
        Return matching audit entries, most recent first.

        Omitting both filters returns the whole ledger.
        """
        with self.transaction() as session:
            return self.ledger.history(session, table_name, record_id)

    def get_deletion_history_page(
        self,
        table_name: Optional[str] = None,
        record_id: Optional[str] = None,
        cursor: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> HistoryPage:
        """Return one page of matching audit entries, most recent first."""
        with self.transaction() as session:
            return self.ledger.history_page(
                session,
                limit=limit or self.config.history_page_size,
                table_name=table_name,
                record_id=record_id,
                cursor=cursor,
            )

    def get_audit_entry(self, entry_id: int) -> Optional[DeletionAuditEntry]:
        """
        Look up one audit entry.

        Args:
            entry_id: Ledger entry id

        Returns:
            The entry, or None if no entry has that id
        """
        with self.transaction() as session:
            return self.ledger.get_entry(session, entry_id)

    def summarize_deletions(self) -> DeletionSummary:
        """Return ledger statistics grouped by table and actor."""
        with self.transaction() as session:
            return self.ledger.summarize(session)
