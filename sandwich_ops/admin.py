"""
Admin surface for the deletion lifecycle.

Checks the acting user's permissions, runs the service operation and turns its
outcome into a result an operator can act on. Nothing here retries: storage
faults are reported once and left to the operator.
"""

import logging
from enum import Enum
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from .access_control import Permission, User, require_permission
from .config import OpsConfig, get_config
from .database import Base, create_db_engine, create_session_factory
from .entities import POLICIES, OpsStorage, build_registry
from .soft_delete import (
    BulkDeleteResult,
    CascadeDeleter,
    ConflictError,
    DeletionAuditEntry,
    DeletionSummary,
    HistoryPage,
    SoftDeleteService,
    register_soft_delete_listeners,
)
from .soft_delete.registry import TableRef, table_name_of

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "The database is unavailable right now. Please try again later."


class ActionStatus(str, Enum):
    """Outcome of an admin mutation."""

    COMPLETED = "completed"
    NO_CHANGE = "no_change"
    BLOCKED = "blocked"
    UNAVAILABLE = "unavailable"


class AdminActionResult(BaseModel):
    """What an operator sees after a delete, restore or purge."""

    status: ActionStatus
    message: str = ""
    table_name: str
    record_id: str
    bulk: Optional[BulkDeleteResult] = Field(
        None, description="Per-id tally for bulk deletes"
    )

    @property
    def ok(self) -> bool:
        return self.status in (ActionStatus.COMPLETED, ActionStatus.NO_CHANGE)


class AdminService:
    """
    Permission-checked deletion operations.

    Example:
        >>> admin = create_admin_service(OpsConfig(database_url="sqlite://"))
        >>> user = User.with_role("admin-1", "admin")
        >>> admin.delete_record(user, "hosts", 7, reason="duplicate entry").status
        <ActionStatus.COMPLETED: 'completed'>
    """

    def __init__(self, service: SoftDeleteService, storage: Optional[OpsStorage] = None):
        self.service = service
        self.storage = storage or OpsStorage(service)

    def _run(self, verb: str, table: TableRef, record_id: Any, action: Any) -> AdminActionResult:
        table_name = table if isinstance(table, str) else table_name_of(table)
        record = str(record_id)
        try:
            changed = action()
        except ConflictError as e:
            return AdminActionResult(
                status=ActionStatus.BLOCKED, message=str(e), table_name=table_name, record_id=record
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to {verb} {table_name}:{record}: {e}")
            return AdminActionResult(
                status=ActionStatus.UNAVAILABLE,
                message=UNAVAILABLE_MESSAGE,
                table_name=table_name,
                record_id=record,
            )

        if not changed:
            return AdminActionResult(
                status=ActionStatus.NO_CHANGE, table_name=table_name, record_id=record
            )
        return AdminActionResult(
            status=ActionStatus.COMPLETED,
            message=f"{verb.capitalize()}d {table_name} record {record}",
            table_name=table_name,
            record_id=record,
        )

    # History

    @require_permission(Permission.VIEW_DELETION_HISTORY)
    def deletion_history(
        self,
        user: User,
        table_name: Optional[str] = None,
        record_id: Optional[str] = None,
    ) -> List[DeletionAuditEntry]:
        return self.service.get_deletion_history(table_name, record_id)

    @require_permission(Permission.VIEW_DELETION_HISTORY)
    def history_page(
        self,
        user: User,
        table_name: Optional[str] = None,
        record_id: Optional[str] = None,
        cursor: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> HistoryPage:
        return self.service.get_deletion_history_page(table_name, record_id, cursor, limit)

    @require_permission(Permission.VIEW_DELETION_HISTORY)
    def deletion_summary(self, user: User) -> DeletionSummary:
        return self.service.summarize_deletions()

    @require_permission(Permission.VIEW_DELETION_HISTORY)
    def audit_entry(self, user: User, entry_id: int) -> Optional[DeletionAuditEntry]:
        return self.service.get_audit_entry(entry_id)

    @require_permission(Permission.VIEW_DELETION_HISTORY)
    def deleted_records(self, user: User, table: TableRef) -> List[Any]:
        return self.service.get_deleted_records(table)

    # Mutations

    @require_permission(Permission.DELETE_RECORDS)
    def delete_record(
        self,
        user: User,
        table: TableRef,
        record_id: Any,
        reason: Optional[str] = None,
    ) -> AdminActionResult:
        """
        Soft delete a record, cascading where the table has a deletion policy.

        A blocked cascade comes back as ``blocked`` with the conflict message.
        """
        model = self.service.registry.resolve(table)
        policy = POLICIES.get(table_name_of(model))

        if policy is not None:
            return self._run(
                "delete",
                table,
                record_id,
                lambda: self.storage.cascade.delete(policy, record_id, user.id, reason).deleted,
            )
        return self._run(
            "delete",
            table,
            record_id,
            lambda: self.service.soft_delete(model, record_id, user.id, reason),
        )

    @require_permission(Permission.RESTORE_RECORDS)
    def restore_record(self, user: User, table: TableRef, record_id: Any) -> AdminActionResult:
        return self._run(
            "restore",
            table,
            record_id,
            lambda: self.service.restore_record(table, record_id, user.id),
        )

    @require_permission(Permission.PURGE_RECORDS)
    def purge_record(self, user: User, table: TableRef, record_id: Any) -> AdminActionResult:
        """Physically remove a tombstoned record. Super admins only."""
        return self._run(
            "purge",
            table,
            record_id,
            lambda: self.service.permanently_delete_record(table, record_id, user.id),
        )

    @require_permission(Permission.DELETE_RECORDS)
    def bulk_delete(
        self,
        user: User,
        table: TableRef,
        record_ids: Iterable[Any],
        reason: Optional[str] = None,
    ) -> AdminActionResult:
        """
        Soft delete several records, cascading where the table has a policy.

        Blocked ids count as failures and their conflict messages are carried
        in ``bulk.errors``. The batch is ``blocked`` only when nothing was
        deleted and at least one id was blocked.
        """
        ids = [str(record_id) for record_id in record_ids]
        model = self.service.registry.resolve(table)
        table_name = table_name_of(model)
        policy = POLICIES.get(table_name)

        if policy is not None:
            tally = self.storage.cascade.delete_many(policy, ids, user.id, reason)
        else:
            tally = self.service.bulk_soft_delete(model, ids, user.id, reason)

        if tally.success:
            status = ActionStatus.COMPLETED
        elif tally.errors:
            status = ActionStatus.BLOCKED
        else:
            status = ActionStatus.NO_CHANGE
        return AdminActionResult(
            status=status,
            message=f"Deleted {tally.success} of {tally.total} records",
            table_name=table_name,
            record_id=",".join(ids),
            bulk=tally,
        )


def create_admin_service(config: Optional[OpsConfig] = None) -> AdminService:
    """
    Wire engine, registry, service and storage from configuration.

    Args:
        config: Configuration; the global one if omitted

    Returns:
        Ready-to-use admin service
    """
    config = config or get_config()
    engine = create_db_engine(config.database_url, echo=config.echo_sql)
    registry = build_registry()
    register_soft_delete_listeners(Base)

    service = SoftDeleteService(create_session_factory(engine), registry, config=config)
    storage = OpsStorage(service, CascadeDeleter(service))
    return AdminService(service, storage)
