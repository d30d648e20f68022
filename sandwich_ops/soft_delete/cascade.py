"""
Cascading soft delete with blocking dependencies.

A ``DeletionPolicy`` describes what happens around one parent table: which
child tables are tombstoned together with the parent, and which live related
rows must be cleared before the parent may be deleted at all.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional, Type

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .exceptions import ConflictError
from .models import BulkDeleteResult
from .query import live_criterion
from .registry import coerce_id, table_name_of
from .services import SoftDeleteService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CascadeChild:
    """Child table whose live rows are tombstoned along with the parent."""

    model: Type[Any]
    foreign_key: str


@dataclass(frozen=True)
class BlockingDependency:
    """
    Related rows that must be gone before the parent can be deleted.

    ``criteria`` receives the parent row and returns the clause selecting its
    related rows; only live related rows block.
    """

    model: Type[Any]
    criteria: Callable[[Any], Any]
    description: str


@dataclass(frozen=True)
class DeletionPolicy:
    model: Type[Any]
    label: str
    reason: str
    display_attr: str = "id"
    children: List[CascadeChild] = field(default_factory=list)
    blockers: List[BlockingDependency] = field(default_factory=list)

    @property
    def table_name(self) -> str:
        return table_name_of(self.model)


@dataclass
class CascadeResult:
    deleted: bool
    children_deleted: int = 0


class _ParentAlreadyDeleted(Exception):
    pass


class CascadeDeleter:
    """Runs deletion policies on top of a ``SoftDeleteService``."""

    def __init__(self, service: SoftDeleteService):
        self.service = service

    def delete(
        self,
        policy: DeletionPolicy,
        record_id: Any,
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> CascadeResult:
        """
        Soft delete a parent record with its children in one transaction.

        Children are tombstoned first, each with its own audit entry, then the
        parent. If any blocking dependency still has live rows nothing is
        written.

        Args:
            policy: Deletion policy of the parent table
            record_id: Primary key of the parent
            actor_id: Acting user
            reason: Deletion reason; defaults to the policy's reason

        Returns:
            Whether the parent was deleted and how many children went with it

        Raises:
            ConflictError: If live dependent rows block the delete
        """
        model = policy.model
        key = coerce_id(model, record_id)
        reason = reason or policy.reason

        try:
            with self.service.transaction() as session:
                parent = session.execute(
                    select(model).where(model.id == key, live_criterion(model))
                ).scalar_one_or_none()
                if parent is None:
                    logger.debug(
                        f"Cascade delete skipped, {policy.table_name}:{record_id} is not live"
                    )
                    return CascadeResult(deleted=False)

                self._check_blockers(session, policy, parent)

                children_deleted = 0
                child_reason = f"Cascade delete from {policy.table_name} {key}: {reason}"
                for child in policy.children:
                    for child_id in self._live_child_ids(session, child, key):
                        if self.service.tombstone(
                            session, child.model, child_id, actor_id, child_reason
                        ):
                            children_deleted += 1

                if not self.service.tombstone(session, model, key, actor_id, reason):
                    # Roll the children back with the transaction
                    raise _ParentAlreadyDeleted()
        except _ParentAlreadyDeleted:
            logger.debug(
                f"Cascade delete skipped, {policy.table_name}:{record_id} "
                "was deleted concurrently"
            )
            return CascadeResult(deleted=False)

        if children_deleted:
            logger.info(
                f"Cascade deleted {children_deleted} child records of {policy.table_name}:{key}"
            )
        return CascadeResult(deleted=True, children_deleted=children_deleted)

    def delete_many(
        self,
        policy: DeletionPolicy,
        record_ids: Iterable[Any],
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> BulkDeleteResult:
        """
        Run ``delete`` for each id, each in its own transaction.

        A blocked id counts as a failure and its conflict message is kept in
        ``errors``. Missing, already deleted and failing ids also count as
        failures; none of them stops the batch.
        """
        reason = reason or self.service.config.bulk_deletion_reason
        result = BulkDeleteResult()

        for record_id in record_ids:
            try:
                deleted = self.delete(policy, record_id, actor_id, reason).deleted
            except ConflictError as e:
                result.errors.append(str(e))
                deleted = False
            except SQLAlchemyError as e:
                logger.error(f"Error cascade deleting {policy.table_name}:{record_id}: {e}")
                deleted = False

            if deleted:
                result.success += 1
            else:
                result.failed += 1

        logger.info(
            f"Bulk cascade delete on {policy.table_name}: "
            f"{result.success} succeeded, {result.failed} failed"
        )
        return result

    def _check_blockers(self, session: Session, policy: DeletionPolicy, parent: Any) -> None:
        for blocker in policy.blockers:
            count = session.execute(
                select(func.count())
                .select_from(blocker.model)
                .where(blocker.criteria(parent), live_criterion(blocker.model))
            ).scalar_one()
            if count:
                display = getattr(parent, policy.display_attr, parent.id)
                message = (
                    f'Cannot delete {policy.label} "{display}" because it has {count} '
                    f"associated {blocker.description}. "
                    "Please update or remove these records first."
                )
                logger.warning(message)
                raise ConflictError(
                    message,
                    entity_id=str(parent.id),
                    blocking_count=count,
                    blocking_table=table_name_of(blocker.model),
                )

    def _live_child_ids(self, session: Session, child: CascadeChild, parent_id: Any) -> List[Any]:
        fk = getattr(child.model, child.foreign_key)
        return list(
            session.execute(
                select(child.model.id)
                .where(fk == parent_id, live_criterion(child.model))
                .order_by(child.model.id)
            )
            .scalars()
            .all()
        )
