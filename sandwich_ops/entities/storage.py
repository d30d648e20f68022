"""
Storage facade for the business tables.

Every read path goes through ``SoftDeleteQuery`` and therefore hides
tombstoned rows unless a caller asks for another visibility mode. Updates
only ever touch live rows.
"""

import logging
from typing import Any, List, Optional

from sqlalchemy import desc, update

from ..soft_delete.cascade import CascadeDeleter
from ..soft_delete.models import utcnow
from ..soft_delete.query import SoftDeleteQuery, VisibilityMode, live_criterion
from ..soft_delete.registry import TableRef, coerce_id
from ..soft_delete.services import SoftDeleteService
from .models import (
    Contact,
    Driver,
    Host,
    HostContact,
    Meeting,
    Message,
    Project,
    ProjectTask,
    Recipient,
    SandwichCollection,
    Suggestion,
    SuggestionResponse,
    User,
)
from .rules import DEFAULT_REASONS, HOST_POLICY, PROJECT_POLICY, SUGGESTION_POLICY

logger = logging.getLogger(__name__)


class OpsStorage:
    """
    Read/write access to the operations tables.

    Example:
        >>> storage = OpsStorage(service)
        >>> host = storage.create_record(Host, name="Downtown Church")
        >>> storage.delete_host(host.id, actor_id="admin-1", reason="duplicate entry")
        True
        >>> storage.get_hosts()
        []
    """

    def __init__(self, service: SoftDeleteService, cascade: Optional[CascadeDeleter] = None):
        self.service = service
        self.cascade = cascade or CascadeDeleter(service)

    def _fetch(self, query: SoftDeleteQuery, limit: Optional[int] = None, offset: int = 0) -> List[Any]:
        stmt = query.statement()
        if limit is not None:
            stmt = stmt.limit(limit).offset(offset)
        with self.service.transaction() as session:
            return list(session.execute(stmt).scalars().all())

    def _first(self, query: SoftDeleteQuery) -> Optional[Any]:
        rows = self._fetch(query, limit=1)
        return rows[0] if rows else None

    # Generic access

    def list_records(
        self,
        table: TableRef,
        mode: VisibilityMode = VisibilityMode.LIVE,
    ) -> List[Any]:
        """List the rows of a table in id order, live rows only by default."""
        model = self.service.registry.resolve(table)
        return self._fetch(SoftDeleteQuery(model).visibility(mode).order_by(model.id))

    def get_record(
        self,
        table: TableRef,
        record_id: Any,
        mode: VisibilityMode = VisibilityMode.LIVE,
    ) -> Optional[Any]:
        model = self.service.registry.resolve(table)
        key = coerce_id(model, record_id)
        return self._first(SoftDeleteQuery(model).visibility(mode).where(model.id == key))

    def create_record(self, table: TableRef, **values: Any) -> Any:
        model = self.service.registry.resolve(table)
        with self.service.transaction() as session:
            record = model(**values)
            session.add(record)
            session.flush()
        return record

    def update_record(self, table: TableRef, record_id: Any, **values: Any) -> Optional[Any]:
        """
        Update a live row.

        Returns:
            The updated row, or None if the row is missing or tombstoned
        """
        model = self.service.registry.resolve(table)
        key = coerce_id(model, record_id)
        values.setdefault("updated_at", utcnow())

        with self.service.transaction() as session:
            result = session.execute(
                update(model)
                .where(model.id == key, live_criterion(model))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if not result.rowcount:  # type: ignore[attr-defined]
                logger.debug(f"Update skipped, {model.__tablename__}:{record_id} is not live")
                return None
            return session.get(model, key, populate_existing=True)

    # Users

    def get_users(self) -> List[User]:
        return self._fetch(SoftDeleteQuery(User).order_by(User.display_name))

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        return self._first(SoftDeleteQuery(User).where(User.id == user_id))

    def get_active_users(self) -> List[User]:
        return self._fetch(
            SoftDeleteQuery(User)
            .where(User.is_active.is_(True))
            .order_by(User.display_name)
        )

    # Projects

    def get_projects(self) -> List[Project]:
        return self._fetch(SoftDeleteQuery(Project).order_by(desc(Project.created_at), Project.id))

    def get_project_by_id(self, project_id: int) -> Optional[Project]:
        return self._first(SoftDeleteQuery(Project).where(Project.id == project_id))

    def get_active_projects(self) -> List[Project]:
        return self._fetch(
            SoftDeleteQuery(Project)
            .where(Project.status == "active")
            .order_by(desc(Project.created_at), Project.id)
        )

    def get_project_tasks(self, project_id: int) -> List[ProjectTask]:
        return self._fetch(
            SoftDeleteQuery(ProjectTask)
            .where(ProjectTask.project_id == project_id)
            .order_by(ProjectTask.sort_order, ProjectTask.id)
        )

    # Messages

    def get_messages(self, conversation_id: int) -> List[Message]:
        return self._fetch(
            SoftDeleteQuery(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at, Message.id)
        )

    # Sandwich collections

    def get_sandwich_collections(self, limit: int, offset: int = 0) -> List[SandwichCollection]:
        """Page of live collections, newest submission first."""
        return self._fetch(
            SoftDeleteQuery(SandwichCollection).order_by(
                desc(SandwichCollection.submitted_at), desc(SandwichCollection.id)
            ),
            limit=limit,
            offset=offset,
        )

    def get_all_sandwich_collections(self) -> List[SandwichCollection]:
        return self._fetch(
            SoftDeleteQuery(SandwichCollection).order_by(
                desc(SandwichCollection.submitted_at), desc(SandwichCollection.id)
            )
        )

    # Hosts

    def get_hosts(self) -> List[Host]:
        return self._fetch(SoftDeleteQuery(Host).order_by(Host.name))

    def get_host_by_id(self, host_id: int) -> Optional[Host]:
        return self._first(SoftDeleteQuery(Host).where(Host.id == host_id))

    def get_active_hosts(self) -> List[Host]:
        return self._fetch(
            SoftDeleteQuery(Host).where(Host.status == "active").order_by(Host.name)
        )

    def get_host_contacts(self, host_id: int) -> List[HostContact]:
        return self._fetch(
            SoftDeleteQuery(HostContact)
            .where(HostContact.host_id == host_id)
            .order_by(HostContact.id)
        )

    # Drivers, recipients, contacts, meetings

    def get_drivers(self) -> List[Driver]:
        return self._fetch(SoftDeleteQuery(Driver).order_by(Driver.name))

    def get_active_drivers(self) -> List[Driver]:
        return self._fetch(
            SoftDeleteQuery(Driver).where(Driver.is_active.is_(True)).order_by(Driver.name)
        )

    def get_recipients(self) -> List[Recipient]:
        return self._fetch(SoftDeleteQuery(Recipient).order_by(Recipient.name))

    def get_active_recipients(self) -> List[Recipient]:
        return self._fetch(
            SoftDeleteQuery(Recipient)
            .where(Recipient.status == "active")
            .order_by(Recipient.name)
        )

    def get_contacts(self) -> List[Contact]:
        return self._fetch(SoftDeleteQuery(Contact).order_by(Contact.name))

    def get_meetings(self) -> List[Meeting]:
        return self._fetch(
            SoftDeleteQuery(Meeting).order_by(desc(Meeting.meeting_date), Meeting.id)
        )

    # Suggestions

    def get_suggestions(self) -> List[Suggestion]:
        return self._fetch(
            SoftDeleteQuery(Suggestion).order_by(desc(Suggestion.created_at), Suggestion.id)
        )

    def get_suggestion_responses(self, suggestion_id: int) -> List[SuggestionResponse]:
        return self._fetch(
            SoftDeleteQuery(SuggestionResponse)
            .where(SuggestionResponse.suggestion_id == suggestion_id)
            .order_by(SuggestionResponse.created_at, SuggestionResponse.id)
        )

    # Deletes

    def _delete(self, model: Any, record_id: Any, actor_id: Optional[str], reason: Optional[str]) -> bool:
        return self.service.soft_delete(
            model, record_id, actor_id, reason or DEFAULT_REASONS[model.__tablename__]
        )

    def delete_user(self, user_id: str, actor_id: Optional[str] = None, reason: Optional[str] = None) -> bool:
        return self._delete(User, user_id, actor_id, reason)

    def delete_project(self, project_id: int, actor_id: Optional[str] = None, reason: Optional[str] = None) -> bool:
        """Soft delete a project together with its tasks."""
        return self.cascade.delete(PROJECT_POLICY, project_id, actor_id, reason).deleted

    def delete_project_task(self, task_id: int, actor_id: Optional[str] = None, reason: Optional[str] = None) -> bool:
        return self._delete(ProjectTask, task_id, actor_id, reason)

    def delete_message(self, message_id: int, actor_id: Optional[str] = None, reason: Optional[str] = None) -> bool:
        return self._delete(Message, message_id, actor_id, reason)

    def delete_sandwich_collection(
        self, collection_id: int, actor_id: Optional[str] = None, reason: Optional[str] = None
    ) -> bool:
        return self._delete(SandwichCollection, collection_id, actor_id, reason)

    def delete_host(self, host_id: int, actor_id: Optional[str] = None, reason: Optional[str] = None) -> bool:
        """
        Soft delete a host together with its contacts.

        Raises:
            ConflictError: If live collection records still name the host
        """
        return self.cascade.delete(HOST_POLICY, host_id, actor_id, reason).deleted

    def delete_driver(self, driver_id: int, actor_id: Optional[str] = None, reason: Optional[str] = None) -> bool:
        return self._delete(Driver, driver_id, actor_id, reason)

    def delete_recipient(self, recipient_id: int, actor_id: Optional[str] = None, reason: Optional[str] = None) -> bool:
        return self._delete(Recipient, recipient_id, actor_id, reason)

    def delete_contact(self, contact_id: int, actor_id: Optional[str] = None, reason: Optional[str] = None) -> bool:
        return self._delete(Contact, contact_id, actor_id, reason)

    def delete_meeting(self, meeting_id: int, actor_id: Optional[str] = None, reason: Optional[str] = None) -> bool:
        return self._delete(Meeting, meeting_id, actor_id, reason)

    def delete_suggestion(self, suggestion_id: int, actor_id: Optional[str] = None, reason: Optional[str] = None) -> bool:
        """Soft delete a suggestion together with its responses."""
        return self.cascade.delete(SUGGESTION_POLICY, suggestion_id, actor_id, reason).deleted
