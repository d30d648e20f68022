"""
Business tables of the operations app.

Every table takes part in the soft delete lifecycle through
``SoftDeleteMixin``. Only the columns the read paths and deletion rules rely
on are modelled in detail.
"""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)

from ..database import Base
from ..soft_delete.mixins import SoftDeleteMixin
from ..soft_delete.models import utcnow


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)


class User(Base, SoftDeleteMixin, TimestampMixin):  # type: ignore[valid-type,misc]
    __tablename__ = "users"

    id = Column(String(100), primary_key=True)
    email = Column(String(255), nullable=True, unique=True)
    display_name = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False, default="volunteer")
    is_active = Column(Boolean, nullable=False, default=True)


class Project(Base, SoftDeleteMixin, TimestampMixin):  # type: ignore[valid-type,misc]
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(50), nullable=False, default="active")


class ProjectTask(Base, SoftDeleteMixin, TimestampMixin):  # type: ignore[valid-type,misc]
    __tablename__ = "project_tasks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    status = Column(String(50), nullable=False, default="pending")
    sort_order = Column(Integer, nullable=False, default=0)


class Message(Base, SoftDeleteMixin, TimestampMixin):  # type: ignore[valid-type,misc]
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(Integer, nullable=False, index=True)
    user_id = Column(String(100), nullable=True)
    content = Column(Text, nullable=False)


class Host(Base, SoftDeleteMixin, TimestampMixin):  # type: ignore[valid-type,misc]
    __tablename__ = "hosts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    address = Column(Text, nullable=True)
    status = Column(String(50), nullable=False, default="active")
    notes = Column(Text, nullable=True)


class HostContact(Base, SoftDeleteMixin, TimestampMixin):  # type: ignore[valid-type,misc]
    __tablename__ = "host_contacts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    host_id = Column(Integer, ForeignKey("hosts.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    role = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    is_primary = Column(Boolean, nullable=False, default=False)


class SandwichCollection(Base, SoftDeleteMixin, TimestampMixin):  # type: ignore[valid-type,misc]
    __tablename__ = "sandwich_collections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    collection_date = Column(Date, nullable=False)
    # Linked to hosts by name, not by key
    host_name = Column(String(255), nullable=False, index=True)
    individual_sandwiches = Column(Integer, nullable=False, default=0)
    group_collections = Column(Text, nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Driver(Base, SoftDeleteMixin, TimestampMixin):  # type: ignore[valid-type,misc]
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)


class Recipient(Base, SoftDeleteMixin, TimestampMixin):  # type: ignore[valid-type,misc]
    __tablename__ = "recipients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    address = Column(Text, nullable=True)
    status = Column(String(50), nullable=False, default="active")


class Contact(Base, SoftDeleteMixin, TimestampMixin):  # type: ignore[valid-type,misc]
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    organization = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)


class Meeting(Base, SoftDeleteMixin, TimestampMixin):  # type: ignore[valid-type,misc]
    __tablename__ = "meetings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    meeting_date = Column(Date, nullable=True)
    location = Column(String(255), nullable=True)


class Suggestion(Base, SoftDeleteMixin, TimestampMixin):  # type: ignore[valid-type,misc]
    __tablename__ = "suggestions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(50), nullable=False, default="submitted")
    submitted_by = Column(String(100), nullable=True)


class SuggestionResponse(Base, SoftDeleteMixin, TimestampMixin):  # type: ignore[valid-type,misc]
    __tablename__ = "suggestion_responses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    suggestion_id = Column(
        Integer, ForeignKey("suggestions.id"), nullable=False, index=True
    )
    message = Column(Text, nullable=False)
    responded_by = Column(String(100), nullable=True)
