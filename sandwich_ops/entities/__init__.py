"""
Entities Module - business tables of the operations app.

Defines the soft-deletable tables, their cascade and blocking rules, and the
storage facade that applies the live-only filter to every read path.
"""

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
from .rules import (
    DEFAULT_REASONS,
    ENTITY_MODELS,
    HOST_POLICY,
    POLICIES,
    PROJECT_POLICY,
    SUGGESTION_POLICY,
    build_registry,
)
from .storage import OpsStorage

__all__ = [
    # Tables
    "User",
    "Project",
    "ProjectTask",
    "Message",
    "Host",
    "HostContact",
    "SandwichCollection",
    "Driver",
    "Recipient",
    "Contact",
    "Meeting",
    "Suggestion",
    "SuggestionResponse",
    "ENTITY_MODELS",
    # Rules
    "DEFAULT_REASONS",
    "HOST_POLICY",
    "SUGGESTION_POLICY",
    "PROJECT_POLICY",
    "POLICIES",
    "build_registry",
    # Storage
    "OpsStorage",
]
