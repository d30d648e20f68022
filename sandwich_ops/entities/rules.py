"""Per-entity deletion rules and the default table registry."""

from typing import Dict

from ..soft_delete.cascade import BlockingDependency, CascadeChild, DeletionPolicy
from ..soft_delete.registry import TableRegistry
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

ENTITY_MODELS = (
    User,
    Project,
    ProjectTask,
    Message,
    Host,
    HostContact,
    SandwichCollection,
    Driver,
    Recipient,
    Contact,
    Meeting,
    Suggestion,
    SuggestionResponse,
)

# Reasons recorded when a caller gives none
DEFAULT_REASONS: Dict[str, str] = {
    "users": "User account deleted",
    "projects": "Project deleted",
    "project_tasks": "Task deleted",
    "messages": "Message deleted by user",
    "hosts": "Host deleted",
    "host_contacts": "Host contact deleted",
    "sandwich_collections": "Collection record deleted",
    "drivers": "Driver deleted",
    "recipients": "Recipient deleted",
    "contacts": "Contact deleted",
    "meetings": "Meeting deleted",
    "suggestions": "Suggestion deleted",
    "suggestion_responses": "Suggestion response deleted",
}

HOST_POLICY = DeletionPolicy(
    model=Host,
    label="host",
    reason=DEFAULT_REASONS["hosts"],
    display_attr="name",
    children=[CascadeChild(HostContact, "host_id")],
    blockers=[
        BlockingDependency(
            SandwichCollection,
            lambda host: SandwichCollection.host_name == host.name,
            "collection records",
        )
    ],
)

SUGGESTION_POLICY = DeletionPolicy(
    model=Suggestion,
    label="suggestion",
    reason=DEFAULT_REASONS["suggestions"],
    display_attr="title",
    children=[CascadeChild(SuggestionResponse, "suggestion_id")],
)

PROJECT_POLICY = DeletionPolicy(
    model=Project,
    label="project",
    reason=DEFAULT_REASONS["projects"],
    display_attr="title",
    children=[CascadeChild(ProjectTask, "project_id")],
)

POLICIES: Dict[str, DeletionPolicy] = {
    policy.table_name: policy
    for policy in (HOST_POLICY, SUGGESTION_POLICY, PROJECT_POLICY)
}


def build_registry() -> TableRegistry:
    """Registry holding every entity table."""
    registry = TableRegistry()
    for model in ENTITY_MODELS:
        registry.register(model)
    return registry
