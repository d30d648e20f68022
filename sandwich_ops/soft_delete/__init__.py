"""
Soft Delete Module - recoverable deletions with an audit ledger.

Provides the mixin and capability interface for soft-deletable tables, the
tombstone/restore/purge service, the deletion ledger, the live-only query
convention and cascading deletes with blocking dependencies.
"""

from .cascade import (
    BlockingDependency,
    CascadeChild,
    CascadeDeleter,
    CascadeResult,
    DeletionPolicy,
)
from .exceptions import (
    ConflictError,
    HardDeleteError,
    SoftDeleteError,
    UnknownTableError,
)
from .ledger import DeletionLedger
from .mixins import (
    SoftDeletable,
    SoftDeleteMixin,
    register_soft_delete_listeners,
    snapshot_row,
)
from .models import (
    BulkDeleteResult,
    DeletionAudit,
    DeletionAuditEntry,
    DeletionSummary,
    HistoryPage,
)
from .query import SoftDeleteQuery, VisibilityMode, apply_visibility
from .registry import TableRegistry
from .services import SoftDeleteService

__all__ = [
    # Mixins
    "SoftDeleteMixin",
    "SoftDeletable",
    "register_soft_delete_listeners",
    "snapshot_row",
    # Services
    "SoftDeleteService",
    "DeletionLedger",
    "CascadeDeleter",
    "TableRegistry",
    # Query convention
    "SoftDeleteQuery",
    "VisibilityMode",
    "apply_visibility",
    # Models
    "DeletionAudit",
    "DeletionAuditEntry",
    "BulkDeleteResult",
    "HistoryPage",
    "DeletionSummary",
    "DeletionPolicy",
    "CascadeChild",
    "BlockingDependency",
    "CascadeResult",
    # Exceptions
    "SoftDeleteError",
    "ConflictError",
    "UnknownTableError",
    "HardDeleteError",
]
