"""
Sandwich Ops - soft delete lifecycle and deletion audit for a nonprofit operations app.

Records are never removed when a volunteer deletes them. They are tombstoned,
every tombstone lands in an audit ledger with a snapshot of the row, and
administrators can restore them or, once tombstoned, purge them for good.

Key Features
------------
* **Soft Delete**: Atomic tombstones with a full row snapshot per audit entry
* **Deletion Ledger**: Filterable, paginated history with restore and purge state
* **Cascades**: Child records follow their parent; blocking records stop it
* **Live-only Reads**: Every read path hides tombstoned rows by default
* **Admin CLI**: History, statistics, export, restore and purge from a terminal

Quick Start
-----------
>>> from sandwich_ops import OpsConfig, User, create_admin_service
>>>
>>> admin = create_admin_service(OpsConfig(database_url="sqlite:///./ops.db"))
>>> user = User.with_role("admin-1", "admin")
>>> admin.delete_record(user, "hosts", 7, reason="duplicate entry")
>>> admin.deletion_history(user, table_name="hosts")
"""

__version__ = "1.0.0"

from .access_control import Permission, Role, User, has_role, require_permission
from .admin import ActionStatus, AdminActionResult, AdminService, create_admin_service
from .config import OpsConfig, get_config, set_config
from .database import Base, create_db_engine, create_session_factory, init_db
from .entities import OpsStorage, build_registry
from .soft_delete import (
    ConflictError,
    SoftDeleteMixin,
    SoftDeleteQuery,
    SoftDeleteService,
    VisibilityMode,
)

__all__ = [
    # Soft Delete
    "SoftDeleteMixin",
    "SoftDeleteService",
    "SoftDeleteQuery",
    "VisibilityMode",
    "ConflictError",
    # Entities
    "OpsStorage",
    "build_registry",
    # Admin
    "AdminService",
    "AdminActionResult",
    "ActionStatus",
    "create_admin_service",
    # Access Control
    "Role",
    "Permission",
    "User",
    "has_role",
    "require_permission",
    # Configuration
    "OpsConfig",
    "get_config",
    "set_config",
    # Database
    "Base",
    "create_db_engine",
    "create_session_factory",
    "init_db",
]
