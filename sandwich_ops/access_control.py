"""
Access control module for the admin surface.

Maps roles to permissions and guards admin operations. The acting user is
always passed in explicitly; there is no process-wide current user.
"""

import functools
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Set, TypeVar, Union

logger = logging.getLogger(__name__)

# Type variable for decorators
F = TypeVar("F", bound=Callable[..., Any])


class Role(str, Enum):
    """Roles known to the operations app."""

    VOLUNTEER = "volunteer"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class Permission(str, Enum):
    """Permissions guarding the deletion lifecycle."""

    DELETE_RECORDS = "records.delete"
    VIEW_DELETION_HISTORY = "deletion_history.view"
    RESTORE_RECORDS = "records.restore"
    PURGE_RECORDS = "records.purge"


ROLE_PERMISSIONS: Dict[Role, FrozenSet[Permission]] = {
    Role.VOLUNTEER: frozenset(),
    Role.ADMIN: frozenset(
        {
            Permission.DELETE_RECORDS,
            Permission.VIEW_DELETION_HISTORY,
            Permission.RESTORE_RECORDS,
        }
    ),
    Role.SUPER_ADMIN: frozenset(Permission),
}


def permissions_for_roles(roles: List[Union[str, Role]]) -> Set[Permission]:
    """Get permissions for given roles."""
    permissions: Set[Permission] = set()
    for role in roles:
        try:
            permissions.update(ROLE_PERMISSIONS[Role(role)])
        except ValueError:
            # Unknown roles grant nothing
            logger.warning(f"Unknown role: {role}")
    return permissions


@dataclass
class User:
    """Represents the acting user of an operation."""

    id: str
    name: str = ""
    roles: List[str] = field(default_factory=list)
    permissions: Set[Permission] = field(default_factory=set)

    def __post_init__(self) -> None:
        if not self.permissions:
            self.permissions = permissions_for_roles(self.roles)

    @classmethod
    def with_role(cls, user_id: str, role: Union[str, Role], name: str = "") -> "User":
        """Build a user holding a single role."""
        return cls(id=user_id, name=name or user_id, roles=[Role(role).value])

    def has_permission(self, permission: Union[str, Permission]) -> bool:
        """Check if user has a specific permission."""
        return Permission(permission) in self.permissions

    def has_any_permission(self, permissions: List[Union[str, Permission]]) -> bool:
        """Check if user has any of the specified permissions."""
        return any(self.has_permission(p) for p in permissions)


def has_role(user: Optional[User], role: Union[str, Role]) -> bool:
    """
    Check if a user has a role.

    Args:
        user: User to check
        role: Role to check

    Returns:
        True if user has role
    """
    if user is None:
        return False
    return Role(role).value in user.roles


def check_permission(user: Optional[User], permission: Union[str, Permission]) -> bool:
    """Check if a user holds a permission; no user holds nothing."""
    return user is not None and user.has_permission(permission)


def require_permission(*permissions: Union[str, Permission]) -> Callable[[F], F]:
    """
    Decorator to require specific permissions.

    The decorated callable must take a ``user`` argument; that user must hold
    at least one of the permissions.

    Usage:
        @require_permission(Permission.RESTORE_RECORDS)
        def restore(table, record_id, user):
            pass
    """

    def decorator(func: F) -> F:
        signature = inspect.signature(func)
        if "user" not in signature.parameters:
            raise TypeError(f"{func.__qualname__} must accept a 'user' argument")

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            user = signature.bind_partial(*args, **kwargs).arguments.get("user")
            if not isinstance(user, User):
                raise PermissionError("Authentication required")

            if not user.has_any_permission(list(permissions)):
                logger.warning(
                    f"User {user.id} denied {func.__name__}: missing "
                    f"{[Permission(p).value for p in permissions]}"
                )
                raise PermissionError(
                    f"Insufficient permissions. Required: "
                    f"{[Permission(p).value for p in permissions]}, "
                    f"User has: {sorted(p.value for p in user.permissions)}"
                )

            return func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator


__all__ = [
    "Role",
    "Permission",
    "ROLE_PERMISSIONS",
    "User",
    "permissions_for_roles",
    "has_role",
    "check_permission",
    "require_permission",
]
