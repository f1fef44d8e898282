"""
Role-based permissions for fieldops.

Two roles exist. Standard operators submit and read their own reports and
positions; administrators additionally see everything and manage access.
"""

from enum import Enum
from typing import Dict, Set

from ..errors import Forbidden


class Permission(str, Enum):
    """
    Enum of all permissions.

    Each permission controls access to one operation.
    """
    # Reports
    SUBMIT_REPORT = "submit_report"
    VIEW_OWN_REPORTS = "view_own_reports"
    VIEW_ALL_REPORTS = "view_all_reports"

    # Presence
    REPORT_POSITION = "report_position"
    VIEW_POSITIONS = "view_positions"

    # Access audit
    VIEW_OWN_ACCESS = "view_own_access"
    VIEW_ALL_ACCESS = "view_all_access"
    MANAGE_ACCESS = "manage_access"         # Block, unblock, purge history


class Role(str, Enum):
    ADMIN = "admin"
    STANDARD = "standard"


_STANDARD_PERMISSIONS = {
    Permission.SUBMIT_REPORT,
    Permission.VIEW_OWN_REPORTS,
    Permission.REPORT_POSITION,
    Permission.VIEW_POSITIONS,
    Permission.VIEW_OWN_ACCESS,
}

ROLE_PERMISSIONS: Dict[Role, Set[Permission]] = {
    Role.ADMIN: _STANDARD_PERMISSIONS | {
        Permission.VIEW_ALL_REPORTS,
        Permission.VIEW_ALL_ACCESS,
        Permission.MANAGE_ACCESS,
    },
    Role.STANDARD: set(_STANDARD_PERMISSIONS),
}


def has_permission(role, permission: Permission) -> bool:
    """
    Check if a role has a specific permission.

    Args:
        role: Role enum or its string value
        permission: The permission to check

    Returns:
        True if the role has the permission. Unknown roles have none.
    """
    try:
        role_enum = Role(role)
    except ValueError:
        return False
    return permission in ROLE_PERMISSIONS.get(role_enum, set())


def require_permission(email: str, role, permission: Permission) -> None:
    """
    Require a permission, raising Forbidden if not authorized.

    Raises:
        Forbidden: If the role doesn't have the permission
    """
    if not has_permission(role, permission):
        raise Forbidden(
            email=email,
            action=permission.value,
            required_permission=permission,
        )
