"""
Authentication module for fieldops.

Provides identity storage, JWT sessions, the per-request authorization
guard, and the access audit log with block enforcement.
"""

from .permissions import Permission, Role, ROLE_PERMISSIONS, has_permission, require_permission
from .models import Identity, SessionClaims, AuthorizedCaller, normalize_email
from .credential_store import CredentialStore
from .jwt_handler import JWTHandler
from .audit import AccessAuditLog, AccessEvent, BlockSet, Outcome
from .guard import AuthorizationGuard, extract_bearer_token
from .user_manager import UserManager

__all__ = [
    # Identities
    "Identity",
    "SessionClaims",
    "AuthorizedCaller",
    "CredentialStore",
    "normalize_email",
    # JWT handling
    "JWTHandler",
    "UserManager",
    # Guard
    "AuthorizationGuard",
    "extract_bearer_token",
    # Audit
    "AccessAuditLog",
    "AccessEvent",
    "BlockSet",
    "Outcome",
    # RBAC
    "Permission",
    "Role",
    "ROLE_PERMISSIONS",
    "has_permission",
    "require_permission",
]
