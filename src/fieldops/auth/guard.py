"""
Per-request authorization guard.

Resolves the caller from a bearer credential and rejects invalid, expired
or blocked sessions. The block check runs on every call, so a block takes
effect for sessions issued before it.
"""

from typing import Optional

from loguru import logger

from ..errors import Blocked, Forbidden, InvalidCredential, MissingCredential
from .audit import BlockSet
from .jwt_handler import JWTHandler
from .models import AuthorizedCaller
from .permissions import Permission, require_permission

BEARER_PREFIX = "bearer "


def extract_bearer_token(raw_credential: Optional[str]) -> Optional[str]:
    """
    Pull the token out of an Authorization header value.

    Accepts "Bearer <token>" (scheme is case-insensitive) or a bare token.

    Returns:
        Token string, or None if nothing usable was presented
    """
    if raw_credential is None:
        return None
    value = str(raw_credential).strip()
    if value.lower().startswith(BEARER_PREFIX):
        value = value[len(BEARER_PREFIX):].strip()
    elif value.lower() == BEARER_PREFIX.strip():
        value = ""
    if not value or " " in value:
        return None
    return value


class AuthorizationGuard:
    """
    Authorization gate for requests.

    Composes pure session verification with a live block-set lookup.
    Authorized calls do not write audit events; only login does.
    """

    def __init__(self, jwt_handler: JWTHandler, block_set: BlockSet):
        """
        Initialize guard.

        Args:
            jwt_handler: Session issuer used for token verification
            block_set: Live set of blocked emails
        """
        self.jwt = jwt_handler
        self.block_set = block_set

    def authorize(self, raw_credential: Optional[str], source_address: Optional[str] = None) -> AuthorizedCaller:
        """
        Resolve the caller for a request.

        Args:
            raw_credential: Authorization header value
            source_address: Client address, used for logging only

        Returns:
            AuthorizedCaller for a valid, unblocked session

        Raises:
            MissingCredential: If no bearer token was presented
            InvalidCredential: If the token fails verification or has expired
            Blocked: If the session's email is currently blocked
        """
        token = extract_bearer_token(raw_credential)
        if token is None:
            logger.warning(f"Request without credential from {source_address or '-'}")
            raise MissingCredential()

        try:
            claims = self.jwt.verify(token)
        except InvalidCredential:
            logger.warning(f"Rejected credential from {source_address or '-'}")
            raise

        if claims.email in self.block_set:
            logger.warning(f"Blocked session used by {claims.email} from {source_address or '-'}")
            raise Blocked(claims.email)

        return AuthorizedCaller(email=claims.email, name=claims.name, role=claims.role)

    def require(self, caller: AuthorizedCaller, permission: Permission) -> None:
        """
        Require a permission for an authorized caller.

        Raises:
            Forbidden: If the caller's role lacks the permission
        """
        try:
            require_permission(caller.email, caller.role, permission)
        except Forbidden:
            logger.warning(f"{caller.email} denied {permission.value}")
            raise

    def require_admin(self, caller: AuthorizedCaller) -> None:
        """Shorthand for operations only administrators may perform."""
        self.require(caller, Permission.MANAGE_ACCESS)
