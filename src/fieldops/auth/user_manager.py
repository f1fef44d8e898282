"""
Registration and login flow.

Combines the credential store, session issuer and audit log.
"""

from typing import Optional, Tuple

from loguru import logger

from ..errors import Blocked, InvalidCredential, NotFound
from .audit import AccessAuditLog, Outcome
from .credential_store import CredentialStore
from .jwt_handler import JWTHandler
from .models import Identity


class UserManager:
    """
    User authentication manager.

    Provides:
    - Registration
    - Login with audit logging and block enforcement
    - Secret rotation
    """

    def __init__(self, store: CredentialStore, jwt_handler: JWTHandler, audit: AccessAuditLog):
        self.store = store
        self.jwt = jwt_handler
        self.audit = audit

    def register(
        self,
        email: str,
        password: str,
        name: str,
        rank: Optional[str] = None,
        unit: Optional[str] = None,
    ) -> Identity:
        return self.store.register(email, password, name, rank=rank, unit=unit)

    def login(self, email: str, password: str, source_address: Optional[str] = None) -> Tuple[str, Identity]:
        """
        Authenticate and issue a session.

        Every attempt appends one access event. Unknown email and wrong
        password are reported identically.

        Args:
            email: Email (case-insensitive)
            password: Credential secret
            source_address: Client address for the audit log

        Returns:
            (token, identity) tuple

        Raises:
            Blocked: If the email is blocked
            InvalidCredential: If the email is unknown or the password is wrong
        """
        email = str(email or "").strip()

        try:
            identity = self.store.lookup(email)
        except NotFound:
            identity = None

        name = identity.name if identity else ""
        logged_email = identity.email if identity else email

        if email and self.audit.is_blocked(email):
            self.audit.record(logged_email, name, source_address, Outcome.BLOCKED)
            logger.warning(f"Login refused, blocked: {email}")
            raise Blocked(logged_email)

        if identity is None or not self.store.verify_secret(email, password):
            self.audit.record(logged_email, name, source_address, Outcome.DENIED)
            logger.warning(f"Login failed for '{email}' from {source_address or '-'}")
            raise InvalidCredential()

        token = self.jwt.issue(identity)
        self.audit.record(identity.email, identity.name, source_address, Outcome.OK)

        logger.success(f"User logged in: {identity.email} from {source_address or '-'}")
        return token, identity

    def rotate_secret(self, email: str, current_password: str, new_password: str) -> Identity:
        """
        Change a secret after re-verifying the current one.

        Existing sessions stay valid until they expire.

        Raises:
            InvalidCredential: If the current password does not match
        """
        if not self.store.verify_secret(email, current_password):
            logger.warning(f"Secret rotation refused for '{email}'")
            raise InvalidCredential()
        return self.store.rotate_secret(email, new_password)
