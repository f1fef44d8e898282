"""
In-memory credential store.

Thread-safe registry of identities keyed by case-insensitive email.
"""

import secrets
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from loguru import logger

from ..errors import DuplicateIdentity, MissingRequiredField, NotFound
from .models import Identity, normalize_email
from .permissions import Role

DEFAULT_RANK = "W1"
DEFAULT_UNIT = "MA"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _blank(value) -> bool:
    return value is None or str(value).strip() == ""


class CredentialStore:
    """
    Thread-safe identity store.

    All operations are protected by threading.RLock. Identities are never
    deleted; only the secret may be rotated.
    """

    def __init__(
        self,
        first_user_is_admin: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize store.

        Args:
            first_user_is_admin: Grant the admin role to the first registrant
            clock: Source of the current time
        """
        self.first_user_is_admin = first_user_is_admin
        self._clock = clock
        self._lock = threading.RLock()
        self._identities: Dict[str, Identity] = {}

    def register(
        self,
        email: str,
        secret: str,
        name: str,
        rank: Optional[str] = None,
        unit: Optional[str] = None,
    ) -> Identity:
        """
        Register a new identity.

        Args:
            email: Unique email (case-insensitive)
            secret: Credential secret
            name: Display name
            rank: Rank or grade (default: W1)
            unit: Unit or force code (default: MA)

        Returns:
            Created Identity

        Raises:
            MissingRequiredField: If email, secret or name is absent
            DuplicateIdentity: If the email is already registered
        """
        missing = [
            field for field, value in (("email", email), ("password", secret), ("name", name))
            if _blank(value)
        ]
        if missing:
            logger.warning(f"Registration rejected, missing: {missing}")
            raise MissingRequiredField(missing)

        email = str(email).strip()
        key = normalize_email(email)

        with self._lock:
            if key in self._identities:
                logger.warning(f"Registration rejected, duplicate email: {email}")
                raise DuplicateIdentity(email)

            is_first = not self._identities
            role = Role.ADMIN if (is_first and self.first_user_is_admin) else Role.STANDARD

            identity = Identity(
                email=email,
                name=str(name).strip(),
                rank=DEFAULT_RANK if _blank(rank) else str(rank).strip(),
                unit=DEFAULT_UNIT if _blank(unit) else str(unit).strip(),
                secret=str(secret),
                role=role,
                created_at=self._clock(),
            )
            self._identities[key] = identity

        logger.info(f"Identity registered: {email} with role: {role.value}")
        return identity

    def lookup(self, email: str) -> Identity:
        """
        Get identity by email.

        Raises:
            NotFound: If no identity has this email
        """
        with self._lock:
            identity = self._identities.get(normalize_email(email))
        if identity is None:
            raise NotFound(email)
        return identity

    def verify_secret(self, email: str, secret: str) -> bool:
        """
        Check a secret against the stored one.

        Returns:
            True if the email exists and the secret matches verbatim
        """
        if secret is None:
            return False
        with self._lock:
            identity = self._identities.get(normalize_email(email))
        if identity is None:
            return False
        return secrets.compare_digest(identity.secret.encode("utf-8"), str(secret).encode("utf-8"))

    def rotate_secret(self, email: str, new_secret: str) -> Identity:
        """
        Replace an identity's secret.

        Raises:
            MissingRequiredField: If the new secret is blank
            NotFound: If no identity has this email
        """
        if _blank(new_secret):
            raise MissingRequiredField(["password"])

        key = normalize_email(email)
        with self._lock:
            identity = self._identities.get(key)
            if identity is None:
                raise NotFound(email)
            identity = replace(identity, secret=str(new_secret))
            self._identities[key] = identity

        logger.info(f"Secret rotated for {identity.email}")
        return identity

    def list_identities(self) -> List[Identity]:
        """All identities in registration order."""
        with self._lock:
            return list(self._identities.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._identities)
