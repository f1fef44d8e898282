"""
Identity and session data models.

Data classes for identities, session claims, and authorized callers.
"""

from dataclasses import dataclass
from datetime import datetime

from .permissions import Role


def normalize_email(email: str) -> str:
    """Canonical key for an email address (case-insensitive)."""
    return str(email).strip().lower()


@dataclass(frozen=True)
class Identity:
    """
    Registered person.

    Attributes:
        email: Email address as registered (lookups are case-insensitive)
        name: Display name
        rank: Rank or grade
        unit: Unit or force code
        secret: Credential secret, compared verbatim
        role: Admin or standard
        created_at: Registration timestamp
    """
    email: str
    name: str
    rank: str
    unit: str
    secret: str
    role: Role
    created_at: datetime

    @property
    def key(self) -> str:
        return normalize_email(self.email)

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def to_dict(self) -> dict:
        """Public view; never includes the secret."""
        return {
            "email": self.email,
            "name": self.name,
            "rank": self.rank,
            "unit": self.unit,
            "is_admin": self.is_admin,
        }


@dataclass(frozen=True)
class SessionClaims:
    """
    Decoded session token.

    Attributes:
        email: Subject email
        name: Display name at issuance
        role: Role snapshot at issuance
        issued_at: Issued-at timestamp
        expires_at: Expiry timestamp
        jti: JWT ID
    """
    email: str
    name: str
    role: Role
    issued_at: datetime
    expires_at: datetime
    jti: str


@dataclass(frozen=True)
class AuthorizedCaller:
    """
    Caller identity after a request passed the guard.
    """
    email: str
    name: str
    role: Role

    @property
    def key(self) -> str:
        return normalize_email(self.email)

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def to_dict(self) -> dict:
        return {"email": self.email, "name": self.name, "is_admin": self.is_admin}
