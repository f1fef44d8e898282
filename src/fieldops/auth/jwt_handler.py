"""
JWT session token generation and validation.

Sessions are stateless: nothing is stored per token. Validity depends only
on the signature and the expiry, so verification never touches shared state.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt
from loguru import logger

from ..errors import InvalidSignature, SessionExpired
from .models import Identity, SessionClaims
from .permissions import Role

ALGORITHM = "HS256"
SESSION_EXPIRE_HOURS = 24
TOKEN_TYPE = "access"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JWTHandler:
    """
    Session issuer.

    Creates and validates signed session tokens.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = ALGORITHM,
        expire_hours: float = SESSION_EXPIRE_HOURS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize handler.

        Args:
            secret_key: Secret key for signing tokens
            algorithm: JWT algorithm (default: HS256)
            expire_hours: Session lifetime from issuance
            clock: Source of the issued-at time and of "now" when checking expiry
        """
        if not secret_key:
            raise ValueError("JWT secret key must not be empty")

        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire = timedelta(hours=expire_hours)
        self._clock = clock

    def issue(self, identity: Identity) -> str:
        """
        Create a session token for an identity.

        Args:
            identity: Identity to bind the session to

        Returns:
            JWT token string
        """
        now = self._clock()
        expire = now + self.expire

        payload = {
            "iat": int(now.timestamp()),
            "exp": int(expire.timestamp()),
            "sub": identity.email,
            "email": identity.email,
            "name": identity.name,
            "role": identity.role.value,
            "jti": secrets.token_urlsafe(16),
            "type": TOKEN_TYPE,
        }

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.debug(f"Session token issued for {identity.email}")

        return token

    def verify(self, token: str) -> SessionClaims:
        """
        Verify and decode a session token.

        Args:
            token: JWT token string

        Returns:
            SessionClaims for a valid token

        Raises:
            SessionExpired: If the token's expiry has passed
            InvalidSignature: If the token is malformed, tampered, or not a session token
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                # exp and iat are checked against self._clock below
                options={"require": ["exp", "iat", "sub"], "verify_exp": False, "verify_iat": False},
            )
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid token: {e}")
            raise InvalidSignature()

        try:
            expires = float(payload["exp"])
            float(payload["iat"])
        except (TypeError, ValueError):
            logger.warning("Token carries non-numeric exp/iat")
            raise InvalidSignature()

        if self._clock().timestamp() >= expires:
            logger.warning("Token has expired")
            raise SessionExpired()

        if payload.get("type") != TOKEN_TYPE:
            logger.warning("Token is not a session token")
            raise InvalidSignature("Token is not a session token")

        try:
            role = Role(payload.get("role"))
        except ValueError:
            logger.warning(f"Token carries unknown role: {payload.get('role')!r}")
            raise InvalidSignature("Token carries unknown role")

        return SessionClaims(
            email=payload.get("email", payload["sub"]),
            name=payload.get("name", ""),
            role=role,
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            jti=payload.get("jti", ""),
        )
