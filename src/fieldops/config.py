"""
Runtime configuration.

Settings are read from ``FIELDOPS_*`` environment variables. Defaults match
a single-node demo deployment.
"""

import os
import secrets
import sys
from pathlib import Path
from typing import Mapping, Optional

from loguru import logger
from pydantic import BaseModel, Field

ENV_PREFIX = "FIELDOPS_"


class Settings(BaseModel):
    """
    Deployment settings.

    Attributes:
        jwt_secret: Secret key for signing session tokens
        jwt_algorithm: JWT algorithm (default: HS256)
        session_hours: Session lifetime from issuance
        presence_ttl_hours: Age after which an agent position is hidden
        first_user_is_admin: Whether the first registrant becomes admin
        max_admin_events: Cap on access events returned to admins
        max_admin_reports: Cap on reports returned to admins
        max_user_reports: Cap on reports returned to standard users
        host: Bind address for the HTTP adapter
        port: Bind port for the HTTP adapter
        log_level: loguru level name
    """
    jwt_secret: str = Field(default_factory=lambda: secrets.token_urlsafe(64))
    jwt_algorithm: str = "HS256"
    session_hours: float = Field(default=24, gt=0)
    presence_ttl_hours: float = Field(default=24, gt=0)
    first_user_is_admin: bool = True
    max_admin_events: int = Field(default=1000, gt=0)
    max_admin_reports: int = Field(default=1000, gt=0)
    max_user_reports: int = Field(default=100, gt=0)
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        The JWT secret is taken from FIELDOPS_JWT_SECRET, then from the file
        named by FIELDOPS_JWT_SECRET_FILE. Without either a random secret is
        generated, which invalidates all sessions on restart.
        """
        if environ is None:
            environ = os.environ

        values = {}
        for name in cls.model_fields:
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is not None and raw != "":
                values[name] = raw

        if "jwt_secret" not in values:
            secret_file = environ.get(ENV_PREFIX + "JWT_SECRET_FILE")
            if secret_file:
                values["jwt_secret"] = load_secret_file(Path(secret_file))
            else:
                logger.warning("No JWT secret configured, generated an ephemeral one")

        return cls(**values)


def load_secret_file(path: Path) -> str:
    """Read a JWT secret from file."""
    secret = path.read_text().strip()
    if not secret:
        raise ValueError(f"JWT secret file is empty: {path}")
    return secret


def configure_logging(level: str = "INFO") -> None:
    """Route loguru output to stderr at the given level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message}",
    )
