"""
Service context.

Owns every shared collection of a running service and hands them to
request handlers explicitly.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from loguru import logger

from .auth import (
    AccessAuditLog,
    AuthorizationGuard,
    BlockSet,
    CredentialStore,
    JWTHandler,
    UserManager,
)
from .config import Settings
from .presence import AgentPresenceTracker
from .reports import ReportLedger


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ServiceContext:
    settings: Settings
    store: CredentialStore
    jwt: JWTHandler
    block_set: BlockSet
    audit: AccessAuditLog
    guard: AuthorizationGuard
    users: UserManager
    reports: ReportLedger
    presence: AgentPresenceTracker


def build_context(
    settings: Optional[Settings] = None,
    clock: Callable[[], datetime] = _utcnow,
) -> ServiceContext:
    """
    Create all components for one service instance.

    Args:
        settings: Deployment settings (default: read from environment)
        clock: Shared time source, replaceable in tests
    """
    if settings is None:
        settings = Settings.from_env()

    store = CredentialStore(first_user_is_admin=settings.first_user_is_admin, clock=clock)
    jwt_handler = JWTHandler(
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        expire_hours=settings.session_hours,
        clock=clock,
    )
    block_set = BlockSet()
    audit = AccessAuditLog(block_set, max_admin_events=settings.max_admin_events, clock=clock)

    context = ServiceContext(
        settings=settings,
        store=store,
        jwt=jwt_handler,
        block_set=block_set,
        audit=audit,
        guard=AuthorizationGuard(jwt_handler, block_set),
        users=UserManager(store, jwt_handler, audit),
        reports=ReportLedger(
            max_admin_reports=settings.max_admin_reports,
            max_user_reports=settings.max_user_reports,
            clock=clock,
        ),
        presence=AgentPresenceTracker(ttl_hours=settings.presence_ttl_hours, clock=clock),
    )

    logger.info(
        f"Service context ready (session {settings.session_hours}h, "
        f"presence TTL {settings.presence_ttl_hours}h)"
    )
    return context
