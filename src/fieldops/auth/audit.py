"""
Access audit log and block set.

The audit log records every login outcome. Blocking is kept in a separate
set so that it can be checked on every request without scanning the log.
Block, unblock and history purge are independent operations: purging an
email's history does not lift its block.
"""

import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Set

from loguru import logger

from .models import normalize_email
from .permissions import Role

MAX_ADMIN_EVENTS = 1000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Outcome(str, Enum):
    OK = "OK"
    DENIED = "DENIED"
    BLOCKED = "BLOCKED"


@dataclass(frozen=True)
class AccessEvent:
    """
    One authentication attempt.

    Attributes:
        timestamp: When the attempt happened
        email: Email the attempt was made for
        name: Display name, empty when the identity is unknown
        source_address: Client address, "-" when unknown
        outcome: OK, DENIED or BLOCKED
    """
    timestamp: datetime
    email: str
    name: str
    source_address: str
    outcome: Outcome

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "email": self.email,
            "name": self.name,
            "source_address": self.source_address,
            "outcome": self.outcome.value,
        }


class BlockSet:
    """Thread-safe set of blocked emails."""

    def __init__(self):
        self._lock = threading.RLock()
        self._emails: Set[str] = set()

    def add(self, email: str) -> bool:
        """Block an email. Returns False if it was already blocked."""
        key = normalize_email(email)
        with self._lock:
            if key in self._emails:
                return False
            self._emails.add(key)
            return True

    def discard(self, email: str) -> bool:
        """Unblock an email. Returns False if it was not blocked."""
        key = normalize_email(email)
        with self._lock:
            if key not in self._emails:
                return False
            self._emails.remove(key)
            return True

    def __contains__(self, email) -> bool:
        key = normalize_email(email)
        with self._lock:
            return key in self._emails

    def snapshot(self) -> List[str]:
        with self._lock:
            return sorted(self._emails)


class AccessAuditLog:
    """
    Append-only log of access events.

    All operations are protected by threading.RLock. Events keep insertion
    order; reads return newest first.
    """

    def __init__(
        self,
        block_set: Optional[BlockSet] = None,
        max_admin_events: int = MAX_ADMIN_EVENTS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize log.

        Args:
            block_set: Block set updated by block/unblock
            max_admin_events: Cap on events returned to administrators
            clock: Source of event timestamps
        """
        self.block_set = block_set if block_set is not None else BlockSet()
        self.max_admin_events = max_admin_events
        self._clock = clock
        self._lock = threading.RLock()
        self._events: List[AccessEvent] = []

    def record(self, email: str, name: str, source_address: Optional[str], outcome: Outcome) -> AccessEvent:
        """Build a timestamped event and append it."""
        event = AccessEvent(
            timestamp=self._clock(),
            email=str(email or ""),
            name=name or "",
            source_address=source_address or "-",
            outcome=outcome,
        )
        self.append(event)
        return event

    def append(self, event: AccessEvent) -> None:
        with self._lock:
            self._events.append(event)
        logger.debug(f"Access event: {event.email} {event.outcome.value} from {event.source_address}")

    def list(self, caller_role, caller_email: str, limit: Optional[int] = None) -> List[AccessEvent]:
        """
        Events visible to a caller, newest first.

        Args:
            caller_role: Role of the caller
            caller_email: Email of the caller
            limit: Optional further cap on the number of events

        Returns:
            Administrators get all events (capped to max_admin_events),
            everyone else only events for their own email.
        """
        is_admin = caller_role == Role.ADMIN
        cap = self.max_admin_events if is_admin else None
        if limit is not None:
            cap = limit if cap is None else min(cap, limit)

        key = normalize_email(caller_email)
        with self._lock:
            if is_admin:
                events = list(self._events)
            else:
                events = [e for e in self._events if normalize_email(e.email) == key]

        events.reverse()
        if cap is not None:
            events = events[:max(cap, 0)]
        return events

    def block(self, email: str) -> int:
        """
        Block an email and mark its history.

        The email joins the block set first so any authorization check that
        starts after this call returns is rejected.

        Returns:
            Number of events whose outcome was changed to BLOCKED
        """
        self.block_set.add(email)

        key = normalize_email(email)
        updated = 0
        with self._lock:
            for i, event in enumerate(self._events):
                if normalize_email(event.email) == key:
                    if event.outcome is not Outcome.BLOCKED:
                        self._events[i] = replace(event, outcome=Outcome.BLOCKED)
                    updated += 1

        logger.info(f"Blocked {email}, {updated} access events marked")
        return updated

    def unblock(self, email: str) -> bool:
        """
        Lift a block. Access history is left untouched.

        Returns:
            True if the email was blocked
        """
        lifted = self.block_set.discard(email)
        if lifted:
            logger.info(f"Unblocked {email}")
        return lifted

    def delete(self, email: str) -> int:
        """
        Purge all access events for an email. Does not lift a block.

        Returns:
            Number of events removed
        """
        key = normalize_email(email)
        with self._lock:
            before = len(self._events)
            self._events = [e for e in self._events if normalize_email(e.email) != key]
            removed = before - len(self._events)

        logger.info(f"Purged {removed} access events for {email}")
        return removed

    def is_blocked(self, email: str) -> bool:
        return email in self.block_set

    def blocked_emails(self) -> List[str]:
        return self.block_set.snapshot()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
