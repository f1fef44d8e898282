"""
Agent presence tracker.

Keeps the latest known position per identity. Entries older than the
staleness horizon are evicted lazily when the positions are read.
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from loguru import logger

from .auth.models import AuthorizedCaller, normalize_email
from .auth.permissions import Permission, require_permission
from .coordinates import parse_point

PRESENCE_TTL_HOURS = 24
DEFAULT_COLOR = "green"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AgentPosition:
    """
    Latest known location of one identity.

    Attributes:
        email: Identity email
        name: Display name
        lat: Latitude
        lng: Longitude
        color: Color or status code shown on the map
        updated_at: Time of the last position report
    """
    email: str
    name: str
    lat: float
    lng: float
    color: str
    updated_at: datetime

    def to_dict(self) -> dict:
        return {
            "email": self.email,
            "name": self.name,
            "lat": self.lat,
            "lng": self.lng,
            "color": self.color,
            "updated_at": self.updated_at.isoformat(),
        }


class AgentPresenceTracker:
    """
    Thread-safe map of email to latest position.

    At most one entry exists per email.
    """

    def __init__(
        self,
        ttl_hours: float = PRESENCE_TTL_HOURS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize tracker.

        Args:
            ttl_hours: Staleness horizon
            clock: Source of the current time
        """
        self.ttl = timedelta(hours=ttl_hours)
        self._clock = clock
        self._lock = threading.RLock()
        self._positions: Dict[str, AgentPosition] = {}

    def upsert(self, caller: AuthorizedCaller, lat, lng, color: Optional[str] = None) -> AgentPosition:
        """
        Replace the caller's position.

        Raises:
            Forbidden: If the caller may not report positions
            InvalidCoordinate: If lat/lng are missing, non-numeric or out of range
        """
        require_permission(caller.email, caller.role, Permission.REPORT_POSITION)
        lat, lng = parse_point(lat, lng)
        color = str(color).strip() if color is not None and str(color).strip() else DEFAULT_COLOR

        with self._lock:
            position = AgentPosition(
                email=caller.email,
                name=caller.name,
                lat=lat,
                lng=lng,
                color=color,
                updated_at=self._clock(),
            )
            self._positions[caller.key] = position

        logger.debug(f"Position updated for {caller.email}: {lat:.5f},{lng:.5f} {color}")
        return position

    def list(self) -> List[AgentPosition]:
        """
        Live positions, most recently updated first.

        Stale entries are removed as a side effect.
        """
        cutoff = self._clock() - self.ttl
        with self._lock:
            stale = [key for key, pos in self._positions.items() if pos.updated_at < cutoff]
            for key in stale:
                del self._positions[key]
            positions = list(self._positions.values())

        if stale:
            logger.debug(f"Evicted {len(stale)} stale positions")

        positions.sort(key=lambda p: p.updated_at, reverse=True)
        return positions

    def remove(self, email: str) -> bool:
        """Withdraw a position. Returns False if none was tracked."""
        with self._lock:
            removed = self._positions.pop(normalize_email(email), None) is not None
        if removed:
            logger.debug(f"Position removed for {email}")
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._positions)
