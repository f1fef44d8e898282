"""
Report ledger.

Stores submitted field alerts. Visibility is scoped by role: administrators
see every report, standard operators only the ones they submitted.
"""

import itertools
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional

from loguru import logger

from .auth.models import AuthorizedCaller, normalize_email
from .auth.permissions import Permission, has_permission, require_permission
from .coordinates import parse_optional_point
from .errors import MissingRequiredField

REQUIRED_FIELDS = ("level", "operation", "location", "description")
COORDINATE_FIELDS = ("lat", "lng")

MAX_ADMIN_REPORTS = 1000
MAX_USER_REPORTS = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Report:
    """
    Submitted field alert.

    Attributes:
        report_id: Server-assigned sequence number
        timestamp: Server-assigned submission time
        email: Submitter email
        name: Submitter display name
        level: Alert level
        operation: Operation or alert type
        location: Free-form place description
        description: Report body
        extras: Further domain fields (equipment, transport, codes)
        lat: Latitude, or None
        lng: Longitude, or None
    """
    report_id: int
    timestamp: datetime
    email: str
    name: str
    level: str
    operation: str
    location: str
    description: str
    extras: Dict[str, str] = field(default_factory=dict)
    lat: Optional[float] = None
    lng: Optional[float] = None

    def to_dict(self) -> dict:
        data = {
            "id": self.report_id,
            "timestamp": self.timestamp.isoformat(),
            "user": {"email": self.email, "name": self.name},
            "level": self.level,
            "operation": self.operation,
            "location": self.location,
            "description": self.description,
            "lat": self.lat,
            "lng": self.lng,
        }
        data.update({k: v for k, v in self.extras.items() if k not in data})
        return data


class ReportLedger:
    """
    Thread-safe report store.

    Reports are immutable and never deleted. Listings are newest first.
    """

    def __init__(
        self,
        max_admin_reports: int = MAX_ADMIN_REPORTS,
        max_user_reports: int = MAX_USER_REPORTS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.max_admin_reports = max_admin_reports
        self.max_user_reports = max_user_reports
        self._clock = clock
        self._lock = threading.RLock()
        self._reports: List[Report] = []
        self._ids = itertools.count(1)

    def submit(self, caller: AuthorizedCaller, fields: Mapping) -> Report:
        """
        Store a new report for the caller.

        Args:
            caller: Authorized submitter
            fields: Submitted fields; required ones are level, operation,
                location and description. lat/lng are optional but paired.

        Returns:
            The stored Report

        Raises:
            Forbidden: If the caller may not submit reports
            MissingRequiredField: If any required field is absent or blank
            InvalidCoordinate: If coordinates are invalid or half-specified
        """
        require_permission(caller.email, caller.role, Permission.SUBMIT_REPORT)
        fields = fields or {}

        missing = [name for name in REQUIRED_FIELDS if not str(fields.get(name) or "").strip()]
        if missing:
            logger.warning(f"Report from {caller.email} rejected, missing: {missing}")
            raise MissingRequiredField(missing)

        point = parse_optional_point(fields.get("lat"), fields.get("lng"))

        extras = {
            str(k): str(v)
            for k, v in fields.items()
            if k not in REQUIRED_FIELDS and k not in COORDINATE_FIELDS and v is not None
            and isinstance(v, (str, int, float)) and not isinstance(v, bool)
        }

        with self._lock:
            report = Report(
                report_id=next(self._ids),
                timestamp=self._clock(),
                email=caller.email,
                name=caller.name,
                level=str(fields["level"]).strip(),
                operation=str(fields["operation"]).strip(),
                location=str(fields["location"]).strip(),
                description=str(fields["description"]).strip(),
                extras=extras,
                lat=point[0] if point else None,
                lng=point[1] if point else None,
            )
            self._reports.append(report)

        logger.info(f"Report {report.report_id} submitted by {caller.email} ({report.level})")
        return report

    def _visible(self, caller: AuthorizedCaller) -> List[Report]:
        with self._lock:
            reports = list(self._reports)
        if not has_permission(caller.role, Permission.VIEW_ALL_REPORTS):
            key = caller.key
            reports = [r for r in reports if normalize_email(r.email) == key]
        reports.reverse()
        return reports

    def _cap(self, caller: AuthorizedCaller, limit: Optional[int]) -> int:
        if has_permission(caller.role, Permission.VIEW_ALL_REPORTS):
            cap = self.max_admin_reports
        else:
            cap = self.max_user_reports
        if limit is not None:
            cap = min(cap, max(limit, 0))
        return cap

    def list(self, caller: AuthorizedCaller, limit: Optional[int] = None) -> List[Report]:
        """
        Reports visible to the caller, newest first.

        Standard operators only ever receive their own reports.
        """
        require_permission(caller.email, caller.role, Permission.VIEW_OWN_REPORTS)
        return self._visible(caller)[:self._cap(caller, limit)]

    def list_between(
        self,
        caller: AuthorizedCaller,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Report]:
        """
        Visible reports with start <= timestamp <= end, newest first.

        Either bound may be None.
        """
        require_permission(caller.email, caller.role, Permission.VIEW_OWN_REPORTS)
        reports = [
            r for r in self._visible(caller)
            if (start is None or r.timestamp >= start) and (end is None or r.timestamp <= end)
        ]
        return reports[:self._cap(caller, limit)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._reports)
