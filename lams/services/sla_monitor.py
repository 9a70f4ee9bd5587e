"""
SLA monitor

Scans every time-bound state on read and reports breaches. Nothing is
mutated and nothing runs in the background; callers pass ``now``.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from lams.core import sla_clock
from lams.core.config import Settings, get_settings
from lams.core.logging_config import LoggingConfig
from lams.core.metrics import sla_breaches
from lams.models.notification import LandNotification, NotificationStatus
from lams.models.objection import Objection, ObjectionStatus
from lams.models.service_request import ServiceRequest
from lams.models.sia import HearingStatus, SiaHearing
from lams.services.service_request_service import TERMINAL_STATUSES
from lams.utils.datetime_utils import ensure_utc

logger = LoggingConfig.get_logger(__name__)


class BreachKind:
    OBJECTION_WINDOW = "objection_window"
    HEARING = "hearing"
    SERVICE_REQUEST = "service_request"
    OBJECTION_RESOLUTION = "objection_resolution"

    ALL = (OBJECTION_WINDOW, HEARING, SERVICE_REQUEST, OBJECTION_RESOLUTION)


@dataclass(frozen=True)
class SlaBreach:
    kind: str
    entity_type: str
    entity_id: int
    reference: Optional[str]
    status: str
    deadline: datetime
    overdue_seconds: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "reference": self.reference,
            "status": self.status,
            "deadline": self.deadline.isoformat(),
            "overdue_seconds": self.overdue_seconds,
        }


@dataclass(frozen=True)
class SlaStatus:
    deadline: datetime
    remaining_seconds: int
    breached: bool


def _breach(kind: str, entity_type: str, entity_id: int, reference, status: str,
            deadline: datetime, now: datetime) -> SlaBreach:
    overdue = -sla_clock.remaining(deadline, now)
    return SlaBreach(kind, entity_type, entity_id, reference, status, ensure_utc(deadline),
                     int(overdue.total_seconds()))


class SlaMonitor:
    """Lazy breach scan over notifications, hearings, objections and service requests"""

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    def objection_window_breaches(self, now: datetime) -> List[SlaBreach]:
        terminal = (NotificationStatus.OBJECTION_RESOLVED.value, NotificationStatus.CLOSED.value)
        rows = (
            self.db.query(LandNotification)
            .filter(LandNotification.status == NotificationStatus.OBJECTION_WINDOW_OPEN.value)
            .all()
        )
        return [
            _breach(BreachKind.OBJECTION_WINDOW, "notification", n.id, n.ref_no, n.status, n.objection_deadline, now)
            for n in rows
            if sla_clock.is_breached(n.objection_deadline, now, terminal, n.status)
        ]

    def hearing_breaches(self, now: datetime) -> List[SlaBreach]:
        rows = self.db.query(SiaHearing).filter(SiaHearing.status == HearingStatus.SCHEDULED.value).all()
        return [
            _breach(BreachKind.HEARING, "hearing", h.id, h.venue, h.status, h.date, now)
            for h in rows
            if sla_clock.is_breached(h.date, now, (HearingStatus.COMPLETED,), h.status)
        ]

    def service_request_breaches(self, now: datetime) -> List[SlaBreach]:
        rows = self.db.query(ServiceRequest).filter(ServiceRequest.status.notin_(TERMINAL_STATUSES)).all()
        return [
            _breach(BreachKind.SERVICE_REQUEST, "service_request", r.id, r.ref_no, r.status, r.sla_deadline, now)
            for r in rows
            if sla_clock.is_breached(r.sla_deadline, now, TERMINAL_STATUSES, r.status)
        ]

    def objection_resolution_breaches(self, now: datetime) -> List[SlaBreach]:
        open_statuses = (ObjectionStatus.SUBMITTED.value, ObjectionStatus.UNDER_REVIEW.value)
        terminal = (ObjectionStatus.RESOLVED.value, ObjectionStatus.REJECTED.value)
        days = self.settings.objection_resolution_days
        breaches = []
        for o in self.db.query(Objection).filter(Objection.status.in_(open_statuses)).all():
            deadline = sla_clock.deadline_from(o.created_at, days=days)
            if sla_clock.is_breached(deadline, now, terminal, o.status):
                breaches.append(_breach(BreachKind.OBJECTION_RESOLUTION, "objection", o.id, None,
                                        o.status, deadline, now))
        return breaches

    def scan(self, now: datetime) -> List[SlaBreach]:
        """All open breaches at ``now``, most overdue first"""
        breaches = (
            self.objection_window_breaches(now)
            + self.hearing_breaches(now)
            + self.service_request_breaches(now)
            + self.objection_resolution_breaches(now)
        )
        for kind in BreachKind.ALL:
            sla_breaches.labels(kind=kind).set(sum(1 for b in breaches if b.kind == kind))
        if breaches:
            logger.info(f"SLA scan found {len(breaches)} breaches", extra={"breaches": len(breaches)})
        return sorted(breaches, key=lambda b: (-b.overdue_seconds, b.kind, b.entity_id))

    def service_request_sla(self, request: ServiceRequest, now: datetime) -> SlaStatus:
        remaining = sla_clock.remaining(request.sla_deadline, now)
        return SlaStatus(
            deadline=ensure_utc(request.sla_deadline),
            remaining_seconds=int(remaining.total_seconds()),
            breached=sla_clock.is_breached(request.sla_deadline, now, TERMINAL_STATUSES, request.status),
        )
