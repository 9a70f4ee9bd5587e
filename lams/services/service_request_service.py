"""
Citizen service requests with per-type SLA deadlines
"""
import secrets
from datetime import datetime
from typing import Any, Dict, List, Optional

from lams.core import sla_clock
from lams.core.config import Settings, get_settings
from lams.core.errors import ValidationError
from lams.core.logging_config import LoggingConfig
from lams.core.permissions import Actor
from lams.models.scheme import Party, Property
from lams.models.service_request import (ServiceRequest, ServiceRequestStatus,
                                         ServiceRequestType)
from lams.services.base import BaseService
from lams.workflow.lifecycle import SERVICE_REQUEST

logger = LoggingConfig.get_logger(__name__)

TERMINAL_STATUSES = (ServiceRequestStatus.COMPLETED.value, ServiceRequestStatus.REJECTED.value)


def generate_ref_no() -> str:
    """SR- followed by 8 random uppercase hex characters"""
    return f"SR-{secrets.token_hex(4).upper()}"


class ServiceRequestService(BaseService):

    def __init__(self, db, audit=None, settings: Optional[Settings] = None):
        super().__init__(db, audit)
        self.settings = settings or get_settings()

    def sla_days(self, request_type: str) -> int:
        table = self.settings.service_request_sla_days
        return table.get(request_type, table.get(ServiceRequestType.OTHER.value, 30))

    def create_request(
        self,
        now: datetime,
        request_type: str,
        description: str,
        party_id: Optional[int] = None,
        property_id: Optional[int] = None,
        data: Optional[Dict[str, Any]] = None,
        actor: Optional[Actor] = None,
    ) -> ServiceRequest:
        try:
            rtype = ServiceRequestType(str(getattr(request_type, "value", request_type))).value
        except ValueError:
            raise ValidationError(f"unknown service request type {request_type!r}",
                                  {"allowed": [t.value for t in ServiceRequestType]})
        if not description or not description.strip():
            raise ValidationError("description is required", {"field": "description"})
        if party_id is not None:
            self._get(Party, party_id, "party")
        if property_id is not None:
            self._get(Property, property_id, "property")

        ref_no = generate_ref_no()
        while self.db.query(ServiceRequest.id).filter(ServiceRequest.ref_no == ref_no).first():
            ref_no = generate_ref_no()

        request = ServiceRequest(
            ref_no=ref_no,
            request_type=rtype,
            description=description,
            data=data or {},
            party_id=party_id,
            property_id=property_id,
            status=ServiceRequestStatus.SUBMITTED.value,
            sla_deadline=sla_clock.deadline_from(now, days=self.sla_days(rtype)),
            created_at=now,
        )
        self.db.add(request)
        self.db.flush()
        self.audit.record("service_request", request.id, "submit", actor, now, to_status=request.status,
                          event_data={"ref_no": request.ref_no, "request_type": rtype,
                                      "sla_deadline": request.sla_deadline.isoformat()},
                          domain_event="ServiceRequestSubmitted")
        logger.info(f"Service request {request.ref_no} submitted", extra={"service_request_id": request.id})
        return request

    def get_request(self, request_id: int, lock: bool = False) -> ServiceRequest:
        return self._get(ServiceRequest, request_id, "service_request", lock=lock)

    def list_requests(self, status: Optional[str] = None, request_type: Optional[str] = None) -> List[ServiceRequest]:
        query = self.db.query(ServiceRequest)
        if status:
            query = query.filter(ServiceRequest.status == status)
        if request_type:
            query = query.filter(ServiceRequest.request_type == request_type)
        return query.order_by(ServiceRequest.id).all()

    def start_review(self, actor: Actor, now: datetime, request_id: int,
                     assigned_to: Optional[str] = None) -> ServiceRequest:
        request = self.get_request(request_id, lock=True)
        SERVICE_REQUEST.apply(request.status, "start_review")
        request.assigned_to = assigned_to or actor.user_id
        self._transition(SERVICE_REQUEST, request, "start_review", actor, now,
                         event_data={"assigned_to": request.assigned_to})
        return request

    def _finish(self, actor: Actor, now: datetime, request_id: int, action: str, resolution: str) -> ServiceRequest:
        request = self.get_request(request_id, lock=True)
        SERVICE_REQUEST.apply(request.status, action)
        if not resolution or not resolution.strip():
            raise ValidationError("resolution text is required", {"service_request_id": request.id})
        request.resolution = resolution
        request.resolved_at = now
        breached = sla_clock.is_breached(request.sla_deadline, now, TERMINAL_STATUSES, request.status)
        self._transition(SERVICE_REQUEST, request, action, actor, now, domain_event="ServiceRequestResolved",
                         event_data={"ref_no": request.ref_no, "outcome": action, "sla_breached": breached})
        return request

    def complete(self, actor: Actor, now: datetime, request_id: int, resolution: str) -> ServiceRequest:
        return self._finish(actor, now, request_id, "complete", resolution)

    def reject(self, actor: Actor, now: datetime, request_id: int, resolution: str) -> ServiceRequest:
        return self._finish(actor, now, request_id, "reject", resolution)
