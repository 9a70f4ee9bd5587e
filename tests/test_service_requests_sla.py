"""
Tests for service requests and the SLA breach scan
"""
import re
from datetime import timedelta

import pytest

from lams.core.errors import Forbidden, IllegalTransition, ValidationError
from lams.models.service_request import ServiceRequestStatus
from lams.services.sla_monitor import BreachKind
from lams.utils.datetime_utils import ensure_utc

DAY = 24 * 3600


@pytest.fixture
def published_sia(engine, officer, now):
    sia = engine.create_sia(officer, now, "Metro depot", "Depot land", now - timedelta(days=1),
                            now + timedelta(days=30))
    return engine.publish_sia(officer, now, sia.id)


class TestServiceRequests:

    def test_reference_and_deadline(self, engine, citizen, now):
        request = engine.create_service_request(citizen, now, "address_change", "Moved to Kharadi")
        assert re.fullmatch(r"SR-[0-9A-F]{8}", request.ref_no)
        assert request.status == ServiceRequestStatus.SUBMITTED.value
        assert ensure_utc(request.sla_deadline) == now + timedelta(days=7)

    @pytest.mark.parametrize("request_type,days", [
        ("duplicate_document", 15),
        ("correction", 15),
        ("noc_request", 21),
        ("passbook_request", 7),
        ("other", 30),
    ])
    def test_deadline_per_type(self, engine, citizen, now, request_type, days):
        request = engine.create_service_request(citizen, now, request_type, "Please help")
        assert ensure_utc(request.sla_deadline) == now + timedelta(days=days)

    def test_unknown_type(self, engine, citizen, now):
        with pytest.raises(ValidationError):
            engine.create_service_request(citizen, now, "tree_cutting", "Neem tree")

    def test_lifecycle(self, engine, citizen, officer, now):
        request = engine.create_service_request(citizen, now, "correction", "Spelling of surname")
        reviewing = engine.start_service_request_review(officer, now, request.id)
        assert reviewing.assigned_to == officer.user_id

        done = engine.complete_service_request(officer, now + timedelta(days=1), request.id, "Record corrected")
        assert done.status == ServiceRequestStatus.COMPLETED.value
        assert ensure_utc(done.resolved_at) == now + timedelta(days=1)
        with pytest.raises(IllegalTransition):
            engine.reject_service_request(officer, now, request.id, "Duplicate")

        actions = [e.action for e in engine.history("service_request", request.id)]
        assert actions == ["submit", "start_review", "complete"]

    def test_reject_from_submitted(self, engine, citizen, officer, now):
        request = engine.create_service_request(citizen, now, "other", "Unclear request")
        rejected = engine.reject_service_request(officer, now, request.id, "Not enough detail")
        assert rejected.status == ServiceRequestStatus.REJECTED.value

    def test_resolution_required(self, engine, citizen, officer, now):
        request = engine.create_service_request(citizen, now, "other", "Unclear request")
        with pytest.raises(ValidationError):
            engine.complete_service_request(officer, now, request.id, "")

    def test_citizen_cannot_review(self, engine, citizen, now):
        request = engine.create_service_request(citizen, now, "other", "Unclear request")
        with pytest.raises(Forbidden):
            engine.start_service_request_review(citizen, now, request.id)

    def test_request_sla(self, engine, citizen, officer, now):
        request = engine.create_service_request(citizen, now, "address_change", "Moved")
        status = engine.sla.service_request_sla(request, now + timedelta(days=8))
        assert status.breached
        assert status.remaining_seconds == -DAY

        engine.complete_service_request(officer, now + timedelta(days=8), request.id, "Done late")
        assert not engine.sla.service_request_sla(request, now + timedelta(days=9)).breached


class TestSlaScan:

    def test_most_overdue_first(self, engine, citizen, officer, auditor, now, published_sia):
        late_request = engine.create_service_request(citizen, now, "address_change", "Moved")
        engine.create_service_request(citizen, now, "noc_request", "NOC for loan")
        finished = engine.create_service_request(citizen, now, "passbook_request", "Passbook")
        engine.complete_service_request(officer, now, finished.id, "Issued")
        hearing = engine.schedule_hearing(officer, now, published_sia.id, now + timedelta(days=2), "Hall A")

        breaches = engine.sla_scan(auditor, now + timedelta(days=10))

        assert [(b.kind, b.entity_id) for b in breaches] == [
            (BreachKind.HEARING, hearing.id),
            (BreachKind.SERVICE_REQUEST, late_request.id),
        ]
        assert breaches[0].overdue_seconds == 8 * DAY
        assert breaches[1].reference == late_request.ref_no
        assert breaches[1].to_dict()["deadline"] == (now + timedelta(days=7)).isoformat()

    def test_nothing_breached_on_deadline(self, engine, citizen, auditor, now):
        engine.create_service_request(citizen, now, "address_change", "Moved")
        assert engine.sla_scan(auditor, now + timedelta(days=7)) == []

    def test_completed_hearing_is_not_breached(self, engine, officer, auditor, now, published_sia):
        hearing = engine.schedule_hearing(officer, now, published_sia.id, now + timedelta(days=1), "Hall A")
        engine.complete_hearing(officer, now + timedelta(days=1), published_sia.id, hearing.id, "files/m.pdf")
        assert engine.sla_scan(auditor, now + timedelta(days=5)) == []

    def test_objection_window_and_resolution(self, engine, officer, legal, citizen, auditor, now, make_parcel):
        parcel = make_parcel()
        notice = engine.create_notification(officer, now, "sec11", "Notice", "", [parcel.id])
        engine.publish_notification(legal, now, notice.id)
        engine.open_objection_window(legal, now, notice.id)
        objection = engine.submit_objection(citizen, now, notice.id, parcel.id, name="Kiran",
                                            phone="9700000000", text="Boundary is wrong")

        breaches = engine.sla_scan(auditor, now + timedelta(days=61))
        assert [(b.kind, b.entity_id) for b in breaches] == [
            (BreachKind.OBJECTION_WINDOW, notice.id),
            (BreachKind.OBJECTION_RESOLUTION, objection.id),
        ]
        assert breaches[0].overdue_seconds == 31 * DAY
        assert breaches[1].overdue_seconds == DAY

        engine.close_objection_window(legal, now + timedelta(days=61), notice.id)
        engine.resolve_objection(legal, now + timedelta(days=61), objection.id, "rejected", "Survey confirms boundary")
        assert engine.sla_scan(auditor, now + timedelta(days=62)) == []

    def test_scan_requires_report_permission(self, engine, citizen, now):
        with pytest.raises(Forbidden):
            engine.sla_scan(citizen, now)
