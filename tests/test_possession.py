"""
Tests for possession proceedings
"""
import hashlib
from datetime import timedelta

import pytest

from lams.core.errors import (Forbidden, IllegalTransition, ParcelPossessed,
                              PreconditionFailed, ValidationError)
from lams.models.parcel import ParcelStatus
from lams.models.possession import PossessionStatus
from lams.services.possession_service import certificate_hash
from lams.workflow.lifecycle import POSSESSION


def _photo(name="site-1.jpg", **overrides):
    item = {
        "photo_ref": f"possession/{name}",
        "lat": "18.5793",
        "lng": "73.9089",
        "sha256": hashlib.sha256(name.encode()).hexdigest(),
        "gps_source": "device",
    }
    item.update(overrides)
    return item


@pytest.fixture
def acquired(engine, officer, legal, finance, now, make_parcel):
    """Awarded parcel on a notice whose objection window is open"""
    parcel = make_parcel()
    notice = engine.create_notification(officer, now, "sec11", "Notice", "", [parcel.id])
    engine.publish_notification(legal, now, notice.id)
    engine.open_objection_window(legal, now, notice.id)
    owner = engine.register_owner(officer, now, name="Vijay", phone="9000000001")
    engine.compute_valuation(officer, now, parcel.id, "circle", 10)
    award = engine.draft_award(officer, now, parcel.id, owner.id, "cash")
    engine.approve_award(finance, now, award.id)
    return parcel, notice


@pytest.fixture
def started(engine, officer, now, acquired):
    parcel, _ = acquired
    possession = engine.schedule_possession(officer, now, parcel.id, now + timedelta(days=2), "Panchnama")
    return engine.start_possession(officer, now + timedelta(days=2), possession.id)


class TestPossessionLifecycle:

    def test_table(self):
        assert POSSESSION.allowed_actions("scheduled") == ["cancel", "start"]
        assert POSSESSION.apply("evidence_captured", "capture_evidence") == "evidence_captured"
        assert POSSESSION.is_terminal("closed")
        assert POSSESSION.is_terminal("cancelled")
        assert not POSSESSION.can("in_progress", "issue_certificate")


class TestSchedule:

    def test_requires_awarded_parcel(self, engine, officer, now, make_parcel):
        parcel = make_parcel()
        with pytest.raises(IllegalTransition) as exc_info:
            engine.schedule_possession(officer, now, parcel.id, now + timedelta(days=1))
        assert exc_info.value.details["from"] == "unaffected"

    def test_not_in_the_past(self, engine, officer, now, acquired):
        parcel, _ = acquired
        with pytest.raises(ValidationError):
            engine.schedule_possession(officer, now, parcel.id, now - timedelta(hours=1))

    def test_one_open_possession_per_parcel(self, engine, officer, now, acquired):
        parcel, _ = acquired
        first = engine.schedule_possession(officer, now, parcel.id, now + timedelta(days=1))
        with pytest.raises(PreconditionFailed):
            engine.schedule_possession(officer, now, parcel.id, now + timedelta(days=3))

        engine.cancel_possession(officer, now, first.id, "Owner unavailable")
        second = engine.schedule_possession(officer, now, parcel.id, now + timedelta(days=3))
        assert second.status == PossessionStatus.SCHEDULED.value
        assert [p.id for p in engine.possessions.list_possessions(parcel_id=parcel.id)] == [first.id, second.id]

    def test_citizen_cannot_schedule(self, engine, citizen, now, acquired):
        parcel, _ = acquired
        with pytest.raises(Forbidden):
            engine.schedule_possession(citizen, now, parcel.id, now + timedelta(days=1))

    def test_cancel_needs_reason(self, engine, officer, now, acquired):
        parcel, _ = acquired
        possession = engine.schedule_possession(officer, now, parcel.id, now + timedelta(days=1))
        with pytest.raises(ValidationError):
            engine.cancel_possession(officer, now, possession.id, " ")


class TestVisit:

    def test_cannot_start_early(self, engine, officer, now, acquired):
        parcel, _ = acquired
        possession = engine.schedule_possession(officer, now, parcel.id, now + timedelta(days=2))
        with pytest.raises(PreconditionFailed):
            engine.start_possession(officer, now + timedelta(days=1), possession.id)
        assert engine.possessions.get_possession(possession.id).status == PossessionStatus.SCHEDULED.value

    def test_evidence_before_start(self, engine, officer, now, acquired):
        parcel, _ = acquired
        possession = engine.schedule_possession(officer, now, parcel.id, now + timedelta(days=2))
        with pytest.raises(IllegalTransition):
            engine.capture_possession_evidence(officer, now, possession.id, [_photo()])

    @pytest.mark.parametrize("evidence", [
        [],
        [_photo(photo_ref="")],
        [_photo(lat=None)],
        [_photo(lat="91")],
        [_photo(lng="NaN")],
        [_photo(sha256="not-a-hash")],
        [_photo(gps_source="satellite")],
    ])
    def test_invalid_evidence(self, engine, officer, now, started, evidence):
        with pytest.raises(ValidationError):
            engine.capture_possession_evidence(officer, now, started.id, evidence)
        assert engine.possessions.get_possession(started.id).evidence == []

    def test_photo_limit(self, engine, officer, now, settings, started):
        photos = [_photo(f"site-{i}.jpg") for i in range(settings.max_possession_photos + 1)]
        with pytest.raises(ValidationError):
            engine.capture_possession_evidence(officer, now, started.id, photos)

    def test_evidence_accumulates(self, engine, officer, now, started):
        engine.capture_possession_evidence(officer, now, started.id, [_photo("a.jpg")])
        possession = engine.capture_possession_evidence(officer, now, started.id,
                                                        [_photo("b.jpg", gps_source=None)])
        assert possession.status == PossessionStatus.EVIDENCE_CAPTURED.value
        assert [e.photo_ref for e in possession.evidence] == ["possession/a.jpg", "possession/b.jpg"]
        assert possession.evidence[1].gps_source == "manual"


class TestCertificateAndClosure:

    def test_full_run(self, engine, officer, now, acquired, started):
        parcel, _ = acquired
        engine.capture_possession_evidence(officer, now, started.id, [_photo()])

        possession = engine.issue_possession_certificate(officer, now, started.id, "certificates/P-001.pdf")
        assert possession.status == PossessionStatus.CERTIFICATE_ISSUED.value
        assert possession.certificate_hash == certificate_hash(possession, parcel.parcel_no)
        assert engine.parcels.get_parcel(parcel.id).status == ParcelStatus.POSSESSED.value

        engine.update_possession_registry(officer, now, possession.id)
        closed = engine.close_possession(officer, now, possession.id)
        assert closed.status == PossessionStatus.CLOSED.value
        assert [e.action for e in engine.history("possession", possession.id)] == [
            "schedule", "start", "capture_evidence", "issue_certificate", "update_registry", "close",
        ]
        assert engine.history("parcel", parcel.id)[-1].action == "possess"

    def test_certificate_needs_evidence_stage(self, engine, officer, now, acquired, started):
        parcel, _ = acquired
        with pytest.raises(IllegalTransition):
            engine.issue_possession_certificate(officer, now, started.id, "certificates/P-001.pdf")
        assert engine.parcels.get_parcel(parcel.id).status == ParcelStatus.AWARDED.value

    def test_certificate_needs_reference(self, engine, officer, now, acquired, started):
        parcel, _ = acquired
        engine.capture_possession_evidence(officer, now, started.id, [_photo()])
        with pytest.raises(ValidationError):
            engine.issue_possession_certificate(officer, now, started.id, "")
        assert engine.parcels.get_parcel(parcel.id).status == ParcelStatus.AWARDED.value

    def test_registry_before_certificate(self, engine, officer, now, started):
        with pytest.raises(IllegalTransition):
            engine.update_possession_registry(officer, now, started.id)

    def test_no_objections_after_possession(self, engine, officer, citizen, now, acquired, started):
        parcel, notice = acquired
        engine.capture_possession_evidence(officer, now, started.id, [_photo()])
        engine.issue_possession_certificate(officer, now, started.id, "certificates/P-001.pdf")
        with pytest.raises(ParcelPossessed):
            engine.submit_objection(citizen, now, notice.id, parcel.id, name="Vijay",
                                    phone="9000000001", text="Too late to object?")

    def test_no_second_possession_once_possessed(self, engine, officer, now, acquired, started):
        parcel, _ = acquired
        engine.capture_possession_evidence(officer, now, started.id, [_photo()])
        engine.issue_possession_certificate(officer, now, started.id, "certificates/P-001.pdf")
        with pytest.raises(IllegalTransition):
            engine.schedule_possession(officer, now, parcel.id, now + timedelta(days=1))
