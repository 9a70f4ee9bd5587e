"""
Tests for statutory notifications and citizen objections
"""
from datetime import timedelta

import pytest

from lams.core.errors import (IllegalTransition, InvalidState,
                              ObjectionWindowExpired, ParcelNotAffected,
                              ValidationError)
from lams.models.notification import NotificationStatus
from lams.models.objection import ObjectionStatus
from lams.models.parcel import ParcelStatus
from lams.utils.datetime_utils import ensure_utc


@pytest.fixture
def parcels(make_parcel):
    return [make_parcel(), make_parcel(), make_parcel()]


@pytest.fixture
def notification(engine, officer, now, parcels):
    """Draft Section 11 notice covering the first two parcels"""
    return engine.create_notification(officer, now, "sec11", "Ring road Section 11",
                                      "Body", [parcels[0].id, parcels[1].id])


@pytest.fixture
def open_notification(engine, legal, now, notification):
    engine.publish_notification(legal, now, notification.id)
    return engine.open_objection_window(legal, now, notification.id)


def _objection(engine, citizen, now, notification_id, parcel_id, **overrides):
    fields = {"name": "Sunita Patil", "phone": "9800000000", "text": "Compensation is too low"}
    fields.update(overrides)
    return engine.submit_objection(citizen, now, notification_id, parcel_id, **fields)


class TestNotifications:

    def test_reference_numbers_per_type(self, engine, officer, now, parcels, notification):
        sec19 = engine.create_notification(officer, now, "sec19", "Declaration", "", [parcels[0].id])
        assert notification.ref_no == "SEC11-2024-001"
        assert sec19.ref_no == "SEC19-2024-001"

    def test_publish_moves_parcels_under_acquisition(self, engine, legal, now, parcels, notification):
        published = engine.publish_notification(legal, now, notification.id)
        assert published.status == NotificationStatus.PUBLISHED.value
        assert engine.parcels.get_parcel(parcels[0].id).status == ParcelStatus.UNDER_ACQ.value
        assert engine.parcels.get_parcel(parcels[1].id).status == ParcelStatus.UNDER_ACQ.value
        assert engine.parcels.get_parcel(parcels[2].id).status == ParcelStatus.UNAFFECTED.value

    def test_publish_requires_parcels(self, engine, officer, legal, now):
        empty = engine.create_notification(officer, now, "sec11", "No parcels")
        with pytest.raises(InvalidState):
            engine.publish_notification(legal, now, empty.id)
        assert engine.notifications.get_notification(empty.id).status == NotificationStatus.DRAFT.value

    def test_unknown_type(self, engine, officer, now):
        with pytest.raises(ValidationError):
            engine.create_notification(officer, now, "sec4", "Wrong section")

    def test_window_deadline(self, engine, now, settings, open_notification):
        assert open_notification.status == NotificationStatus.OBJECTION_WINDOW_OPEN.value
        expected = now + timedelta(days=settings.objection_window_days)
        assert ensure_utc(open_notification.objection_deadline) == expected

    def test_section19_has_no_objection_window(self, engine, officer, legal, now, parcels):
        sec19 = engine.create_notification(officer, now, "sec19", "Declaration", "", [parcels[0].id])
        engine.publish_notification(legal, now, sec19.id)
        with pytest.raises(IllegalTransition):
            engine.open_objection_window(legal, now, sec19.id)
        assert engine.archive_notification(legal, now, sec19.id).status == NotificationStatus.CLOSED.value

    def test_draft_edit(self, engine, officer, now, parcels, notification):
        updated = engine.update_notification(officer, now, notification.id, parcel_ids=[parcels[2].id])
        assert [p.id for p in updated.parcels] == [parcels[2].id]

    def test_archive_after_window(self, engine, legal, now, open_notification):
        engine.close_objection_window(legal, now, open_notification.id)
        archived = engine.archive_notification(legal, now, open_notification.id)
        assert archived.status == NotificationStatus.CLOSED.value
        assert ensure_utc(archived.closed_at) == now


class TestObjections:

    def test_submit(self, engine, citizen, now, parcels, open_notification):
        objection = _objection(engine, citizen, now, open_notification.id, parcels[0].id,
                               attachments=[{"ref": "files/deed.pdf", "size_bytes": 1024}])
        assert objection.status == ObjectionStatus.SUBMITTED.value
        assert objection.attachments[0]["ref"] == "files/deed.pdf"

    def test_parcel_outside_notice(self, engine, citizen, now, parcels, open_notification):
        with pytest.raises(ParcelNotAffected):
            _objection(engine, citizen, now, open_notification.id, parcels[2].id)

    def test_membership_checked_before_window_state(self, engine, citizen, legal, now, parcels, notification):
        # draft: window never opened
        with pytest.raises(ParcelNotAffected):
            _objection(engine, citizen, now, notification.id, parcels[2].id)
        engine.publish_notification(legal, now, notification.id)
        engine.open_objection_window(legal, now, notification.id)
        engine.close_objection_window(legal, now, notification.id)
        with pytest.raises(ParcelNotAffected):
            _objection(engine, citizen, now, notification.id, parcels[2].id)

    def test_window_not_open(self, engine, citizen, now, parcels, notification):
        with pytest.raises(IllegalTransition):
            _objection(engine, citizen, now, notification.id, parcels[0].id)

    def test_expired_window(self, engine, citizen, now, parcels, open_notification):
        late = now + timedelta(days=30, seconds=1)
        with pytest.raises(ObjectionWindowExpired):
            _objection(engine, citizen, late, open_notification.id, parcels[0].id)
        on_deadline = now + timedelta(days=30)
        assert _objection(engine, citizen, on_deadline, open_notification.id, parcels[0].id).id

    def test_no_submission_after_close(self, engine, citizen, legal, now, parcels, open_notification):
        engine.close_objection_window(legal, now, open_notification.id)
        with pytest.raises(IllegalTransition):
            _objection(engine, citizen, now, open_notification.id, parcels[0].id)

    def test_resolvable_after_window_closes(self, engine, citizen, legal, officer, now, parcels, open_notification):
        objection = _objection(engine, citizen, now, open_notification.id, parcels[0].id)
        engine.close_objection_window(legal, now, open_notification.id)
        engine.start_objection_review(legal, now, objection.id)
        resolved = engine.resolve_objection(officer, now, objection.id, "resolved", "Rate revised upward")
        assert resolved.status == ObjectionStatus.RESOLVED.value
        assert resolved.resolved_by == officer.user_id

    def test_resolution_needs_text(self, engine, citizen, officer, now, parcels, open_notification):
        objection = _objection(engine, citizen, now, open_notification.id, parcels[0].id)
        with pytest.raises(ValidationError):
            engine.resolve_objection(officer, now, objection.id, "rejected", " ")
        assert engine.objections.get_objection(objection.id).status == ObjectionStatus.SUBMITTED.value

    def test_resolved_objection_is_final(self, engine, citizen, officer, now, parcels, open_notification):
        objection = _objection(engine, citizen, now, open_notification.id, parcels[0].id)
        engine.resolve_objection(officer, now, objection.id, "rejected", "No merit")
        with pytest.raises(IllegalTransition):
            engine.resolve_objection(officer, now, objection.id, "resolved", "Changed my mind")

    def test_attachment_limit(self, engine, citizen, now, parcels, open_notification):
        attachments = [{"ref": f"files/{i}.pdf", "size_bytes": 10} for i in range(4)]
        with pytest.raises(ValidationError):
            _objection(engine, citizen, now, open_notification.id, parcels[0].id, attachments=attachments)
