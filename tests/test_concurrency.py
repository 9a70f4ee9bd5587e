"""
Tests for optimistic locking between two sessions
"""
from datetime import timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from lams.core.database import Base, build_engine
from lams.core.errors import ConcurrentModification
from lams.core.permissions import load_permission_table
from lams.core.workflow_engine import WorkflowEngine
from lams.models.notification import NotificationStatus
from lams.models.scheme import SchemeStatus
from lams.models.sia import SiaStatus


@pytest.fixture
def two_engines(tmp_path, settings, event_bus):
    """Two workflow engines on separate sessions over one SQLite file"""
    db_engine = build_engine(f"sqlite:///{tmp_path / 'lams.db'}")
    Base.metadata.create_all(bind=db_engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    sessions = [factory(), factory()]
    permissions = load_permission_table(None)
    yield [WorkflowEngine(s, permissions=permissions, event_bus=event_bus, settings=settings) for s in sessions]
    for session in sessions:
        session.close()
    Base.metadata.drop_all(bind=db_engine)
    db_engine.dispose()


@pytest.mark.slow
class TestConcurrentModification:

    def test_stale_update_is_rejected(self, two_engines, officer, now):
        first, second = two_engines
        sia = first.create_sia(officer, now, "Bypass", "Bypass road", now, now + timedelta(days=10))

        # both sessions hold version 1
        assert second.sia.get_sia(sia.id).version == 1
        first.update_sia(officer, now, sia.id, title="Bypass, revised")

        with pytest.raises(ConcurrentModification):
            second.update_sia(officer, now, sia.id, title="Bypass, other edit")

        second.db.expire_all()
        reloaded = second.sia.get_sia(sia.id)
        assert reloaded.title == "Bypass, revised"
        assert reloaded.status == SiaStatus.DRAFT.value
        assert [e.action for e in second.history("sia", sia.id)] == ["create", "update"]

    def test_retry_after_reload_succeeds(self, two_engines, officer, now):
        first, second = two_engines
        sia = first.create_sia(officer, now, "Bypass", "Bypass road", now, now + timedelta(days=10))
        second.sia.get_sia(sia.id)
        first.update_sia(officer, now, sia.id, title="Bypass, revised")

        with pytest.raises(ConcurrentModification):
            second.publish_sia(officer, now, sia.id)

        second.db.expire_all()
        published = second.publish_sia(officer, now, sia.id)
        assert published.status == SiaStatus.PUBLISHED.value


@pytest.mark.slow
class TestSubmissionAgainstParentChange:

    def test_objection_after_window_closed_elsewhere(self, two_engines, officer, legal, citizen, now):
        first, second = two_engines
        parcel = first.register_parcel(officer, now, parcel_no="P-001", village="Wagholi",
                                       taluka="Haveli", district="Pune", area_sq_m=100)
        notice = first.create_notification(officer, now, "sec11", "Ring road", "", [parcel.id])
        first.publish_notification(legal, now, notice.id)
        first.open_objection_window(legal, now, notice.id)

        # second session still sees the window open
        assert second.notifications.get_notification(notice.id).status == \
            NotificationStatus.OBJECTION_WINDOW_OPEN.value
        first.close_objection_window(legal, now, notice.id)

        with pytest.raises(ConcurrentModification):
            second.submit_objection(citizen, now, notice.id, parcel.id,
                                    name="Sunita Patil", phone="9800000000", text="Too low")

        second.db.expire_all()
        reloaded = second.notifications.get_notification(notice.id)
        assert reloaded.status == NotificationStatus.OBJECTION_RESOLVED.value
        assert reloaded.objection_count == 0
        assert second.objections.list_objections(notification_id=notice.id) == []

    def test_objection_counter_moves_with_each_submission(self, two_engines, officer, legal, citizen, now):
        first, _ = two_engines
        parcel = first.register_parcel(officer, now, parcel_no="P-001", village="Wagholi",
                                       taluka="Haveli", district="Pune", area_sq_m=100)
        notice = first.create_notification(officer, now, "sec11", "Ring road", "", [parcel.id])
        first.publish_notification(legal, now, notice.id)
        first.open_objection_window(legal, now, notice.id)
        for text in ("Too low", "Well not valued"):
            first.submit_objection(citizen, now, notice.id, parcel.id,
                                   name="Sunita Patil", phone="9800000000", text=text)
        assert first.notifications.get_notification(notice.id).objection_count == 2

    def test_feedback_after_hearing_scheduled_elsewhere(self, two_engines, officer, citizen, now):
        first, second = two_engines
        sia = first.create_sia(officer, now, "Bypass", "Bypass road", now, now + timedelta(days=10))
        first.publish_sia(officer, now, sia.id)

        assert second.sia.get_sia(sia.id).status == SiaStatus.PUBLISHED.value
        first.schedule_hearing(officer, now, sia.id, now + timedelta(days=5), "Gram panchayat hall")

        with pytest.raises(ConcurrentModification):
            second.submit_sia_feedback(citizen, now, sia.id, "Ramesh Pawar", "9811111111", "Move the alignment")

        second.db.expire_all()
        assert second.sia.get_sia(sia.id).feedback_count == 0

    def test_application_after_scheme_closed_elsewhere(self, two_engines, officer, citizen, now):
        first, second = two_engines
        scheme = first.create_scheme(officer, now, "Sector 12 housing", "residential")
        prop = first.register_property(officer, now, "U-001", "Sector 12", 45)
        first.add_scheme_inventory(officer, now, scheme.id, prop.id)
        first.publish_scheme(officer, now, scheme.id)
        party = first.register_party(citizen, now, "Applicant", "9000000001")

        assert second.schemes.get_scheme(scheme.id).status == SchemeStatus.PUBLISHED.value
        first.close_scheme(officer, now, scheme.id)

        with pytest.raises(ConcurrentModification):
            second.submit_application(citizen, now, scheme.id, party.id)

        second.db.expire_all()
        assert second.schemes.get_scheme(scheme.id).application_count == 0
