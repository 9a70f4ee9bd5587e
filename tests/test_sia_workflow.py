"""
Tests for the Social Impact Assessment workflow
"""
from datetime import timedelta

import pytest

from lams.core.errors import (Forbidden, IllegalTransition, InvalidState,
                              PreconditionFailed, ValidationError)
from lams.models.sia import SiaStatus
from lams.utils.datetime_utils import ensure_utc


@pytest.fixture
def sia(engine, officer, now):
    return engine.create_sia(
        officer, now, "Ring road widening", "Impact of the ring road on three villages",
        now - timedelta(days=1), now + timedelta(days=30),
    )


@pytest.fixture
def published_sia(engine, officer, now, sia):
    return engine.publish_sia(officer, now, sia.id)


class TestSiaWorkflow:
    """End-to-end SIA lifecycle through the engine"""

    def test_create_assigns_notice_number(self, engine, officer, now, sia):
        assert sia.status == SiaStatus.DRAFT.value
        assert sia.notice_no == "SIA-2024-001"
        second = engine.create_sia(officer, now, "t", "d", now, now + timedelta(days=1))
        assert second.notice_no == "SIA-2024-002"

    def test_full_lifecycle(self, engine, officer, citizen, now, event_bus, published_sia):
        received = []
        event_bus.subscribe("*", lambda e: received.append(e.name))
        sia_id = published_sia.id

        feedback = engine.submit_sia_feedback(citizen, now, sia_id, "Asha", "asha@example.org",
                                              "Please move the alignment north")
        hearing = engine.schedule_hearing(officer, now, sia_id, now + timedelta(days=5), "Gram Panchayat hall")
        engine.review_sia_feedback(officer, now, feedback.id, "accept")
        engine.complete_hearing(officer, now + timedelta(days=5), sia_id, hearing.id, "files/minutes-1.pdf",
                                ["Sarpanch", "Tehsildar"])
        report = engine.generate_sia_report(officer, now + timedelta(days=6), sia_id, "files/report.pdf")
        closed = engine.close_sia(officer, now + timedelta(days=7), sia_id)

        assert closed.status == SiaStatus.CLOSED.value
        assert report.summary["feedback_total"] == 1
        assert report.summary["feedback_by_status"]["accepted"] == 1
        assert report.summary["hearings_completed"] == 1
        assert received == [
            "SiaFeedbackReceived", "HearingScheduled", "SiaReportGenerated", "SiaClosed",
        ]

        actions = [e.action for e in engine.history("sia", sia_id)]
        assert actions == [
            "create", "publish", "schedule_hearing", "complete_hearing", "generate_report", "close",
        ]

    def test_publish_requires_content(self, engine, officer, now):
        sia = engine.create_sia(officer, now, "", "", now, now + timedelta(days=1))
        with pytest.raises(InvalidState) as exc_info:
            engine.publish_sia(officer, now, sia.id)
        assert "title is empty" in exc_info.value.details["problems"]
        assert engine.sia.get_sia(sia.id).status == SiaStatus.DRAFT.value

    def test_publish_requires_window_order(self, engine, officer, now):
        sia = engine.create_sia(officer, now, "t", "d", now + timedelta(days=2), now)
        with pytest.raises(InvalidState):
            engine.publish_sia(officer, now, sia.id)

    def test_published_case_is_not_editable(self, engine, officer, now, published_sia):
        with pytest.raises(IllegalTransition):
            engine.update_sia(officer, now, published_sia.id, title="changed")
        assert engine.sia.get_sia(published_sia.id).title == "Ring road widening"

    def test_draft_update(self, engine, officer, now, sia):
        updated = engine.update_sia(officer, now, sia.id, title="Ring road, phase 2")
        assert updated.title == "Ring road, phase 2"
        assert updated.status == SiaStatus.DRAFT.value

    def test_feedback_outside_window(self, engine, citizen, now, published_sia):
        late = now + timedelta(days=31)
        with pytest.raises(PreconditionFailed):
            engine.submit_sia_feedback(citizen, late, published_sia.id, "Ravi", "98xxxx", "too late")

    def test_feedback_on_draft_is_illegal(self, engine, citizen, now, sia):
        with pytest.raises(IllegalTransition):
            engine.submit_sia_feedback(citizen, now, sia.id, "Ravi", "98xxxx", "text")

    def test_feedback_requires_text(self, engine, citizen, now, published_sia):
        with pytest.raises(ValidationError):
            engine.submit_sia_feedback(citizen, now, published_sia.id, "Ravi", "98xxxx", "   ")

    def test_case_stays_scheduled_until_every_hearing_completes(self, engine, officer, now, published_sia):
        first = engine.schedule_hearing(officer, now, published_sia.id, now + timedelta(days=2), "Hall A")
        second = engine.schedule_hearing(officer, now, published_sia.id, now + timedelta(days=4), "Hall B")

        engine.complete_hearing(officer, now, published_sia.id, first.id, "files/a.pdf")
        assert engine.sia.get_sia(published_sia.id).status == SiaStatus.HEARING_SCHEDULED.value

        engine.complete_hearing(officer, now, published_sia.id, second.id, "files/b.pdf")
        assert engine.sia.get_sia(published_sia.id).status == SiaStatus.HEARING_COMPLETED.value

    def test_hearing_needs_minutes(self, engine, officer, now, published_sia):
        hearing = engine.schedule_hearing(officer, now, published_sia.id, now, "Hall A")
        with pytest.raises(ValidationError):
            engine.complete_hearing(officer, now, published_sia.id, hearing.id, "")

    def test_report_before_hearing_is_illegal(self, engine, officer, now, published_sia):
        with pytest.raises(IllegalTransition):
            engine.generate_sia_report(officer, now, published_sia.id)

    def test_citizen_cannot_publish(self, engine, citizen, now, sia):
        with pytest.raises(Forbidden):
            engine.publish_sia(citizen, now, sia.id)

    def test_events_timestamps_use_caller_clock(self, engine, officer, now, published_sia):
        events = engine.history("sia", published_sia.id)
        assert all(ensure_utc(e.occurred_at) == now for e in events)
