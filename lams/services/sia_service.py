"""
Social Impact Assessment case lifecycle: drafting, publication, hearings,
citizen feedback, report and closure
"""
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional

from lams.core.errors import (IllegalTransition, InvalidState, NotFound,
                              PreconditionFailed, ValidationError)
from lams.core.logging_config import LoggingConfig
from lams.core.permissions import Actor
from lams.models.sia import (FeedbackStatus, HearingStatus, Sia, SiaFeedback,
                             SiaHearing, SiaReport, SiaStatus)
from lams.services.base import BaseService
from lams.services.sequence_service import next_number
from lams.utils.datetime_utils import ensure_utc
from lams.workflow.lifecycle import FEEDBACK, HEARING, SIA

logger = LoggingConfig.get_logger(__name__)

_EDITABLE_FIELDS = ("title", "description", "start_date", "end_date")


class SiaService(BaseService):

    def create_sia(
        self,
        actor: Actor,
        now: datetime,
        title: str,
        description: str,
        start_date: datetime,
        end_date: datetime,
    ) -> Sia:
        """Create a draft case; content is validated on publish, not here"""
        if start_date is None or end_date is None:
            raise ValidationError("start_date and end_date are required")
        sia = Sia(
            notice_no=next_number(self.db, "SIA", now),
            title=title or "",
            description=description or "",
            start_date=start_date,
            end_date=end_date,
            status=SiaStatus.DRAFT.value,
            created_by=actor.user_id,
            created_at=now,
        )
        self.db.add(sia)
        self.db.flush()
        self.audit.record("sia", sia.id, "create", actor, now, to_status=sia.status,
                          event_data={"notice_no": sia.notice_no})
        logger.info(f"Created SIA {sia.notice_no}", extra={"sia_id": sia.id})
        return sia

    def get_sia(self, sia_id: int, lock: bool = False) -> Sia:
        return self._get(Sia, sia_id, "sia", lock=lock)

    def list_sias(self, status: Optional[str] = None) -> List[Sia]:
        query = self.db.query(Sia)
        if status:
            query = query.filter(Sia.status == status)
        return query.order_by(Sia.id).all()

    def update_draft(self, actor: Actor, now: datetime, sia_id: int, **changes) -> Sia:
        sia = self.get_sia(sia_id, lock=True)
        unknown = set(changes) - set(_EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"fields {sorted(unknown)} cannot be edited", {"fields": sorted(unknown)})
        SIA.apply(sia.status, "update")
        for key, value in changes.items():
            if value is not None:
                setattr(sia, key, value)
        self._transition(SIA, sia, "update", actor, now, event_data={"fields": sorted(changes)})
        return sia

    def publish(self, actor: Actor, now: datetime, sia_id: int) -> Sia:
        sia = self.get_sia(sia_id, lock=True)
        SIA.apply(sia.status, "publish")

        problems = []
        if not (sia.title or "").strip():
            problems.append("title is empty")
        if not (sia.description or "").strip():
            problems.append("description is empty")
        if ensure_utc(sia.start_date) >= ensure_utc(sia.end_date):
            problems.append("start_date must be before end_date")
        if problems:
            raise InvalidState(f"SIA {sia.notice_no} cannot be published: {'; '.join(problems)}",
                               {"sia_id": sia.id, "problems": problems})

        sia.published_at = now
        self._transition(SIA, sia, "publish", actor, now, domain_event="SiaPublished",
                         event_data={"notice_no": sia.notice_no})
        logger.info(f"Published SIA {sia.notice_no}", extra={"sia_id": sia.id})
        return sia

    def schedule_hearing(
        self,
        actor: Actor,
        now: datetime,
        sia_id: int,
        date: datetime,
        venue: str,
        agenda: Optional[str] = None,
    ) -> SiaHearing:
        sia = self.get_sia(sia_id, lock=True)
        SIA.apply(sia.status, "schedule_hearing")
        if date is None:
            raise ValidationError("hearing date is required", {"field": "date"})
        if not venue or not venue.strip():
            raise ValidationError("hearing venue is required", {"field": "venue"})

        hearing = SiaHearing(date=date, venue=venue.strip(), agenda=agenda,
                             status=HearingStatus.SCHEDULED.value)
        sia.hearings.append(hearing)
        self.db.flush()
        self._transition(
            SIA, sia, "schedule_hearing", actor, now,
            domain_event="HearingScheduled",
            event_data={"hearing_id": hearing.id, "date": ensure_utc(date).isoformat(), "venue": hearing.venue},
        )
        return hearing

    def complete_hearing(
        self,
        actor: Actor,
        now: datetime,
        sia_id: int,
        hearing_id: int,
        minutes_ref: str,
        attendees: Optional[List[str]] = None,
    ) -> SiaHearing:
        """
        Complete one scheduled hearing

        The case moves to ``hearing_completed`` once no scheduled hearing remains.
        """
        sia = self.get_sia(sia_id, lock=True)
        hearing = self._get(SiaHearing, hearing_id, "hearing", lock=True)
        if hearing.sia_id != sia.id:
            raise NotFound("hearing", hearing_id)
        if sia.status != SiaStatus.HEARING_SCHEDULED.value:
            raise IllegalTransition("sia", sia.status, "complete_hearing")
        HEARING.apply(hearing.status, "complete")
        if not minutes_ref or not minutes_ref.strip():
            raise ValidationError("minutes_ref is required to complete a hearing", {"hearing_id": hearing.id})

        hearing.minutes_ref = minutes_ref
        hearing.attendees = list(attendees or [])
        hearing.completed_at = now
        self._transition(HEARING, hearing, "complete", actor, now,
                         event_data={"sia_id": sia.id, "attendees": len(hearing.attendees)})

        remaining = [h for h in sia.hearings if h.status == HearingStatus.SCHEDULED.value]
        if not remaining:
            self._transition(SIA, sia, "complete_hearing", actor, now, event_data={"hearing_id": hearing.id})
        return hearing

    def submit_feedback(
        self,
        now: datetime,
        sia_id: int,
        citizen_name: str,
        citizen_contact: str,
        text: str,
        attachment_ref: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> SiaFeedback:
        """Citizen feedback, accepted while the case is published and inside its window"""
        sia = self.get_sia(sia_id, lock=True)
        if sia.status != SiaStatus.PUBLISHED.value:
            raise IllegalTransition("sia", sia.status, "submit_feedback")
        if not (ensure_utc(sia.start_date) <= ensure_utc(now) <= ensure_utc(sia.end_date)):
            raise PreconditionFailed(
                f"feedback window of SIA {sia.notice_no} is not open",
                {"sia_id": sia.id, "start_date": ensure_utc(sia.start_date).isoformat(),
                 "end_date": ensure_utc(sia.end_date).isoformat()},
            )
        for name, value in (("citizen_name", citizen_name), ("citizen_contact", citizen_contact), ("text", text)):
            if not value or not value.strip():
                raise ValidationError(f"{name} is required", {"field": name})

        feedback = SiaFeedback(
            sia_id=sia.id,
            citizen_name=citizen_name.strip(),
            citizen_contact=citizen_contact.strip(),
            text=text,
            attachment_ref=attachment_ref,
            status=FeedbackStatus.RECEIVED.value,
            created_at=now,
        )
        sia.feedback_count = (sia.feedback_count or 0) + 1
        self.db.add(feedback)
        self.db.flush()
        self.audit.record("sia_feedback", feedback.id, "submit", actor, now, to_status=feedback.status,
                          event_data={"sia_id": sia.id}, domain_event="SiaFeedbackReceived")
        return feedback

    def review_feedback(self, actor: Actor, now: datetime, feedback_id: int, action: str) -> SiaFeedback:
        """Move feedback with ``start_review``, ``accept`` or ``reject``"""
        feedback = self._get(SiaFeedback, feedback_id, "sia_feedback", lock=True)
        self._transition(FEEDBACK, feedback, action, actor, now, event_data={"sia_id": feedback.sia_id})
        return feedback

    def build_summary(self, sia: Sia) -> Dict[str, Any]:
        by_status = Counter(f.status for f in sia.feedback)
        completed = [h for h in sia.hearings if h.status == HearingStatus.COMPLETED.value]
        last = max((ensure_utc(h.date) for h in completed), default=None)
        return {
            "notice_no": sia.notice_no,
            "feedback_total": len(sia.feedback),
            "feedback_by_status": {s.value: by_status.get(s.value, 0) for s in FeedbackStatus},
            "hearings_total": len(sia.hearings),
            "hearings_completed": len(completed),
            "last_hearing_date": last.isoformat() if last else None,
        }

    def generate_report(self, actor: Actor, now: datetime, sia_id: int,
                        report_ref: Optional[str] = None) -> SiaReport:
        sia = self.get_sia(sia_id, lock=True)
        SIA.apply(sia.status, "generate_report")
        if not any(h.status == HearingStatus.COMPLETED.value for h in sia.hearings):
            raise InvalidState(f"SIA {sia.notice_no} has no completed hearing", {"sia_id": sia.id})

        report = SiaReport(summary=self.build_summary(sia), report_ref=report_ref,
                           generated_by=actor.user_id, generated_at=now)
        sia.reports.append(report)
        self.db.flush()
        self._transition(SIA, sia, "generate_report", actor, now, domain_event="SiaReportGenerated",
                         event_data={"report_id": report.id})
        return report

    def close(self, actor: Actor, now: datetime, sia_id: int) -> Sia:
        sia = self.get_sia(sia_id, lock=True)
        SIA.apply(sia.status, "close")
        sia.closed_at = now
        self._transition(SIA, sia, "close", actor, now, domain_event="SiaClosed",
                         event_data={"notice_no": sia.notice_no})
        return sia
