"""
WorkflowEngine - single entry point for every workflow verb

Each mutating verb runs as:
permission check -> transaction -> state machine call(s) -> audit events ->
commit -> post-commit domain events.

The engine owns the rules that span entities (possessed parcels, missing
valuations, inventory allotted elsewhere, parcel status following notices
and awards). Services below it own one aggregate each and never commit.
"""
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from lams.core.config import Settings, get_settings
from lams.core.errors import (ConcurrentModification, Forbidden,
                              InventoryConflict, ParcelPossessed,
                              ValuationMissing, WorkflowError)
from lams.core.events import EventBus
from lams.core.logging_config import LoggingConfig
from lams.core.metrics import draws_total, workflow_transitions_total
from lams.core.permissions import (Actor, Permission, PermissionTable,
                                   load_permission_table)
from lams.models.parcel import ParcelStatus
from lams.services.compensation_service import CompensationService
from lams.services.draw_service import DrawService
from lams.services.notification_service import NotificationService
from lams.services.objection_service import (ObjectionService,
                                             check_parcel_membership)
from lams.services.parcel_service import ParcelService
from lams.services.possession_service import PossessionService
from lams.services.scheme_service import SchemeService
from lams.services.service_request_service import ServiceRequestService
from lams.services.sia_service import SiaService
from lams.services.sla_monitor import SlaMonitor
from lams.services.workflow_event_service import WorkflowEventService

logger = LoggingConfig.get_logger(__name__)


class WorkflowEngine:
    """
    Facade over the workflow services

    One instance wraps one SQLAlchemy session. Every mutating verb takes the
    acting ``Actor`` and the current time ``now``; nothing here reads the
    system clock.
    """

    def __init__(
        self,
        db: Session,
        permissions: Optional[PermissionTable] = None,
        event_bus: Optional[EventBus] = None,
        settings: Optional[Settings] = None,
        dispatch: Optional[Callable[..., Any]] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.permissions = permissions or load_permission_table(self.settings.permission_table_path)
        self.event_bus = event_bus or EventBus(
            max_attempts=self.settings.event_retry_attempts,
            base_delay=self.settings.event_retry_base_delay_seconds,
            max_failures=self.settings.event_failure_log_size,
        )
        self.dispatch = dispatch

        self.audit = WorkflowEventService(db)
        self.parcels = ParcelService(db, self.audit)
        self.possessions = PossessionService(db, self.audit, self.settings)
        self.sia = SiaService(db, self.audit)
        self.notifications = NotificationService(db, self.audit, self.settings)
        self.objections = ObjectionService(db, self.audit, self.settings)
        self.compensation = CompensationService(db, self.audit, self.settings)
        self.schemes = SchemeService(db, self.audit)
        self.draws = DrawService(db, self.audit)
        self.service_requests = ServiceRequestService(db, self.audit, self.settings)
        self.sla = SlaMonitor(db, self.settings)

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self, entity: str, action: str):
        """
        Run the body as one transaction

        Commits on success and publishes the queued domain events afterwards.
        Any exception rolls back, so the entity is left exactly as it was.
        """
        try:
            yield
            self.db.commit()
        except (StaleDataError, IntegrityError) as e:
            self.db.rollback()
            self.audit.take_pending()
            workflow_transitions_total.labels(entity=entity, action=action, outcome="conflict").inc()
            logger.warning(
                f"Concurrent modification during {entity}.{action}",
                extra={"entity": entity, "action": action, "error": str(e)},
            )
            raise ConcurrentModification(
                f"{entity} was modified by another transaction; reload and retry",
                {"entity": entity, "action": action},
            ) from e
        except WorkflowError as e:
            self.db.rollback()
            self.audit.take_pending()
            workflow_transitions_total.labels(entity=entity, action=action, outcome="rejected").inc()
            logger.info(
                f"{entity}.{action} rejected: {e.message}",
                extra={"entity": entity, "action": action, "error_code": e.code},
            )
            raise
        except Exception:
            self.db.rollback()
            self.audit.take_pending()
            workflow_transitions_total.labels(entity=entity, action=action, outcome="error").inc()
            logger.error(f"{entity}.{action} failed", exc_info=True, extra={"entity": entity, "action": action})
            raise

        workflow_transitions_total.labels(entity=entity, action=action, outcome="committed").inc()
        events = self.audit.take_pending()
        if events and self.dispatch is not None:
            self.dispatch(self.event_bus.publish, events)
        elif events:
            self.event_bus.publish(events)

    def _authorize(self, actor: Actor, permission: str, entity: str, action: str) -> None:
        try:
            self.permissions.check(actor, permission)
        except Forbidden:
            workflow_transitions_total.labels(entity=entity, action=action, outcome="forbidden").inc()
            raise

    def _run(self, actor: Actor, permission: str, entity: str, action: str, fn, *args, **kwargs):
        self._authorize(actor, permission, entity, action)
        with self.transaction(entity, action):
            result = fn(*args, **kwargs)
        return result

    # ------------------------------------------------------------------
    # Parcels
    # ------------------------------------------------------------------

    def register_parcel(self, actor: Actor, now: datetime, **fields):
        return self._run(actor, Permission.PARCEL_CREATE, "parcel", "register",
                         self.parcels.register_parcel, actor, now, **fields)

    def register_owner(self, actor: Actor, now: datetime, **fields):
        return self._run(actor, Permission.PARCEL_EDIT, "owner", "register",
                         self.parcels.register_owner, actor, now, **fields)

    def add_owner_share(self, actor: Actor, now: datetime, parcel_id: int, owner_id: int, share_pct):
        return self._run(actor, Permission.PARCEL_EDIT, "parcel", "add_owner",
                         self.parcels.add_owner_share, actor, now, parcel_id, owner_id, share_pct)

    # ------------------------------------------------------------------
    # Possession
    # ------------------------------------------------------------------

    def _schedule_possession(self, actor: Actor, now: datetime, parcel_id: int, scheduled_at: datetime,
                             remarks: Optional[str] = None):
        parcel = self.parcels.get_parcel(parcel_id, lock=True)
        return self.possessions.schedule(actor, now, parcel, scheduled_at, remarks)

    def schedule_possession(self, actor: Actor, now: datetime, parcel_id: int, scheduled_at: datetime,
                            remarks: Optional[str] = None):
        """Schedule the site visit for an ``awarded`` parcel"""
        return self._run(actor, Permission.POSSESSION_RECORD, "possession", "schedule",
                         self._schedule_possession, actor, now, parcel_id, scheduled_at, remarks)

    def start_possession(self, actor: Actor, now: datetime, possession_id: int):
        return self._run(actor, Permission.POSSESSION_RECORD, "possession", "start",
                         self.possessions.start, actor, now, possession_id)

    def capture_possession_evidence(self, actor: Actor, now: datetime, possession_id: int,
                                    evidence: List[Dict[str, Any]]):
        return self._run(actor, Permission.POSSESSION_RECORD, "possession", "capture_evidence",
                         self.possessions.capture_evidence, actor, now, possession_id, evidence)

    def _issue_possession_certificate(self, actor: Actor, now: datetime, possession_id: int, certificate_ref: str):
        possession = self.possessions.get_possession(possession_id, lock=True)
        parcel = self.parcels.get_parcel(possession.parcel_id, lock=True)
        self.possessions.issue_certificate(actor, now, possession, parcel, certificate_ref)
        self.parcels.mark_possessed(parcel, actor, now, possession.id)
        return possession

    def issue_possession_certificate(self, actor: Actor, now: datetime, possession_id: int, certificate_ref: str):
        """Issue the certificate and move the parcel to ``possessed``"""
        return self._run(actor, Permission.POSSESSION_RECORD, "possession", "issue_certificate",
                         self._issue_possession_certificate, actor, now, possession_id, certificate_ref)

    def update_possession_registry(self, actor: Actor, now: datetime, possession_id: int):
        return self._run(actor, Permission.POSSESSION_RECORD, "possession", "update_registry",
                         self.possessions.update_registry, actor, now, possession_id)

    def close_possession(self, actor: Actor, now: datetime, possession_id: int):
        return self._run(actor, Permission.POSSESSION_RECORD, "possession", "close",
                         self.possessions.close, actor, now, possession_id)

    def cancel_possession(self, actor: Actor, now: datetime, possession_id: int, reason: str):
        return self._run(actor, Permission.POSSESSION_RECORD, "possession", "cancel",
                         self.possessions.cancel, actor, now, possession_id, reason)

    # ------------------------------------------------------------------
    # Social Impact Assessment
    # ------------------------------------------------------------------

    def create_sia(self, actor: Actor, now: datetime, title: str, description: str,
                   start_date: datetime, end_date: datetime):
        return self._run(actor, Permission.SIA_CREATE, "sia", "create",
                         self.sia.create_sia, actor, now, title, description, start_date, end_date)

    def update_sia(self, actor: Actor, now: datetime, sia_id: int, **changes):
        return self._run(actor, Permission.SIA_EDIT, "sia", "update",
                         self.sia.update_draft, actor, now, sia_id, **changes)

    def publish_sia(self, actor: Actor, now: datetime, sia_id: int):
        return self._run(actor, Permission.SIA_PUBLISH, "sia", "publish", self.sia.publish, actor, now, sia_id)

    def schedule_hearing(self, actor: Actor, now: datetime, sia_id: int, date: datetime, venue: str,
                         agenda: Optional[str] = None):
        return self._run(actor, Permission.SIA_HEARING, "sia", "schedule_hearing",
                         self.sia.schedule_hearing, actor, now, sia_id, date, venue, agenda)

    def complete_hearing(self, actor: Actor, now: datetime, sia_id: int, hearing_id: int, minutes_ref: str,
                         attendees: Optional[List[str]] = None):
        return self._run(actor, Permission.SIA_HEARING, "sia", "complete_hearing",
                         self.sia.complete_hearing, actor, now, sia_id, hearing_id, minutes_ref, attendees)

    def submit_sia_feedback(self, actor: Actor, now: datetime, sia_id: int, citizen_name: str,
                            citizen_contact: str, text: str, attachment_ref: Optional[str] = None):
        return self._run(actor, Permission.SIA_FEEDBACK, "sia_feedback", "submit",
                         self.sia.submit_feedback, now, sia_id, citizen_name, citizen_contact, text,
                         attachment_ref, actor)

    def review_sia_feedback(self, actor: Actor, now: datetime, feedback_id: int, action: str):
        return self._run(actor, Permission.SIA_FEEDBACK_REVIEW, "sia_feedback", action,
                         self.sia.review_feedback, actor, now, feedback_id, action)

    def generate_sia_report(self, actor: Actor, now: datetime, sia_id: int, report_ref: Optional[str] = None):
        return self._run(actor, Permission.SIA_REPORT, "sia", "generate_report",
                         self.sia.generate_report, actor, now, sia_id, report_ref)

    def close_sia(self, actor: Actor, now: datetime, sia_id: int):
        return self._run(actor, Permission.SIA_CLOSE, "sia", "close", self.sia.close, actor, now, sia_id)

    # ------------------------------------------------------------------
    # Notifications and objections
    # ------------------------------------------------------------------

    def create_notification(self, actor: Actor, now: datetime, notification_type: str, title: str,
                            body: str = "", parcel_ids: Optional[Iterable[int]] = None,
                            sia_id: Optional[int] = None):
        return self._run(actor, Permission.NOTIFICATION_CREATE, "notification", "create",
                         self.notifications.create_notification, actor, now, notification_type, title, body,
                         parcel_ids, sia_id)

    def update_notification(self, actor: Actor, now: datetime, notification_id: int, **changes):
        return self._run(actor, Permission.NOTIFICATION_EDIT, "notification", "update",
                         self.notifications.update_draft, actor, now, notification_id, **changes)

    def _publish_notification(self, actor: Actor, now: datetime, notification_id: int):
        notification = self.notifications.publish(actor, now, notification_id)
        for parcel in notification.parcels:
            self.parcels.mark_under_acquisition(parcel, actor, now, notification.id)
        return notification

    def publish_notification(self, actor: Actor, now: datetime, notification_id: int):
        """Publish a notice; its unaffected parcels move to ``under_acq``"""
        return self._run(actor, Permission.NOTIFICATION_PUBLISH, "notification", "publish",
                         self._publish_notification, actor, now, notification_id)

    def open_objection_window(self, actor: Actor, now: datetime, notification_id: int):
        return self._run(actor, Permission.NOTIFICATION_WINDOW, "notification", "open_objection_window",
                         self.notifications.open_objection_window, actor, now, notification_id)

    def close_objection_window(self, actor: Actor, now: datetime, notification_id: int):
        return self._run(actor, Permission.NOTIFICATION_WINDOW, "notification", "close_window",
                         self.notifications.close_window, actor, now, notification_id)

    def archive_notification(self, actor: Actor, now: datetime, notification_id: int):
        return self._run(actor, Permission.NOTIFICATION_ARCHIVE, "notification", "archive",
                         self.notifications.archive, actor, now, notification_id)

    def _submit_objection(self, actor: Actor, now: datetime, notification_id: int, parcel_id: int, **fields):
        notification = self.notifications.get_notification(notification_id, lock=True)
        check_parcel_membership(notification, parcel_id)
        parcel = self.parcels.get_parcel(parcel_id)
        if parcel.status == ParcelStatus.POSSESSED.value:
            raise ParcelPossessed(
                f"parcel {parcel.parcel_no} is already in possession; objections are closed",
                {"parcel_id": parcel.id},
            )
        return self.objections.submit(now, notification, parcel_id, actor=actor, **fields)

    def submit_objection(self, actor: Actor, now: datetime, notification_id: int, parcel_id: int, **fields):
        """
        File an objection

        Checks run in order: parcel membership, possession, window state.
        ``fields`` are name, phone, text and optionally email, aadhaar,
        attachments and owner_id.
        """
        return self._run(actor, Permission.OBJECTION_SUBMIT, "objection", "submit",
                         self._submit_objection, actor, now, notification_id, parcel_id, **fields)

    def start_objection_review(self, actor: Actor, now: datetime, objection_id: int):
        return self._run(actor, Permission.OBJECTION_REVIEW, "objection", "start_review",
                         self.objections.start_review, actor, now, objection_id)

    def resolve_objection(self, actor: Actor, now: datetime, objection_id: int, outcome: str, text: str):
        return self._run(actor, Permission.OBJECTION_RESOLVE, "objection", "resolve",
                         self.objections.resolve, actor, now, objection_id, outcome, text)

    # ------------------------------------------------------------------
    # Valuation and awards
    # ------------------------------------------------------------------

    def compute_valuation(self, actor: Actor, now: datetime, parcel_id: int, basis: str, circle_rate,
                          multipliers: Optional[Dict[str, Any]] = None,
                          justification_notes: Optional[str] = None):
        return self._run(actor, Permission.VALUATION_CREATE, "valuation", "compute",
                         self.compensation.compute_valuation, actor, now, parcel_id, basis, circle_rate,
                         multipliers, justification_notes)

    def _draft_award(self, actor: Actor, now: datetime, parcel_id: int, owner_id: int, mode: str):
        parcel = self.parcels.get_parcel(parcel_id)
        if self.compensation.latest_valuation(parcel.id) is None:
            raise ValuationMissing(f"parcel {parcel.parcel_no} has no valuation", {"parcel_id": parcel.id})
        return self.compensation.draft_award(actor, now, parcel_id, owner_id, mode)

    def draft_award(self, actor: Actor, now: datetime, parcel_id: int, owner_id: int, mode: str):
        return self._run(actor, Permission.AWARD_CREATE, "award", "draft",
                         self._draft_award, actor, now, parcel_id, owner_id, mode)

    def _approve_award(self, actor: Actor, now: datetime, award_id: int):
        award = self.compensation.approve_award(actor, now, award_id)
        parcel = self.parcels.get_parcel(award.parcel_id, lock=True)
        self.parcels.mark_awarded(parcel, actor, now, award.id)
        return award

    def approve_award(self, actor: Actor, now: datetime, award_id: int):
        """Approve an award and move its parcel to ``awarded``"""
        return self._run(actor, Permission.AWARD_APPROVE, "award", "approve",
                         self._approve_award, actor, now, award_id)

    def disburse_award(self, actor: Actor, now: datetime, award_id: int, payment_ref: Optional[str] = None):
        return self._run(actor, Permission.PAYMENT_CREATE, "award", "disburse",
                         self.compensation.disburse_award, actor, now, award_id, payment_ref)

    def void_award(self, actor: Actor, now: datetime, award_id: int, reason: str):
        return self._run(actor, Permission.AWARD_EDIT, "award", "void",
                         self.compensation.void_award, actor, now, award_id, reason)

    # ------------------------------------------------------------------
    # Schemes, applications and the e-draw
    # ------------------------------------------------------------------

    def create_scheme(self, actor: Actor, now: datetime, name: str, category: str,
                      eligibility: Optional[Dict[str, Any]] = None,
                      application_deadline: Optional[datetime] = None):
        return self._run(actor, Permission.SCHEME_CREATE, "scheme", "create",
                         self.schemes.create_scheme, actor, now, name, category, eligibility,
                         application_deadline)

    def update_scheme(self, actor: Actor, now: datetime, scheme_id: int, **changes):
        return self._run(actor, Permission.SCHEME_EDIT, "scheme", "update",
                         self.schemes.update_draft, actor, now, scheme_id, **changes)

    def publish_scheme(self, actor: Actor, now: datetime, scheme_id: int):
        return self._run(actor, Permission.SCHEME_PUBLISH, "scheme", "publish",
                         self.schemes.publish, actor, now, scheme_id)

    def close_scheme(self, actor: Actor, now: datetime, scheme_id: int):
        return self._run(actor, Permission.SCHEME_CLOSE, "scheme", "close", self.schemes.close, actor, now, scheme_id)

    def register_property(self, actor: Actor, now: datetime, property_no: str, address: str, area):
        return self._run(actor, Permission.INVENTORY_MANAGE, "property", "register",
                         self.schemes.register_property, actor, now, property_no, address, area)

    def add_scheme_inventory(self, actor: Actor, now: datetime, scheme_id: int, property_id: int):
        return self._run(actor, Permission.INVENTORY_MANAGE, "scheme", "add_inventory",
                         self.schemes.add_inventory, actor, now, scheme_id, property_id)

    def register_party(self, actor: Actor, now: datetime, name: str, phone: str, party_type: str = "individual",
                       email: Optional[str] = None, annual_income=None):
        return self._run(actor, Permission.APPLICATION_SUBMIT, "party", "register",
                         self.schemes.register_party, actor, now, name, phone, party_type, email, annual_income)

    def submit_application(self, actor: Actor, now: datetime, scheme_id: int, party_id: int,
                           docs: Optional[List[str]] = None):
        return self._run(actor, Permission.APPLICATION_SUBMIT, "application", "submit",
                         self.schemes.submit_application, now, scheme_id, party_id, docs, actor)

    def verify_application(self, actor: Actor, now: datetime, application_id: int):
        return self._run(actor, Permission.APPLICATION_VERIFY, "application", "verify",
                         self.schemes.verify_application, actor, now, application_id)

    def reject_application(self, actor: Actor, now: datetime, application_id: int, reason: str):
        return self._run(actor, Permission.APPLICATION_VERIFY, "application", "reject",
                         self.schemes.reject_application, actor, now, application_id, reason)

    def _conduct_draw(self, actor: Actor, now: datetime, scheme_id: int, selected_count: int):
        scheme = self.schemes.get_scheme(scheme_id)
        conflicts = self.schemes.inventory_conflicts(scheme)
        if conflicts:
            raise InventoryConflict(
                f"scheme {scheme.id} lists properties allotted elsewhere",
                {"scheme_id": scheme.id, "property_ids": [p.id for p in conflicts]},
            )
        return self.draws.conduct_draw(actor, now, scheme_id, selected_count)

    def conduct_draw(self, actor: Actor, now: datetime, scheme_id: int, selected_count: int):
        self._authorize(actor, Permission.DRAW_CONDUCT, "draw", "conduct")
        try:
            with self.transaction("draw", "conduct"):
                draw = self._conduct_draw(actor, now, scheme_id, selected_count)
        except WorkflowError:
            draws_total.labels(result="refused").inc()
            raise
        draws_total.labels(result="conducted").inc()
        return draw

    def verify_draw(self, actor: Actor, draw_id: int) -> Dict[str, Any]:
        """Recompute a persisted draw offline; read-only"""
        self._authorize(actor, Permission.REPORT_VIEW, "draw", "verify")
        return self.draws.verify_draw(draw_id)

    def reset_draw(self, actor: Actor, now: datetime, scheme_id: int, reason: str):
        draw = self._run(actor, Permission.DRAW_RESET, "draw", "reset",
                         self.draws.reset_draw, actor, now, scheme_id, reason)
        draws_total.labels(result="reset").inc()
        return draw

    def allot_draw_results(self, actor: Actor, now: datetime, scheme_id: int):
        return self._run(actor, Permission.DRAW_ALLOT, "draw", "allot",
                         self.draws.allot_draw_results, actor, now, scheme_id)

    # ------------------------------------------------------------------
    # Service requests
    # ------------------------------------------------------------------

    def create_service_request(self, actor: Actor, now: datetime, request_type: str, description: str,
                               party_id: Optional[int] = None, property_id: Optional[int] = None,
                               data: Optional[Dict[str, Any]] = None):
        return self._run(actor, Permission.SERVICE_REQUEST_CREATE, "service_request", "submit",
                         self.service_requests.create_request, now, request_type, description, party_id,
                         property_id, data, actor)

    def start_service_request_review(self, actor: Actor, now: datetime, request_id: int,
                                     assigned_to: Optional[str] = None):
        return self._run(actor, Permission.SERVICE_REQUEST_REVIEW, "service_request", "start_review",
                         self.service_requests.start_review, actor, now, request_id, assigned_to)

    def complete_service_request(self, actor: Actor, now: datetime, request_id: int, resolution: str):
        return self._run(actor, Permission.SERVICE_REQUEST_RESOLVE, "service_request", "complete",
                         self.service_requests.complete, actor, now, request_id, resolution)

    def reject_service_request(self, actor: Actor, now: datetime, request_id: int, resolution: str):
        return self._run(actor, Permission.SERVICE_REQUEST_RESOLVE, "service_request", "reject",
                         self.service_requests.reject, actor, now, request_id, resolution)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def sla_scan(self, actor: Actor, now: datetime):
        self._authorize(actor, Permission.REPORT_VIEW, "sla", "scan")
        return self.sla.scan(now)

    def history(self, entity_type: str, entity_id: int):
        return self.audit.history(entity_type, entity_id)
