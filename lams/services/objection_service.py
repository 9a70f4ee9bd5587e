"""
Citizen objections against Section 11 notifications
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from lams.core.config import Settings, get_settings
from lams.core.errors import (IllegalTransition, ObjectionWindowExpired,
                              ParcelNotAffected, ValidationError)
from lams.core.logging_config import LoggingConfig
from lams.core.permissions import Actor
from lams.models.notification import LandNotification, NotificationStatus
from lams.models.objection import Objection, ObjectionStatus
from lams.services.base import BaseService
from lams.utils.datetime_utils import ensure_utc
from lams.workflow.lifecycle import OBJECTION

logger = LoggingConfig.get_logger(__name__)

RESOLUTION_OUTCOMES = {
    ObjectionStatus.RESOLVED.value: "resolve",
    ObjectionStatus.REJECTED.value: "reject",
}


def check_parcel_membership(notification: LandNotification, parcel_id: int) -> None:
    """ParcelNotAffected unless the parcel is in the notification's affected set"""
    if not notification.affects(parcel_id):
        raise ParcelNotAffected(
            f"parcel {parcel_id} is not affected by notification {notification.ref_no}",
            {"notification_id": notification.id, "parcel_id": parcel_id},
        )


class ObjectionService(BaseService):

    def __init__(self, db, audit=None, settings: Optional[Settings] = None):
        super().__init__(db, audit)
        self.settings = settings or get_settings()

    def validate_attachments(self, attachments: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        attachments = list(attachments or [])
        limit = self.settings.max_objection_attachments
        if len(attachments) > limit:
            raise ValidationError(f"at most {limit} attachments are allowed",
                                  {"count": len(attachments), "limit": limit})
        cleaned = []
        for i, item in enumerate(attachments):
            ref = (item or {}).get("ref")
            if not ref:
                raise ValidationError(f"attachment {i} has no file reference", {"index": i})
            size = item.get("size_bytes")
            if not isinstance(size, int) or size < 0:
                raise ValidationError(f"attachment {i} has no valid size_bytes", {"index": i})
            if size > self.settings.max_attachment_bytes:
                raise ValidationError(
                    f"attachment {i} exceeds {self.settings.max_attachment_bytes} bytes",
                    {"index": i, "size_bytes": size},
                )
            cleaned.append({
                "ref": ref,
                "size_bytes": size,
                "original_name": item.get("original_name"),
                "mime_type": item.get("mime_type"),
            })
        return cleaned

    def submit(
        self,
        now: datetime,
        notification: LandNotification,
        parcel_id: int,
        name: str,
        phone: str,
        text: str,
        email: Optional[str] = None,
        aadhaar: Optional[str] = None,
        attachments: Optional[List[Dict[str, Any]]] = None,
        owner_id: Optional[int] = None,
        actor: Optional[Actor] = None,
    ) -> Objection:
        """
        File an objection

        Membership is checked first, so a parcel outside the affected set fails
        with ParcelNotAffected whatever the state of the window.
        """
        check_parcel_membership(notification, parcel_id)
        if notification.status != NotificationStatus.OBJECTION_WINDOW_OPEN.value:
            raise IllegalTransition("notification", notification.status, "submit_objection")
        if notification.objection_deadline and ensure_utc(now) > ensure_utc(notification.objection_deadline):
            raise ObjectionWindowExpired(
                f"objection window of {notification.ref_no} expired at "
                f"{ensure_utc(notification.objection_deadline).isoformat()}",
                {"notification_id": notification.id},
            )
        if not name or not name.strip():
            raise ValidationError("submitter name is required", {"field": "name"})
        if not phone or not phone.strip():
            raise ValidationError("submitter phone is required", {"field": "phone"})
        if not text or not text.strip():
            raise ValidationError("objection text is required", {"field": "text"})
        cleaned = self.validate_attachments(attachments)

        objection = Objection(
            notification_id=notification.id,
            parcel_id=parcel_id,
            owner_id=owner_id,
            submitted_by_name=name.strip(),
            submitted_by_phone=phone.strip(),
            submitted_by_email=email,
            submitted_by_aadhaar=aadhaar,
            text=text,
            attachments=cleaned,
            status=ObjectionStatus.SUBMITTED.value,
            created_at=now,
        )
        self.db.add(objection)
        # parent version moves with every filed objection
        notification.objection_count = (notification.objection_count or 0) + 1
        self.db.flush()
        self.audit.record(
            "objection", objection.id, "submit", actor, now,
            to_status=objection.status,
            domain_event="ObjectionSubmitted",
            event_data={"notification_id": notification.id, "parcel_id": parcel_id,
                        "attachments": len(cleaned)},
        )
        logger.info(
            f"Objection filed against {notification.ref_no}",
            extra={"objection_id": objection.id, "parcel_id": parcel_id},
        )
        return objection

    def get_objection(self, objection_id: int, lock: bool = False) -> Objection:
        return self._get(Objection, objection_id, "objection", lock=lock)

    def list_objections(self, notification_id: Optional[int] = None,
                        status: Optional[str] = None) -> List[Objection]:
        query = self.db.query(Objection)
        if notification_id is not None:
            query = query.filter(Objection.notification_id == notification_id)
        if status:
            query = query.filter(Objection.status == status)
        return query.order_by(Objection.id).all()

    def start_review(self, actor: Actor, now: datetime, objection_id: int) -> Objection:
        objection = self.get_objection(objection_id, lock=True)
        self._transition(OBJECTION, objection, "start_review", actor, now)
        return objection

    def resolve(self, actor: Actor, now: datetime, objection_id: int, outcome: str, text: str) -> Objection:
        """Close an objection as ``resolved`` or ``rejected`` with a resolution text"""
        objection = self.get_objection(objection_id, lock=True)
        outcome = str(getattr(outcome, "value", outcome))
        action = RESOLUTION_OUTCOMES.get(outcome)
        if action is None:
            raise ValidationError(f"outcome must be one of {sorted(RESOLUTION_OUTCOMES)}", {"outcome": outcome})
        OBJECTION.apply(objection.status, action)
        if not text or not text.strip():
            raise ValidationError("resolution text is required", {"objection_id": objection.id})

        objection.resolution_text = text
        objection.resolved_by = actor.user_id
        objection.resolved_at = now
        self._transition(OBJECTION, objection, action, actor, now, domain_event="ObjectionResolved",
                         event_data={"notification_id": objection.notification_id, "outcome": outcome})
        return objection
