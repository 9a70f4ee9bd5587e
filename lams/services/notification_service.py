"""
Statutory notifications (Section 11 / Section 19) and the objection window
"""
from datetime import datetime
from typing import Iterable, List, Optional

from lams.core import sla_clock
from lams.core.config import Settings, get_settings
from lams.core.errors import InvalidState, NotFound, ValidationError
from lams.core.logging_config import LoggingConfig
from lams.core.permissions import Actor
from lams.models.notification import (LandNotification, NotificationStatus,
                                      NotificationType)
from lams.models.parcel import Parcel
from lams.models.sia import Sia
from lams.services.base import BaseService
from lams.services.sequence_service import next_number
from lams.workflow.lifecycle import notification_lifecycle

logger = LoggingConfig.get_logger(__name__)


class NotificationService(BaseService):

    def __init__(self, db, audit=None, settings: Optional[Settings] = None):
        super().__init__(db, audit)
        self.settings = settings or get_settings()

    def _load_parcels(self, parcel_ids: Iterable[int]) -> List[Parcel]:
        ids = sorted(set(parcel_ids or []))
        if not ids:
            return []
        parcels = self.db.query(Parcel).filter(Parcel.id.in_(ids)).order_by(Parcel.id).all()
        missing = set(ids) - {p.id for p in parcels}
        if missing:
            raise NotFound("parcel", sorted(missing)[0])
        return parcels

    def create_notification(
        self,
        actor: Actor,
        now: datetime,
        notification_type: str,
        title: str,
        body: str = "",
        parcel_ids: Optional[Iterable[int]] = None,
        sia_id: Optional[int] = None,
    ) -> LandNotification:
        try:
            ntype = NotificationType(str(getattr(notification_type, "value", notification_type)).lower())
        except ValueError:
            raise ValidationError(f"unknown notification type {notification_type!r}",
                                  {"allowed": [t.value for t in NotificationType]})
        if not title or not title.strip():
            raise ValidationError("title is required", {"field": "title"})
        if sia_id is not None:
            self._get(Sia, sia_id, "sia")

        notification = LandNotification(
            type=ntype.value,
            ref_no=next_number(self.db, ntype.value.upper(), now),
            title=title.strip(),
            body=body or "",
            status=NotificationStatus.DRAFT.value,
            sia_id=sia_id,
            created_by=actor.user_id,
            created_at=now,
        )
        notification.parcels = self._load_parcels(parcel_ids)
        self.db.add(notification)
        self.db.flush()
        self.audit.record("notification", notification.id, "create", actor, now,
                          to_status=notification.status,
                          event_data={"ref_no": notification.ref_no, "parcel_ids": [p.id for p in notification.parcels]})
        logger.info(f"Created notification {notification.ref_no}", extra={"notification_id": notification.id})
        return notification

    def get_notification(self, notification_id: int, lock: bool = False) -> LandNotification:
        return self._get(LandNotification, notification_id, "notification", lock=lock)

    def list_notifications(self, notification_type: Optional[str] = None,
                           status: Optional[str] = None) -> List[LandNotification]:
        query = self.db.query(LandNotification)
        if notification_type:
            query = query.filter(LandNotification.type == notification_type)
        if status:
            query = query.filter(LandNotification.status == status)
        return query.order_by(LandNotification.id).all()

    def update_draft(
        self,
        actor: Actor,
        now: datetime,
        notification_id: int,
        title: Optional[str] = None,
        body: Optional[str] = None,
        parcel_ids: Optional[Iterable[int]] = None,
    ) -> LandNotification:
        notification = self.get_notification(notification_id, lock=True)
        lifecycle = notification_lifecycle(notification.type)
        lifecycle.apply(notification.status, "update")
        if title is not None:
            if not title.strip():
                raise ValidationError("title is required", {"field": "title"})
            notification.title = title.strip()
        if body is not None:
            notification.body = body
        if parcel_ids is not None:
            notification.parcels = self._load_parcels(parcel_ids)
        self._transition(lifecycle, notification, "update", actor, now)
        return notification

    def publish(self, actor: Actor, now: datetime, notification_id: int) -> LandNotification:
        notification = self.get_notification(notification_id, lock=True)
        lifecycle = notification_lifecycle(notification.type)
        lifecycle.apply(notification.status, "publish")
        if not notification.parcels:
            raise InvalidState(f"notification {notification.ref_no} has no affected parcels",
                               {"notification_id": notification.id})

        notification.publish_date = now
        self._transition(
            lifecycle, notification, "publish", actor, now,
            domain_event="NotificationPublished",
            event_data={"ref_no": notification.ref_no, "type": notification.type,
                        "parcel_ids": [p.id for p in notification.parcels]},
        )
        logger.info(f"Published notification {notification.ref_no}", extra={"notification_id": notification.id})
        return notification

    def open_objection_window(self, actor: Actor, now: datetime, notification_id: int) -> LandNotification:
        """Open the objection window of a published Section 11 notification"""
        notification = self.get_notification(notification_id, lock=True)
        lifecycle = notification_lifecycle(notification.type)
        lifecycle.apply(notification.status, "open_objection_window")

        notification.objection_window_opened_at = now
        notification.objection_deadline = sla_clock.deadline_from(now, days=self.settings.objection_window_days)
        self._transition(
            lifecycle, notification, "open_objection_window", actor, now,
            domain_event="ObjectionWindowOpened",
            event_data={"ref_no": notification.ref_no,
                        "objection_deadline": notification.objection_deadline.isoformat()},
        )
        return notification

    def close_window(self, actor: Actor, now: datetime, notification_id: int) -> LandNotification:
        """Stop accepting objections; filed objections stay open for resolution"""
        notification = self.get_notification(notification_id, lock=True)
        lifecycle = notification_lifecycle(notification.type)
        self._transition(lifecycle, notification, "close_window", actor, now,
                         domain_event="ObjectionWindowClosed", event_data={"ref_no": notification.ref_no})
        return notification

    def archive(self, actor: Actor, now: datetime, notification_id: int) -> LandNotification:
        notification = self.get_notification(notification_id, lock=True)
        lifecycle = notification_lifecycle(notification.type)
        lifecycle.apply(notification.status, "archive")
        notification.closed_at = now
        self._transition(lifecycle, notification, "archive", actor, now,
                         domain_event="NotificationClosed", event_data={"ref_no": notification.ref_no})
        return notification
