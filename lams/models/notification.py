"""
Statutory land notification model (Section 11 / Section 19)
"""
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (Column, DateTime, ForeignKey, Integer, String, Table,
                        Text)
from sqlalchemy.orm import relationship

from lams.core.database import Base


class NotificationType(str, Enum):
    SEC11 = "sec11"
    SEC19 = "sec19"


class NotificationStatus(str, Enum):
    """Notification status enumeration"""
    DRAFT = "draft"
    PUBLISHED = "published"
    OBJECTION_WINDOW_OPEN = "objection_window_open"
    OBJECTION_RESOLVED = "objection_resolved"
    CLOSED = "closed"


notification_parcels = Table(
    "notification_parcels",
    Base.metadata,
    Column("notification_id", Integer, ForeignKey("land_notifications.id", ondelete="CASCADE"), primary_key=True),
    Column("parcel_id", Integer, ForeignKey("parcels.id", ondelete="CASCADE"), primary_key=True),
)


class LandNotification(Base):
    """Section 11 / Section 19 notice covering a set of parcels"""
    __tablename__ = "land_notifications"

    id = Column(Integer, primary_key=True)
    type = Column(String(8), nullable=False, index=True)
    ref_no = Column(String(32), nullable=False, unique=True)
    title = Column(String(500), nullable=False)
    body = Column(Text, nullable=False, default="")
    status = Column(String(32), nullable=False, default=NotificationStatus.DRAFT.value, index=True)
    sia_id = Column(Integer, ForeignKey("sia.id", ondelete="SET NULL"), nullable=True)
    publish_date = Column(DateTime(timezone=True), nullable=True)
    objection_window_opened_at = Column(DateTime(timezone=True), nullable=True)
    objection_deadline = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    objection_count = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)

    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    parcels = relationship("Parcel", secondary=notification_parcels, order_by="Parcel.id")

    __mapper_args__ = {"version_id_col": version}

    def affects(self, parcel_id: int) -> bool:
        return any(p.id == parcel_id for p in self.parcels)

    def __repr__(self):
        return f"<LandNotification(id={self.id}, ref_no={self.ref_no}, type={self.type}, status={self.status})>"
