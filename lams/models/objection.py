"""
Citizen objection against a Section 11 notification
"""
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from lams.core.database import Base


class ObjectionStatus(str, Enum):
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class Objection(Base):
    """Objection filed by a citizen for one parcel of one notification"""
    __tablename__ = "objections"

    id = Column(Integer, primary_key=True)
    notification_id = Column(
        Integer, ForeignKey("land_notifications.id", ondelete="CASCADE"), nullable=False, index=True
    )
    parcel_id = Column(Integer, ForeignKey("parcels.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_id = Column(Integer, ForeignKey("owners.id", ondelete="SET NULL"), nullable=True)

    submitted_by_name = Column(String(255), nullable=False)
    submitted_by_phone = Column(String(32), nullable=False)
    submitted_by_email = Column(String(255), nullable=True)
    submitted_by_aadhaar = Column(String(16), nullable=True)
    text = Column(Text, nullable=False)
    # [{"ref": ..., "size_bytes": ..., "original_name": ..., "mime_type": ...}]
    attachments = Column(JSON, nullable=True)

    status = Column(String(32), nullable=False, default=ObjectionStatus.SUBMITTED.value, index=True)
    resolution_text = Column(Text, nullable=True)
    resolved_by = Column(String(255), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    notification = relationship("LandNotification")
    parcel = relationship("Parcel")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Objection(id={self.id}, notification_id={self.notification_id}, status={self.status})>"
