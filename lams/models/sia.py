"""
Social Impact Assessment case models: case, hearings, citizen feedback and reports
"""
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from lams.core.database import Base


class SiaStatus(str, Enum):
    """SIA case status enumeration"""
    DRAFT = "draft"
    PUBLISHED = "published"
    HEARING_SCHEDULED = "hearing_scheduled"
    HEARING_COMPLETED = "hearing_completed"
    REPORT_GENERATED = "report_generated"
    CLOSED = "closed"


class HearingStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"


class FeedbackStatus(str, Enum):
    RECEIVED = "received"
    UNDER_REVIEW = "under_review"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Sia(Base):
    """Social Impact Assessment case"""
    __tablename__ = "sia"

    id = Column(Integer, primary_key=True)
    notice_no = Column(String(32), nullable=False, unique=True)
    title = Column(String(500), nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(32), nullable=False, default=SiaStatus.DRAFT.value, index=True)
    feedback_count = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)

    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    published_at = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)

    hearings = relationship(
        "SiaHearing", back_populates="sia", order_by="SiaHearing.id", cascade="all, delete-orphan"
    )
    feedback = relationship(
        "SiaFeedback", back_populates="sia", order_by="SiaFeedback.id", cascade="all, delete-orphan"
    )
    reports = relationship(
        "SiaReport", back_populates="sia", order_by="SiaReport.id", cascade="all, delete-orphan"
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Sia(id={self.id}, notice_no={self.notice_no}, status={self.status})>"


class SiaHearing(Base):
    """Public hearing held for an SIA case"""
    __tablename__ = "sia_hearings"

    id = Column(Integer, primary_key=True)
    sia_id = Column(Integer, ForeignKey("sia.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(DateTime(timezone=True), nullable=False)
    venue = Column(String(500), nullable=False)
    agenda = Column(Text, nullable=True)
    status = Column(String(32), nullable=False, default=HearingStatus.SCHEDULED.value)
    minutes_ref = Column(String(1024), nullable=True)  # opaque file-store reference
    attendees = Column(JSON, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False, default=1)

    sia = relationship("Sia", back_populates="hearings")

    __mapper_args__ = {"version_id_col": version}


class SiaFeedback(Base):
    """Citizen feedback received during the SIA window"""
    __tablename__ = "sia_feedback"

    id = Column(Integer, primary_key=True)
    sia_id = Column(Integer, ForeignKey("sia.id", ondelete="CASCADE"), nullable=False, index=True)
    citizen_name = Column(String(255), nullable=False)
    citizen_contact = Column(String(255), nullable=False)
    text = Column(Text, nullable=False)
    attachment_ref = Column(String(1024), nullable=True)
    status = Column(String(32), nullable=False, default=FeedbackStatus.RECEIVED.value)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    sia = relationship("Sia", back_populates="feedback")

    __mapper_args__ = {"version_id_col": version}


class SiaReport(Base):
    """Generated SIA report summary; rendering is done elsewhere"""
    __tablename__ = "sia_reports"

    id = Column(Integer, primary_key=True)
    sia_id = Column(Integer, ForeignKey("sia.id", ondelete="CASCADE"), nullable=False, index=True)
    summary = Column(JSON, nullable=False)
    report_ref = Column(String(1024), nullable=True)
    generated_by = Column(String(255), nullable=True)
    generated_at = Column(DateTime(timezone=True), nullable=False)

    sia = relationship("Sia", back_populates="reports")
