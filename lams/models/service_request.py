"""
Citizen service request model
"""
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from lams.core.database import Base


class ServiceRequestType(str, Enum):
    ADDRESS_CHANGE = "address_change"
    DUPLICATE_DOCUMENT = "duplicate_document"
    CORRECTION = "correction"
    NOC_REQUEST = "noc_request"
    PASSBOOK_REQUEST = "passbook_request"
    OTHER = "other"


class ServiceRequestStatus(str, Enum):
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    COMPLETED = "completed"
    REJECTED = "rejected"


class ServiceRequest(Base):
    """Self-service request with an SLA deadline derived from its type"""
    __tablename__ = "service_requests"

    id = Column(Integer, primary_key=True)
    ref_no = Column(String(32), nullable=False, unique=True)
    request_type = Column(String(32), nullable=False, index=True)
    description = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="SET NULL"), nullable=True)
    party_id = Column(Integer, ForeignKey("parties.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(16), nullable=False, default=ServiceRequestStatus.SUBMITTED.value, index=True)
    assigned_to = Column(String(255), nullable=True)
    resolution = Column(Text, nullable=True)
    sla_deadline = Column(DateTime(timezone=True), nullable=False, index=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    party = relationship("Party")

    __mapper_args__ = {"version_id_col": version}
