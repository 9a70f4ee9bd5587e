"""
Possession proceedings: field visit, photo evidence, certificate and registry update
"""
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from lams.core.database import Base


class PossessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    EVIDENCE_CAPTURED = "evidence_captured"
    CERTIFICATE_ISSUED = "certificate_issued"
    REGISTRY_UPDATED = "registry_updated"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class GpsSource(str, Enum):
    """Where the coordinates of a photo came from"""
    MANUAL = "manual"
    EXIF = "exif"
    DEVICE = "device"


class Possession(Base):
    """Taking physical possession of an awarded parcel"""
    __tablename__ = "possessions"

    id = Column(Integer, primary_key=True)
    parcel_id = Column(Integer, ForeignKey("parcels.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(32), nullable=False, default=PossessionStatus.SCHEDULED.value, index=True)
    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    remarks = Column(Text, nullable=True)
    certificate_ref = Column(String(1024), nullable=True)  # opaque file-store reference
    certificate_hash = Column(String(64), nullable=True)
    version = Column(Integer, nullable=False, default=1)

    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    parcel = relationship("Parcel")
    evidence = relationship(
        "PossessionEvidence", back_populates="possession", order_by="PossessionEvidence.id",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Possession(id={self.id}, parcel_id={self.parcel_id}, status={self.status})>"


class PossessionEvidence(Base):
    """Geotagged site photo; the file itself lives in the document store"""
    __tablename__ = "possession_evidence"

    id = Column(Integer, primary_key=True)
    possession_id = Column(Integer, ForeignKey("possessions.id", ondelete="CASCADE"), nullable=False, index=True)
    photo_ref = Column(String(1024), nullable=False)
    lat = Column(Numeric(10, 7), nullable=False)
    lng = Column(Numeric(10, 7), nullable=False)
    sha256 = Column(String(64), nullable=False)
    gps_source = Column(String(16), nullable=False, default=GpsSource.MANUAL.value)
    captured_at = Column(DateTime(timezone=True), nullable=False)

    possession = relationship("Possession", back_populates="evidence")
