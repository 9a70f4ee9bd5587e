"""
Parcel, owner and ownership-share models
"""
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (CheckConstraint, Column, DateTime, ForeignKey, Integer,
                        Numeric, String, Text, UniqueConstraint)
from sqlalchemy.orm import relationship

from lams.core.database import Base


class ParcelStatus(str, Enum):
    """Acquisition status of a land parcel; only ever moves forward"""
    UNAFFECTED = "unaffected"
    UNDER_ACQ = "under_acq"
    AWARDED = "awarded"
    POSSESSED = "possessed"


class Parcel(Base):
    """Land parcel being (or potentially being) acquired"""
    __tablename__ = "parcels"

    id = Column(Integer, primary_key=True)
    parcel_no = Column(String(64), nullable=False, unique=True, index=True)
    village = Column(String(128), nullable=False)
    taluka = Column(String(128), nullable=False)
    district = Column(String(128), nullable=False)
    area_sq_m = Column(Numeric(15, 2), nullable=False)
    lat = Column(Numeric(10, 7), nullable=True)
    lng = Column(Numeric(10, 7), nullable=True)
    land_use = Column(String(64), nullable=True)
    status = Column(String(32), nullable=False, default=ParcelStatus.UNAFFECTED.value, index=True)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    owners = relationship("ParcelOwner", back_populates="parcel", cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        CheckConstraint("area_sq_m > 0", name="parcels_area_positive"),
        CheckConstraint(
            "status IN ('unaffected', 'under_acq', 'awarded', 'possessed')",
            name="parcels_status_check",
        ),
    )

    def __repr__(self):
        return f"<Parcel(id={self.id}, parcel_no={self.parcel_no}, status={self.status})>"


class Owner(Base):
    """Recorded land owner (award beneficiary)"""
    __tablename__ = "owners"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=False)
    email = Column(String(255), nullable=True)
    aadhaar = Column(String(16), nullable=True)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    def __repr__(self):
        return f"<Owner(id={self.id}, name={self.name})>"


class ParcelOwner(Base):
    """Share of a parcel held by an owner, in percent"""
    __tablename__ = "parcel_owners"

    id = Column(Integer, primary_key=True)
    parcel_id = Column(Integer, ForeignKey("parcels.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_id = Column(Integer, ForeignKey("owners.id", ondelete="CASCADE"), nullable=False, index=True)
    share_pct = Column(Numeric(5, 2), nullable=False, default=100)

    parcel = relationship("Parcel", back_populates="owners")
    owner = relationship("Owner")

    __table_args__ = (
        UniqueConstraint("parcel_id", "owner_id", name="parcel_owners_unique"),
        CheckConstraint("share_pct > 0 AND share_pct <= 100", name="parcel_owners_share_range"),
    )
