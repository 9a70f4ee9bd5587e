"""
Valuation and compensation award models
"""
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (JSON, CheckConstraint, Column, DateTime, ForeignKey,
                        Integer, Numeric, String, Text, event)
from sqlalchemy.orm import object_session, relationship

from lams.core.database import Base
from lams.core.errors import ValidationError


class ValuationBasis(str, Enum):
    CIRCLE = "circle"
    MARKET = "market"
    HYBRID = "hybrid"


class ValuationFactor(str, Enum):
    """Closed set of factors a valuation may be multiplied by"""
    LOCATION = "location"
    LAND_USE = "land_use"
    INFRASTRUCTURE = "infrastructure"
    RURAL_URBAN = "rural_urban"
    MARKET_ADJUSTMENT = "market_adjustment"
    SOLATIUM = "solatium"


class AwardMode(str, Enum):
    CASH = "cash"
    POOLING = "pooling"
    HYBRID = "hybrid"


class AwardStatus(str, Enum):
    """Award status enumeration"""
    DRAFT = "draft"
    APPROVED = "approved"
    DISBURSED = "disbursed"
    VOIDED = "voided"


class Valuation(Base):
    """
    Parcel valuation

    Rows are write-once: a correction is a new valuation, and the most recent
    one (by created_at, then id) is the one awards are drafted from.
    """
    __tablename__ = "valuations"

    id = Column(Integer, primary_key=True)
    parcel_id = Column(Integer, ForeignKey("parcels.id", ondelete="CASCADE"), nullable=False, index=True)
    basis = Column(String(16), nullable=False)
    circle_rate = Column(Numeric(15, 2), nullable=False)
    area_sq_m = Column(Numeric(15, 2), nullable=False)
    multipliers = Column(JSON, nullable=False, default=dict)
    computed_amount = Column(Numeric(18, 2), nullable=False)
    justification_notes = Column(Text, nullable=True)
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    parcel = relationship("Parcel")

    __table_args__ = (
        CheckConstraint("circle_rate > 0", name="valuations_rate_positive"),
    )


@event.listens_for(Valuation, "before_update")
def _reject_valuation_update(mapper, connection, target):
    session = object_session(target)
    if session is not None and session.is_modified(target, include_collections=False):
        raise ValidationError(
            f"valuation {target.id} is immutable; record a new valuation instead",
            {"valuation_id": target.id},
        )


class Award(Base):
    """Compensation award for one owner of one parcel"""
    __tablename__ = "awards"

    id = Column(Integer, primary_key=True)
    parcel_id = Column(Integer, ForeignKey("parcels.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_id = Column(Integer, ForeignKey("owners.id", ondelete="CASCADE"), nullable=False, index=True)
    valuation_id = Column(Integer, ForeignKey("valuations.id"), nullable=False)
    mode = Column(String(16), nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)
    share_pct = Column(Numeric(5, 2), nullable=False, default=100)
    award_no = Column(String(32), nullable=True, unique=True)
    status = Column(String(16), nullable=False, default=AwardStatus.DRAFT.value, index=True)
    payment_ref = Column(String(255), nullable=True)
    void_reason = Column(Text, nullable=True)
    version = Column(Integer, nullable=False, default=1)

    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    disbursed_at = Column(DateTime(timezone=True), nullable=True)

    parcel = relationship("Parcel")
    owner = relationship("Owner")
    valuation = relationship("Valuation")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Award(id={self.id}, award_no={self.award_no}, status={self.status})>"
