"""
Property scheme models: schemes, inventory, applicants, applications and e-draws
"""
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (JSON, Column, DateTime, ForeignKey, Integer, Numeric,
                        String, Table, Text)
from sqlalchemy.orm import relationship

from lams.core.database import Base


class SchemeStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CLOSED = "closed"


class SchemeCategory(str, Enum):
    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"
    INDUSTRIAL = "industrial"
    MIXED = "mixed"


class PropertyStatus(str, Enum):
    AVAILABLE = "available"
    ALLOTTED = "allotted"


class ApplicationStatus(str, Enum):
    """Application status enumeration"""
    SUBMITTED = "submitted"
    VERIFIED = "verified"
    REJECTED = "rejected"
    SELECTED = "selected"


class DrawStatus(str, Enum):
    COMPLETED = "completed"
    VOIDED = "voided"


scheme_inventory = Table(
    "scheme_inventory",
    Base.metadata,
    Column("scheme_id", Integer, ForeignKey("schemes.id", ondelete="CASCADE"), primary_key=True),
    Column("property_id", Integer, ForeignKey("properties.id", ondelete="CASCADE"), primary_key=True),
)


class Scheme(Base):
    """Property allotment scheme"""
    __tablename__ = "schemes"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    category = Column(String(32), nullable=False)
    eligibility = Column(JSON, nullable=True)
    status = Column(String(16), nullable=False, default=SchemeStatus.DRAFT.value, index=True)
    application_deadline = Column(DateTime(timezone=True), nullable=True)
    # Bumped by every verify/reject so a draw racing a verification loses its version check
    pool_revision = Column(Integer, nullable=False, default=0)
    application_count = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)

    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    published_at = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)

    inventory = relationship("Property", secondary=scheme_inventory, order_by="Property.id")
    applications = relationship("Application", back_populates="scheme", order_by="Application.id")
    draws = relationship("Draw", back_populates="scheme", order_by="Draw.id")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Scheme(id={self.id}, name={self.name}, status={self.status})>"


class Property(Base):
    """Allottable property unit"""
    __tablename__ = "properties"

    id = Column(Integer, primary_key=True)
    property_no = Column(String(64), nullable=False, unique=True)
    address = Column(Text, nullable=False)
    area = Column(Numeric(15, 2), nullable=False)
    status = Column(String(16), nullable=False, default=PropertyStatus.AVAILABLE.value, index=True)
    allotted_scheme_id = Column(Integer, ForeignKey("schemes.id", ondelete="SET NULL"), nullable=True)
    allotted_application_id = Column(Integer, ForeignKey("applications.id", ondelete="SET NULL"), nullable=True)
    allotted_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}


class Party(Base):
    """Applicant / allottee"""
    __tablename__ = "parties"

    id = Column(Integer, primary_key=True)
    party_type = Column(String(32), nullable=False, default="individual")
    name = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=False)
    email = Column(String(255), nullable=True)
    annual_income = Column(Numeric(15, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)


class Application(Base):
    """Application by a party to a scheme"""
    __tablename__ = "applications"

    id = Column(Integer, primary_key=True)
    scheme_id = Column(Integer, ForeignKey("schemes.id", ondelete="CASCADE"), nullable=False, index=True)
    party_id = Column(Integer, ForeignKey("parties.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(16), nullable=False, default=ApplicationStatus.SUBMITTED.value, index=True)
    score = Column(Numeric(10, 2), nullable=True)
    draw_seq = Column(Integer, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    docs = Column(JSON, nullable=True)  # opaque document references
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    verified_at = Column(DateTime(timezone=True), nullable=True)

    scheme = relationship("Scheme", back_populates="applications")
    party = relationship("Party")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Application(id={self.id}, scheme_id={self.scheme_id}, status={self.status}, draw_seq={self.draw_seq})>"


class Draw(Base):
    """
    Persisted e-draw

    Holds everything needed to recompute the permutation offline: the seed and
    the verified application ids in canonical (ascending) order.
    """
    __tablename__ = "draws"

    id = Column(Integer, primary_key=True)
    scheme_id = Column(Integer, ForeignKey("schemes.id", ondelete="CASCADE"), nullable=False, index=True)
    seed = Column(String(128), nullable=False)
    nonce = Column(String(64), nullable=False)
    input_digest = Column(String(64), nullable=False)
    application_ids = Column(JSON, nullable=False)
    permutation = Column(JSON, nullable=False)
    selected_count = Column(Integer, nullable=False)
    audit_hash = Column(String(64), nullable=False)
    status = Column(String(16), nullable=False, default=DrawStatus.COMPLETED.value)
    conducted_by = Column(String(255), nullable=True)
    conducted_at = Column(DateTime(timezone=True), nullable=False)
    voided_at = Column(DateTime(timezone=True), nullable=True)
    void_reason = Column(Text, nullable=True)

    scheme = relationship("Scheme", back_populates="draws")
