"""
Named monotonic counters used for notice, reference and award numbers
"""
from sqlalchemy import Column, Integer, String

from lams.core.database import Base


class Sequence(Base):
    __tablename__ = "sequences"

    name = Column(String(32), primary_key=True)
    value = Column(Integer, nullable=False, default=0)
