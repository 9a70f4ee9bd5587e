"""
Monotonic document numbers (SIA-YYYY-NNN, SEC11-YYYY-NNN, AWARD-YYYY-NNN)
"""
from datetime import datetime

from sqlalchemy.orm import Session

from lams.models.sequence import Sequence


def next_value(db: Session, name: str) -> int:
    """
    Increment and return the counter ``name`` inside the caller's transaction

    The row is locked for update, so two writers cannot draw the same value;
    a rolled-back transaction releases its value, a committed one never does.
    """
    seq = db.query(Sequence).filter(Sequence.name == name).with_for_update().first()
    if seq is None:
        seq = Sequence(name=name, value=0)
        db.add(seq)
    seq.value = (seq.value or 0) + 1
    db.flush()
    return seq.value


def next_number(db: Session, prefix: str, now: datetime) -> str:
    """Next ``PREFIX-YYYY-NNN`` number; the counter restarts each calendar year"""
    year = now.year
    value = next_value(db, f"{prefix}-{year}")
    return f"{prefix}-{year}-{value:03d}"
