"""
SLA clock

Pure deadline arithmetic. Nothing here reads the system clock or touches an
entity; callers pass ``now`` and decide what a breach means for them.
"""
from datetime import datetime, timedelta
from typing import Iterable, Optional

from lams.utils.datetime_utils import ensure_utc


def remaining(deadline: datetime, now: datetime) -> timedelta:
    """Time left until ``deadline``; negative once the deadline has passed"""
    return ensure_utc(deadline) - ensure_utc(now)


def is_breached(
    deadline: Optional[datetime],
    now: datetime,
    terminal_statuses: Iterable[str],
    current_status: str,
) -> bool:
    """
    True iff ``now`` is strictly after ``deadline`` and the entity is not in a terminal status

    An entity without a deadline is never breached.
    """
    if deadline is None:
        return False
    terminal = {str(getattr(s, "value", s)) for s in terminal_statuses}
    status = str(getattr(current_status, "value", current_status))
    if status in terminal:
        return False
    return ensure_utc(now) > ensure_utc(deadline)


def deadline_from(start: datetime, days: int = 0, hours: int = 0) -> datetime:
    """Deadline ``days``/``hours`` after ``start``"""
    return ensure_utc(start) + timedelta(days=days, hours=hours)
