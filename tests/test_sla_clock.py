from datetime import datetime, timedelta, timezone

from lams.core import sla_clock

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_deadline_from_adds_days_and_hours():
    assert sla_clock.deadline_from(START, days=30) == START + timedelta(days=30)
    assert sla_clock.deadline_from(START, hours=36) == START + timedelta(hours=36)


def test_remaining_goes_negative_after_deadline():
    deadline = START + timedelta(days=1)
    assert sla_clock.remaining(deadline, START) == timedelta(days=1)
    assert sla_clock.remaining(deadline, deadline + timedelta(hours=2)) == timedelta(hours=-2)


def test_naive_values_are_treated_as_utc():
    naive_deadline = datetime(2024, 1, 2)
    assert sla_clock.remaining(naive_deadline, START) == timedelta(days=1)


def test_breach_is_strictly_after_deadline():
    deadline = START + timedelta(days=7)
    assert not sla_clock.is_breached(deadline, deadline, ["completed"], "submitted")
    assert sla_clock.is_breached(deadline, deadline + timedelta(seconds=1), ["completed"], "submitted")


def test_terminal_status_is_never_breached():
    deadline = START
    later = START + timedelta(days=100)
    assert not sla_clock.is_breached(deadline, later, ["completed", "rejected"], "completed")


def test_missing_deadline_is_never_breached():
    assert not sla_clock.is_breached(None, START, [], "submitted")
