"""
Tests for post-commit domain event delivery
"""
from datetime import datetime, timedelta, timezone

import pytest

from lams.core.errors import IllegalTransition
from lams.core.events import DomainEvent, EventBus
from lams.core.permissions import load_permission_table
from lams.core.workflow_engine import WorkflowEngine

EVENT = DomainEvent(
    name="SiaPublished",
    entity_type="sia",
    entity_id=1,
    occurred_at=datetime(2024, 3, 1, tzinfo=timezone.utc),
)


class TestEventBus:

    def test_delivers_to_named_and_wildcard_subscribers(self):
        bus = EventBus()
        named, everything = [], []
        bus.subscribe("SiaPublished", named.append)
        bus.subscribe("*", everything.append)
        bus.subscribe("SiaClosed", lambda e: named.append("wrong"))

        bus.publish([EVENT])

        assert named == [EVENT]
        assert everything == [EVENT]

    def test_retries_with_exponential_backoff(self):
        sleeps = []
        bus = EventBus(max_attempts=3, base_delay=1.0, sleep=sleeps.append)
        calls = []

        def flaky(event):
            calls.append(event)
            if len(calls) < 3:
                raise RuntimeError("subscriber down")

        bus.subscribe("SiaPublished", flaky)
        bus.publish([EVENT])

        assert len(calls) == 3
        assert sleeps == [1.0, 2.0]
        assert list(bus.failures) == []

    def test_failing_subscriber_does_not_block_others(self):
        bus = EventBus(max_attempts=2)
        received = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe("SiaPublished", broken)
        bus.subscribe("SiaPublished", received.append)
        bus.publish([EVENT])

        assert received == [EVENT]
        assert len(bus.failures) == 1
        assert bus.failures[0].attempts == 2
        assert bus.failures[0].error == "boom"

    def test_failure_log_is_bounded(self):
        bus = EventBus(max_attempts=1, max_failures=5)

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe("SiaPublished", broken)
        for i in range(1, 21):
            bus.publish([DomainEvent("SiaPublished", "sia", i, EVENT.occurred_at)])

        assert len(bus.failures) == 5
        assert [f.event.entity_id for f in bus.failures] == [16, 17, 18, 19, 20]

    def test_unsubscribe(self):
        bus = EventBus()
        received = []
        bus.subscribe("SiaPublished", received.append)
        bus.unsubscribe("SiaPublished", received.append)
        bus.publish([EVENT])
        assert received == []

    def test_event_to_dict(self):
        data = EVENT.to_dict()
        assert data["name"] == "SiaPublished"
        assert data["occurred_at"] == "2024-03-01T00:00:00+00:00"


class TestDispatch:

    def _engine(self, db, settings, event_bus, dispatch=None):
        return WorkflowEngine(db, permissions=load_permission_table(None), event_bus=event_bus,
                              settings=settings, dispatch=dispatch)

    def test_publishes_inline_without_dispatcher(self, db, settings, event_bus, officer, now):
        received = []
        event_bus.subscribe("*", received.append)
        engine = self._engine(db, settings, event_bus)
        sia = engine.create_sia(officer, now, "Bypass", "Bypass road", now, now + timedelta(days=10))
        engine.publish_sia(officer, now, sia.id)
        assert "SiaPublished" in [e.name for e in received]

    def test_dispatcher_defers_delivery(self, db, settings, event_bus, officer, now):
        received, deferred = [], []
        event_bus.subscribe("*", received.append)
        engine = self._engine(db, settings, event_bus,
                              dispatch=lambda fn, *args: deferred.append((fn, args)))
        sia = engine.create_sia(officer, now, "Bypass", "Bypass road", now, now + timedelta(days=10))
        engine.publish_sia(officer, now, sia.id)

        assert received == []
        for fn, args in deferred:
            fn(*args)
        assert "SiaPublished" in [e.name for e in received]

    def test_rejected_transition_dispatches_nothing(self, db, settings, event_bus, officer, now):
        deferred = []
        engine = self._engine(db, settings, event_bus,
                              dispatch=lambda fn, *args: deferred.append((fn, args)))
        sia = engine.create_sia(officer, now, "Bypass", "Bypass road", now, now + timedelta(days=10))
        engine.publish_sia(officer, now, sia.id)
        deferred.clear()
        with pytest.raises(IllegalTransition):
            engine.publish_sia(officer, now, sia.id)
        assert deferred == []
