"""
Domain events and the post-commit event bus

Events describe committed facts (``SiaPublished``, ``AwardApproved`` ...).
The facade collects them during a transaction and hands them to the bus only
after commit. Each subscriber gets its own bounded retry; a subscriber that
keeps failing is logged and skipped, and the transition stays committed.
Inside a request the facade hands publishing to a dispatcher (FastAPI
background tasks), so retries run after the response is sent.
"""
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Optional

from lams.core.logging_config import LoggingConfig
from lams.core.metrics import domain_events_total

logger = LoggingConfig.get_logger(__name__)

Handler = Callable[["DomainEvent"], None]

ALL_EVENTS = "*"


@dataclass(frozen=True)
class DomainEvent:
    name: str
    entity_type: str
    entity_id: int
    occurred_at: datetime
    payload: Dict[str, Any] = field(default_factory=dict)
    actor_role: Optional[str] = None
    actor_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "occurred_at": self.occurred_at.isoformat(),
            "payload": self.payload,
            "actor_role": self.actor_role,
            "actor_id": self.actor_id,
        }


@dataclass
class DeliveryFailure:
    event: DomainEvent
    handler: str
    error: str
    attempts: int


class EventBus:
    """In-process publish/subscribe with per-subscriber retry"""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 0.0,
        max_delay: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
        max_failures: int = 100,
    ):
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep
        self._subscribers: Dict[str, List[Handler]] = defaultdict(list)
        # most recent failures only
        self.failures: Deque[DeliveryFailure] = deque(maxlen=max(1, max_failures))

    def subscribe(self, event_name: str, handler: Handler) -> None:
        """Register ``handler`` for ``event_name`` (``"*"`` for every event)"""
        self._subscribers[event_name].append(handler)

    def unsubscribe(self, event_name: str, handler: Handler) -> None:
        handlers = self._subscribers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    def _calculate_retry_delay(self, attempt: int) -> float:
        """
        Calculate retry delay with exponential backoff

        Args:
            attempt: Number of the attempt that just failed (1-based)

        Returns:
            Delay in seconds
        """
        delay = self.base_delay * (2 ** (attempt - 1))
        return min(delay, self.max_delay)

    def publish(self, events: List[DomainEvent]) -> None:
        for event in events:
            handlers = list(self._subscribers.get(event.name, [])) + list(self._subscribers.get(ALL_EVENTS, []))
            for handler in handlers:
                self._deliver(event, handler)

    def _deliver(self, event: DomainEvent, handler: Handler) -> bool:
        handler_name = getattr(handler, "__qualname__", repr(handler))
        for attempt in range(1, self.max_attempts + 1):
            try:
                handler(event)
                domain_events_total.labels(event=event.name, status="delivered").inc()
                return True
            except Exception as e:
                if attempt < self.max_attempts:
                    delay = self._calculate_retry_delay(attempt)
                    logger.warning(
                        f"Delivery of {event.name} to {handler_name} failed, retry {attempt}/{self.max_attempts - 1}",
                        extra={
                            "event": event.name,
                            "entity_type": event.entity_type,
                            "entity_id": event.entity_id,
                            "handler": handler_name,
                            "delay_seconds": delay,
                            "error": str(e),
                        },
                    )
                    if delay > 0:
                        self._sleep(delay)
                    continue

                logger.error(
                    f"Delivery of {event.name} to {handler_name} failed after {attempt} attempts",
                    exc_info=True,
                    extra={
                        "event": event.name,
                        "entity_type": event.entity_type,
                        "entity_id": event.entity_id,
                        "handler": handler_name,
                    },
                )
                domain_events_total.labels(event=event.name, status="failed").inc()
                self.failures.append(DeliveryFailure(event, handler_name, str(e), attempt))
        return False
