"""
Service for recording and reading the append-only workflow history
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from lams.core.events import DomainEvent
from lams.core.logging_config import LoggingConfig
from lams.core.permissions import Actor
from lams.models.workflow_event import WorkflowEvent

logger = LoggingConfig.get_logger(__name__)


def _value(status) -> Optional[str]:
    if status is None:
        return None
    return str(getattr(status, "value", status))


class WorkflowEventService:
    """
    Persists one WorkflowEvent per action and queues the matching domain event

    Rows are flushed with the caller's transaction; queued domain events are
    taken by the facade and published only after that transaction commits.
    """

    def __init__(self, db: Session):
        self.db = db
        self.pending_events: List[DomainEvent] = []

    def record(
        self,
        entity_type: str,
        entity_id: int,
        action: str,
        actor: Optional[Actor],
        now: datetime,
        from_status=None,
        to_status=None,
        message: Optional[str] = None,
        event_data: Optional[Dict[str, Any]] = None,
        domain_event: Optional[str] = None,
    ) -> WorkflowEvent:
        """Save a workflow event and, if named, queue a domain event"""
        event = WorkflowEvent(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            from_status=_value(from_status),
            to_status=_value(to_status),
            actor_role=actor.role if actor else None,
            actor_id=actor.user_id if actor else None,
            message=message,
            event_data=event_data or {},
            occurred_at=now,
        )
        self.db.add(event)
        self.db.flush()

        logger.debug(
            f"Recorded {entity_type}:{entity_id} {action}",
            extra={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "action": action,
                "from_status": event.from_status,
                "to_status": event.to_status,
            },
        )

        if domain_event:
            self.pending_events.append(DomainEvent(
                name=domain_event,
                entity_type=entity_type,
                entity_id=entity_id,
                occurred_at=now,
                payload=dict(event_data or {}),
                actor_role=actor.role if actor else None,
                actor_id=actor.user_id if actor else None,
            ))
        return event

    def take_pending(self) -> List[DomainEvent]:
        events, self.pending_events = self.pending_events, []
        return events

    def history(self, entity_type: str, entity_id: int) -> List[WorkflowEvent]:
        """Events of one entity in the order they happened"""
        return (
            self.db.query(WorkflowEvent)
            .filter(WorkflowEvent.entity_type == entity_type, WorkflowEvent.entity_id == entity_id)
            .order_by(WorkflowEvent.occurred_at, WorkflowEvent.id)
            .all()
        )

    def list_events(
        self,
        entity_type: Optional[str] = None,
        action: Optional[str] = None,
        limit: int = 100,
    ) -> List[WorkflowEvent]:
        query = self.db.query(WorkflowEvent)
        if entity_type:
            query = query.filter(WorkflowEvent.entity_type == entity_type)
        if action:
            query = query.filter(WorkflowEvent.action == action)
        return query.order_by(WorkflowEvent.id.desc()).limit(limit).all()
