"""
Workflow event model: append-only history of every committed transition
"""
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text

from lams.core.database import Base


class WorkflowEvent(Base):
    """
    Persistent audit record of one workflow action

    Rows are only ever inserted; status history of an entity is the ordered
    list of its events.
    """
    __tablename__ = "workflow_events"

    id = Column(Integer, primary_key=True)
    entity_type = Column(String(32), nullable=False)
    entity_id = Column(Integer, nullable=False)
    action = Column(String(64), nullable=False)
    from_status = Column(String(32), nullable=True)
    to_status = Column(String(32), nullable=True)
    actor_role = Column(String(64), nullable=True)
    actor_id = Column(String(255), nullable=True)
    message = Column(Text, nullable=True)
    event_data = Column(JSON, nullable=True)
    occurred_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("idx_workflow_events_entity", "entity_type", "entity_id"),
        Index("idx_workflow_events_occurred_at", "occurred_at"),
    )

    def __repr__(self):
        return (
            f"<WorkflowEvent(id={self.id}, entity={self.entity_type}:{self.entity_id}, "
            f"action={self.action}, {self.from_status}->{self.to_status})>"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses"""
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "actor_role": self.actor_role,
            "actor_id": self.actor_id,
            "message": self.message,
            "event_data": self.event_data or {},
            "occurred_at": self.occurred_at.isoformat() if self.occurred_at else None,
        }
