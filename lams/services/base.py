"""
Shared plumbing for workflow services
"""
from datetime import datetime
from typing import Any, Dict, Optional, Type

from sqlalchemy.orm import Session

from lams.core.errors import NotFound
from lams.core.permissions import Actor
from lams.services.workflow_event_service import WorkflowEventService
from lams.workflow.lifecycle import Lifecycle


class BaseService:
    """Session, audit trail and transition helper shared by every service"""

    def __init__(self, db: Session, audit: Optional[WorkflowEventService] = None):
        self.db = db
        self.audit = audit or WorkflowEventService(db)

    def _get(self, model: Type, entity_id: int, entity: str, lock: bool = False):
        """Load ``model`` by id, optionally with a row lock; NotFound if missing"""
        query = self.db.query(model).filter(model.id == entity_id)
        if lock:
            query = query.with_for_update()
        obj = query.first()
        if obj is None:
            raise NotFound(entity, entity_id)
        return obj

    def _transition(
        self,
        lifecycle: Lifecycle,
        obj,
        action: str,
        actor: Optional[Actor],
        now: datetime,
        domain_event: Optional[str] = None,
        event_data: Optional[Dict[str, Any]] = None,
        message: Optional[str] = None,
    ) -> str:
        """
        Apply ``action`` to ``obj.status`` and record it

        The lifecycle raises before anything is mutated. Returns the previous status.
        """
        from_status = obj.status
        obj.status = lifecycle.apply(from_status, action)
        self.db.flush()
        self.audit.record(
            lifecycle.entity,
            obj.id,
            action,
            actor,
            now,
            from_status=from_status,
            to_status=obj.status,
            message=message,
            event_data=event_data,
            domain_event=domain_event,
        )
        return from_status
