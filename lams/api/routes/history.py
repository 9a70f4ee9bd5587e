"""
Workflow history (audit trail) endpoints
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from lams.api.deps import get_workflow_engine
from lams.core.workflow_engine import WorkflowEngine

router = APIRouter(prefix="/api/history", tags=["history"])


class WorkflowEventResponse(BaseModel):
    """Workflow event response model"""
    id: int
    entity_type: str
    entity_id: int
    action: str
    from_status: Optional[str]
    to_status: Optional[str]
    actor_role: Optional[str]
    actor_id: Optional[str]
    message: Optional[str]
    event_data: Optional[dict]
    occurred_at: datetime

    class Config:
        from_attributes = True


@router.get("/", response_model=List[WorkflowEventResponse])
async def list_events(
    entity_type: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 100,
    engine: WorkflowEngine = Depends(get_workflow_engine),
):
    """Most recent events first"""
    return engine.audit.list_events(entity_type=entity_type, action=action, limit=min(limit, 1000))


@router.get("/{entity_type}/{entity_id}", response_model=List[WorkflowEventResponse])
async def entity_history(
    entity_type: str,
    entity_id: int,
    engine: WorkflowEngine = Depends(get_workflow_engine),
):
    """Status history of one entity in the order it happened"""
    return engine.history(entity_type, entity_id)
