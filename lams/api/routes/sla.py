"""
SLA breach report
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from lams.api.deps import get_actor, get_now, get_workflow_engine
from lams.core.permissions import Actor
from lams.core.workflow_engine import WorkflowEngine

router = APIRouter(prefix="/api/sla", tags=["sla"])


class SlaBreachResponse(BaseModel):
    kind: str
    entity_type: str
    entity_id: int
    reference: Optional[str]
    status: str
    deadline: datetime
    overdue_seconds: int


@router.get("/breaches", response_model=List[SlaBreachResponse])
async def list_breaches(
    kind: Optional[str] = None,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    """Open SLA breaches, computed at request time"""
    breaches = engine.sla_scan(actor, now)
    if kind:
        breaches = [b for b in breaches if b.kind == kind]
    return [SlaBreachResponse(**b.to_dict()) for b in breaches]
