"""
API routes for citizen service requests
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from lams.api.deps import get_actor, get_now, get_workflow_engine
from lams.core.permissions import Actor
from lams.core.workflow_engine import WorkflowEngine

router = APIRouter(prefix="/api/service-requests", tags=["service-requests"])


class ServiceRequestCreateRequest(BaseModel):
    request_type: str = Field(..., description="address_change, duplicate_document, correction, ...")
    description: str
    party_id: Optional[int] = None
    property_id: Optional[int] = None
    data: Dict[str, Any] = {}


class ReviewRequest(BaseModel):
    assigned_to: Optional[str] = None


class ResolutionRequest(BaseModel):
    resolution: str


class ServiceRequestResponse(BaseModel):
    """Service request response model"""
    id: int
    ref_no: str
    request_type: str
    description: str
    party_id: Optional[int]
    property_id: Optional[int]
    status: str
    assigned_to: Optional[str]
    resolution: Optional[str]
    sla_deadline: datetime
    resolved_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class SlaResponse(BaseModel):
    deadline: datetime
    remaining_seconds: int
    breached: bool


@router.post("/", response_model=ServiceRequestResponse)
async def create_service_request(
    request: ServiceRequestCreateRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.create_service_request(actor, now, request.request_type, request.description,
                                         request.party_id, request.property_id, request.data)


@router.get("/", response_model=List[ServiceRequestResponse])
async def list_service_requests(
    status: Optional[str] = None,
    request_type: Optional[str] = None,
    engine: WorkflowEngine = Depends(get_workflow_engine),
):
    return engine.service_requests.list_requests(status=status, request_type=request_type)


@router.get("/{request_id}", response_model=ServiceRequestResponse)
async def get_service_request(request_id: int, engine: WorkflowEngine = Depends(get_workflow_engine)):
    return engine.service_requests.get_request(request_id)


@router.get("/{request_id}/sla", response_model=SlaResponse)
async def get_service_request_sla(
    request_id: int,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    now: datetime = Depends(get_now),
):
    request = engine.service_requests.get_request(request_id)
    status = engine.sla.service_request_sla(request, now)
    return SlaResponse(deadline=status.deadline, remaining_seconds=status.remaining_seconds,
                       breached=status.breached)


@router.post("/{request_id}/review", response_model=ServiceRequestResponse)
async def start_review(
    request_id: int,
    request: ReviewRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.start_service_request_review(actor, now, request_id, request.assigned_to)


@router.post("/{request_id}/complete", response_model=ServiceRequestResponse)
async def complete_service_request(
    request_id: int,
    request: ResolutionRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.complete_service_request(actor, now, request_id, request.resolution)


@router.post("/{request_id}/reject", response_model=ServiceRequestResponse)
async def reject_service_request(
    request_id: int,
    request: ResolutionRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.reject_service_request(actor, now, request_id, request.resolution)
