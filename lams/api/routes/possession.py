"""
API routes for possession proceedings
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from lams.api.deps import get_actor, get_now, get_workflow_engine
from lams.core.permissions import Actor
from lams.core.workflow_engine import WorkflowEngine

router = APIRouter(prefix="/api/possessions", tags=["possession"])


class PossessionScheduleRequest(BaseModel):
    parcel_id: int
    scheduled_at: datetime
    remarks: Optional[str] = None


class EvidenceItem(BaseModel):
    photo_ref: str = Field(..., description="Opaque file-store reference")
    lat: Decimal
    lng: Decimal
    sha256: str
    gps_source: Optional[str] = Field(None, description="manual, exif or device")


class EvidenceRequest(BaseModel):
    evidence: List[EvidenceItem]


class CertificateRequest(BaseModel):
    certificate_ref: str = Field(..., description="Reference of the rendered certificate")


class CancelRequest(BaseModel):
    reason: str


class EvidenceResponse(BaseModel):
    id: int
    photo_ref: str
    lat: Decimal
    lng: Decimal
    sha256: str
    gps_source: str
    captured_at: datetime

    class Config:
        from_attributes = True


class PossessionResponse(BaseModel):
    """Possession response model"""
    id: int
    parcel_id: int
    status: str
    scheduled_at: datetime
    remarks: Optional[str]
    certificate_ref: Optional[str]
    certificate_hash: Optional[str]
    version: int
    evidence: List[EvidenceResponse] = []

    class Config:
        from_attributes = True


@router.post("/", response_model=PossessionResponse)
async def schedule_possession(
    request: PossessionScheduleRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.schedule_possession(actor, now, request.parcel_id, request.scheduled_at, request.remarks)


@router.get("/", response_model=List[PossessionResponse])
async def list_possessions(
    parcel_id: Optional[int] = None,
    status: Optional[str] = None,
    engine: WorkflowEngine = Depends(get_workflow_engine),
):
    return engine.possessions.list_possessions(parcel_id=parcel_id, status=status)


@router.get("/{possession_id}", response_model=PossessionResponse)
async def get_possession(possession_id: int, engine: WorkflowEngine = Depends(get_workflow_engine)):
    return engine.possessions.get_possession(possession_id)


@router.post("/{possession_id}/start", response_model=PossessionResponse)
async def start_possession(
    possession_id: int,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.start_possession(actor, now, possession_id)


@router.post("/{possession_id}/evidence", response_model=PossessionResponse)
async def capture_evidence(
    possession_id: int,
    request: EvidenceRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    """Attach geotagged site photos"""
    evidence = [item.model_dump() for item in request.evidence]
    return engine.capture_possession_evidence(actor, now, possession_id, evidence)


@router.post("/{possession_id}/certificate", response_model=PossessionResponse)
async def issue_certificate(
    possession_id: int,
    request: CertificateRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.issue_possession_certificate(actor, now, possession_id, request.certificate_ref)


@router.post("/{possession_id}/registry", response_model=PossessionResponse)
async def update_registry(
    possession_id: int,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.update_possession_registry(actor, now, possession_id)


@router.post("/{possession_id}/close", response_model=PossessionResponse)
async def close_possession(
    possession_id: int,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.close_possession(actor, now, possession_id)


@router.post("/{possession_id}/cancel", response_model=PossessionResponse)
async def cancel_possession(
    possession_id: int,
    request: CancelRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.cancel_possession(actor, now, possession_id, request.reason)
