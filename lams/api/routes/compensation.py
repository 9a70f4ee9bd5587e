"""
API routes for valuations and compensation awards
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from lams.api.deps import get_actor, get_now, get_workflow_engine
from lams.core.permissions import Actor
from lams.core.workflow_engine import WorkflowEngine

router = APIRouter(tags=["compensation"])


class ValuationCreateRequest(BaseModel):
    """Request to value a parcel"""
    basis: str = Field(..., description="circle, market or hybrid")
    circle_rate: Decimal
    multipliers: Dict[str, Decimal] = {}
    justification_notes: Optional[str] = None


class AwardCreateRequest(BaseModel):
    parcel_id: int
    owner_id: int
    mode: str = Field(..., description="cash, pooling or hybrid")


class DisburseRequest(BaseModel):
    payment_ref: Optional[str] = None


class VoidRequest(BaseModel):
    reason: str


class ValuationResponse(BaseModel):
    id: int
    parcel_id: int
    basis: str
    circle_rate: Decimal
    area_sq_m: Decimal
    multipliers: Dict[str, str]
    computed_amount: Decimal
    justification_notes: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class AwardResponse(BaseModel):
    """Award response model"""
    id: int
    parcel_id: int
    owner_id: int
    valuation_id: int
    mode: str
    amount: Decimal
    share_pct: Decimal
    award_no: Optional[str]
    status: str
    payment_ref: Optional[str]
    created_at: datetime
    approved_at: Optional[datetime]
    disbursed_at: Optional[datetime]

    class Config:
        from_attributes = True


@router.post("/api/parcels/{parcel_id}/valuations", response_model=ValuationResponse)
async def compute_valuation(
    parcel_id: int,
    request: ValuationCreateRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    """Record a new valuation; earlier valuations are kept unchanged"""
    return engine.compute_valuation(actor, now, parcel_id, request.basis, request.circle_rate,
                                    request.multipliers, request.justification_notes)


@router.get("/api/parcels/{parcel_id}/valuations", response_model=List[ValuationResponse])
async def list_valuations(parcel_id: int, engine: WorkflowEngine = Depends(get_workflow_engine)):
    engine.parcels.get_parcel(parcel_id)
    return engine.compensation.list_valuations(parcel_id)


@router.post("/api/awards/", response_model=AwardResponse)
async def draft_award(
    request: AwardCreateRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.draft_award(actor, now, request.parcel_id, request.owner_id, request.mode)


@router.get("/api/awards/", response_model=List[AwardResponse])
async def list_awards(
    parcel_id: Optional[int] = None,
    status: Optional[str] = None,
    engine: WorkflowEngine = Depends(get_workflow_engine),
):
    return engine.compensation.list_awards(parcel_id=parcel_id, status=status)


@router.get("/api/awards/{award_id}", response_model=AwardResponse)
async def get_award(award_id: int, engine: WorkflowEngine = Depends(get_workflow_engine)):
    return engine.compensation.get_award(award_id)


@router.post("/api/awards/{award_id}/approve", response_model=AwardResponse)
async def approve_award(
    award_id: int,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.approve_award(actor, now, award_id)


@router.post("/api/awards/{award_id}/disburse", response_model=AwardResponse)
async def disburse_award(
    award_id: int,
    request: DisburseRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.disburse_award(actor, now, award_id, request.payment_ref)


@router.post("/api/awards/{award_id}/void", response_model=AwardResponse)
async def void_award(
    award_id: int,
    request: VoidRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.void_award(actor, now, award_id, request.reason)
