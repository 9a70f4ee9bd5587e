"""
API routes for property schemes, applications and the e-draw
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, StrictInt

from lams.api.deps import get_actor, get_now, get_workflow_engine
from lams.core.permissions import Actor
from lams.core.workflow_engine import WorkflowEngine

router = APIRouter(tags=["schemes"])


class SchemeCreateRequest(BaseModel):
    """Request to create a draft scheme"""
    name: str
    category: str = Field(..., description="residential, commercial, industrial or mixed")
    eligibility: Dict[str, Any] = {}
    application_deadline: Optional[datetime] = None


class SchemeUpdateRequest(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    eligibility: Optional[Dict[str, Any]] = None
    application_deadline: Optional[datetime] = None


class PropertyCreateRequest(BaseModel):
    property_no: str
    address: str
    area: Decimal


class InventoryRequest(BaseModel):
    property_id: int


class PartyCreateRequest(BaseModel):
    name: str
    phone: str
    party_type: str = "individual"
    email: Optional[str] = None
    annual_income: Optional[Decimal] = None


class ApplicationCreateRequest(BaseModel):
    party_id: int
    docs: List[str] = []


class RejectRequest(BaseModel):
    reason: str


class DrawRequest(BaseModel):
    selected_count: StrictInt = Field(..., description="Number of applications to select")


class DrawResetRequest(BaseModel):
    reason: str


class PropertyResponse(BaseModel):
    id: int
    property_no: str
    address: str
    area: Decimal
    status: str
    allotted_scheme_id: Optional[int]
    allotted_application_id: Optional[int]

    class Config:
        from_attributes = True


class SchemeResponse(BaseModel):
    """Scheme response model"""
    id: int
    name: str
    category: str
    eligibility: Optional[Dict[str, Any]]
    status: str
    application_deadline: Optional[datetime]
    pool_revision: int
    version: int
    inventory: List[PropertyResponse] = []

    class Config:
        from_attributes = True


class PartyResponse(BaseModel):
    id: int
    name: str
    phone: str
    party_type: str

    class Config:
        from_attributes = True


class ApplicationResponse(BaseModel):
    id: int
    scheme_id: int
    party_id: int
    status: str
    score: Optional[Decimal]
    draw_seq: Optional[int]
    rejection_reason: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class DrawResponse(BaseModel):
    """Persisted draw, including everything needed to recompute it"""
    id: int
    scheme_id: int
    seed: str
    nonce: str
    input_digest: str
    application_ids: List[int]
    permutation: List[int]
    selected_count: int
    audit_hash: str
    status: str
    conducted_by: Optional[str]
    conducted_at: datetime
    voided_at: Optional[datetime]
    void_reason: Optional[str]

    class Config:
        from_attributes = True


class DrawVerificationResponse(BaseModel):
    draw_id: int
    valid: bool
    problems: List[str]


@router.post("/api/schemes/", response_model=SchemeResponse)
async def create_scheme(
    request: SchemeCreateRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.create_scheme(actor, now, request.name, request.category, request.eligibility,
                                request.application_deadline)


@router.get("/api/schemes/", response_model=List[SchemeResponse])
async def list_schemes(status: Optional[str] = None, engine: WorkflowEngine = Depends(get_workflow_engine)):
    return engine.schemes.list_schemes(status=status)


@router.get("/api/schemes/{scheme_id}", response_model=SchemeResponse)
async def get_scheme(scheme_id: int, engine: WorkflowEngine = Depends(get_workflow_engine)):
    return engine.schemes.get_scheme(scheme_id)


@router.patch("/api/schemes/{scheme_id}", response_model=SchemeResponse)
async def update_scheme(
    scheme_id: int,
    request: SchemeUpdateRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.update_scheme(actor, now, scheme_id, **request.model_dump(exclude_unset=True))


@router.post("/api/schemes/{scheme_id}/publish", response_model=SchemeResponse)
async def publish_scheme(
    scheme_id: int,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.publish_scheme(actor, now, scheme_id)


@router.post("/api/schemes/{scheme_id}/close", response_model=SchemeResponse)
async def close_scheme(
    scheme_id: int,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.close_scheme(actor, now, scheme_id)


@router.post("/api/properties/", response_model=PropertyResponse)
async def register_property(
    request: PropertyCreateRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.register_property(actor, now, request.property_no, request.address, request.area)


@router.post("/api/schemes/{scheme_id}/inventory", response_model=SchemeResponse)
async def add_inventory(
    scheme_id: int,
    request: InventoryRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.add_scheme_inventory(actor, now, scheme_id, request.property_id)


@router.post("/api/parties/", response_model=PartyResponse)
async def register_party(
    request: PartyCreateRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.register_party(actor, now, request.name, request.phone, request.party_type,
                                 request.email, request.annual_income)


@router.post("/api/schemes/{scheme_id}/applications", response_model=ApplicationResponse)
async def submit_application(
    scheme_id: int,
    request: ApplicationCreateRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.submit_application(actor, now, scheme_id, request.party_id, request.docs)


@router.get("/api/schemes/{scheme_id}/applications", response_model=List[ApplicationResponse])
async def list_applications(
    scheme_id: int,
    status: Optional[str] = None,
    engine: WorkflowEngine = Depends(get_workflow_engine),
):
    engine.schemes.get_scheme(scheme_id)
    return engine.schemes.list_applications(scheme_id, status=status)


@router.post("/api/applications/{application_id}/verify", response_model=ApplicationResponse)
async def verify_application(
    application_id: int,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.verify_application(actor, now, application_id)


@router.post("/api/applications/{application_id}/reject", response_model=ApplicationResponse)
async def reject_application(
    application_id: int,
    request: RejectRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.reject_application(actor, now, application_id, request.reason)


@router.post("/api/schemes/{scheme_id}/draw", response_model=DrawResponse)
async def conduct_draw(
    scheme_id: int,
    request: DrawRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    """Run the e-draw over the scheme's verified applications"""
    return engine.conduct_draw(actor, now, scheme_id, request.selected_count)


@router.get("/api/schemes/{scheme_id}/draws", response_model=List[DrawResponse])
async def list_draws(scheme_id: int, engine: WorkflowEngine = Depends(get_workflow_engine)):
    engine.schemes.get_scheme(scheme_id)
    return engine.draws.list_draws(scheme_id)


@router.get("/api/draws/{draw_id}/verify", response_model=DrawVerificationResponse)
async def verify_draw(
    draw_id: int,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
):
    return engine.verify_draw(actor, draw_id)


@router.post("/api/schemes/{scheme_id}/draw/reset", response_model=DrawResponse)
async def reset_draw(
    scheme_id: int,
    request: DrawResetRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    """Void the completed draw (administrators only)"""
    return engine.reset_draw(actor, now, scheme_id, request.reason)


@router.post("/api/schemes/{scheme_id}/draw/allot", response_model=List[PropertyResponse])
async def allot_draw_results(
    scheme_id: int,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.allot_draw_results(actor, now, scheme_id)
