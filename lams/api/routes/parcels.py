"""
API routes for the parcel registry
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from lams.api.deps import get_actor, get_now, get_workflow_engine
from lams.core.permissions import Actor
from lams.core.workflow_engine import WorkflowEngine

router = APIRouter(prefix="/api/parcels", tags=["parcels"])


class ParcelCreateRequest(BaseModel):
    """Request to register a parcel"""
    parcel_no: str
    village: str
    taluka: str
    district: str
    area_sq_m: Decimal = Field(..., description="Parcel area in square metres")
    lat: Optional[Decimal] = None
    lng: Optional[Decimal] = None
    land_use: Optional[str] = None


class OwnerCreateRequest(BaseModel):
    name: str
    phone: str
    email: Optional[str] = None
    aadhaar: Optional[str] = None
    address: Optional[str] = None


class OwnerShareRequest(BaseModel):
    owner_id: int
    share_pct: Decimal = Field(..., description="Share of the parcel in percent")


class ParcelOwnerResponse(BaseModel):
    owner_id: int
    share_pct: Decimal

    class Config:
        from_attributes = True


class ParcelResponse(BaseModel):
    """Parcel response model"""
    id: int
    parcel_no: str
    village: str
    taluka: str
    district: str
    area_sq_m: Decimal
    lat: Optional[Decimal]
    lng: Optional[Decimal]
    land_use: Optional[str]
    status: str
    version: int
    owners: List[ParcelOwnerResponse] = []

    class Config:
        from_attributes = True


class OwnerResponse(BaseModel):
    id: int
    name: str
    phone: str
    email: Optional[str]

    class Config:
        from_attributes = True


@router.post("/", response_model=ParcelResponse)
async def register_parcel(
    request: ParcelCreateRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    """Register a parcel"""
    return engine.register_parcel(actor, now, **request.model_dump())


@router.get("/", response_model=List[ParcelResponse])
async def list_parcels(
    status: Optional[str] = None,
    village: Optional[str] = None,
    engine: WorkflowEngine = Depends(get_workflow_engine),
):
    return engine.parcels.list_parcels(status=status, village=village)


@router.post("/owners", response_model=OwnerResponse)
async def register_owner(
    request: OwnerCreateRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.register_owner(actor, now, **request.model_dump())


@router.get("/{parcel_id}", response_model=ParcelResponse)
async def get_parcel(parcel_id: int, engine: WorkflowEngine = Depends(get_workflow_engine)):
    return engine.parcels.get_parcel(parcel_id)


@router.post("/{parcel_id}/owners", response_model=ParcelResponse)
async def add_owner_share(
    parcel_id: int,
    request: OwnerShareRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    """Record an owner's share of the parcel"""
    engine.add_owner_share(actor, now, parcel_id, request.owner_id, request.share_pct)
    return engine.parcels.get_parcel(parcel_id)

