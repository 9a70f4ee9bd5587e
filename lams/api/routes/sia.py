"""
API routes for Social Impact Assessment cases
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from lams.api.deps import get_actor, get_now, get_workflow_engine
from lams.core.permissions import Actor
from lams.core.workflow_engine import WorkflowEngine

router = APIRouter(prefix="/api/sia", tags=["sia"])


class SiaCreateRequest(BaseModel):
    """Request to create a draft SIA case"""
    title: str = ""
    description: str = ""
    start_date: datetime = Field(..., description="Opening of the feedback window")
    end_date: datetime = Field(..., description="Close of the feedback window")


class SiaUpdateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class HearingCreateRequest(BaseModel):
    date: datetime
    venue: str
    agenda: Optional[str] = None


class HearingCompleteRequest(BaseModel):
    minutes_ref: str = Field(..., description="File-store reference of the minutes")
    attendees: List[str] = []


class FeedbackCreateRequest(BaseModel):
    citizen_name: str
    citizen_contact: str
    text: str
    attachment_ref: Optional[str] = None


class FeedbackReviewRequest(BaseModel):
    action: str = Field(..., description="start_review, accept or reject")


class ReportRequest(BaseModel):
    report_ref: Optional[str] = None


class HearingResponse(BaseModel):
    id: int
    sia_id: int
    date: datetime
    venue: str
    agenda: Optional[str]
    status: str
    minutes_ref: Optional[str]
    attendees: Optional[List[str]]
    completed_at: Optional[datetime]

    class Config:
        from_attributes = True


class FeedbackResponse(BaseModel):
    id: int
    sia_id: int
    citizen_name: str
    text: str
    attachment_ref: Optional[str]
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class ReportResponse(BaseModel):
    id: int
    sia_id: int
    summary: Dict[str, Any]
    report_ref: Optional[str]
    generated_at: datetime

    class Config:
        from_attributes = True


class SiaResponse(BaseModel):
    """SIA case response model"""
    id: int
    notice_no: str
    title: str
    description: str
    start_date: datetime
    end_date: datetime
    status: str
    version: int
    published_at: Optional[datetime]
    closed_at: Optional[datetime]
    hearings: List[HearingResponse] = []

    class Config:
        from_attributes = True


@router.post("/", response_model=SiaResponse)
async def create_sia(
    request: SiaCreateRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    """Create a draft SIA case"""
    return engine.create_sia(actor, now, request.title, request.description, request.start_date, request.end_date)


@router.get("/", response_model=List[SiaResponse])
async def list_sias(status: Optional[str] = None, engine: WorkflowEngine = Depends(get_workflow_engine)):
    return engine.sia.list_sias(status=status)


@router.get("/{sia_id}", response_model=SiaResponse)
async def get_sia(sia_id: int, engine: WorkflowEngine = Depends(get_workflow_engine)):
    return engine.sia.get_sia(sia_id)


@router.patch("/{sia_id}", response_model=SiaResponse)
async def update_sia(
    sia_id: int,
    request: SiaUpdateRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    """Edit a draft"""
    return engine.update_sia(actor, now, sia_id, **request.model_dump(exclude_unset=True))


@router.post("/{sia_id}/publish", response_model=SiaResponse)
async def publish_sia(
    sia_id: int,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.publish_sia(actor, now, sia_id)


@router.post("/{sia_id}/hearings", response_model=HearingResponse)
async def schedule_hearing(
    sia_id: int,
    request: HearingCreateRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.schedule_hearing(actor, now, sia_id, request.date, request.venue, request.agenda)


@router.post("/{sia_id}/hearings/{hearing_id}/complete", response_model=HearingResponse)
async def complete_hearing(
    sia_id: int,
    hearing_id: int,
    request: HearingCompleteRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.complete_hearing(actor, now, sia_id, hearing_id, request.minutes_ref, request.attendees)


@router.post("/{sia_id}/feedback", response_model=FeedbackResponse)
async def submit_feedback(
    sia_id: int,
    request: FeedbackCreateRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    """Citizen feedback during the SIA window"""
    return engine.submit_sia_feedback(actor, now, sia_id, request.citizen_name, request.citizen_contact,
                                      request.text, request.attachment_ref)


@router.get("/{sia_id}/feedback", response_model=List[FeedbackResponse])
async def list_feedback(sia_id: int, engine: WorkflowEngine = Depends(get_workflow_engine)):
    return engine.sia.get_sia(sia_id).feedback


@router.post("/feedback/{feedback_id}/review", response_model=FeedbackResponse)
async def review_feedback(
    feedback_id: int,
    request: FeedbackReviewRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.review_sia_feedback(actor, now, feedback_id, request.action)


@router.post("/{sia_id}/report", response_model=ReportResponse)
async def generate_report(
    sia_id: int,
    request: ReportRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.generate_sia_report(actor, now, sia_id, request.report_ref)


@router.post("/{sia_id}/close", response_model=SiaResponse)
async def close_sia(
    sia_id: int,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.close_sia(actor, now, sia_id)
