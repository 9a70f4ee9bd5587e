"""
API routes for Section 11 / Section 19 notifications and citizen objections
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from lams.api.deps import get_actor, get_now, get_workflow_engine
from lams.core.permissions import Actor
from lams.core.workflow_engine import WorkflowEngine

router = APIRouter(tags=["notifications"])


class NotificationCreateRequest(BaseModel):
    """Request to create a draft notification"""
    type: str = Field(..., description="sec11 or sec19")
    title: str
    body: str = ""
    parcel_ids: List[int] = []
    sia_id: Optional[int] = None


class NotificationUpdateRequest(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None
    parcel_ids: Optional[List[int]] = None


class AttachmentRef(BaseModel):
    ref: str = Field(..., description="Opaque file-store reference")
    size_bytes: int
    original_name: Optional[str] = None
    mime_type: Optional[str] = None


class ObjectionCreateRequest(BaseModel):
    parcel_id: int
    name: str
    phone: str
    text: str
    email: Optional[str] = None
    aadhaar: Optional[str] = None
    owner_id: Optional[int] = None
    attachments: List[AttachmentRef] = []


class ObjectionResolveRequest(BaseModel):
    outcome: str = Field(..., description="resolved or rejected")
    text: str


class NotificationResponse(BaseModel):
    """Notification response model"""
    id: int
    type: str
    ref_no: str
    title: str
    body: str
    status: str
    sia_id: Optional[int]
    publish_date: Optional[datetime]
    objection_window_opened_at: Optional[datetime]
    objection_deadline: Optional[datetime]
    closed_at: Optional[datetime]
    objection_count: int = 0
    version: int
    parcel_ids: List[int] = []

    class Config:
        from_attributes = True


class ObjectionResponse(BaseModel):
    id: int
    notification_id: int
    parcel_id: int
    submitted_by_name: str
    text: str
    attachments: Optional[List[dict]]
    status: str
    resolution_text: Optional[str]
    resolved_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


def _notification_response(notification) -> NotificationResponse:
    response = NotificationResponse.model_validate(notification)
    response.parcel_ids = [p.id for p in notification.parcels]
    return response


@router.post("/api/notifications/", response_model=NotificationResponse)
async def create_notification(
    request: NotificationCreateRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    notification = engine.create_notification(actor, now, request.type, request.title, request.body,
                                               request.parcel_ids, request.sia_id)
    return _notification_response(notification)


@router.get("/api/notifications/", response_model=List[NotificationResponse])
async def list_notifications(
    type: Optional[str] = None,
    status: Optional[str] = None,
    engine: WorkflowEngine = Depends(get_workflow_engine),
):
    return [_notification_response(n) for n in engine.notifications.list_notifications(type, status)]


@router.get("/api/notifications/{notification_id}", response_model=NotificationResponse)
async def get_notification(notification_id: int, engine: WorkflowEngine = Depends(get_workflow_engine)):
    return _notification_response(engine.notifications.get_notification(notification_id))


@router.patch("/api/notifications/{notification_id}", response_model=NotificationResponse)
async def update_notification(
    notification_id: int,
    request: NotificationUpdateRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    notification = engine.update_notification(actor, now, notification_id, **request.model_dump(exclude_unset=True))
    return _notification_response(notification)


@router.post("/api/notifications/{notification_id}/publish", response_model=NotificationResponse)
async def publish_notification(
    notification_id: int,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return _notification_response(engine.publish_notification(actor, now, notification_id))


@router.post("/api/notifications/{notification_id}/objection-window/open", response_model=NotificationResponse)
async def open_objection_window(
    notification_id: int,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return _notification_response(engine.open_objection_window(actor, now, notification_id))


@router.post("/api/notifications/{notification_id}/objection-window/close", response_model=NotificationResponse)
async def close_objection_window(
    notification_id: int,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return _notification_response(engine.close_objection_window(actor, now, notification_id))


@router.post("/api/notifications/{notification_id}/archive", response_model=NotificationResponse)
async def archive_notification(
    notification_id: int,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return _notification_response(engine.archive_notification(actor, now, notification_id))


@router.post("/api/notifications/{notification_id}/objections", response_model=ObjectionResponse)
async def submit_objection(
    notification_id: int,
    request: ObjectionCreateRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    """File an objection for one affected parcel"""
    fields = request.model_dump()
    parcel_id = fields.pop("parcel_id")
    return engine.submit_objection(actor, now, notification_id, parcel_id, **fields)


@router.get("/api/notifications/{notification_id}/objections", response_model=List[ObjectionResponse])
async def list_objections(
    notification_id: int,
    status: Optional[str] = None,
    engine: WorkflowEngine = Depends(get_workflow_engine),
):
    engine.notifications.get_notification(notification_id)
    return engine.objections.list_objections(notification_id=notification_id, status=status)


@router.get("/api/objections/{objection_id}", response_model=ObjectionResponse)
async def get_objection(objection_id: int, engine: WorkflowEngine = Depends(get_workflow_engine)):
    return engine.objections.get_objection(objection_id)


@router.post("/api/objections/{objection_id}/review", response_model=ObjectionResponse)
async def start_objection_review(
    objection_id: int,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.start_objection_review(actor, now, objection_id)


@router.post("/api/objections/{objection_id}/resolve", response_model=ObjectionResponse)
async def resolve_objection(
    objection_id: int,
    request: ObjectionResolveRequest,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
):
    return engine.resolve_objection(actor, now, objection_id, request.outcome, request.text)
