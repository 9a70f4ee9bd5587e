"""
Request-scoped dependencies: acting role, clock and the workflow engine
"""
from datetime import datetime
from functools import lru_cache
from typing import Optional

from fastapi import BackgroundTasks, Depends, Header
from sqlalchemy.orm import Session

from lams.core.config import get_settings
from lams.core.database import get_db
from lams.core.events import EventBus
from lams.core.permissions import Actor, PermissionTable, load_permission_table
from lams.core.workflow_engine import WorkflowEngine
from lams.utils.datetime_utils import utc_now

ANONYMOUS_ROLE = "anonymous"


@lru_cache()
def get_permission_table() -> PermissionTable:
    return load_permission_table(get_settings().permission_table_path)


@lru_cache()
def get_event_bus() -> EventBus:
    settings = get_settings()
    return EventBus(
        max_attempts=settings.event_retry_attempts,
        base_delay=settings.event_retry_base_delay_seconds,
    )


def get_actor(
    x_actor_role: Optional[str] = Header(None),
    x_actor_id: Optional[str] = Header(None),
) -> Actor:
    """Role and user id as resolved by the upstream identity provider"""
    return Actor(role=(x_actor_role or ANONYMOUS_ROLE).strip().lower(), user_id=x_actor_id)


def get_now() -> datetime:
    return utc_now()


def get_workflow_engine(background_tasks: BackgroundTasks, db: Session = Depends(get_db)) -> WorkflowEngine:
    """Engine for one request; domain events are delivered after the response"""
    return WorkflowEngine(
        db,
        permissions=get_permission_table(),
        event_bus=get_event_bus(),
        settings=get_settings(),
        dispatch=background_tasks.add_task,
    )
