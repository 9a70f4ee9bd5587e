"""
Permission checking utilities

The role -> actions table is external configuration. The built-in defaults
mirror the authority's role matrix; a JSON file at ``PERMISSION_TABLE_PATH``
(``{"role": ["action", ...]}``) replaces them wholesale.
"""
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

from lams.core.errors import Forbidden
from lams.core.logging_config import LoggingConfig

logger = LoggingConfig.get_logger(__name__)


@dataclass(frozen=True)
class Actor:
    """Caller of a workflow verb, as resolved by the identity provider"""
    role: str
    user_id: Optional[str] = None


class Role:
    ADMIN = "admin"
    CASE_OFFICER = "case_officer"
    LEGAL_OFFICER = "legal_officer"
    FINANCE_OFFICER = "finance_officer"
    CITIZEN = "citizen"
    AUDITOR = "auditor"


class Permission:
    """Permission constants"""
    ALL = "all"
    ALL_VIEW = "all.view"
    REPORT_VIEW = "report.view"

    # Parcels
    PARCEL_CREATE = "parcel.create"
    PARCEL_EDIT = "parcel.edit"
    POSSESSION_RECORD = "possession.record"

    # Social Impact Assessment
    SIA_CREATE = "sia.create"
    SIA_EDIT = "sia.edit"
    SIA_PUBLISH = "sia.publish"
    SIA_HEARING = "sia.hearing"
    SIA_REPORT = "sia.report"
    SIA_CLOSE = "sia.close"
    SIA_FEEDBACK = "sia.feedback"
    SIA_FEEDBACK_REVIEW = "sia.feedback_review"

    # Notifications and objections
    NOTIFICATION_CREATE = "notification.create"
    NOTIFICATION_EDIT = "notification.edit"
    NOTIFICATION_PUBLISH = "notification.publish"
    NOTIFICATION_WINDOW = "notification.window"
    NOTIFICATION_ARCHIVE = "notification.archive"
    OBJECTION_SUBMIT = "objection.submit"
    OBJECTION_REVIEW = "objection.review"
    OBJECTION_RESOLVE = "objection.resolve"

    # Compensation
    VALUATION_CREATE = "valuation.create"
    AWARD_CREATE = "award.create"
    AWARD_EDIT = "award.edit"
    AWARD_APPROVE = "award.approve"
    PAYMENT_CREATE = "payment.create"

    # Schemes
    SCHEME_CREATE = "scheme.create"
    SCHEME_EDIT = "scheme.edit"
    SCHEME_PUBLISH = "scheme.publish"
    SCHEME_CLOSE = "scheme.close"
    INVENTORY_MANAGE = "inventory.manage"
    APPLICATION_SUBMIT = "application.submit"
    APPLICATION_VERIFY = "application.verify"
    DRAW_CONDUCT = "draw.conduct"
    DRAW_RESET = "draw.reset"
    DRAW_ALLOT = "draw.allot"

    # Service requests
    SERVICE_REQUEST_CREATE = "service_request.create"
    SERVICE_REQUEST_REVIEW = "service_request.review"
    SERVICE_REQUEST_RESOLVE = "service_request.resolve"


# Role to permissions mapping
ROLE_PERMISSIONS: Dict[str, List[str]] = {
    Role.ADMIN: [
        Permission.ALL,
    ],
    Role.CASE_OFFICER: [
        Permission.PARCEL_CREATE,
        Permission.PARCEL_EDIT,
        Permission.POSSESSION_RECORD,
        Permission.SIA_CREATE,
        Permission.SIA_EDIT,
        Permission.SIA_PUBLISH,
        Permission.SIA_HEARING,
        Permission.SIA_REPORT,
        Permission.SIA_CLOSE,
        Permission.SIA_FEEDBACK_REVIEW,
        Permission.NOTIFICATION_CREATE,
        Permission.NOTIFICATION_EDIT,
        Permission.OBJECTION_RESOLVE,
        Permission.VALUATION_CREATE,
        Permission.AWARD_CREATE,
        Permission.AWARD_EDIT,
        Permission.SCHEME_CREATE,
        Permission.SCHEME_EDIT,
        Permission.SCHEME_PUBLISH,
        Permission.SCHEME_CLOSE,
        Permission.INVENTORY_MANAGE,
        Permission.APPLICATION_VERIFY,
        Permission.DRAW_CONDUCT,
        Permission.DRAW_ALLOT,
        Permission.SERVICE_REQUEST_REVIEW,
        Permission.SERVICE_REQUEST_RESOLVE,
        Permission.REPORT_VIEW,
    ],
    Role.LEGAL_OFFICER: [
        Permission.NOTIFICATION_PUBLISH,
        Permission.NOTIFICATION_WINDOW,
        Permission.NOTIFICATION_ARCHIVE,
        Permission.OBJECTION_REVIEW,
        Permission.OBJECTION_RESOLVE,
    ],
    Role.FINANCE_OFFICER: [
        Permission.AWARD_APPROVE,
        Permission.PAYMENT_CREATE,
    ],
    Role.CITIZEN: [
        Permission.SIA_FEEDBACK,
        Permission.OBJECTION_SUBMIT,
        Permission.APPLICATION_SUBMIT,
        Permission.SERVICE_REQUEST_CREATE,
    ],
    Role.AUDITOR: [
        Permission.ALL_VIEW,
        Permission.REPORT_VIEW,
    ],
}


class PermissionTable:
    """Role -> allowed actions lookup"""

    def __init__(self, table: Mapping[str, Iterable[str]]):
        self._table = {role: frozenset(actions) for role, actions in table.items()}

    @property
    def roles(self) -> List[str]:
        return sorted(self._table)

    def has_permission(self, role: str, action: str) -> bool:
        """
        Check if a role may perform an action

        ``all`` grants every action; ``all.view`` grants every ``*.view`` action.
        Unknown roles have no permissions.
        """
        permissions = self._table.get(role)
        if not permissions:
            return False
        if Permission.ALL in permissions:
            return True
        if action.endswith(".view") and Permission.ALL_VIEW in permissions:
            return True
        return action in permissions

    def check(self, actor: Actor, action: str) -> None:
        """Raise Forbidden unless the actor's role holds the action"""
        if not self.has_permission(actor.role, action):
            logger.warning(
                "Permission denied",
                extra={"role": actor.role, "user_id": actor.user_id, "action": action},
            )
            raise Forbidden(actor.role, action)


def load_permission_table(path: Optional[str] = None) -> PermissionTable:
    """
    Load the permission table

    Args:
        path: JSON file with ``{"role": ["action", ...]}``; defaults are used when None

    Returns:
        PermissionTable
    """
    if not path:
        return PermissionTable(ROLE_PERMISSIONS)

    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict) or not all(isinstance(v, list) for v in data.values()):
        raise ValueError(f"Permission table {path} must map role names to lists of actions")
    logger.info("Loaded permission table", extra={"path": str(path), "roles": sorted(data)})
    return PermissionTable(data)
