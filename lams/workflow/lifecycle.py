"""
Lifecycle tables for every workflow entity

Each table maps ``(status, action) -> status`` for one entity type. A pair
missing from the table raises IllegalTransition.

Status values are stored as lowercase strings; enums and raw strings are both
accepted here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional

from lams.core.errors import IllegalTransition


@dataclass(frozen=True)
class TransitionResult:
    allowed: bool
    target: Optional[str] = None
    reason: Optional[str] = None


def _value(status) -> str:
    return str(getattr(status, "value", status) or "").lower()


@dataclass(frozen=True)
class Lifecycle:
    """Finite-state lifecycle of one entity type"""

    entity: str
    transitions: Mapping[str, Mapping[str, str]]
    terminal: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def states(self) -> FrozenSet[str]:
        targets = {t for actions in self.transitions.values() for t in actions.values()}
        return frozenset(set(self.transitions) | targets)

    def check(self, current, action: str) -> TransitionResult:
        current = _value(current)
        if current not in self.states:
            return TransitionResult(False, reason=f"unknown_current_state:{current}")
        target = self.transitions.get(current, {}).get(action)
        if target is None:
            return TransitionResult(False, reason=f"disallowed_transition:{current}--{action}")
        return TransitionResult(True, target=target)

    def can(self, current, action: str) -> bool:
        return self.check(current, action).allowed

    def apply(self, current, action: str) -> str:
        """Return the status ``action`` leads to, or raise IllegalTransition"""
        result = self.check(current, action)
        if not result.allowed:
            raise IllegalTransition(self.entity, _value(current), action)
        return result.target

    def allowed_actions(self, current) -> List[str]:
        return sorted(self.transitions.get(_value(current), {}))

    def is_terminal(self, current) -> bool:
        return _value(current) in self.terminal


def _lifecycle(entity: str, transitions: Dict[str, Dict[str, str]]) -> Lifecycle:
    terminal = frozenset(
        s for s in {t for a in transitions.values() for t in a.values()} | set(transitions)
        if not transitions.get(s)
    )
    return Lifecycle(entity, transitions, terminal)


PARCEL = _lifecycle("parcel", {
    "unaffected": {"notify": "under_acq"},
    "under_acq": {"award": "awarded"},
    "awarded": {"possess": "possessed"},
    "possessed": {},
})

SIA = _lifecycle("sia", {
    "draft": {"update": "draft", "publish": "published"},
    "published": {"schedule_hearing": "hearing_scheduled"},
    "hearing_scheduled": {
        "schedule_hearing": "hearing_scheduled",
        "complete_hearing": "hearing_completed",
    },
    "hearing_completed": {"generate_report": "report_generated"},
    "report_generated": {"close": "closed"},
    "closed": {},
})

HEARING = _lifecycle("hearing", {
    "scheduled": {"complete": "completed"},
    "completed": {},
})

FEEDBACK = _lifecycle("sia_feedback", {
    "received": {"start_review": "under_review", "accept": "accepted", "reject": "rejected"},
    "under_review": {"accept": "accepted", "reject": "rejected"},
    "accepted": {},
    "rejected": {},
})

SEC11_NOTIFICATION = _lifecycle("notification", {
    "draft": {"update": "draft", "publish": "published"},
    "published": {"open_objection_window": "objection_window_open"},
    "objection_window_open": {"close_window": "objection_resolved"},
    "objection_resolved": {"archive": "closed"},
    "closed": {},
})

SEC19_NOTIFICATION = _lifecycle("notification", {
    "draft": {"update": "draft", "publish": "published"},
    "published": {"archive": "closed"},
    "closed": {},
})

OBJECTION = _lifecycle("objection", {
    "submitted": {"start_review": "under_review", "resolve": "resolved", "reject": "rejected"},
    "under_review": {"resolve": "resolved", "reject": "rejected"},
    "resolved": {},
    "rejected": {},
})

AWARD = _lifecycle("award", {
    "draft": {"approve": "approved", "void": "voided"},
    "approved": {"disburse": "disbursed", "void": "voided"},
    "disbursed": {},
    "voided": {},
})

SCHEME = _lifecycle("scheme", {
    "draft": {"update": "draft", "publish": "published"},
    "published": {"close": "closed"},
    "closed": {},
})

APPLICATION = Lifecycle(
    "application",
    {
        "submitted": {"verify": "verified", "reject": "rejected"},
        "verified": {"reject": "rejected", "select": "selected"},
        # a draw reset returns the selected applications to the pool
        "selected": {"revert_selection": "verified"},
        "rejected": {},
    },
    terminal=frozenset({"rejected", "selected"}),
)

DRAW = _lifecycle("draw", {
    "completed": {"void": "voided"},
    "voided": {},
})

POSSESSION = _lifecycle("possession", {
    "scheduled": {"start": "in_progress", "cancel": "cancelled"},
    "in_progress": {"capture_evidence": "evidence_captured"},
    "evidence_captured": {
        "capture_evidence": "evidence_captured",
        "issue_certificate": "certificate_issued",
    },
    "certificate_issued": {"update_registry": "registry_updated"},
    "registry_updated": {"close": "closed"},
    "closed": {},
    "cancelled": {},
})

SERVICE_REQUEST = _lifecycle("service_request", {
    "submitted": {"start_review": "under_review", "reject": "rejected"},
    "under_review": {"complete": "completed", "reject": "rejected"},
    "completed": {},
    "rejected": {},
})


def notification_lifecycle(notification_type) -> Lifecycle:
    """Lifecycle table for a notification of the given type"""
    if _value(notification_type) == "sec11":
        return SEC11_NOTIFICATION
    return SEC19_NOTIFICATION
