"""
Typed workflow errors

Every failure the engine reports is one of these classes, so callers branch on
the kind instead of parsing messages. A failed call leaves the entity exactly
as it was before the call.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Error categories for classification"""
    TRANSITION = "transition"  # Action not valid from the current status
    VALIDATION = "validation"  # Malformed input
    CONCURRENCY = "concurrency"  # Lost a race against another writer
    PRECONDITION = "precondition"  # Domain precondition not met
    AUTHORIZATION = "authorization"  # Role may not perform the action
    NOT_FOUND = "not_found"


class WorkflowError(Exception):
    """Base class for every error raised by the engine"""

    code = "workflow_error"
    category = ErrorCategory.VALIDATION
    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary"""
        return {
            "error": self.code,
            "category": self.category.value,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


class IllegalTransition(WorkflowError):
    """Action is not allowed from the entity's current status"""

    code = "illegal_transition"
    category = ErrorCategory.TRANSITION

    def __init__(self, entity: str, from_status: str, action: str, message: Optional[str] = None):
        self.entity = entity
        self.from_status = from_status
        self.action = action
        super().__init__(
            message or f"{entity}: action '{action}' is not allowed from status '{from_status}'",
            {"entity": entity, "from": from_status, "action": action},
        )


class ValidationError(WorkflowError):
    """Malformed or out-of-range input"""

    code = "validation_error"
    category = ErrorCategory.VALIDATION


class InvalidState(ValidationError):
    """Entity content is not complete enough for the requested action"""

    code = "invalid_state"


class ConcurrentModification(WorkflowError):
    """Another transaction changed the entity first; retry with fresh state"""

    code = "concurrent_modification"
    category = ErrorCategory.CONCURRENCY
    retryable = True


class NotFound(WorkflowError):
    code = "not_found"
    category = ErrorCategory.NOT_FOUND

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found", {"entity": entity, "id": entity_id})


class Forbidden(WorkflowError):
    """The acting role may not perform the action"""

    code = "forbidden"
    category = ErrorCategory.AUTHORIZATION

    def __init__(self, role: str, action: str):
        self.role = role
        self.action = action
        super().__init__(
            f"role '{role}' is not permitted to perform '{action}'",
            {"role": role, "action": action},
        )


class PreconditionFailed(WorkflowError):
    """A domain precondition spanning entities does not hold"""

    code = "precondition_failed"
    category = ErrorCategory.PRECONDITION


class InsufficientPool(PreconditionFailed):
    code = "insufficient_pool"


class ParcelNotAffected(PreconditionFailed):
    code = "parcel_not_affected"


class AlreadyDrawn(PreconditionFailed):
    code = "already_drawn"


class ValuationMissing(PreconditionFailed):
    code = "valuation_missing"


class ParcelPossessed(PreconditionFailed):
    code = "parcel_possessed"


class InventoryConflict(PreconditionFailed):
    code = "inventory_conflict"


class ObjectionWindowExpired(PreconditionFailed):
    code = "objection_window_expired"
