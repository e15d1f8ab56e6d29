"""
po_workflow/errors.py

Typed exceptions raised by the workflow services.

Every error carries:
- `code`: machine-readable class attribute (rendered as "error" in JSON responses)
- `status_code`: HTTP status used by the app-level error handler
- structured attributes (entity, entity_id, status, ...) instead of message parsing

    WorkflowError
    +-- ValidationError        400
    +-- AuthorizationError     403
    +-- NotFoundError          404
    +-- InvalidStateError      409
    +-- UniquenessViolation    409
    +-- PreconditionError      422

Services raise before mutating anything, so a failed call leaves no partial state.
"""

from __future__ import annotations

from typing import Any, Optional


class WorkflowError(Exception):
    """Base exception for all workflow errors."""

    code: str = "WORKFLOW_ERROR"
    status_code: int = 400

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": str(self)}


class ValidationError(WorkflowError):
    """Request input failed form validation."""

    code: str = "VALIDATION_ERROR"
    status_code: int = 400

    def __init__(self, errors: dict[str, list[str]]):
        self.errors = errors
        super().__init__("Invalid input")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["fields"] = self.errors
        return data


class AuthorizationError(WorkflowError):
    """Caller's role lacks the capability for this action."""

    code: str = "FORBIDDEN"
    status_code: int = 403

    def __init__(self, action: str, role: Optional[str] = None, reason: Optional[str] = None):
        self.action = action
        self.role = role
        message = reason or f"Role {role} may not perform {action}"
        super().__init__(message)


class NotFoundError(WorkflowError):
    """Referenced id does not resolve to an existing record."""

    code: str = "NOT_FOUND"
    status_code: int = 404

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} with id {entity_id} not found")


class InvalidStateError(WorkflowError):
    """Operation is not legal in the entity's current status."""

    code: str = "INVALID_STATE"
    status_code: int = 409

    def __init__(self, entity: str, entity_id: Any, status: str, operation: str, expected: Optional[str] = None):
        self.entity = entity
        self.entity_id = entity_id
        self.status = status
        self.operation = operation
        self.expected = expected
        message = f"Cannot {operation} {entity} {entity_id} in status {status}"
        if expected:
            message += f" (requires {expected})"
        super().__init__(message)


class UniquenessViolation(WorkflowError):
    """Duplicate value for a unique field."""

    code: str = "DUPLICATE"
    status_code: int = 409

    def __init__(self, entity: str, field: str, value: Any):
        self.entity = entity
        self.field = field
        self.value = value
        super().__init__(f"{entity} with {field} {value!r} already exists")


class PreconditionError(WorkflowError):
    """A related entity is not in the state the operation requires."""

    code: str = "PRECONDITION_FAILED"
    status_code: int = 422

    def __init__(self, message: str, **details: Any):
        self.details = details
        super().__init__(message)
