"""
Workflow exception hierarchy.

Every service raises one of these types; blueprints register a handler per
type once (see ``isp_manager.utils.errors.register_error_handlers``) and get
consistent HTTP status codes everywhere.

Usage:
    from isp_manager.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Project", resource_id=42)
    raise ValidationError("Rejection comments are required.", details={"admin_comments": "required"})
"""


class WorkflowError(Exception):
    """Base class for every classified workflow failure."""

    status_code = 500
    code = "ERR_INTERNAL"

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotFoundError(WorkflowError):
    """Raised when a referenced Project, PnL, BOQ, DeletionRequest or User does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Project", "P&L").
        resource_id: The PK that was looked up. Included in logs and message.
    """

    status_code = 404
    code = "ERR_NOT_FOUND"

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ForbiddenError(WorkflowError):
    """Raised when the caller's role or ownership does not satisfy an action's guard.

    Always raised before any mutation begins.
    """

    status_code = 403
    code = "ERR_FORBIDDEN"

    def __init__(self, action: str, role: str | None = None, message: str | None = None) -> None:
        self.action = action
        self.role = role
        super().__init__(message or f"Forbidden: role {role} may not perform '{action}'")


class ValidationError(WorkflowError):
    """Raised when a payload is malformed or misses a required field.

    Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown; keys are field names.
    """

    status_code = 400
    code = "ERR_VALIDATION_INVALID"


class ConflictError(WorkflowError):
    """Raised when a precondition on entity state is violated.

    Covers stale-state losers (P&L already approved), duplicates (BOQ
    already exists, project name taken) and out-of-order transitions.
    Maps to HTTP 409.
    """

    status_code = 409
    code = "ERR_CONFLICT_STATE"

    @classmethod
    def duplicate(cls, resource: str, field: str, value: str | None = None) -> "ConflictError":
        err = cls(f"{resource} with {field}={value!r} already exists")
        err.code = "ERR_CONFLICT_DUPLICATE"
        return err


class InternalError(WorkflowError):
    """Raised when the store or a transaction fails unexpectedly."""

    status_code = 500
    code = "ERR_INTERNAL"


class AuthenticationError(WorkflowError):
    """Raised when credentials or a bearer token are missing or invalid."""

    status_code = 401
    code = "ERR_UNAUTHORIZED"
