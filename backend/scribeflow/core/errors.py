# scribeflow/core/errors.py
"""
Workflow error taxonomy.
Every error carries a machine-readable code (returned to API clients in the
same {"code", "message"} shape the routers use) and leaves the segment state
unchanged. None of them is fatal to the process.
"""


class WorkflowError(Exception):
    """Base class for all recoverable workflow errors."""

    code = "WORKFLOW_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(WorkflowError):
    """A precondition of the requested operation does not hold (empty text, missing reason)."""

    code = "VALIDATION_FAILED"


class InvalidTransitionError(ValidationError):
    """The requested transition is not allowed from the segment's current status."""

    code = "INVALID_TRANSITION"


class AuthorizationError(WorkflowError):
    """Role or ownership mismatch."""

    code = "FORBIDDEN"


class PersistenceFailure(WorkflowError):
    """The persistence collaborator reported failure. Advisory: the caller may retry."""

    code = "PERSISTENCE_FAILED"


class NotFoundError(WorkflowError):
    """The referenced segment (or batch, or user) does not exist."""

    code = "NOT_FOUND"
