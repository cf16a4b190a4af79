"""Domain exceptions shared by the grading core and the services.

Controllers translate these into HTTP responses (see `main`). The
validation and not-found errors also subclass the matching builtin so
callers that only care about `ValueError`/`LookupError` keep working.
"""

from typing import Any, Dict, Optional


class QuizHubError(Exception):
    """Base class for all domain errors raised by this package."""


class ValidationError(QuizHubError, ValueError):
    """Malformed authoring input or submission payload."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class NotFoundError(QuizHubError, LookupError):
    """A referenced quiz, course or enrollment does not exist."""

    def __init__(self, resource: str, identifier: Any):
        super().__init__(f"{resource} not found: {identifier}")
        self.resource = resource
        self.identifier = identifier


class AuthorizationError(QuizHubError):
    """The caller may not perform `action` on a resource owned by someone else.

    `details` is returned to the caller as-is, so it must only hold data the
    caller is allowed to see (titles, ids, roles).
    """

    def __init__(self, action: str, resource_owner: Any = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"not authorized to {action}")
        self.action = action
        self.resource_owner = resource_owner
        self.details = dict(details or {})


class StorageFailure(QuizHubError):
    """The database rejected a write; the session has been rolled back."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        super().__init__(f"storage failure during {operation}")
        self.operation = operation
        self.cause = cause
