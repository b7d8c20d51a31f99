"""Error taxonomy shared by services and the HTTP layer.

Only ``kind`` and the safe ``message`` ever leave the process; details such as
query text or stack traces stay in the logs.
"""

from enum import Enum


class DenyReason(str, Enum):
    """Machine-readable reason attached to an authorization denial."""

    NOT_AUTHENTICATED = "not_authenticated"
    INSUFFICIENT_ROLE = "insufficient_role"
    NOT_OWNER = "not_owner"
    NOT_ASSIGNED = "not_assigned"


class HelpdeskError(Exception):
    """Base exception for helpdesk service errors."""

    kind = "internal"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class UnauthenticatedError(HelpdeskError):
    """No session, or an invalid/expired/revoked one."""

    kind = "unauthenticated"
    status_code = 401
    default_message = "Not authenticated"


class ForbiddenError(HelpdeskError):
    """Authenticated caller is not allowed to perform the action."""

    kind = "forbidden"
    status_code = 403
    default_message = "Not allowed"

    def __init__(self, reason: DenyReason, message: str | None = None):
        self.reason = reason
        super().__init__(message)


class NotFoundError(HelpdeskError):
    """Entity absent or soft-deleted."""

    kind = "not_found"
    status_code = 404
    default_message = "Not found"


class InvalidTransitionError(HelpdeskError):
    """Ticket state machine rule violated."""

    kind = "invalid_transition"
    status_code = 409
    default_message = "Invalid status transition"

    def __init__(self, current: str, target: str, message: str | None = None):
        self.current = current
        self.target = target
        super().__init__(message or f"Cannot change status from {current} to {target}")


class ConflictError(HelpdeskError):
    """Concurrent write lost, or a uniqueness/restrict rule blocked the write."""

    kind = "conflict"
    status_code = 409
    default_message = "Conflicting update, reload and try again"


class ValidationFailedError(HelpdeskError):
    """Malformed or semantically invalid input."""

    kind = "validation_failed"
    status_code = 422
    default_message = "Invalid input"


class UpstreamError(HelpdeskError):
    """External collaborator failed (storage, hashing, AI service)."""

    kind = "upstream"
    status_code = 502
    default_message = "Upstream service unavailable"


class OperationTimeoutError(UpstreamError):
    """External collaborator did not answer in time."""

    kind = "timeout"
    status_code = 504
    default_message = "Operation timed out"
