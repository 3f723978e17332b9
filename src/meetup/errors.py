"""Domain error taxonomy.

Services raise these; ``meetup.middleware.error_handler`` turns them into
``{"detail": ..., "reason": ...}`` JSON responses.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for errors that map onto a client-facing response."""

    status_code: int = 400
    reason: str = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(DomainError):
    """Entity absent, or the caller is not allowed to see it."""

    status_code = 404
    reason = "not_found"


class UnauthorizedError(DomainError):
    status_code = 401
    reason = "unauthorized"


class ForbiddenError(DomainError):
    """Authenticated, but not allowed to perform this action."""

    status_code = 403
    reason = "forbidden"


class ConflictError(DomainError):
    """Uniqueness violation (duplicate registration email, category name, account email)."""

    status_code = 409
    reason = "conflict"


class InvalidInputError(DomainError):
    status_code = 400
    reason = "invalid_input"


class InvalidStateError(DomainError):
    """The entity exists but is not in a state that allows the transition."""

    status_code = 400
    reason = "invalid_state"


class PaymentRequiredError(DomainError):
    status_code = 402
    reason = "payment_required"


class CapacityExceededError(DomainError):
    """No slots left on a ticket type. Reported as a plain client error."""

    status_code = 400
    reason = "capacity_exceeded"
