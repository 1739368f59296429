"""Domain exceptions raised by the service layer.

Services raise these instead of ``HTTPException`` so they stay usable
outside a request.  ``app.api.error_handlers`` maps them to status codes.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for errors surfaced to the caller."""

    status_code: int = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class PermissionDenied(DomainError):
    """Membership missing or role insufficient for the requested action."""

    status_code = 403

    def __init__(self, detail: str = "Insufficient permissions for this operation") -> None:
        super().__init__(detail)


class NotFound(DomainError):
    """Referenced household, category, budget or member does not exist."""

    status_code = 404


class ValidationFailed(DomainError):
    """Input violates a domain invariant (e.g. overlapping budgets)."""

    status_code = 400


class Conflict(DomainError):
    """Request clashes with existing state (e.g. user already a member)."""

    status_code = 409


__all__ = ["DomainError", "PermissionDenied", "NotFound", "ValidationFailed", "Conflict"]
