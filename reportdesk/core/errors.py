"""Typed domain errors raised by the service layer.

The HTTP layer maps each kind onto a status code in ``reportdesk.main``;
services never raise transport exceptions themselves.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for business rule violations."""

    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(DomainError):
    """Entity id has no matching record."""

    kind = "not_found"


class ForbiddenError(DomainError):
    """Actor lacks permission for this state/ownership combination."""

    kind = "forbidden"


class ReportLockedError(ForbiddenError):
    """Mutation attempted on a locked report."""

    kind = "locked"


class BadRequestError(DomainError):
    """Malformed or semantically invalid input."""

    kind = "bad_request"


class ConflictError(BadRequestError):
    kind = "conflict"


class InvalidTransitionError(BadRequestError):
    kind = "invalid_transition"


class UnauthorizedError(DomainError):
    kind = "unauthorized"
