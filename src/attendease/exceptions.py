"""Typed application errors.

Every error raised by the services carries a stable ``kind`` which the HTTP
boundary maps to a status code and the JSON error envelope.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for expected, operational errors."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(AppError):
    """Malformed or out-of-range input, or a disallowed state change."""

    kind = "validation"
    status_code = 400


class NotFoundError(AppError):
    """Organization-scoped entity does not exist."""

    kind = "not_found"
    status_code = 404


class ConflictError(AppError):
    """Uniqueness or overlap violation."""

    kind = "conflict"
    status_code = 409


class ForbiddenError(AppError):
    """Caller's role does not permit the operation."""

    kind = "forbidden"
    status_code = 403


class InvalidTransitionError(ValidationError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
