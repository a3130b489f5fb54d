"""
Domain: error taxonomy for moderation and lead triage.

Every failure a caller can observe is one of these types. Each carries a
stable machine-readable code and the HTTP status the API layer maps it to,
so the transport layer never has to guess.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ModerationError(Exception):
    """Base class for all moderation/lead-triage failures."""

    code: str = "MODERATION_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to a dictionary for a JSON response body."""
        return {
            "error": {
                "message": self.message,
                "code": self.code,
                "status_code": self.status_code,
                "details": self.details,
            }
        }


class ValidationError(ModerationError):
    """Malformed input, e.g. a rating out of range or missing required text."""

    code = "VALIDATION_ERROR"
    status_code = 400


class AuthorizationError(ModerationError):
    """The caller does not hold the capability the operation requires."""

    code = "AUTHORIZATION_ERROR"
    status_code = 403


class NotFoundError(ModerationError):
    """The operation targets an id that does not exist."""

    code = "NOT_FOUND"
    status_code = 404


class InvalidTransitionError(ModerationError):
    """A status change violates the review or lead lifecycle."""

    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(
        self,
        current: str,
        requested: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot change status from '{current}' to '{requested}'",
            details={"current": current, "requested": requested, **(details or {})},
        )


class PreconditionError(ModerationError):
    """An operation that needs an authenticated owner was invoked without one."""

    code = "PRECONDITION_FAILED"
    status_code = 401


class TransportError(ModerationError):
    """The Collection Client reported a network or backend failure."""

    code = "TRANSPORT_ERROR"
    status_code = 503


__all__ = [
    "ModerationError",
    "ValidationError",
    "AuthorizationError",
    "NotFoundError",
    "InvalidTransitionError",
    "PreconditionError",
    "TransportError",
]
