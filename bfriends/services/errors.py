"""
bfriends.services.errors — Domain Error Taxonomy
=================================================

Services raise these; the API layer maps each class to an HTTP status and
renders ``{"error": code, "message": message, "field": field}``.  Messages
are written for end users and never carry driver or stack detail.
"""

from __future__ import annotations


class BFriendsError(Exception):
    """Base class for every error a service surfaces to callers."""

    status_code = 500
    default_code = "Unexpected"

    def __init__(self, message: str, *, code: str | None = None, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.field = field

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, "field": self.field}


class ValidationError(BFriendsError):
    """Bad input shape or length."""
    status_code = 422
    default_code = "InvalidValue"


class ConflictError(BFriendsError):
    """A uniqueness rule was violated; ``field`` names the column."""
    status_code = 409
    default_code = "AlreadyExists"


class NotFoundError(BFriendsError):
    status_code = 404
    default_code = "NotFound"


class ForbiddenError(BFriendsError):
    """The requester does not own the target."""
    status_code = 403
    default_code = "Forbidden"


class UnauthenticatedError(BFriendsError):
    status_code = 401
    default_code = "Unauthenticated"


class UpstreamError(BFriendsError):
    """The identity or storage provider failed."""
    status_code = 502
    default_code = "UpstreamFailed"
