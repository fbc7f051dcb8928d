"""
Shared error types.

Services raise these; the API layer maps them onto the response envelope
using `status_code` and `message`. Messages are safe to show to callers.
"""

from typing import Optional


class CasePilotError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(CasePilotError):
    status_code = 401
    default_message = "No token, authorization denied"


class InvalidToken(CasePilotError):
    status_code = 401
    default_message = "Invalid Token"


class TokenExpired(InvalidToken):
    default_message = "Token is expired"


class UserNotFound(CasePilotError):
    status_code = 401
    default_message = "User not found"


class Forbidden(CasePilotError):
    status_code = 403
    default_message = "You're not authorized to access this resource"


class NotFound(CasePilotError):
    status_code = 404
    default_message = "Resource not found"


class ValidationError(CasePilotError):
    status_code = 400
    default_message = "Invalid request"


class InvalidStateTransition(CasePilotError):
    status_code = 400

    def __init__(self, current_status: str, message: Optional[str] = None):
        self.current_status = current_status
        super().__init__(message or f"Action not allowed while status is '{current_status}'")


class Conflict(CasePilotError):
    status_code = 400
    default_message = "Resource already exists"


class UpstreamFailure(CasePilotError):
    status_code = 500
    default_message = "Service temporarily unavailable. Please try again."
