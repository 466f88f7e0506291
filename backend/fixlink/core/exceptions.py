"""
core/exceptions.py

Description:
Defines the error taxonomy of the engine and the standard error response
format for the API. Every error renders as `{"detail": {"error": message}}`.
"""

from typing import Any

from fastapi import HTTPException, status


class APIError(HTTPException):
    """Custom exception with standardized error response."""

    def __init__(self, status_code: int, message: str, headers: dict[str, Any] | None = None):
        super().__init__(status_code=status_code, detail={"error": message}, headers=headers)
        self.message = message


class FixlinkError(APIError):
    """Base class of all domain errors; subclasses fix the HTTP status."""

    status_code_default = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(status_code=self.status_code_default, message=message)

    def __str__(self) -> str:
        return self.message


class ValidationError(FixlinkError):
    """Malformed or missing payload fields."""

    status_code_default = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFoundError(FixlinkError):
    status_code_default = status.HTTP_404_NOT_FOUND


class AuthorizationError(FixlinkError):
    """Actor role or identity does not match the record's party."""

    status_code_default = status.HTTP_403_FORBIDDEN


class ConflictError(FixlinkError):
    """Duplicate response or review, or a compare-and-set mismatch."""

    status_code_default = status.HTTP_409_CONFLICT


class ForbiddenTransitionError(FixlinkError):
    """Event is not legal from the record's current status."""

    status_code_default = status.HTTP_409_CONFLICT


class TransientStoreError(FixlinkError):
    """Persistence timeout or unavailability. Safe to retry."""

    status_code_default = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str = "Storage temporarily unavailable, retry the request."):
        super().__init__(message)
        self.detail = {"error": message, "retryable": True}


class ExternalServiceDegraded(FixlinkError):
    """Notification gateway failure. Logged, never returned to a caller."""

    status_code_default = status.HTTP_502_BAD_GATEWAY
