"""
Domain errors raised by services and rendered by the API exception handlers.
"""
from typing import Any, Dict, Optional

from fastapi import status


class TravelQuestError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type: str = "internal_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFound(TravelQuestError):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "not_found"


class ValidationFailure(TravelQuestError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_type = "validation_error"


class AccessDenied(TravelQuestError):
    status_code = status.HTTP_403_FORBIDDEN
    error_type = "access_denied"


class SubmissionFailed(TravelQuestError):
    """The submission transaction was rolled back; nothing was persisted."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type = "submission_failed"
