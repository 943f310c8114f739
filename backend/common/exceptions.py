"""
Shared error taxonomy and the DRF exception handler that renders it.

Service modules raise subclasses of ServiceError; views let them propagate
and this handler turns them into JSON responses with a matching status.
"""

import logging

from django.db import OperationalError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for business-rule failures raised by the services layer."""
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "error"
    default_message = "Request could not be processed"

    def __init__(self, message: str = "", error_code: str = None):
        self.message = message or self.default_message
        if error_code:
            self.error_code = error_code
        super().__init__(self.message)


class NotFoundError(ServiceError):
    """Raised when a ride, chat room or user does not exist."""
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not_found"
    default_message = "Not found"


class ForbiddenError(ServiceError):
    """Raised when the actor lacks rights for the action."""
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "forbidden"
    default_message = "You are not allowed to do this"


class ConflictError(ServiceError):
    """Raised when a uniqueness or state constraint rejects the change."""
    status_code = status.HTTP_409_CONFLICT
    error_code = "conflict"
    default_message = "Request conflicts with the current state"


class ValidationFailedError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "validation_failed"
    default_message = "Invalid input"


class UpstreamUnavailableError(ServiceError):
    """Raised when the database or another backing service cannot be reached."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "upstream_unavailable"
    default_message = "Service temporarily unavailable, please try again"


def error_payload(error_code: str, message: str) -> dict:
    return {
        "success": False,
        "error": error_code,
        "message": message,
    }


def service_exception_handler(exc, context):
    """DRF EXCEPTION_HANDLER mapping ServiceError and DB outages to responses."""
    if isinstance(exc, ServiceError):
        return Response(error_payload(exc.error_code, exc.message), status=exc.status_code)

    if isinstance(exc, OperationalError):
        logger.exception("Database unavailable while handling %s", context.get("view"))
        return Response(
            error_payload(UpstreamUnavailableError.error_code, UpstreamUnavailableError.default_message),
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return exception_handler(exc, context)
