"""
Service Errors

Base exception hierarchy shared by every module's service layer, and the
helpers routers use to turn those errors into HTTP responses.

Routers follow one pattern:

    try:
        return await service.do_something(...)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("Error doing something", e) from e
"""

import logging
from typing import NoReturn

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base exception for service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class ValidationFailedError(ServiceError):
    """Raised when input breaks a business rule."""

    def __init__(self, message: str, error_code: str = "VALIDATION_ERROR"):
        super().__init__(message=message, error_code=error_code, status_code=400)


class NotFoundError(ServiceError):
    """
    Raised when an entity does not exist in the caller's agency.

    Rows belonging to another agency are reported the same way.
    """

    def __init__(self, entity: str, entity_id: object | None = None):
        message = f"{entity} {entity_id} not found" if entity_id else f"{entity} not found"
        super().__init__(
            message=message,
            error_code=f"{entity.upper().replace(' ', '_')}_NOT_FOUND",
            status_code=404,
        )


class ForbiddenError(ServiceError):
    """Raised when the caller's role does not allow the action."""

    def __init__(self, message: str = "You do not have permission to perform this action."):
        super().__init__(message=message, error_code="FORBIDDEN", status_code=403)


class ConflictError(ServiceError):
    """Raised when a uniqueness rule would be broken."""

    def __init__(self, message: str, error_code: str = "CONFLICT"):
        super().__init__(message=message, error_code=error_code, status_code=409)


def to_http_exception(e: ServiceError) -> HTTPException:
    """Convert a service error to an HTTPException."""
    return HTTPException(
        status_code=e.status_code,
        detail={
            "error": e.error_code,
            "message": e.message,
        },
    )


def internal_error(context: str, e: Exception) -> HTTPException:
    """Log an unexpected failure and build the generic 500 response."""
    logger.exception(f"{context}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )


async def validation_exception_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return malformed request bodies and parameters as 400 responses."""
    fields = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": {
                "error": "VALIDATION_ERROR",
                "message": "Request validation failed.",
                "fields": fields,
            }
        },
    )


def raise_http_error(e: Exception, context: str) -> NoReturn:
    """Re-raise an exception caught in a router as the matching HTTPException."""
    if isinstance(e, ServiceError):
        raise to_http_exception(e) from e
    if isinstance(e, HTTPException):
        raise e
    raise internal_error(context, e) from e
