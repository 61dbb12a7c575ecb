"""Centralized exception handling with sanitized error responses."""

import logging
import traceback
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from rover.config import settings

logger = logging.getLogger("api.errors")


# =============================================================================
# Hazard Domain Errors
# =============================================================================

class HazardError(Exception):
    """Base class for hazard lifecycle failures."""


class InvalidInput(HazardError):
    """Malformed type, location or coordinates. Raised before any mutation."""


class InvalidHazardType(InvalidInput):
    """Hazard type is not one of the supported kinds."""

    def __init__(self, value: Any = None):
        self.value = value
        super().__init__("Invalid hazard type")


class InvalidLocation(InvalidInput):
    """Location is missing, non-numeric or outside the valid range."""

    def __init__(self, detail: str = "Invalid location data"):
        super().__init__(detail)


class InvalidCoordinate(InvalidInput):
    """A single latitude/longitude value cannot be mapped to a region."""

    def __init__(self, detail: str = "Invalid coordinate"):
        super().__init__(detail)


class HazardNotFound(HazardError):
    """Referenced hazard ID does not resolve."""

    def __init__(self, hazard_id: Any):
        self.hazard_id = hazard_id
        super().__init__(f"Hazard not found: {hazard_id}")


class DeletionNotAuthorized(HazardError):
    """Delete requester is not the original reporter."""

    def __init__(self, hazard_id: str, requester_id: Any):
        self.hazard_id = hazard_id
        self.requester_id = requester_id
        super().__init__(f"User {requester_id} may not delete hazard {hazard_id}")


class StoreUnavailable(HazardError):
    """Store-layer failure such as lost connectivity."""


# =============================================================================
# HTTP Exception Classes
# =============================================================================

class APIException(Exception):
    """Base exception for API errors with safe messages."""

    def __init__(
        self,
        status_code: int = 500,
        detail: str = "An error occurred",
        error_code: Optional[str] = None,
        internal_message: Optional[str] = None,
    ):
        self.status_code = status_code
        self.detail = detail  # Safe message for client
        self.error_code = error_code or "INTERNAL_ERROR"
        self.internal_message = internal_message  # Full message for logs
        super().__init__(self.detail)


class BadRequestException(APIException):
    """Malformed client input that FastAPI's own validation does not catch."""

    def __init__(self, detail: str, field: Optional[str] = None):
        super().__init__(
            status_code=400,
            detail=detail,
            error_code="BAD_REQUEST",
        )
        self.field = field


class ResourceNotFoundException(APIException):
    """Resource not found."""

    def __init__(self, resource: str = "Resource", resource_id: Optional[str] = None):
        detail = f"{resource} not found"
        super().__init__(
            status_code=404,
            detail=detail,
            error_code="NOT_FOUND",
        )


class ServiceUnavailableException(APIException):
    """Backing service unavailable."""

    def __init__(self, service: str = "Service", reason: Optional[str] = None):
        internal = f"{service} is unavailable"
        if reason:
            internal += f": {reason}"
        super().__init__(
            status_code=503,
            detail="Service temporarily unavailable. Please try again later.",
            error_code="SERVICE_UNAVAILABLE",
            internal_message=internal,
        )


# =============================================================================
# Error Response Formatting
# =============================================================================

def create_error_response(
    status_code: int,
    error_code: str,
    message: str,
    request_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Create a standardized error response."""
    response = {
        "error": {
            "code": error_code,
            "message": message,
        }
    }

    if request_id:
        response["error"]["request_id"] = request_id

    if details and not settings.is_production():
        # Only include details in non-production
        response["error"]["details"] = details

    return response


def sanitize_error_message(message: str) -> str:
    """
    Sanitize error message to remove sensitive information.

    Removes file paths, SQL and driver details from messages that
    reach clients.
    """
    sensitive_patterns = [
        "/app/",
        "/usr/",
        "/home/",
        "Traceback",
        "File \"",
        "SELECT ",
        "INSERT ",
        "UPDATE ",
        "DELETE ",
        "postgresql",
        "asyncpg",
        "sqlalchemy",
        "password",
        "secret",
    ]

    message_lower = message.lower()
    for pattern in sensitive_patterns:
        if pattern.lower() in message_lower:
            return "An internal error occurred. Please try again later."

    if len(message) > 200:
        return message[:200] + "..."

    return message


# =============================================================================
# Exception Handlers
# =============================================================================

def get_request_id(request: Request) -> str:
    """Get request ID from request state or generate new one."""
    if hasattr(request.state, "request_id"):
        return request.state.request_id
    return str(uuid4())[:8]


async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    """Handle custom API exceptions."""
    request_id = get_request_id(request)

    log_message = f"[{request_id}] {exc.error_code}: {exc.detail}"
    if exc.internal_message:
        log_message += f" | Internal: {exc.internal_message}"

    if exc.status_code >= 500:
        logger.error(log_message)
    else:
        logger.warning(log_message)

    response = create_error_response(
        status_code=exc.status_code,
        error_code=exc.error_code,
        message=exc.detail,
        request_id=request_id,
    )

    return JSONResponse(status_code=exc.status_code, content=response)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Handle standard HTTP exceptions with sanitization."""
    request_id = get_request_id(request)

    error_code_map = {
        400: "BAD_REQUEST",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        422: "VALIDATION_ERROR",
        500: "INTERNAL_ERROR",
        503: "SERVICE_UNAVAILABLE",
    }

    error_code = error_code_map.get(exc.status_code, "ERROR")

    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    if exc.status_code >= 500:
        detail = sanitize_error_message(detail)
        logger.error(f"[{request_id}] HTTP {exc.status_code}: {exc.detail}")
    else:
        logger.info(f"[{request_id}] HTTP {exc.status_code}: {detail}")

    response = create_error_response(
        status_code=exc.status_code,
        error_code=error_code,
        message=detail,
        request_id=request_id,
    )

    return JSONResponse(status_code=exc.status_code, content=response)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors with safe messages."""
    request_id = get_request_id(request)

    field_errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        msg = error["msg"]

        if "value_error" in str(error.get("type", "")):
            msg = "Invalid value provided"

        field_errors.append({
            "field": field,
            "message": msg,
        })

    logger.info(f"[{request_id}] Validation error: {len(field_errors)} field(s)")

    response = create_error_response(
        status_code=422,
        error_code="VALIDATION_ERROR",
        message="Invalid request data",
        request_id=request_id,
        details={"fields": field_errors} if not settings.is_production() else None,
    )

    return JSONResponse(status_code=422, content=response)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions with full sanitization."""
    request_id = get_request_id(request)

    logger.error(
        f"[{request_id}] Unhandled exception: {type(exc).__name__}: {str(exc)}"
    )
    if settings.debug:
        logger.error(traceback.format_exc())

    response = create_error_response(
        status_code=500,
        error_code="INTERNAL_ERROR",
        message="An unexpected error occurred. Please try again later.",
        request_id=request_id,
    )

    return JSONResponse(status_code=500, content=response)


# =============================================================================
# Register Exception Handlers
# =============================================================================

def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
