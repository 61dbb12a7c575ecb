"""Core error types and exception handling."""

from rover.core.exceptions import (
    APIException,
    BadRequestException,
    DeletionNotAuthorized,
    HazardError,
    HazardNotFound,
    InvalidCoordinate,
    InvalidHazardType,
    InvalidInput,
    InvalidLocation,
    ResourceNotFoundException,
    ServiceUnavailableException,
    StoreUnavailable,
    register_exception_handlers,
    sanitize_error_message,
)

__all__ = [
    # Hazard domain
    "HazardError",
    "InvalidInput",
    "InvalidHazardType",
    "InvalidLocation",
    "InvalidCoordinate",
    "HazardNotFound",
    "DeletionNotAuthorized",
    "StoreUnavailable",
    # HTTP
    "APIException",
    "BadRequestException",
    "ResourceNotFoundException",
    "ServiceUnavailableException",
    "register_exception_handlers",
    "sanitize_error_message",
]
