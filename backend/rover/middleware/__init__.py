"""Middleware modules for request processing."""

from rover.middleware.request_logging import RequestLoggingMiddleware, setup_logging

__all__ = [
    "RequestLoggingMiddleware",
    "setup_logging",
]
