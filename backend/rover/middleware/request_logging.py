"""Request logging middleware for tracing and debugging."""

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from rover.config import settings


# Configure logger
logger = logging.getLogger("api.requests")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs all incoming HTTP requests and outgoing responses.

    Each request gets a short request ID, stored on ``request.state`` and
    returned in the ``X-Request-ID`` header. WebSocket traffic is not
    routed through this middleware.
    """

    # Paths with reduced logging (health checks, etc.)
    QUIET_PATHS = {"/health", "/api/v1/health", "/api/v1/health/store"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not settings.log_requests:
            return await call_next(request)

        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id

        start_time = time.time()

        client_ip = self._get_client_ip(request)
        method = request.method
        path = request.url.path
        query = str(request.url.query) if request.url.query else ""

        is_quiet_path = path in self.QUIET_PATHS

        if not is_quiet_path:
            logger.info(
                f"[{request_id}] --> {method} {path}"
                f"{('?' + query) if query else ''} "
                f"from {client_ip}"
            )

        response = None
        status_code = 500
        error = None
        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            error = str(e)
            raise
        finally:
            duration_ms = (time.time() - start_time) * 1000

            if response is not None:
                response.headers["X-Request-ID"] = request_id

            log_message = (
                f"[{request_id}] <-- {status_code} "
                f"{method} {path} "
                f"({duration_ms:.2f}ms)"
            )

            if error:
                log_message += f" ERROR: {error}"

            if status_code >= 500:
                logger.error(log_message)
            elif status_code >= 400:
                logger.warning(log_message)
            elif not is_quiet_path:
                logger.info(log_message)
            else:
                logger.debug(log_message)

        return response

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP from request, handling proxies."""
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"


def setup_logging():
    """Configure logging for the application."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    logging.getLogger("api.requests").setLevel(log_level)
    logging.getLogger("realtime.events").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
