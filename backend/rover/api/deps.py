"""FastAPI dependencies resolving the shared hazard components."""

from starlette.requests import HTTPConnection

from rover.realtime.fanout import HazardEventService
from rover.services.hazard_store import HazardStore


def get_hazard_store(conn: HTTPConnection) -> HazardStore:
    """Hazard store created during application startup."""
    return conn.app.state.hazard_store


def get_event_service(conn: HTTPConnection) -> HazardEventService:
    """Fanout engine created during application startup."""
    return conn.app.state.event_service
