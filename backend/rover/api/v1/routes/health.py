"""Health check endpoints."""

from fastapi import APIRouter, Depends, Response

from rover.api.deps import get_hazard_store
from rover.core.exceptions import StoreUnavailable
from rover.services.hazard_store import HazardStore

router = APIRouter()


@router.get("")
async def health_check():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "healthy"}


@router.get("/store")
async def store_health(response: Response, store: HazardStore = Depends(get_hazard_store)):
    """Check that the hazard store can serve requests.

    Returns HTTP 503 if it cannot.
    """
    try:
        await store.ping()
        return {"status": "healthy", "store": "connected"}
    except StoreUnavailable as e:
        response.status_code = 503
        return {"status": "unhealthy", "store": "disconnected", "error": str(e)}
