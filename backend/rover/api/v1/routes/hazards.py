"""Hazard query endpoints."""

import math
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from rover.api.deps import get_hazard_store
from rover.config import settings
from rover.core.exceptions import (
    BadRequestException,
    HazardNotFound,
    InvalidInput,
    ResourceNotFoundException,
    ServiceUnavailableException,
    StoreUnavailable,
)
from rover.schemas.common import Location
from rover.schemas.hazard import HazardDetail, HazardSummary
from rover.services.hazard_store import HazardStore

router = APIRouter()


def _parse_number(raw: Optional[str], name: str) -> float:
    if raw is None or not raw.strip():
        raise BadRequestException(f"{name} is required", field=name)
    try:
        value = float(raw)
    except ValueError:
        raise BadRequestException(f"{name} must be a number", field=name)
    if not math.isfinite(value):
        raise BadRequestException(f"{name} must be a finite number", field=name)
    return value


@router.get("", response_model=List[HazardSummary])
async def list_hazards(
    lat: Optional[str] = Query(None, description="Latitude of the search center", example="40.7128"),
    lng: Optional[str] = Query(None, description="Longitude of the search center", example="-74.0060"),
    radius: Optional[str] = Query(None, description="Search radius in meters (default 5000)"),
    store: HazardStore = Depends(get_hazard_store),
) -> List[HazardSummary]:
    """
    Get hazards within a radius of a point.

    Returns at most 100 hazards in no particular order.
    """
    latitude = _parse_number(lat, "lat")
    longitude = _parse_number(lng, "lng")
    if not -90 <= latitude <= 90:
        raise BadRequestException("lat must be between -90 and 90", field="lat")
    if not -180 <= longitude <= 180:
        raise BadRequestException("lng must be between -180 and 180", field="lng")

    radius_meters = settings.default_radius_meters
    if radius is not None:
        radius_meters = _parse_number(radius, "radius")
        if radius_meters <= 0:
            raise BadRequestException("radius must be positive", field="radius")

    try:
        hazards = await store.find_within_radius(
            Location(lat=latitude, lng=longitude),
            radius_meters,
            settings.max_query_results,
        )
    except InvalidInput as e:
        raise BadRequestException(str(e))
    except StoreUnavailable as e:
        raise ServiceUnavailableException("Hazard store", reason=str(e))

    return [HazardSummary.from_hazard(hazard) for hazard in hazards]


@router.get("/{hazard_id}", response_model=HazardDetail)
async def get_hazard(
    hazard_id: str,
    store: HazardStore = Depends(get_hazard_store),
) -> HazardDetail:
    """
    Get details of a specific hazard.
    """
    try:
        hazard = await store.get(hazard_id)
    except HazardNotFound:
        raise ResourceNotFoundException("Hazard", hazard_id)
    except StoreUnavailable as e:
        raise ServiceUnavailableException("Hazard store", reason=str(e))

    return HazardDetail.from_hazard(hazard)
