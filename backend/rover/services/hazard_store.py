"""Hazard store contract, input validation and the in-memory implementation."""

import abc
import asyncio
import logging
import math
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from rover.config import settings
from rover.core.exceptions import (
    DeletionNotAuthorized,
    HazardNotFound,
    InvalidCoordinate,
    InvalidHazardType,
    InvalidInput,
    InvalidLocation,
)
from rover.models.hazard import HazardType
from rover.schemas.common import Location
from rover.schemas.hazard import Hazard
from rover.services.geogrid import validate_coordinate

logger = logging.getLogger(__name__)


# =============================================================================
# Validation
# =============================================================================

def coerce_hazard_type(value: Any) -> HazardType:
    """Return the HazardType for ``value`` or raise InvalidHazardType."""
    if isinstance(value, HazardType):
        return value
    try:
        return HazardType(value)
    except ValueError:
        raise InvalidHazardType(value)


def coerce_location(location: Any) -> Location:
    """
    Accept a Location, a ``{"lat", "lng"}`` mapping or a ``(lat, lng)`` pair.

    Raises InvalidLocation when either component is missing, not a number,
    not finite or out of range.
    """
    if isinstance(location, Location):
        return location

    if isinstance(location, Mapping):
        lat, lng = location.get("lat"), location.get("lng")
    elif isinstance(location, (tuple, list)) and len(location) == 2:
        lat, lng = location
    else:
        raise InvalidLocation()

    if lat is None or lng is None:
        raise InvalidLocation()

    try:
        lat = validate_coordinate(lat, -90.0, 90.0, "lat")
        lng = validate_coordinate(lng, -180.0, 180.0, "lng")
    except InvalidCoordinate as e:
        raise InvalidLocation(f"Invalid location data: {e}")

    return Location(lat=lat, lng=lng)


def validate_report(type_: Any, location: Any) -> Tuple[HazardType, Location]:
    """Validate a new report. Type is checked before location."""
    return coerce_hazard_type(type_), coerce_location(location)


def validate_radius(radius_meters: Any) -> float:
    if isinstance(radius_meters, bool) or not isinstance(radius_meters, (int, float)):
        raise InvalidInput("Radius must be a number")
    radius = float(radius_meters)
    if not math.isfinite(radius) or radius <= 0:
        raise InvalidInput("Radius must be a positive number of meters")
    return radius


def haversine_meters(
    a: Location,
    b: Location,
    earth_radius_meters: Optional[float] = None,
) -> float:
    """Great-circle distance between two points on a sphere."""
    radius = earth_radius_meters or settings.earth_radius_meters

    phi1, phi2 = math.radians(a.lat), math.radians(b.lat)
    d_phi = phi2 - phi1
    d_lambda = math.radians(b.lng - a.lng)

    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * radius * math.asin(min(1.0, math.sqrt(h)))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Store Contract
# =============================================================================

class HazardStore(abc.ABC):
    """
    Owns hazard records.

    Every operation is atomic for the single hazard it touches; nothing
    spans more than one hazard.
    """

    async def start(self) -> None:
        """Prepare the backing store. No-op by default."""

    async def close(self) -> None:
        """Release backing resources. No-op by default."""

    @abc.abstractmethod
    async def ping(self) -> None:
        """Raise StoreUnavailable if the store cannot serve requests."""

    @abc.abstractmethod
    async def create(self, type_: Any, location: Any, reporter_id: Optional[str] = None) -> Hazard:
        """Persist a new hazard with an empty verifier set."""

    @abc.abstractmethod
    async def get(self, hazard_id: str) -> Hazard:
        """Return one hazard or raise HazardNotFound."""

    @abc.abstractmethod
    async def find_within_radius(
        self,
        center: Any,
        radius_meters: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[Hazard]:
        """Hazards within ``radius_meters`` of ``center``, at most ``limit``, in no particular order."""

    @abc.abstractmethod
    async def add_verifier(self, hazard_id: str, user_id: str) -> Hazard:
        """Add ``user_id`` to the verifier set (idempotent) and return the record."""

    @abc.abstractmethod
    async def delete(self, hazard_id: str, requester_id: str) -> str:
        """Remove a hazard on behalf of its reporter and return its ID."""

    @staticmethod
    def _query_bounds(radius_meters: Optional[float], limit: Optional[int]) -> Tuple[float, int]:
        if radius_meters is None:
            radius_meters = settings.default_radius_meters
        if limit is None:
            limit = settings.max_query_results
        if limit <= 0:
            raise InvalidInput("Limit must be positive")
        return validate_radius(radius_meters), int(limit)

    @staticmethod
    def _reporter(reporter_id: Optional[str]) -> str:
        return reporter_id or settings.anonymous_user_id


# =============================================================================
# In-Memory Store
# =============================================================================

class InMemoryHazardStore(HazardStore):
    """
    Process-local hazard store.

    Suitable for development and tests. Records are lost on restart and are
    not shared between processes.
    """

    def __init__(self, earth_radius_meters: Optional[float] = None):
        self._hazards: Dict[str, Hazard] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._earth_radius_meters = earth_radius_meters

    def __len__(self) -> int:
        return len(self._hazards)

    async def ping(self) -> None:
        return None

    async def create(self, type_: Any, location: Any, reporter_id: Optional[str] = None) -> Hazard:
        hazard_type, point = validate_report(type_, location)

        hazard = Hazard(
            id=str(uuid.uuid4()),
            type=hazard_type,
            location=point,
            reporter_id=self._reporter(reporter_id),
            verifiers=[],
            created_at=utcnow(),
        )
        self._hazards[hazard.id] = hazard
        self._locks[hazard.id] = asyncio.Lock()
        return hazard.model_copy(deep=True)

    async def get(self, hazard_id: str) -> Hazard:
        hazard = self._hazards.get(hazard_id)
        if hazard is None:
            raise HazardNotFound(hazard_id)
        return hazard.model_copy(deep=True)

    async def find_within_radius(
        self,
        center: Any,
        radius_meters: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[Hazard]:
        point = coerce_location(center)
        radius, limit = self._query_bounds(radius_meters, limit)

        matches = []
        for hazard in list(self._hazards.values()):
            if haversine_meters(point, hazard.location, self._earth_radius_meters) <= radius:
                matches.append(hazard.model_copy(deep=True))
                if len(matches) >= limit:
                    break
        return matches

    async def add_verifier(self, hazard_id: str, user_id: str) -> Hazard:
        lock = self._locks.get(hazard_id)
        if lock is None:
            raise HazardNotFound(hazard_id)

        async with lock:
            hazard = self._hazards.get(hazard_id)
            if hazard is None:
                raise HazardNotFound(hazard_id)
            if user_id not in hazard.verifiers:
                hazard.verifiers.append(user_id)
            return hazard.model_copy(deep=True)

    async def delete(self, hazard_id: str, requester_id: str) -> str:
        lock = self._locks.get(hazard_id)
        if lock is None:
            raise HazardNotFound(hazard_id)

        async with lock:
            hazard = self._hazards.get(hazard_id)
            if hazard is None:
                raise HazardNotFound(hazard_id)
            if hazard.reporter_id != requester_id:
                raise DeletionNotAuthorized(hazard_id, requester_id)
            del self._hazards[hazard_id]
            self._locks.pop(hazard_id, None)
            return hazard_id


def create_hazard_store(backend: Optional[str] = None) -> HazardStore:
    """Build the store selected by ``settings.hazard_store_backend``."""
    backend = backend or settings.hazard_store_backend

    if backend == "postgis":
        from rover.services.postgis_store import PostGISHazardStore
        return PostGISHazardStore()

    logger.warning("Using in-memory hazard store; hazards are lost on restart")
    return InMemoryHazardStore()
