"""PostGIS-backed hazard store."""

import logging
import uuid
from typing import Any, List, Optional

from geoalchemy2 import Geography
from geoalchemy2.shape import from_shape, to_shape
from shapely.geometry import Point
from sqlalchemy import Text, case, cast, delete, func, select, text, update
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.exc import SQLAlchemyError

from rover.config import settings
from rover.core.exceptions import DeletionNotAuthorized, HazardNotFound, StoreUnavailable
from rover.db.session import async_session_maker, engine
from rover.models.base import Base
from rover.models.hazard import HazardRecord
from rover.schemas.common import Location
from rover.schemas.hazard import Hazard
from rover.services.hazard_store import HazardStore, coerce_location, validate_report

logger = logging.getLogger(__name__)

# Sphere radius PostGIS uses for geography distances with use_spheroid=false
POSTGIS_SPHERE_RADIUS_METERS = 6371008.7714


def _parse_id(hazard_id: Any) -> uuid.UUID:
    try:
        return uuid.UUID(str(hazard_id))
    except ValueError:
        raise HazardNotFound(hazard_id)


def _to_hazard(record: HazardRecord) -> Hazard:
    point = to_shape(record.location)
    return Hazard(
        id=str(record.id),
        type=record.hazard_type,
        location=Location(lat=point.y, lng=point.x),
        reporter_id=record.reporter_id,
        verifiers=list(record.verified_by or []),
        created_at=record.created_at,
    )


class PostGISHazardStore(HazardStore):
    """
    Hazard store on PostgreSQL with PostGIS.

    Locations are ``geometry(POINT, 4326)`` with a GiST index. Verifier
    insertion and reporter-checked deletion are single statements, so each
    is atomic per row without explicit locking.
    """

    def __init__(self, session_maker=None, bind=None):
        self._session_maker = session_maker or async_session_maker
        self._engine = bind or engine

    async def start(self) -> None:
        try:
            async with self._engine.begin() as conn:
                await conn.execute(text("CREATE EXTENSION IF NOT EXISTS postgis"))
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"Hazard store initialisation failed: {e}") from e
        logger.info("PostGIS hazard store ready")

    async def close(self) -> None:
        await self._engine.dispose()

    async def ping(self) -> None:
        try:
            async with self._session_maker() as session:
                await session.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(str(e)) from e

    async def create(self, type_: Any, location: Any, reporter_id: Optional[str] = None) -> Hazard:
        hazard_type, point = validate_report(type_, location)

        record = HazardRecord(
            hazard_type=hazard_type,
            location=from_shape(Point(point.lng, point.lat), srid=4326),
            reporter_id=self._reporter(reporter_id),
            verified_by=[],
        )
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    session.add(record)
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"Failed to save hazard: {e}") from e

        return Hazard(
            id=str(record.id),
            type=record.hazard_type,
            location=point,
            reporter_id=record.reporter_id,
            verifiers=[],
            created_at=record.created_at,
        )

    async def get(self, hazard_id: str) -> Hazard:
        hid = _parse_id(hazard_id)
        try:
            async with self._session_maker() as session:
                record = await session.get(HazardRecord, hid)
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(str(e)) from e

        if record is None:
            raise HazardNotFound(hazard_id)
        return _to_hazard(record)

    async def find_within_radius(
        self,
        center: Any,
        radius_meters: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[Hazard]:
        point = coerce_location(center)
        radius, limit = self._query_bounds(radius_meters, limit)

        # Same angular radius as radius / earth_radius_meters, expressed in
        # PostGIS's own sphere so the GiST index is still used.
        pg_radius = radius * POSTGIS_SPHERE_RADIUS_METERS / settings.earth_radius_meters
        origin = func.ST_SetSRID(func.ST_MakePoint(point.lng, point.lat), 4326)

        query = (
            select(HazardRecord)
            .where(
                func.ST_DWithin(
                    cast(HazardRecord.location, Geography),
                    cast(origin, Geography),
                    pg_radius,
                    False,
                )
            )
            .limit(limit)
        )

        try:
            async with self._session_maker() as session:
                result = await session.execute(query)
                records = result.scalars().all()
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"Radius query failed: {e}") from e

        return [_to_hazard(record) for record in records]

    async def add_verifier(self, hazard_id: str, user_id: str) -> Hazard:
        hid = _parse_id(hazard_id)

        stmt = (
            update(HazardRecord)
            .where(HazardRecord.id == hid)
            .values(
                verified_by=case(
                    (HazardRecord.verified_by.any(user_id), HazardRecord.verified_by),
                    else_=func.array_append(HazardRecord.verified_by, user_id, type_=ARRAY(Text)),
                )
            )
            .returning(HazardRecord)
        )

        try:
            async with self._session_maker() as session:
                async with session.begin():
                    record = (await session.execute(stmt)).scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"Failed to verify hazard: {e}") from e

        if record is None:
            raise HazardNotFound(hazard_id)
        return _to_hazard(record)

    async def delete(self, hazard_id: str, requester_id: str) -> str:
        hid = _parse_id(hazard_id)

        stmt = (
            delete(HazardRecord)
            .where(HazardRecord.id == hid, HazardRecord.reporter_id == requester_id)
            .returning(HazardRecord.id)
        )

        try:
            async with self._session_maker() as session:
                async with session.begin():
                    deleted = (await session.execute(stmt)).scalar_one_or_none()
                    if deleted is None:
                        exists = await session.scalar(
                            select(HazardRecord.id).where(HazardRecord.id == hid)
                        )
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"Failed to delete hazard: {e}") from e

        if deleted is None:
            if exists is None:
                raise HazardNotFound(hazard_id)
            raise DeletionNotAuthorized(str(hid), requester_id)
        return str(deleted)
