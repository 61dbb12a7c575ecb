"""Hazard database model for user-reported road hazards."""

import enum
from typing import List

from geoalchemy2 import Geometry
from sqlalchemy import ARRAY, Enum, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rover.models.base import Base


class HazardType(str, enum.Enum):
    """Types of hazards that can be reported."""

    SPEED_CAM = "speed_cam"
    POLICE = "police"
    ACCIDENT = "accident"
    DANGER = "danger"


class HazardRecord(Base):
    """Persisted hazard report."""

    __tablename__ = "hazards"

    # Classification
    hazard_type: Mapped[HazardType] = mapped_column(
        Enum(HazardType, name="hazard_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )

    # Location, spatial index created explicitly below
    location: Mapped[str] = mapped_column(
        Geometry(geometry_type="POINT", srid=4326, spatial_index=False),
        nullable=False,
    )

    # Reporter (unauthenticated device/user token)
    reporter_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Verifications, kept unique by the store
    verified_by: Mapped[List[str]] = mapped_column(
        ARRAY(Text),
        nullable=False,
        default=list,
    )

    __table_args__ = (
        Index("ix_hazards_location", "location", postgresql_using="gist"),
    )
