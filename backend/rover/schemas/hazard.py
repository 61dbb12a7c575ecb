"""Hazard schemas: the store's record type and its wire shapes."""

from datetime import datetime
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from rover.models.hazard import HazardType
from rover.schemas.common import Location


class Hazard(BaseModel):
    """A hazard as returned by every store implementation."""

    id: str
    type: HazardType
    location: Location
    reporter_id: str
    verifiers: List[str] = Field(default_factory=list)
    created_at: datetime

    def summary(self) -> Dict[str, Any]:
        """Shape used for ``new-hazard`` events and radius queries."""
        return HazardSummary.from_hazard(self).model_dump(mode="json", by_alias=True)

    def detail(self) -> Dict[str, Any]:
        """Full record shape used for ``hazard-updated`` events."""
        return HazardDetail.from_hazard(self).model_dump(mode="json", by_alias=True)


class HazardSummary(BaseModel):
    """Transformed hazard: id, type, location and verifier list."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: HazardType
    location: Location
    verified_by: List[str] = Field(default_factory=list, alias="verifiedBy")

    @classmethod
    def from_hazard(cls, hazard: Hazard) -> "HazardSummary":
        return cls(
            id=hazard.id,
            type=hazard.type,
            location=hazard.location,
            verified_by=list(hazard.verifiers),
        )


class HazardDetail(HazardSummary):
    """Full hazard record including reporter and creation time."""

    reporter_id: str = Field(..., alias="reporterId")
    created_at: datetime = Field(..., alias="createdAt")

    @classmethod
    def from_hazard(cls, hazard: Hazard) -> "HazardDetail":
        return cls(
            id=hazard.id,
            type=hazard.type,
            location=hazard.location,
            verified_by=list(hazard.verifiers),
            reporter_id=hazard.reporter_id,
            created_at=hazard.created_at,
        )
