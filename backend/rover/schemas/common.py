"""Common schemas used across the application."""

from pydantic import BaseModel, Field


class Location(BaseModel):
    """Geographic point as sent and received on the wire."""

    lat: float = Field(..., strict=True, ge=-90, le=90, allow_inf_nan=False, description="Latitude in degrees")
    lng: float = Field(..., strict=True, ge=-180, le=180, allow_inf_nan=False, description="Longitude in degrees")
