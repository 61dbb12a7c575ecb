"""Event payloads exchanged over the realtime channel.

Every inbound frame is ``{"event": <name>, "data": <payload>}``. Each event
name maps to exactly one payload model; :func:`parse_event` turns a decoded
frame into that model or raises :class:`EventRejected`.
"""

import enum
from typing import Any, Dict, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from rover.models.hazard import HazardType
from rover.schemas.common import Location


class InboundEvent(str, enum.Enum):
    """Events a client may send."""

    JOIN_LOCATION = "join-location"
    REPORT_HAZARD = "report-hazard"
    VERIFY_HAZARD = "verify-hazard"
    DELETE_HAZARD = "delete-hazard"


class OutboundEvent(str, enum.Enum):
    """Events the server sends."""

    CONNECTED = "connected"
    NEW_HAZARD = "new-hazard"
    HAZARD_UPDATED = "hazard-updated"
    HAZARD_DELETED = "hazard-deleted"
    ERROR = "error"


class EventPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class JoinLocation(EventPayload):
    lat: float = Field(..., strict=True, allow_inf_nan=False)
    lng: float = Field(..., strict=True, allow_inf_nan=False)


class ReportHazard(EventPayload):
    type: HazardType
    location: Location
    user_id: Optional[str] = Field(default=None, alias="userId")

    @field_validator("user_id", mode="before")
    @classmethod
    def blank_user_is_anonymous(cls, v: Any) -> Any:
        # Empty strings are treated like a missing userId; numeric IDs are kept as text
        if v == "":
            return None
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class VerifyHazard(EventPayload):
    hazard_id: str = Field(..., alias="hazardId", min_length=1)
    user_id: str = Field(..., alias="userId", min_length=1)


class DeleteHazard(EventPayload):
    hazard_id: str = Field(..., alias="hazardId", min_length=1)
    user_id: str = Field(..., alias="userId", min_length=1)


ClientEvent = Union[JoinLocation, ReportHazard, VerifyHazard, DeleteHazard]

PAYLOAD_MODELS: Dict[InboundEvent, Type[EventPayload]] = {
    InboundEvent.JOIN_LOCATION: JoinLocation,
    InboundEvent.REPORT_HAZARD: ReportHazard,
    InboundEvent.VERIFY_HAZARD: VerifyHazard,
    InboundEvent.DELETE_HAZARD: DeleteHazard,
}


class EventRejected(Exception):
    """Frame could not be turned into a typed event."""

    def __init__(self, message: str, event: Optional[InboundEvent] = None):
        self.event = event
        super().__init__(message)


def _rejection_message(event: InboundEvent, exc: ValidationError) -> str:
    if event == InboundEvent.REPORT_HAZARD:
        failed = {str(error["loc"][0]) for error in exc.errors() if error["loc"]}
        # Type is checked before location, and a non-object payload has neither
        if not failed or "type" in failed:
            return "Invalid hazard type"
        if "location" in failed:
            return "Invalid location data"
        return "Invalid user ID"
    if event == InboundEvent.JOIN_LOCATION:
        return "Invalid coordinates"
    return f"Invalid {event.value} payload"


def parse_event(frame: Any) -> ClientEvent:
    """Validate a decoded frame and return its typed payload."""
    if not isinstance(frame, dict):
        raise EventRejected("Frame must be a JSON object")

    name = frame.get("event")
    try:
        event = InboundEvent(name)
    except ValueError:
        raise EventRejected(f"Unknown event: {name!r}")

    try:
        return PAYLOAD_MODELS[event].model_validate(frame.get("data"))
    except ValidationError as exc:
        raise EventRejected(_rejection_message(event, exc), event) from exc
