# Pydantic schemas
from rover.schemas.common import Location
from rover.schemas.hazard import Hazard, HazardDetail, HazardSummary
from rover.schemas.events import (
    DeleteHazard,
    EventRejected,
    InboundEvent,
    JoinLocation,
    OutboundEvent,
    ReportHazard,
    VerifyHazard,
    parse_event,
)

__all__ = [
    "Location",
    "Hazard",
    "HazardSummary",
    "HazardDetail",
    "InboundEvent",
    "OutboundEvent",
    "JoinLocation",
    "ReportHazard",
    "VerifyHazard",
    "DeleteHazard",
    "EventRejected",
    "parse_event",
]
