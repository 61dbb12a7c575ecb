# Database models
from rover.models.base import Base
from rover.models.hazard import HazardRecord, HazardType

__all__ = ["Base", "HazardRecord", "HazardType"]
