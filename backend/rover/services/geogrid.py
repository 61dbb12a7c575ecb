"""Fixed-grid partitioning of coordinates into subscription regions."""

import math
from decimal import Decimal, ROUND_HALF_UP
from numbers import Real
from typing import Optional

from rover.config import settings
from rover.core.exceptions import InvalidCoordinate


def validate_coordinate(value, minimum: float, maximum: float, name: str) -> float:
    """Return ``value`` as a float, or raise InvalidCoordinate."""
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidCoordinate(f"{name} must be a number")

    value = float(value)
    if not math.isfinite(value):
        raise InvalidCoordinate(f"{name} must be finite")
    if value < minimum or value > maximum:
        raise InvalidCoordinate(f"{name} must be between {minimum:g} and {maximum:g}")
    return value


def _format_component(value: float, precision: int) -> str:
    # Decimal(float) keeps the exact binary value, so ties round the way
    # fixed-point formatting of that value would.
    quantum = Decimal(1).scaleb(-precision)
    rounded = Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)
    if rounded.is_zero():
        rounded = abs(rounded)
    return f"{rounded:.{precision}f}"


def region_of(lat, lng, precision: Optional[int] = None) -> str:
    """
    Map a coordinate to its region key.

    Each component is rounded to ``precision`` decimal places (two by
    default, roughly 1.1 km cells at the equator) and the two are joined
    with an underscore, e.g. ``region_of(40.7128, -74.0060) == "40.71_-74.01"``.
    """
    if precision is None:
        precision = settings.region_precision

    lat = validate_coordinate(lat, -90.0, 90.0, "lat")
    lng = validate_coordinate(lng, -180.0, 180.0, "lng")

    return f"{_format_component(lat, precision)}_{_format_component(lng, precision)}"
