"""Latitude/longitude parsing."""

import math
from typing import Optional, Tuple

from .errors import InvalidCoordinate

LAT_RANGE = (-90.0, 90.0)
LNG_RANGE = (-180.0, 180.0)


def _is_missing(value) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def parse_coordinate(value, field: str, bounds: Tuple[float, float]) -> float:
    """
    Convert a number or numeric string to a float within bounds.

    Raises:
        InvalidCoordinate: If the value is not numeric, not finite, or out of range
    """
    # bool is an int subclass
    if isinstance(value, bool):
        raise InvalidCoordinate(f"{field} must be numeric", field=field)

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise InvalidCoordinate(f"{field} must be numeric, got {value!r}", field=field)
    else:
        raise InvalidCoordinate(f"{field} must be numeric", field=field)

    if not math.isfinite(number):
        raise InvalidCoordinate(f"{field} must be finite", field=field)

    low, high = bounds
    if not low <= number <= high:
        raise InvalidCoordinate(f"{field} out of range [{low}, {high}]: {number}", field=field)

    return number


def parse_point(lat, lng) -> Tuple[float, float]:
    """Both coordinates are required."""
    return parse_coordinate(lat, "lat", LAT_RANGE), parse_coordinate(lng, "lng", LNG_RANGE)


def parse_optional_point(lat, lng) -> Optional[Tuple[float, float]]:
    """
    Parse a coordinate pair that may be absent as a whole.

    Returns:
        (lat, lng), or None when both are absent

    Raises:
        InvalidCoordinate: If exactly one is present or either is invalid
    """
    lat_missing, lng_missing = _is_missing(lat), _is_missing(lng)
    if lat_missing and lng_missing:
        return None
    if lat_missing or lng_missing:
        missing = "lat" if lat_missing else "lng"
        raise InvalidCoordinate("lat and lng must be given together", field=missing)
    return parse_point(lat, lng)
