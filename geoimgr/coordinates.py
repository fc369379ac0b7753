# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
GPS coordinate conversion

Converts between decimal degrees and the degrees/minutes/seconds triples
EXIF stores, and validates latitude/longitude pairs.

Copyright 2025 DNAi inc.
"""

import math
from typing import Any, Dict, Sequence, Tuple


LATITUDE = 'lat'
LONGITUDE = 'lon'

NEGATIVE_REFS = ('S', 'W')


def decimal_to_dms(decimal: float) -> Tuple[int, int, float]:
    """
    Convert decimal degrees to a degrees/minutes/seconds triple.

    The sign is dropped; use hemisphere_ref() for the N/S/E/W reference.
    Seconds are rounded to two decimals and any rounding carry is pushed
    into minutes and degrees, so 0 <= minutes < 60 and 0 <= seconds < 60.

    Args:
        decimal: Coordinate in decimal degrees

    Returns:
        Tuple of (degrees, minutes, seconds)
    """
    absolute = abs(decimal)
    degrees = int(absolute)
    minutes_float = (absolute - degrees) * 60
    minutes = int(minutes_float)
    seconds = round((minutes_float - minutes) * 60, 2)

    if seconds >= 60:
        seconds = 0.0
        minutes += 1
    if minutes >= 60:
        minutes = 0
        degrees += 1

    return degrees, minutes, seconds


def dms_to_decimal(dms: Sequence[float], ref: str = '') -> float:
    """
    Convert a degrees/minutes/seconds triple to decimal degrees.

    Args:
        dms: Sequence of (degrees, minutes, seconds)
        ref: Hemisphere reference; 'S' and 'W' negate the result

    Returns:
        Decimal degrees, or 0.0 if fewer than three components are given
    """
    if not dms or len(dms) < 3:
        return 0.0

    degrees, minutes, seconds = dms[0], dms[1], dms[2]
    decimal = float(degrees) + float(minutes) / 60 + float(seconds) / 3600

    if ref and ref.strip().upper() in NEGATIVE_REFS:
        decimal = -decimal

    return decimal


def hemisphere_ref(decimal: float, axis: str) -> str:
    """
    Return the EXIF hemisphere reference for a coordinate.

    Args:
        decimal: Coordinate in decimal degrees
        axis: LATITUDE or LONGITUDE

    Returns:
        'N'/'S' for latitude, 'E'/'W' for longitude
    """
    if axis == LATITUDE:
        return 'N' if decimal >= 0 else 'S'
    if axis == LONGITUDE:
        return 'E' if decimal >= 0 else 'W'
    raise ValueError(f"Unknown axis: {axis!r}")


def to_float(value: Any) -> float:
    """Coerce a number or numeric string to float; NaN when impossible."""
    if isinstance(value, bool) or value is None:
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def validate_coordinates(lat: Any, lon: Any) -> Dict[str, Any]:
    """
    Check a latitude/longitude pair for numeric validity and range.

    Args:
        lat: Latitude, as a number or numeric string
        lon: Longitude, as a number or numeric string

    Returns:
        Dictionary with the converted values, per-check flags, a list of
        error messages and an overall 'valid' flag
    """
    latitude = to_float(lat)
    longitude = to_float(lon)

    lat_numeric = not math.isnan(latitude)
    lon_numeric = not math.isnan(longitude)
    lat_in_range = lat_numeric and -90 <= latitude <= 90
    lon_in_range = lon_numeric and -180 <= longitude <= 180

    errors = []
    if not lat_numeric or not lon_numeric:
        errors.append("Invalid latitude or longitude values")
    if lat_numeric and not lat_in_range:
        errors.append("Latitude must be between -90 and 90")
    if lon_numeric and not lon_in_range:
        errors.append("Longitude must be between -180 and 180")

    return {
        'lat': latitude,
        'lon': longitude,
        'numbers': {'lat_valid': lat_numeric, 'lon_valid': lon_numeric},
        'ranges': {'lat_valid': lat_in_range, 'lon_valid': lon_in_range},
        'errors': errors,
        'valid': not errors,
    }
