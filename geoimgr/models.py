# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Value records passed across the codec boundary

MetadataInfo is what every reader returns and every writer consumes.
GPSCoordinates enforces the coordinate invariant: both components are
present, numeric and in range, or there is no GPS at all.

Copyright 2025 DNAi inc.
"""

import math
from typing import Any, Dict, Optional

from geoimgr.coordinates import to_float
from geoimgr.exceptions import InvalidCoordinatesError


class GPSCoordinates:
    """A validated latitude/longitude pair in decimal degrees."""

    __slots__ = ('lat', 'lon')

    def __init__(self, lat: Any, lon: Any):
        latitude = to_float(lat)
        longitude = to_float(lon)

        if math.isnan(latitude) or math.isnan(longitude):
            raise InvalidCoordinatesError("Invalid latitude or longitude values")
        if not -90 <= latitude <= 90:
            raise InvalidCoordinatesError("Latitude must be between -90 and 90")
        if not -180 <= longitude <= 180:
            raise InvalidCoordinatesError("Longitude must be between -180 and 180")

        self.lat = latitude
        self.lon = longitude

    @classmethod
    def parse(cls, lat: Any, lon: Any) -> Optional['GPSCoordinates']:
        """Build coordinates, or return None when the pair is invalid."""
        try:
            return cls(lat, lon)
        except InvalidCoordinatesError:
            return None

    def to_dict(self) -> Dict[str, float]:
        return {'lat': self.lat, 'lon': self.lon}

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, GPSCoordinates):
            return NotImplemented
        return self.lat == other.lat and self.lon == other.lon

    def __hash__(self) -> int:
        return hash((self.lat, self.lon))

    def __repr__(self) -> str:
        return f"GPSCoordinates(lat={self.lat!r}, lon={self.lon!r})"


class MetadataInfo:
    """
    Geolocation and descriptive metadata of one image.

    Attributes:
        gps: Coordinates, or None when absent
        keywords: Comma-joined tag list
        description: Free text
        date_time: Capture date (read-only, never written)
        camera_make: Camera manufacturer (read-only, never written)
        camera_model: Camera model (read-only, never written)
    """

    FIELDS = ('gps', 'keywords', 'description', 'date_time', 'camera_make', 'camera_model')

    # camelCase names used by JSON clients
    _ALIASES = {
        'dateTime': 'date_time',
        'cameraMake': 'camera_make',
        'cameraModel': 'camera_model',
    }

    def __init__(
        self,
        gps: Optional[GPSCoordinates] = None,
        keywords: Optional[str] = None,
        description: Optional[str] = None,
        date_time: Optional[str] = None,
        camera_make: Optional[str] = None,
        camera_model: Optional[str] = None
    ):
        self.gps = gps
        self.keywords = keywords
        self.description = description
        self.date_time = date_time
        self.camera_make = camera_make
        self.camera_model = camera_model

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MetadataInfo':
        """
        Build a record from a plain dictionary.

        Accepts ``{'gps': {'lat': .., 'lon': ..}}`` or flat ``lat``/``lon``
        keys, and camelCase or snake_case field names. A GPS pair with a
        missing or invalid component is treated as absent.

        Args:
            data: Dictionary of metadata values

        Returns:
            MetadataInfo instance
        """
        values: Dict[str, Any] = {}
        for key, value in data.items():
            values[cls._ALIASES.get(key, key)] = value

        gps = None
        raw_gps = values.get('gps')
        if isinstance(raw_gps, GPSCoordinates):
            gps = raw_gps
        elif isinstance(raw_gps, dict):
            if raw_gps.get('lat') is not None and raw_gps.get('lon') is not None:
                gps = GPSCoordinates.parse(raw_gps['lat'], raw_gps['lon'])
        elif values.get('lat') is not None and values.get('lon') is not None:
            gps = GPSCoordinates.parse(values['lat'], values['lon'])

        text_fields = {}
        for name in cls.FIELDS[1:]:
            value = values.get(name)
            text_fields[name] = None if value is None else str(value)

        return cls(gps=gps, **text_fields)

    def to_dict(self) -> Dict[str, Any]:
        """Return the populated fields as a JSON-serializable dictionary."""
        result: Dict[str, Any] = {}
        if self.gps is not None:
            result['gps'] = self.gps.to_dict()
        for name in self.FIELDS[1:]:
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        return result

    def is_empty(self) -> bool:
        return all(getattr(self, name) is None for name in self.FIELDS)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, MetadataInfo):
            return NotImplemented
        return all(getattr(self, name) == getattr(other, name) for name in self.FIELDS)

    def __repr__(self) -> str:
        populated = ', '.join(
            f"{name}={getattr(self, name)!r}" for name in self.FIELDS
            if getattr(self, name) is not None
        )
        return f"MetadataInfo({populated})"


class WriteResult:
    """
    Outcome of a facade write.

    Writes never raise to the caller; failures come back with
    success=False, a message and a stable error code.
    """

    def __init__(
        self,
        success: bool,
        buffer: Optional[bytes] = None,
        error: Optional[str] = None,
        error_code: Optional[str] = None,
        verification: Optional[Dict[str, Any]] = None
    ):
        self.success = success
        self.buffer = buffer
        self.error = error
        self.error_code = error_code
        self.verification = verification

    @classmethod
    def ok(cls, buffer: bytes) -> 'WriteResult':
        return cls(success=True, buffer=buffer)

    @classmethod
    def failure(cls, error: str, error_code: str) -> 'WriteResult':
        return cls(success=False, error=error, error_code=error_code)

    def __bool__(self) -> bool:
        return self.success

    def __repr__(self) -> str:
        if self.success:
            size = len(self.buffer) if self.buffer is not None else 0
            return f"WriteResult(success=True, bytes={size})"
        return f"WriteResult(success=False, error_code={self.error_code!r}, error={self.error!r})"
