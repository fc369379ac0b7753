# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
GeoImgr - Image geolocation metadata codec

Reads and writes GPS coordinates, keywords and descriptions in JPEG,
TIFF, PNG and WebP images, and reads them from HEIC/HEIF. Every operation
takes the image as bytes and returns new bytes; the input is never
modified.

Copyright 2025 DNAi inc.
"""

__version__ = "0.1.0"
__author__ = "DNAi inc."

from geoimgr.config import CodecConfig, DEFAULT_CONFIG
from geoimgr.coordinates import (
    decimal_to_dms,
    dms_to_decimal,
    hemisphere_ref,
    validate_coordinates,
)
from geoimgr.core import (
    inspect_metadata,
    read_metadata_universal,
    verify_write,
    write_metadata_universal,
)
from geoimgr.exceptions import (
    GeoImgrError,
    UnsupportedFormatError,
    CorruptContainerError,
    MalformedFieldError,
    MetadataWriteError,
    InvalidCoordinatesError,
    InputTooLargeError,
)
from geoimgr.format_detector import FormatDetector
from geoimgr.format_support import FormatSupport, get_format_support, supported_mime_types
from geoimgr.models import GPSCoordinates, MetadataInfo, WriteResult

__all__ = [
    "CodecConfig",
    "DEFAULT_CONFIG",
    "decimal_to_dms",
    "dms_to_decimal",
    "hemisphere_ref",
    "validate_coordinates",
    "inspect_metadata",
    "read_metadata_universal",
    "verify_write",
    "write_metadata_universal",
    "GeoImgrError",
    "UnsupportedFormatError",
    "CorruptContainerError",
    "MalformedFieldError",
    "MetadataWriteError",
    "InvalidCoordinatesError",
    "InputTooLargeError",
    "FormatDetector",
    "FormatSupport",
    "get_format_support",
    "supported_mime_types",
    "GPSCoordinates",
    "MetadataInfo",
    "WriteResult",
]
