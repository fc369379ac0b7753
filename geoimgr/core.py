# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Metadata facade

Format-independent entry points: look up what a MIME type supports,
dispatch to the matching codec, and turn codec errors into the shapes
callers expect. Reads degrade to an empty record; writes report failure
through WriteResult instead of raising.

Copyright 2025 DNAi inc.
"""

import logging
from typing import Any, Callable, Dict, Optional, Union

from geoimgr.config import DEFAULT_CONFIG, CodecConfig
from geoimgr.exceptions import GeoImgrError, InputTooLargeError, UnsupportedFormatError
from geoimgr.exif_parser import read_exif
from geoimgr.exif_writer import write_exif
from geoimgr.format_support import (
    HEIF_MIME_TYPES,
    METHOD_CUSTOM,
    METHOD_EXIF,
    METHOD_RIFF,
    get_format_support,
    normalize_mime_type,
    writing_suggestion,
)
from geoimgr.heif_parser import read_heif
from geoimgr.models import MetadataInfo, WriteResult
from geoimgr.png_parser import inspect_png_chunks, read_png
from geoimgr.png_writer import write_png
from geoimgr.webp_parser import read_webp
from geoimgr.webp_writer import write_webp

logger = logging.getLogger(__name__)

# Read-back tolerance in degrees. PNG stores the decimal text; EXIF stores
# seconds as n/100, which is exact to about 1.4e-6 degrees.
GPS_TOLERANCE_TEXT = 1e-6
GPS_TOLERANCE_DMS = 1e-5

UNKNOWN_ERROR_CODE = 'unknown'


def _reader_for(mime_type: str, method: str) -> Optional[Callable[[bytes], MetadataInfo]]:
    if method == METHOD_EXIF:
        return read_heif if mime_type in HEIF_MIME_TYPES else read_exif
    if method == METHOD_RIFF:
        return read_webp
    if method == METHOD_CUSTOM:
        return read_png
    return None


def _writer_for(method: str) -> Optional[Callable[..., bytes]]:
    return {
        METHOD_EXIF: write_exif,
        METHOD_RIFF: write_webp,
        METHOD_CUSTOM: write_png,
    }.get(method)


def _check_size(buffer: bytes, config: CodecConfig) -> None:
    if len(buffer) > config.max_input_bytes:
        raise InputTooLargeError(
            f"Input of {len(buffer)} bytes exceeds the limit of {config.max_input_bytes} bytes"
        )


def read_metadata_universal(
    buffer: bytes,
    mime_type: str,
    config: Optional[CodecConfig] = None
) -> MetadataInfo:
    """
    Read geolocation and descriptive metadata from an image.

    Never raises: unsupported formats, oversized input and damaged files
    all yield an empty record (the cause is logged).

    Args:
        buffer: Image file data
        mime_type: MIME type of the data
        config: Codec configuration

    Returns:
        MetadataInfo
    """
    config = config or DEFAULT_CONFIG
    mime_type = normalize_mime_type(mime_type)
    support = get_format_support(mime_type)

    if not support.can_read_metadata:
        logger.debug("Reading metadata not supported for %s", mime_type)
        return MetadataInfo()

    reader = _reader_for(mime_type, support.method)
    if reader is None:
        return MetadataInfo()

    try:
        _check_size(buffer, config)
        return reader(buffer)
    except GeoImgrError as e:
        logger.warning("Could not read %s metadata: %s", mime_type, e.message)
    except Exception as e:
        logger.warning("Could not read %s metadata: %s", mime_type, e, exc_info=True)
    return MetadataInfo()


def write_metadata_universal(
    buffer: bytes,
    metadata: Union[MetadataInfo, Dict[str, Any]],
    mime_type: str,
    config: Optional[CodecConfig] = None,
    verify: bool = False
) -> WriteResult:
    """
    Write geolocation and descriptive metadata into an image.

    Args:
        buffer: Image file data (never modified)
        metadata: Values to write, as MetadataInfo or a plain dictionary
        mime_type: MIME type of the data
        config: Codec configuration
        verify: Read the result back and attach a verification report

    Returns:
        WriteResult with the new bytes, or with an error message and code
    """
    config = config or DEFAULT_CONFIG
    mime_type = normalize_mime_type(mime_type)
    support = get_format_support(mime_type)

    if isinstance(metadata, dict):
        metadata = MetadataInfo.from_dict(metadata)

    if not support.can_write_metadata:
        message = (
            f"Writing metadata not supported for {mime_type}. {support.notes}. "
            f"{writing_suggestion(mime_type)}"
        )
        return WriteResult.failure(message, UnsupportedFormatError.code)

    writer = _writer_for(support.method)
    if writer is None:
        return WriteResult.failure("Unsupported metadata method", UnsupportedFormatError.code)

    try:
        _check_size(buffer, config)
        new_buffer = writer(buffer, metadata, config)
    except GeoImgrError as e:
        logger.warning("Could not write %s metadata: %s", mime_type, e.message)
        return WriteResult.failure(e.message, e.code)
    except Exception as e:
        logger.warning("Could not write %s metadata: %s", mime_type, e, exc_info=True)
        return WriteResult.failure(str(e) or e.__class__.__name__, UNKNOWN_ERROR_CODE)

    result = WriteResult.ok(new_buffer)
    if verify:
        result.verification = verify_write(metadata, new_buffer, mime_type, config)
    return result


def _text_matches(expected: Optional[str], actual: Optional[str]) -> Optional[bool]:
    if not expected or not expected.strip():
        return None
    return (actual or '').strip() == expected.strip()


def verify_write(
    original: MetadataInfo,
    buffer: bytes,
    mime_type: str,
    config: Optional[CodecConfig] = None
) -> Dict[str, Any]:
    """
    Read written data back and compare it with what was requested.

    Match flags are None for fields that were not requested.

    Args:
        original: Metadata that was written
        buffer: Written image data
        mime_type: MIME type of the data
        config: Codec configuration

    Returns:
        Dictionary with gps_written, keywords_written, description_written,
        gps_match, keywords_match and description_match
    """
    written = read_metadata_universal(buffer, mime_type, config)
    method = get_format_support(mime_type).method
    tolerance = GPS_TOLERANCE_TEXT if method == METHOD_CUSTOM else GPS_TOLERANCE_DMS

    gps_match = None
    if original.gps is not None:
        gps_match = (
            written.gps is not None
            and abs(written.gps.lat - original.gps.lat) < tolerance
            and abs(written.gps.lon - original.gps.lon) < tolerance
        )

    return {
        'gps_written': written.gps is not None,
        'keywords_written': bool(written.keywords),
        'description_written': bool(written.description),
        'gps_match': gps_match,
        'keywords_match': _text_matches(original.keywords, written.keywords),
        'description_match': _text_matches(original.description, written.description),
    }


def inspect_metadata(
    buffer: bytes,
    mime_type: str,
    config: Optional[CodecConfig] = None
) -> Dict[str, Any]:
    """
    Build a diagnostic report for an image.

    Args:
        buffer: Image file data
        mime_type: MIME type of the data
        config: Codec configuration

    Returns:
        Dictionary with the MIME type, size, capability record, extracted
        metadata, presence flags and, for PNG, a per-chunk report
    """
    mime_type = normalize_mime_type(mime_type)
    support = get_format_support(mime_type)
    metadata = read_metadata_universal(buffer, mime_type, config)

    report: Dict[str, Any] = {
        'mime_type': mime_type,
        'size': len(buffer),
        'support': support._asdict(),
        'metadata': metadata.to_dict(),
        'has_gps': metadata.gps is not None,
        'has_keywords': bool(metadata.keywords),
        'has_description': bool(metadata.description),
    }

    if support.method == METHOD_CUSTOM and support.can_read_metadata:
        try:
            report['chunks'] = inspect_png_chunks(buffer)
        except GeoImgrError as e:
            report['chunk_error'] = e.message

    return report
