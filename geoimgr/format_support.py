# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Format capability registry

Maps a MIME type to what the codec can do with it and which codec handles
it. This table is the only place support decisions are made; the facade
consults it before every read or write.

Copyright 2025 DNAi inc.
"""

from typing import Dict, List, NamedTuple


METHOD_EXIF = 'exif'
METHOD_RIFF = 'riff'
METHOD_CUSTOM = 'custom'


class FormatSupport(NamedTuple):
    """Static capability record for one MIME type."""
    can_read_gps: bool
    can_write_gps: bool
    can_read_metadata: bool
    can_write_metadata: bool
    method: str
    notes: str


_READ_WRITE_EXIF = FormatSupport(True, True, True, True, METHOD_EXIF, "Full EXIF support - recommended format")
_READ_ONLY_HEIF = FormatSupport(True, False, True, False, METHOD_EXIF, "Read-only support, convert to JPEG for writing")

FORMAT_SUPPORT: Dict[str, FormatSupport] = {
    'image/jpeg': _READ_WRITE_EXIF,
    'image/jpg': _READ_WRITE_EXIF,
    'image/tiff': FormatSupport(True, True, True, True, METHOD_EXIF, "Full EXIF support, larger file sizes"),
    'image/webp': FormatSupport(True, True, True, True, METHOD_RIFF, "RIFF-based metadata support"),
    'image/png': FormatSupport(True, True, True, True, METHOD_CUSTOM, "Custom PNG text chunks for GPS"),
    'image/heic': _READ_ONLY_HEIF,
    'image/heif': _READ_ONLY_HEIF,
}

UNSUPPORTED = FormatSupport(False, False, False, False, METHOD_CUSTOM, "Unsupported format")

# MIME types whose EXIF lives in an ISO-BMFF item rather than a JPEG/TIFF stream
HEIF_MIME_TYPES = ('image/heic', 'image/heif')

_WRITING_SUGGESTIONS = {
    'image/heic': "Convert to JPEG format for GPS writing support. HEIC GPS writing is not supported.",
    'image/heif': "Convert to JPEG format for GPS writing support. HEIF GPS writing is not supported.",
}


def normalize_mime_type(mime_type: str) -> str:
    """Lower-case a MIME type and strip any parameters."""
    if not mime_type:
        return ''
    return mime_type.split(';', 1)[0].strip().lower()


def get_format_support(mime_type: str) -> FormatSupport:
    """
    Look up the capability record for a MIME type.

    Args:
        mime_type: MIME type such as 'image/png'

    Returns:
        The registered FormatSupport, or the all-false UNSUPPORTED record
    """
    return FORMAT_SUPPORT.get(normalize_mime_type(mime_type), UNSUPPORTED)


def supported_mime_types() -> List[str]:
    """Return every MIME type in the registry."""
    return list(FORMAT_SUPPORT)


def writing_suggestion(mime_type: str) -> str:
    """Return a user-facing hint about writing metadata to this MIME type."""
    mime_type = normalize_mime_type(mime_type)
    if mime_type in _WRITING_SUGGESTIONS:
        return _WRITING_SUGGESTIONS[mime_type]
    if get_format_support(mime_type).can_write_metadata:
        return "This format supports GPS metadata writing."
    return "Convert to JPEG, PNG, TIFF or WebP to write metadata."
