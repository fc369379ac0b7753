# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
PNG chunk codec

This module splits a PNG stream into chunks, builds new chunks with
correct CRCs, decodes the tEXt/iTXt text chunk layouts and classifies
text keywords into the metadata fields they carry.

The keyword classifier is shared by the reader (which field a chunk
fills) and the writer (which existing chunks a write replaces).

Copyright 2025 DNAi inc.
"""

import json
import re
import struct
from enum import Enum
from typing import Iterator, NamedTuple, Optional, Tuple

from geoimgr.crc32 import crc32
from geoimgr.exceptions import CorruptContainerError, MalformedFieldError
from geoimgr.models import GPSCoordinates

PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'

# PNG chunk types
CHUNK_IHDR = b'IHDR'
CHUNK_IEND = b'IEND'
CHUNK_TEXT = b'tEXt'  # Latin-1 text
CHUNK_ITXT = b'iTXt'  # International (UTF-8) text
CHUNK_ZTXT = b'zTXt'  # Compressed Latin-1 text

TEXT_CHUNK_TYPES = (CHUNK_TEXT, CHUNK_ITXT, CHUNK_ZTXT)

# GPS text formats recognized by parse_gps_text
GPS_FORMAT_JSON = 'json'
GPS_FORMAT_CSV = 'csv'
GPS_FORMAT_KEY_VALUE = 'key-value'
GPS_FORMAT_PIPE = 'pipe'


class Chunk(NamedTuple):
    """One PNG chunk as read from a stream."""
    type: bytes
    data: bytes
    offset: int
    crc: int

    @property
    def crc_valid(self) -> bool:
        return crc32(self.type, self.data) == self.crc


class Category(Enum):
    """Metadata field a text chunk keyword maps to."""
    GPS = 'gps'
    DESCRIPTION = 'description'
    KEYWORDS = 'keywords'
    CREATION_TIME = 'creation_time'
    DATE_TIME = 'date_time'
    CAMERA_MODEL = 'camera_model'
    CAMERA_MAKE = 'camera_make'
    SOFTWARE = 'software'


# Checked in order; the first category with a matching substring wins
KEYWORD_VOCABULARY = (
    (Category.GPS, ('gps', 'location', 'coordinates', 'geolocation')),
    (Category.DESCRIPTION, ('description', 'comment', 'title', 'caption')),
    (Category.KEYWORDS, ('keywords', 'subject', 'tags')),
    (Category.CREATION_TIME, ('creation',)),
    (Category.DATE_TIME, ('date', 'time')),
    (Category.CAMERA_MODEL, ('model',)),
    (Category.CAMERA_MAKE, ('camera', 'make')),
    (Category.SOFTWARE, ('software',)),
)

# Text chunks in these categories are removed and re-emitted on write
REWRITTEN_CATEGORIES = frozenset({
    Category.GPS,
    Category.DESCRIPTION,
    Category.KEYWORDS,
    Category.CREATION_TIME,
    Category.SOFTWARE,
})


def classify(keyword: str) -> Optional[Category]:
    """
    Map a text chunk keyword to a metadata category.

    Matching is a case-insensitive substring test, so 'GPS_Location' and
    'Image Description' are recognized as well as the bare words.

    Args:
        keyword: Text chunk keyword

    Returns:
        Category, or None if the keyword carries nothing we know
    """
    lowered = keyword.lower()
    for category, needles in KEYWORD_VOCABULARY:
        if any(needle in lowered for needle in needles):
            return category
    return None


def iter_chunks(buffer: bytes) -> Iterator[Chunk]:
    """
    Iterate over the chunks of a PNG stream.

    Iteration stops after IEND or at the end of the buffer; bytes after
    IEND are ignored.

    Args:
        buffer: PNG file data

    Yields:
        Chunk records in file order

    Raises:
        CorruptContainerError: If the signature is wrong or a chunk runs
            past the end of the buffer
    """
    if buffer[:8] != PNG_SIGNATURE:
        raise CorruptContainerError("Invalid PNG file: bad signature")

    offset = 8
    while offset < len(buffer):
        if offset + 8 > len(buffer):
            raise CorruptContainerError(f"Truncated PNG chunk header at offset {offset}")

        length = struct.unpack('>I', buffer[offset:offset + 4])[0]
        chunk_type = buffer[offset + 4:offset + 8]
        data_end = offset + 8 + length
        if data_end + 4 > len(buffer):
            raise CorruptContainerError(
                f"PNG chunk {chunk_type!r} at offset {offset} runs past end of file"
            )

        crc = struct.unpack('>I', buffer[data_end:data_end + 4])[0]
        yield Chunk(chunk_type, buffer[offset + 8:data_end], offset, crc)

        if chunk_type == CHUNK_IEND:
            return
        offset = data_end + 4


def build_chunk(chunk_type: bytes, chunk_data: bytes) -> bytes:
    """
    Serialize a chunk: length, type, data and CRC.

    Args:
        chunk_type: 4-byte chunk type
        chunk_data: Chunk payload

    Returns:
        Complete chunk bytes
    """
    chunk = bytearray()
    chunk.extend(struct.pack('>I', len(chunk_data)))
    chunk.extend(chunk_type)
    chunk.extend(chunk_data)
    chunk.extend(struct.pack('>I', crc32(chunk_type, chunk_data)))
    return bytes(chunk)


def serialize_chunk(chunk: Chunk) -> bytes:
    """Serialize a chunk read from a stream, keeping its stored CRC."""
    return struct.pack('>I', len(chunk.data)) + chunk.type + chunk.data + struct.pack('>I', chunk.crc)


def create_text_chunk(keyword: str, text: str) -> bytes:
    """
    Build a text chunk.

    tEXt is used when both keyword and text are ASCII; otherwise an
    uncompressed iTXt chunk with empty language tag and translated
    keyword.

    Args:
        keyword: Chunk keyword
        text: Chunk text

    Returns:
        Complete chunk bytes
    """
    if keyword.isascii() and text.isascii():
        data = keyword.encode('latin-1') + b'\x00' + text.encode('latin-1')
        return build_chunk(CHUNK_TEXT, data)

    data = bytearray()
    data.extend(keyword.encode('utf-8'))
    data.append(0)  # keyword terminator
    data.append(0)  # compression flag
    data.append(0)  # compression method
    data.append(0)  # empty language tag
    data.append(0)  # empty translated keyword
    data.extend(text.encode('utf-8'))
    return build_chunk(CHUNK_ITXT, bytes(data))


def parse_itxt(data: bytes) -> dict:
    """
    Split an iTXt payload into its fields.

    Returns:
        Dictionary with keyword, compression_flag, compression_method,
        language_tag, translated_keyword and text (None when compressed)

    Raises:
        MalformedFieldError: If a separator is missing
    """
    keyword_end = data.find(b'\x00')
    if keyword_end < 0 or keyword_end + 3 > len(data):
        raise MalformedFieldError("iTXt chunk has no keyword terminator")

    compression_flag = data[keyword_end + 1]
    compression_method = data[keyword_end + 2]
    pos = keyword_end + 3

    language_end = data.find(b'\x00', pos)
    if language_end < 0:
        raise MalformedFieldError("iTXt chunk has no language tag terminator")
    translated_end = data.find(b'\x00', language_end + 1)
    if translated_end < 0:
        raise MalformedFieldError("iTXt chunk has no translated keyword terminator")

    try:
        fields = {
            'keyword': data[:keyword_end].decode('utf-8'),
            'compression_flag': compression_flag,
            'compression_method': compression_method,
            'language_tag': data[pos:language_end].decode('utf-8'),
            'translated_keyword': data[language_end + 1:translated_end].decode('utf-8'),
            'text': None,
        }
        if not compression_flag:
            fields['text'] = data[translated_end + 1:].decode('utf-8')
    except UnicodeDecodeError as e:
        raise MalformedFieldError(f"iTXt chunk is not valid UTF-8: {e}")
    return fields


def decode_text_chunk(chunk: Chunk) -> Tuple[str, Optional[str]]:
    """
    Decode a tEXt, iTXt or zTXt chunk.

    Compressed text (zTXt, or iTXt with the compression flag set) is not
    inflated; its text comes back as None.

    Args:
        chunk: Text chunk

    Returns:
        Tuple of (keyword, text or None)

    Raises:
        MalformedFieldError: If the chunk is not a text chunk or its
            layout is broken
    """
    if chunk.type == CHUNK_ITXT:
        fields = parse_itxt(chunk.data)
        return fields['keyword'], fields['text']

    if chunk.type not in (CHUNK_TEXT, CHUNK_ZTXT):
        raise MalformedFieldError(f"{chunk.type!r} is not a text chunk")

    keyword_end = chunk.data.find(b'\x00')
    if keyword_end < 0:
        raise MalformedFieldError(f"{chunk.type.decode('latin-1')} chunk has no keyword terminator")

    keyword = chunk.data[:keyword_end].decode('latin-1')
    if chunk.type == CHUNK_ZTXT:
        return keyword, None
    return keyword, chunk.data[keyword_end + 1:].decode('latin-1')


def parse_gps_text(text: str) -> Optional[Tuple[GPSCoordinates, str]]:
    """
    Parse coordinates from the text of a GPS-related chunk.

    Formats are tried in order: a JSON object with ``lat`` and ``lon``
    members, ``lat,lon``, ``key=value`` pairs separated by ``;``, ``&``
    or ``|``, and ``lat|lon``.

    Args:
        text: Chunk text

    Returns:
        Tuple of (coordinates, format name), or None when no format
        yields a valid pair
    """
    if text is None:
        return None
    text = text.strip()

    try:
        data = json.loads(text)
    except ValueError:
        data = None
    if isinstance(data, dict) and 'lat' in data and 'lon' in data:
        coords = GPSCoordinates.parse(data['lat'], data['lon'])
        if coords:
            return coords, GPS_FORMAT_JSON

    parts = text.split(',')
    if len(parts) == 2:
        coords = GPSCoordinates.parse(parts[0], parts[1])
        if coords:
            return coords, GPS_FORMAT_CSV

    if '=' in text:
        pairs = {}
        for pair in re.split(r'[;&|]', text):
            key, sep, value = pair.partition('=')
            if sep and key.strip():
                pairs[key.strip().lower()] = value.strip()
        lat = pairs.get('lat', pairs.get('latitude'))
        lon = pairs.get('lon', pairs.get('lng', pairs.get('longitude')))
        if lat is not None and lon is not None:
            coords = GPSCoordinates.parse(lat, lon)
            if coords:
                return coords, GPS_FORMAT_KEY_VALUE

    parts = text.split('|')
    if len(parts) == 2:
        coords = GPSCoordinates.parse(parts[0], parts[1])
        if coords:
            return coords, GPS_FORMAT_PIPE

    return None
