# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
EXIF metadata parser

This module reads the TIFF-structured EXIF block found in JPEG APP1
segments, TIFF files and WebP/HEIF EXIF payloads, and extracts the
geolocation and descriptive fields of MetadataInfo from it.

Copyright 2025 DNAi inc.
"""

import logging
import struct
from typing import Dict, Optional, Tuple

from geoimgr.coordinates import dms_to_decimal
from geoimgr.exceptions import CorruptContainerError, MalformedFieldError
from geoimgr.exif_tags import (
    ExifTag,
    Ifd,
    IfdEntry,
    TAG_SPECS,
    decode_entry,
    field_size,
)
from geoimgr.jpeg_modifier import EXIF_HEADER, JPEGModifier
from geoimgr.models import GPSCoordinates, MetadataInfo

logger = logging.getLogger(__name__)

TIFF_HEADERS = (b'II*\x00', b'MM\x00*')

# Upper bound on entries per IFD; real files stay far below this
MAX_IFD_ENTRIES = 4096

# Tags whose values are offsets into the block; they are rebuilt on write
POINTER_TAGS = {
    Ifd.IMAGE: (ExifTag.EXIF_IFD_POINTER, ExifTag.GPS_IFD_POINTER),
    Ifd.EXIF: (ExifTag.INTEROP_IFD_POINTER,),
    Ifd.THUMBNAIL: (ExifTag.JPEG_INTERCHANGE_FORMAT, ExifTag.JPEG_INTERCHANGE_FORMAT_LENGTH),
}


def tiff_byte_order(data: bytes) -> str:
    """
    Return the struct byte-order prefix of a TIFF header.

    Raises:
        CorruptContainerError: If the data does not start with a complete TIFF header
    """
    if len(data) < 8:
        raise CorruptContainerError("Invalid EXIF data: truncated TIFF header")
    if data[:4] == b'II*\x00':
        return '<'
    if data[:4] == b'MM\x00*':
        return '>'
    raise CorruptContainerError("Invalid EXIF data: bad TIFF header")


def parse_ifd(data: bytes, offset: int, endian: str) -> Tuple[Dict[int, IfdEntry], int]:
    """
    Parse one IFD (Image File Directory).

    Args:
        data: TIFF-structured data; offsets are relative to its start
        offset: Offset of the IFD
        endian: struct byte-order prefix

    Returns:
        Tuple of (entries keyed by tag ID in file order, next IFD offset)

    Raises:
        CorruptContainerError: If the directory itself lies outside the data
    """
    if offset < 8 or offset + 2 > len(data):
        raise CorruptContainerError(f"IFD offset {offset} outside of EXIF data")

    num_entries = struct.unpack(f'{endian}H', data[offset:offset + 2])[0]
    table_end = offset + 2 + num_entries * 12
    if num_entries > MAX_IFD_ENTRIES or table_end > len(data):
        raise CorruptContainerError(f"IFD at offset {offset} runs past end of EXIF data")

    entries: Dict[int, IfdEntry] = {}
    for entry_offset in range(offset + 2, table_end, 12):
        tag_id, field_type, count = struct.unpack(
            f'{endian}HHI', data[entry_offset:entry_offset + 8]
        )
        size = field_size(field_type) * count
        if size <= 4:
            payload = data[entry_offset + 8:entry_offset + 8 + size]
        else:
            value_offset = struct.unpack(f'{endian}I', data[entry_offset + 8:entry_offset + 12])[0]
            if value_offset + size > len(data):
                logger.warning("Skipping tag 0x%04X: value runs past end of EXIF data", tag_id)
                continue
            payload = data[value_offset:value_offset + size]
        entries[tag_id] = IfdEntry(tag_id, field_type, count, payload)

    next_ifd = 0
    if table_end + 4 <= len(data):
        next_ifd = struct.unpack(f'{endian}I', data[table_end:table_end + 4])[0]

    return entries, next_ifd


class ExifBlock:
    """
    A parsed EXIF block: byte order, the entries of each IFD, and the
    embedded thumbnail.

    Offset-carrying pointer tags are not stored in the IFD dictionaries;
    the writer recomputes them from the layout it produces.
    """

    def __init__(self, endian: str = '<'):
        self.endian = endian
        self.ifds: Dict[Ifd, Dict[int, IfdEntry]] = {ifd: {} for ifd in Ifd}
        self.thumbnail: Optional[bytes] = None

    def copy(self) -> 'ExifBlock':
        clone = ExifBlock(self.endian)
        clone.ifds = {ifd: dict(entries) for ifd, entries in self.ifds.items()}
        clone.thumbnail = self.thumbnail
        return clone

    def get(self, tag: ExifTag):
        """
        Return the decoded value of a known tag, or None if absent.

        Raises:
            MalformedFieldError: If the tag is present but undecodable
        """
        entry = self.ifds[TAG_SPECS[tag].ifd].get(int(tag))
        if entry is None:
            return None
        return decode_entry(tag, entry, self.endian)

    def is_empty(self) -> bool:
        return not any(self.ifds.values()) and self.thumbnail is None


def _pointer(entries: Dict[int, IfdEntry], tag: ExifTag, endian: str) -> Optional[int]:
    entry = entries.get(int(tag))
    if entry is None:
        return None
    try:
        return decode_entry(tag, entry, endian)
    except MalformedFieldError:
        return None


def parse_tiff_block(data: bytes) -> ExifBlock:
    """
    Parse a TIFF-structured EXIF block.

    The 0th IFD must be readable; the Exif, GPS, Interop and 1st IFDs are
    read when their pointers are valid and skipped otherwise.

    Args:
        data: Block starting with a TIFF header

    Returns:
        ExifBlock

    Raises:
        CorruptContainerError: If the header or the 0th IFD is invalid
    """
    endian = tiff_byte_order(data)
    block = ExifBlock(endian)

    ifd0_offset = struct.unpack(f'{endian}I', data[4:8])[0]
    ifd0, next_ifd = parse_ifd(data, ifd0_offset, endian)
    visited = {ifd0_offset}

    def sub_ifd(offset: Optional[int], name: Ifd) -> Dict[int, IfdEntry]:
        if not offset or offset in visited:
            return {}
        visited.add(offset)
        try:
            entries, _ = parse_ifd(data, offset, endian)
        except CorruptContainerError as e:
            logger.warning("Skipping %s IFD: %s", name.value, e.message)
            return {}
        return entries

    exif = sub_ifd(_pointer(ifd0, ExifTag.EXIF_IFD_POINTER, endian), Ifd.EXIF)
    block.ifds[Ifd.IMAGE] = ifd0
    block.ifds[Ifd.EXIF] = exif
    block.ifds[Ifd.GPS] = sub_ifd(_pointer(ifd0, ExifTag.GPS_IFD_POINTER, endian), Ifd.GPS)
    block.ifds[Ifd.INTEROP] = sub_ifd(_pointer(exif, ExifTag.INTEROP_IFD_POINTER, endian), Ifd.INTEROP)

    ifd1 = sub_ifd(next_ifd, Ifd.THUMBNAIL)
    block.ifds[Ifd.THUMBNAIL] = ifd1
    thumb_offset = _pointer(ifd1, ExifTag.JPEG_INTERCHANGE_FORMAT, endian)
    thumb_length = _pointer(ifd1, ExifTag.JPEG_INTERCHANGE_FORMAT_LENGTH, endian)
    if thumb_offset and thumb_length and thumb_offset + thumb_length <= len(data):
        block.thumbnail = data[thumb_offset:thumb_offset + thumb_length]

    for ifd, tags in POINTER_TAGS.items():
        for tag in tags:
            block.ifds[ifd].pop(int(tag), None)

    return block


def extract_tiff_block(buffer: bytes) -> Optional[bytes]:
    """
    Find the TIFF-structured EXIF data in a carrier.

    Args:
        buffer: JPEG file, TIFF file, or EXIF payload with or without the
                'Exif\\0\\0' prefix

    Returns:
        TIFF block, or None for a JPEG without an EXIF segment

    Raises:
        CorruptContainerError: If the carrier is not recognizable
    """
    if buffer[:2] == b'\xff\xd8':
        return JPEGModifier(buffer).find_exif_block()
    if buffer[:6] == EXIF_HEADER:
        buffer = buffer[6:]
    if buffer[:4] in TIFF_HEADERS:
        return buffer
    raise CorruptContainerError("No JPEG or TIFF marker found")


def metadata_from_block(block: ExifBlock) -> MetadataInfo:
    """
    Extract MetadataInfo fields from a parsed block.

    Each field is decoded independently; a field that fails to decode is
    left absent.
    """
    metadata = MetadataInfo()

    try:
        lat = block.get(ExifTag.GPS_LATITUDE)
        lon = block.get(ExifTag.GPS_LONGITUDE)
        lat_ref = block.get(ExifTag.GPS_LATITUDE_REF)
        lon_ref = block.get(ExifTag.GPS_LONGITUDE_REF)
        if lat and lon and lat_ref and lon_ref:
            metadata.gps = GPSCoordinates.parse(
                dms_to_decimal(lat, lat_ref),
                dms_to_decimal(lon, lon_ref),
            )
    except MalformedFieldError as e:
        logger.debug("Ignoring GPS tags: %s", e.message)

    text_fields = (
        ('description', ExifTag.IMAGE_DESCRIPTION),
        ('camera_make', ExifTag.MAKE),
        ('camera_model', ExifTag.MODEL),
        ('date_time', ExifTag.DATE_TIME),
    )
    for field, tag in text_fields:
        try:
            value = block.get(tag)
        except MalformedFieldError as e:
            logger.debug("Ignoring %s: %s", tag.name, e.message)
            continue
        if value:
            setattr(metadata, field, value)

    try:
        raw_keywords = block.get(ExifTag.XP_KEYWORDS)
        if raw_keywords:
            if len(raw_keywords) % 2:
                raw_keywords = raw_keywords[:-1]
            keywords = raw_keywords.decode('utf-16-le').replace('\x00', '')
            if keywords:
                metadata.keywords = keywords
    except (MalformedFieldError, UnicodeDecodeError) as e:
        logger.debug("Ignoring XPKeywords: %s", e)

    return metadata


def read_exif(buffer: bytes) -> MetadataInfo:
    """
    Read geolocation and descriptive metadata from EXIF.

    Args:
        buffer: JPEG file, TIFF file, or bare EXIF payload

    Returns:
        MetadataInfo (empty for a JPEG without EXIF)

    Raises:
        CorruptContainerError: If the carrier or its EXIF block is
            structurally invalid
    """
    tiff_block = extract_tiff_block(buffer)
    if tiff_block is None:
        return MetadataInfo()
    return metadata_from_block(parse_tiff_block(tiff_block))
