# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
HEIC/HEIF metadata parser

HEIF files are ISO Base Media File Format (ISOBMFF) containers. EXIF is
stored as an item of type 'Exif': the 'iinf' box names the item, the
'iloc' box says where its bytes are, and the item itself starts with a
4-byte offset to the TIFF header.

This module reads only; writing HEIF is not supported.

Copyright 2025 DNAi inc.
"""

import logging
import struct
from typing import Dict, Iterator, List, Optional, Tuple

from geoimgr.exceptions import CorruptContainerError
from geoimgr.exif_parser import read_exif
from geoimgr.models import MetadataInfo

logger = logging.getLogger(__name__)

EXIF_ITEM_TYPE = b'Exif'


def iter_boxes(data: bytes, start: int = 0, end: Optional[int] = None) -> Iterator[Tuple[bytes, int, int]]:
    """
    Iterate over the boxes between ``start`` and ``end``.

    Handles 64-bit sizes (size == 1) and boxes that run to the end of the
    enclosing range (size == 0).

    Yields:
        Tuples of (box type, payload start, payload end)

    Raises:
        CorruptContainerError: If a box header is truncated or a box runs
            past the end of its range
    """
    if end is None:
        end = len(data)

    offset = start
    while offset < end:
        if offset + 8 > end:
            raise CorruptContainerError(f"Truncated box header at offset {offset}")
        box_size = struct.unpack('>I', data[offset:offset + 4])[0]
        box_type = data[offset + 4:offset + 8]
        header_size = 8

        if box_size == 1:
            if offset + 16 > end:
                raise CorruptContainerError(f"Truncated 64-bit box header at offset {offset}")
            box_size = struct.unpack('>Q', data[offset + 8:offset + 16])[0]
            header_size = 16
        elif box_size == 0:
            box_size = end - offset

        if box_size < header_size or offset + box_size > end:
            raise CorruptContainerError(
                f"Box {box_type!r} at offset {offset} runs past end of data"
            )

        yield box_type, offset + header_size, offset + box_size
        offset += box_size


def _read_uint(data: bytes, pos: int, size: int) -> Tuple[int, int]:
    """Read a big-endian unsigned integer of 0, 2, 4 or 8 bytes."""
    if size == 0:
        return 0, pos
    if pos + size > len(data):
        raise CorruptContainerError("Truncated iloc box")
    value = int.from_bytes(data[pos:pos + size], 'big')
    return value, pos + size


def _find_child(data: bytes, start: int, end: int, box_type: bytes) -> Optional[Tuple[int, int]]:
    for child_type, child_start, child_end in iter_boxes(data, start, end):
        if child_type == box_type:
            return child_start, child_end
    return None


def parse_iinf(data: bytes) -> Dict[int, bytes]:
    """
    Parse an 'iinf' payload.

    Returns:
        Mapping of item ID to item type for version 2+ 'infe' entries
    """
    if len(data) < 4:
        raise CorruptContainerError("Truncated iinf box")
    version = data[0]
    pos = 4
    if version == 0:
        pos += 2
    else:
        pos += 4

    items: Dict[int, bytes] = {}
    for box_type, start, end in iter_boxes(data, pos, len(data)):
        if box_type != b'infe' or end - start < 4:
            continue
        infe_version = data[start]
        if infe_version < 2:
            continue
        pos = start + 4
        id_size = 2 if infe_version == 2 else 4
        if pos + id_size + 6 > end:
            continue
        item_id = int.from_bytes(data[pos:pos + id_size], 'big')
        pos += id_size + 2  # item_protection_index
        items[item_id] = data[pos:pos + 4]
    return items


def parse_iloc(data: bytes) -> Dict[int, Tuple[int, List[Tuple[int, int]]]]:
    """
    Parse an 'iloc' payload.

    Returns:
        Mapping of item ID to (construction method, [(offset, length), ...])
        with the base offset already added to each extent offset
    """
    if len(data) < 8:
        raise CorruptContainerError("Truncated iloc box")
    version = data[0]
    offset_size = data[4] >> 4
    length_size = data[4] & 0x0F
    base_offset_size = data[5] >> 4
    index_size = data[5] & 0x0F if version in (1, 2) else 0

    pos = 6
    item_count, pos = _read_uint(data, pos, 4 if version == 2 else 2)

    locations = {}
    for _ in range(item_count):
        item_id, pos = _read_uint(data, pos, 4 if version == 2 else 2)
        construction_method = 0
        if version in (1, 2):
            value, pos = _read_uint(data, pos, 2)
            construction_method = value & 0x0F
        _, pos = _read_uint(data, pos, 2)  # data_reference_index
        base_offset, pos = _read_uint(data, pos, base_offset_size)
        extent_count, pos = _read_uint(data, pos, 2)

        extents = []
        for _ in range(extent_count):
            _, pos = _read_uint(data, pos, index_size)
            extent_offset, pos = _read_uint(data, pos, offset_size)
            extent_length, pos = _read_uint(data, pos, length_size)
            extents.append((base_offset + extent_offset, extent_length))
        locations[item_id] = (construction_method, extents)
    return locations


def find_exif_item(buffer: bytes) -> Optional[bytes]:
    """
    Return the raw bytes of the first 'Exif' item, or None.

    Raises:
        CorruptContainerError: If the file has no leading 'ftyp' box or
            its box structure is broken
    """
    if len(buffer) < 8 or buffer[4:8] != b'ftyp':
        raise CorruptContainerError("Invalid HEIF file: missing ftyp box")

    meta = _find_child(buffer, 0, len(buffer), b'meta')
    if meta is None:
        return None
    # meta is a full box: skip version and flags
    meta_start, meta_end = meta[0] + 4, meta[1]

    iinf = _find_child(buffer, meta_start, meta_end, b'iinf')
    iloc = _find_child(buffer, meta_start, meta_end, b'iloc')
    if iinf is None or iloc is None:
        return None

    items = parse_iinf(buffer[iinf[0]:iinf[1]])
    exif_ids = [item_id for item_id, item_type in items.items() if item_type == EXIF_ITEM_TYPE]
    if not exif_ids:
        return None

    locations = parse_iloc(buffer[iloc[0]:iloc[1]])
    location = locations.get(exif_ids[0])
    if location is None:
        logger.warning("Exif item %d has no iloc entry", exif_ids[0])
        return None

    construction_method, extents = location
    if construction_method == 0:
        source = buffer
    elif construction_method == 1:
        idat = _find_child(buffer, meta_start, meta_end, b'idat')
        if idat is None:
            raise CorruptContainerError("Exif item stored in missing idat box")
        source = buffer[idat[0]:idat[1]]
    else:
        logger.warning("Unsupported iloc construction method %d", construction_method)
        return None

    item = bytearray()
    for extent_offset, extent_length in extents:
        extent_end = len(source) if extent_length == 0 else extent_offset + extent_length
        if extent_end > len(source):
            raise CorruptContainerError("Exif item extent runs past end of data")
        item.extend(source[extent_offset:extent_end])
    return bytes(item)


def read_heif(buffer: bytes) -> MetadataInfo:
    """
    Read metadata from the EXIF item of a HEIC/HEIF file.

    Args:
        buffer: HEIF file data

    Returns:
        MetadataInfo (empty when there is no EXIF item)

    Raises:
        CorruptContainerError: If the box structure or EXIF block is broken
    """
    item = find_exif_item(buffer)
    if item is None:
        return MetadataInfo()
    if len(item) < 4:
        raise CorruptContainerError("Exif item too short")

    tiff_offset = struct.unpack('>I', item[0:4])[0]
    return read_exif(item[4 + tiff_offset:])
