# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
TIFF file writer

A TIFF file is its own EXIF block: IFD0 describes the image and points at
the strip or tile data by absolute offset. Rewriting the file in place
would move that data, so the writer leaves every original byte where it
is and appends a new IFD0 (and GPS IFD) at the end of the file, then
repoints the header at it. The old IFD0 stays behind unreferenced.

Copyright 2025 DNAi inc.
"""

import logging
import struct

from geoimgr.exceptions import CorruptContainerError
from geoimgr.exif_parser import parse_ifd, parse_tiff_block, tiff_byte_order
from geoimgr.exif_tags import ExifTag, Ifd, encode_pointer
from geoimgr.exif_writer import apply_metadata, ifd_size, write_ifd
from geoimgr.models import MetadataInfo

logger = logging.getLogger(__name__)


def write_tiff(buffer: bytes, metadata: MetadataInfo) -> bytes:
    """
    Write metadata into a TIFF file.

    IFD0 entries are carried over unchanged apart from ImageDescription,
    XPKeywords and the GPS pointer. The Exif IFD pointer and the link to
    the next page keep their original values, which stay valid because
    nothing before the end of the file moves.

    Args:
        buffer: TIFF file data
        metadata: Values to write

    Returns:
        New file data

    Raises:
        CorruptContainerError: If the header or IFD0 is invalid
    """
    endian = tiff_byte_order(buffer)
    ifd0_offset = struct.unpack(f'{endian}I', buffer[4:8])[0]
    raw_ifd0, next_ifd = parse_ifd(buffer, ifd0_offset, endian)

    block = apply_metadata(parse_tiff_block(buffer), metadata)

    ifd0 = dict(block.ifds[Ifd.IMAGE])
    exif_pointer = raw_ifd0.get(ExifTag.EXIF_IFD_POINTER)
    if exif_pointer is not None:
        ifd0[ExifTag.EXIF_IFD_POINTER] = exif_pointer

    gps_entries = [block.ifds[Ifd.GPS][tag] for tag in sorted(block.ifds[Ifd.GPS])]
    if gps_entries:
        ifd0[ExifTag.GPS_IFD_POINTER] = encode_pointer(ExifTag.GPS_IFD_POINTER, 0, endian)

    new_ifd0_offset = len(buffer) + (len(buffer) & 1)
    gps_offset = new_ifd0_offset + ifd_size(list(ifd0.values()))
    if gps_entries:
        ifd0[ExifTag.GPS_IFD_POINTER] = encode_pointer(ExifTag.GPS_IFD_POINTER, gps_offset, endian)

    if gps_offset > 0xFFFFFFFF:
        raise CorruptContainerError("TIFF file too large for 32-bit offsets")

    new_data = bytearray(buffer)
    if len(buffer) & 1:
        new_data.append(0)

    ifd0_entries = [ifd0[tag] for tag in sorted(ifd0)]
    new_data.extend(write_ifd(ifd0_entries, new_ifd0_offset, next_ifd, endian))
    if gps_entries:
        new_data.extend(write_ifd(gps_entries, gps_offset, 0, endian))

    new_data[4:8] = struct.pack(f'{endian}I', new_ifd0_offset)

    logger.debug(
        "TIFF IFD0 moved from offset %d to %d (%d -> %d bytes)",
        ifd0_offset, new_ifd0_offset, len(buffer), len(new_data)
    )
    return bytes(new_data)
