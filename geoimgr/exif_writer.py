# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
EXIF metadata writer

This module rebuilds TIFF-structured EXIF blocks with new GPS, description
and keyword values while preserving every other entry of the original
block, and writes them back into JPEG and TIFF carriers.

Copyright 2025 DNAi inc.
"""

import logging
import struct
from typing import Dict, List, Optional

from geoimgr.config import DEFAULT_CONFIG, GPS_SECONDS_DENOMINATOR, CodecConfig
from geoimgr.coordinates import LATITUDE, LONGITUDE, decimal_to_dms, hemisphere_ref
from geoimgr.exceptions import CorruptContainerError
from geoimgr.exif_parser import TIFF_HEADERS, ExifBlock, parse_tiff_block
from geoimgr.exif_tags import (
    ExifTag,
    Ifd,
    IfdEntry,
    encode_bytes,
    encode_pointer,
    encode_rationals,
    encode_text,
)
from geoimgr.jpeg_modifier import JPEGModifier, build_app1_segment
from geoimgr.models import MetadataInfo

logger = logging.getLogger(__name__)

GPS_VERSION = bytes([2, 3, 0, 0])


def ifd_size(entries: List[IfdEntry]) -> int:
    """
    Size of an IFD including its out-of-line values.

    Out-of-line values are padded to an even length so that every IFD
    written after them starts on a word boundary.
    """
    size = 2 + len(entries) * 12 + 4
    for entry in entries:
        if len(entry.payload) > 4:
            size += len(entry.payload) + (len(entry.payload) & 1)
    return size


def write_ifd(entries: List[IfdEntry], offset: int, next_ifd: int, endian: str) -> bytes:
    """
    Serialize an IFD whose directory starts at ``offset``.

    Args:
        entries: Entries in the order they should appear
        offset: Absolute offset of the directory within the TIFF block
        next_ifd: Offset of the following IFD (0 for none)
        endian: struct byte-order prefix

    Returns:
        Directory bytes followed by the out-of-line value area
    """
    ifd = bytearray()
    data = bytearray()
    data_offset = offset + 2 + len(entries) * 12 + 4

    ifd.extend(struct.pack(f'{endian}H', len(entries)))
    for entry in entries:
        ifd.extend(struct.pack(f'{endian}HHI', entry.tag, entry.field_type, entry.count))
        if len(entry.payload) <= 4:
            ifd.extend(entry.payload.ljust(4, b'\x00'))
        else:
            ifd.extend(struct.pack(f'{endian}I', data_offset + len(data)))
            data.extend(entry.payload)
            if len(entry.payload) & 1:
                data.append(0)

    ifd.extend(struct.pack(f'{endian}I', next_ifd))
    return bytes(ifd + data)


class EXIFWriter:
    """
    Serializes an ExifBlock into a TIFF-structured EXIF block.

    IFDs are laid out as 0th, Exif, Interop, GPS, 1st, followed by the
    thumbnail. The offset-carrying pointer tags are recomputed from that
    layout; every other entry is written back with its original type,
    count and value bytes.
    """

    def __init__(self, endian: str = '<'):
        """
        Initialize EXIF writer.

        Args:
            endian: Byte order for blocks created from scratch ('<' or '>')
        """
        self.endian = endian

    def new_block(self) -> ExifBlock:
        return ExifBlock(self.endian)

    def _build_tiff_header(self, endian: str) -> bytes:
        header = b'II' if endian == '<' else b'MM'
        header += struct.pack(f'{endian}H', 42)
        header += struct.pack(f'{endian}I', 8)
        return header

    def dump(self, block: ExifBlock) -> bytes:
        """
        Serialize a block.

        The block's own byte order is kept, since opaque entries carry
        their value bytes in that order.

        Args:
            block: Block to serialize

        Returns:
            TIFF-structured EXIF data starting with the TIFF header
        """
        endian = block.endian

        tables: Dict[Ifd, Dict[int, IfdEntry]] = {ifd: dict(block.ifds[ifd]) for ifd in Ifd}

        has_interop = bool(tables[Ifd.INTEROP])
        has_exif = bool(tables[Ifd.EXIF]) or has_interop
        has_gps = bool(tables[Ifd.GPS])
        has_thumbnail = bool(tables[Ifd.THUMBNAIL]) or block.thumbnail is not None

        # Placeholders keep the directory sizes right until offsets are known
        if has_exif:
            tables[Ifd.IMAGE][ExifTag.EXIF_IFD_POINTER] = encode_pointer(ExifTag.EXIF_IFD_POINTER, 0, endian)
        if has_gps:
            tables[Ifd.IMAGE][ExifTag.GPS_IFD_POINTER] = encode_pointer(ExifTag.GPS_IFD_POINTER, 0, endian)
        if has_interop:
            tables[Ifd.EXIF][ExifTag.INTEROP_IFD_POINTER] = encode_pointer(ExifTag.INTEROP_IFD_POINTER, 0, endian)
        if block.thumbnail is not None:
            tables[Ifd.THUMBNAIL][ExifTag.JPEG_INTERCHANGE_FORMAT] = encode_pointer(
                ExifTag.JPEG_INTERCHANGE_FORMAT, 0, endian
            )
            tables[Ifd.THUMBNAIL][ExifTag.JPEG_INTERCHANGE_FORMAT_LENGTH] = encode_pointer(
                ExifTag.JPEG_INTERCHANGE_FORMAT_LENGTH, len(block.thumbnail), endian
            )

        present = [Ifd.IMAGE]
        if has_exif:
            present.append(Ifd.EXIF)
        if has_interop:
            present.append(Ifd.INTEROP)
        if has_gps:
            present.append(Ifd.GPS)
        if has_thumbnail:
            present.append(Ifd.THUMBNAIL)

        offsets: Dict[Ifd, int] = {}
        position = 8
        for ifd in present:
            offsets[ifd] = position
            position += ifd_size(list(tables[ifd].values()))
        thumbnail_offset = position

        if has_exif:
            tables[Ifd.IMAGE][ExifTag.EXIF_IFD_POINTER] = encode_pointer(
                ExifTag.EXIF_IFD_POINTER, offsets[Ifd.EXIF], endian
            )
        if has_gps:
            tables[Ifd.IMAGE][ExifTag.GPS_IFD_POINTER] = encode_pointer(
                ExifTag.GPS_IFD_POINTER, offsets[Ifd.GPS], endian
            )
        if has_interop:
            tables[Ifd.EXIF][ExifTag.INTEROP_IFD_POINTER] = encode_pointer(
                ExifTag.INTEROP_IFD_POINTER, offsets[Ifd.INTEROP], endian
            )
        if block.thumbnail is not None:
            tables[Ifd.THUMBNAIL][ExifTag.JPEG_INTERCHANGE_FORMAT] = encode_pointer(
                ExifTag.JPEG_INTERCHANGE_FORMAT, thumbnail_offset, endian
            )

        exif_data = bytearray(self._build_tiff_header(endian))
        for ifd in present:
            next_ifd = 0
            if ifd is Ifd.IMAGE and has_thumbnail:
                next_ifd = offsets[Ifd.THUMBNAIL]
            entries = [tables[ifd][tag] for tag in sorted(tables[ifd])]
            exif_data.extend(write_ifd(entries, offsets[ifd], next_ifd, endian))

        if block.thumbnail is not None:
            exif_data.extend(block.thumbnail)

        return bytes(exif_data)


def apply_metadata(block: ExifBlock, metadata: MetadataInfo) -> ExifBlock:
    """
    Return a copy of ``block`` carrying the writable fields of ``metadata``.

    GPS tags are replaced only when metadata.gps is set; other GPS entries
    (altitude, timestamps) are kept. ImageDescription and XPKeywords are
    replaced when the corresponding field is non-empty. DateTime, Make and
    Model are never written.
    """
    block = block.copy()
    endian = block.endian

    if metadata.gps is not None:
        gps_ifd = block.ifds[Ifd.GPS]
        lat_d, lat_m, lat_s = decimal_to_dms(metadata.gps.lat)
        lon_d, lon_m, lon_s = decimal_to_dms(metadata.gps.lon)

        gps_ifd[ExifTag.GPS_VERSION_ID] = encode_bytes(ExifTag.GPS_VERSION_ID, GPS_VERSION)
        gps_ifd[ExifTag.GPS_LATITUDE_REF] = encode_text(
            ExifTag.GPS_LATITUDE_REF, hemisphere_ref(metadata.gps.lat, LATITUDE)
        )
        gps_ifd[ExifTag.GPS_LATITUDE] = encode_rationals(
            ExifTag.GPS_LATITUDE,
            [(lat_d, 1), (lat_m, 1), (round(lat_s * GPS_SECONDS_DENOMINATOR), GPS_SECONDS_DENOMINATOR)],
            endian,
        )
        gps_ifd[ExifTag.GPS_LONGITUDE_REF] = encode_text(
            ExifTag.GPS_LONGITUDE_REF, hemisphere_ref(metadata.gps.lon, LONGITUDE)
        )
        gps_ifd[ExifTag.GPS_LONGITUDE] = encode_rationals(
            ExifTag.GPS_LONGITUDE,
            [(lon_d, 1), (lon_m, 1), (round(lon_s * GPS_SECONDS_DENOMINATOR), GPS_SECONDS_DENOMINATOR)],
            endian,
        )

    if metadata.description:
        block.ifds[Ifd.IMAGE][ExifTag.IMAGE_DESCRIPTION] = encode_text(
            ExifTag.IMAGE_DESCRIPTION, metadata.description
        )

    if metadata.keywords:
        block.ifds[Ifd.IMAGE][ExifTag.XP_KEYWORDS] = encode_bytes(
            ExifTag.XP_KEYWORDS, metadata.keywords.encode('utf-16-le') + b'\x00\x00'
        )

    return block


def build_exif_block(metadata: MetadataInfo, base: Optional[ExifBlock] = None, endian: str = '<') -> bytes:
    """
    Build a bare TIFF-structured EXIF block.

    Args:
        metadata: Values to write
        base: Existing block to preserve, or None to start empty
        endian: Byte order when starting empty

    Returns:
        EXIF data without the 'Exif\\0\\0' prefix
    """
    writer = EXIFWriter(endian)
    block = base if base is not None else writer.new_block()
    return writer.dump(apply_metadata(block, metadata))


def write_exif(buffer: bytes, metadata: MetadataInfo, config: Optional[CodecConfig] = None) -> bytes:
    """
    Write metadata into a JPEG or TIFF file.

    Args:
        buffer: JPEG or TIFF file data
        metadata: Values to write
        config: Codec configuration

    Returns:
        New file data

    Raises:
        CorruptContainerError: If the buffer is neither JPEG nor TIFF, or
            its structure is broken
        MetadataWriteError: If the EXIF block does not fit the carrier
    """
    config = config or DEFAULT_CONFIG

    if buffer[:4] in TIFF_HEADERS:
        from geoimgr.tiff_writer import write_tiff
        return write_tiff(buffer, metadata)

    if buffer[:2] != b'\xff\xd8':
        raise CorruptContainerError("No JPEG or TIFF marker found")

    modifier = JPEGModifier(buffer)
    base = None
    tiff_block = modifier.find_exif_block()
    if tiff_block is not None:
        try:
            base = parse_tiff_block(tiff_block)
        except CorruptContainerError as e:
            logger.warning("Discarding unreadable EXIF block: %s", e.message)

    exif_data = build_exif_block(metadata, base, config.exif_byte_order)
    new_data = modifier.replace_exif_segment(build_app1_segment(exif_data))
    logger.debug("JPEG rewritten: %d -> %d bytes", len(buffer), len(new_data))
    return new_data
