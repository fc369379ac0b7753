# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
JPEG file modifier

This module locates and replaces the EXIF APP1 segment of a JPEG file.
Everything from the start-of-scan marker onwards is entropy-coded image
data and is copied through untouched.

Copyright 2025 DNAi inc.
"""

import logging
import struct
from typing import List, Optional, Tuple

from geoimgr.exceptions import CorruptContainerError, MetadataWriteError

logger = logging.getLogger(__name__)

EXIF_HEADER = b'Exif\x00\x00'

# Largest payload an APP1 length field can describe
MAX_SEGMENT_PAYLOAD = 0xFFFF - 2


class JPEGModifier:
    """
    Parses the marker segments of a JPEG file and rebuilds it with a new
    EXIF APP1 segment.

    The input bytes are never modified; every operation returns new bytes.
    """

    # JPEG markers
    SOI = 0xFFD8  # Start of Image
    EOI = 0xFFD9  # End of Image
    SOS = 0xFFDA  # Start of Scan
    APP0 = 0xFFE0  # APP0 (JFIF)
    APP1 = 0xFFE1  # APP1 (EXIF)

    # Markers that carry no length field
    STANDALONE_MARKERS = {0xFF01} | set(range(0xFFD0, 0xFFD8))

    def __init__(self, file_data: bytes):
        """
        Initialize JPEG modifier.

        Args:
            file_data: Original JPEG file data

        Raises:
            CorruptContainerError: If the SOI marker is missing or a
                segment runs past the end of the data
        """
        self.file_data = file_data
        self.segments: List[Tuple[int, int, int]] = []  # (marker, offset, length)
        self.scan_offset: Optional[int] = None
        self._parse_segments()

    def _parse_segments(self) -> None:
        """
        Parse the header segments up to the first SOS (or EOI).
        """
        data = self.file_data
        if len(data) < 2 or struct.unpack('>H', data[0:2])[0] != self.SOI:
            raise CorruptContainerError("Invalid JPEG file: missing SOI marker")

        i = 2
        while i < len(data):
            if data[i] != 0xFF:
                raise CorruptContainerError(f"Invalid JPEG file: expected marker at offset {i}")

            # Fill bytes
            if i + 1 < len(data) and data[i + 1] == 0xFF:
                i += 1
                continue
            if i + 1 >= len(data):
                raise CorruptContainerError("Invalid JPEG file: truncated marker")

            marker = struct.unpack('>H', data[i:i + 2])[0]

            if marker == self.EOI:
                self.scan_offset = i
                return
            if marker in self.STANDALONE_MARKERS:
                self.segments.append((marker, i, 0))
                i += 2
                continue

            if i + 4 > len(data):
                raise CorruptContainerError("Invalid JPEG file: truncated segment header")
            length = struct.unpack('>H', data[i + 2:i + 4])[0]
            if length < 2 or i + 2 + length > len(data):
                raise CorruptContainerError(
                    f"Invalid JPEG file: segment 0x{marker:04X} at offset {i} runs past end of data"
                )

            if marker == self.SOS:
                # Scan data follows; keep it and everything after as one block
                self.scan_offset = i
                return

            self.segments.append((marker, i, length))
            i += 2 + length

        self.scan_offset = len(data)

    def _segment_bytes(self, offset: int, length: int) -> bytes:
        return self.file_data[offset:offset + 2 + length]

    def _is_exif_segment(self, marker: int, offset: int, length: int) -> bool:
        if marker != self.APP1 or length < 2 + len(EXIF_HEADER):
            return False
        return self.file_data[offset + 4:offset + 10] == EXIF_HEADER

    def find_exif_block(self) -> Optional[bytes]:
        """
        Return the TIFF block of the first EXIF APP1 segment.

        Returns:
            TIFF-structured EXIF data without the 'Exif\\0\\0' header, or
            None if the file carries no EXIF segment
        """
        for marker, offset, length in self.segments:
            if self._is_exif_segment(marker, offset, length):
                return self.file_data[offset + 10:offset + 2 + length]
        return None

    def replace_exif_segment(self, new_app1_data: bytes) -> bytes:
        """
        Replace every EXIF APP1 segment with a single new one.

        The new segment takes the place of the first existing EXIF
        segment. Without one, it goes after a leading JFIF APP0 segment,
        or directly after SOI.

        Args:
            new_app1_data: Complete APP1 segment (marker, length, payload)

        Returns:
            Modified JPEG file data
        """
        exif_indexes = [
            idx for idx, (marker, offset, length) in enumerate(self.segments)
            if self._is_exif_segment(marker, offset, length)
        ]

        if exif_indexes:
            insert_at = exif_indexes[0]
        elif self.segments and self.segments[0][0] == self.APP0:
            insert_at = 1
        else:
            insert_at = 0
        logger.debug("Inserting EXIF APP1 at segment index %d (replacing %d)", insert_at, len(exif_indexes))

        new_data = bytearray()
        new_data.extend(self.file_data[0:2])  # SOI

        for idx, (marker, offset, length) in enumerate(self.segments):
            if idx == insert_at:
                new_data.extend(new_app1_data)
            if idx in exif_indexes:
                continue
            new_data.extend(self._segment_bytes(offset, length))

        if insert_at >= len(self.segments):
            new_data.extend(new_app1_data)

        # Scan data and trailer
        new_data.extend(self.file_data[self.scan_offset:])

        return bytes(new_data)


def build_app1_segment(exif_data: bytes) -> bytes:
    """
    Build JPEG APP1 segment containing EXIF data.

    Args:
        exif_data: TIFF-structured EXIF data

    Returns:
        Complete APP1 segment

    Raises:
        MetadataWriteError: If the EXIF data does not fit one segment
    """
    payload_size = len(EXIF_HEADER) + len(exif_data)
    if payload_size > MAX_SEGMENT_PAYLOAD:
        raise MetadataWriteError(
            f"EXIF data too large for a JPEG APP1 segment ({payload_size} bytes)"
        )

    app1 = bytearray()
    app1.extend(b'\xFF\xE1')
    app1.extend(struct.pack('>H', 2 + payload_size))
    app1.extend(EXIF_HEADER)
    app1.extend(exif_data)
    return bytes(app1)
