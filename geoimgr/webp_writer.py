# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
WebP metadata writer

This module writes an EXIF chunk into WebP files. Metadata chunks are
only allowed in the extended file format, so a VP8X header is added to
simple (VP8/VP8L only) files.

Copyright 2025 DNAi inc.
"""

import logging
import struct
from typing import List, Optional, Tuple

from geoimgr.config import DEFAULT_CONFIG, CodecConfig
from geoimgr.exceptions import CorruptContainerError, MetadataWriteError
from geoimgr.exif_writer import build_exif_block
from geoimgr.models import MetadataInfo
from geoimgr.webp_parser import CHUNK_EXIF, RiffChunk, iter_chunks

logger = logging.getLogger(__name__)


class WebPWriter:
    """
    Writes metadata to WebP files.

    The EXIF chunk is placed right after the image data: after the first
    VP8/VP8L chunk of a still image, or after the last ANMF frame of an
    animation.
    """

    # WebP chunk types
    CHUNK_VP8 = b'VP8 '  # VP8 image data
    CHUNK_VP8L = b'VP8L'  # VP8L image data
    CHUNK_VP8X = b'VP8X'  # Extended format
    CHUNK_EXIF = CHUNK_EXIF
    CHUNK_ICCP = b'ICCP'  # ICC profile
    CHUNK_ALPHA = b'ALPH'
    CHUNK_ANMF = b'ANMF'

    # VP8X feature flag bits
    FLAG_EXIF = 0x08
    FLAG_ALPHA = 0x10
    FLAG_ICC = 0x20

    def __init__(self, config: Optional[CodecConfig] = None):
        self.config = config or DEFAULT_CONFIG

    def write_webp(self, original_data: bytes, metadata: MetadataInfo) -> bytes:
        """
        Write metadata to WebP file data.

        Any existing EXIF chunk is replaced by a new one built from the
        GPS, description and keywords of ``metadata``.

        Args:
            original_data: Original WebP file data
            metadata: Values to write

        Returns:
            New WebP file data

        Raises:
            CorruptContainerError: If the RIFF structure is broken or the
                file has no image data chunk
            MetadataWriteError: If a VP8X header cannot be built
        """
        chunks = list(iter_chunks(original_data))
        anchor = self._image_chunk_index(chunks)

        exif_data = build_exif_block(metadata, endian=self.config.exif_byte_order)
        has_vp8x = any(chunk.type == self.CHUNK_VP8X for chunk in chunks)

        final_chunks: List[Tuple[bytes, bytes]] = []
        if not has_vp8x:
            final_chunks.append((self.CHUNK_VP8X, self._synthesize_vp8x(chunks)))

        for index, chunk in enumerate(chunks):
            if chunk.type == self.CHUNK_EXIF:
                continue
            if chunk.type == self.CHUNK_VP8X:
                final_chunks.append((chunk.type, self._with_exif_flag(chunk.data)))
            else:
                final_chunks.append((chunk.type, chunk.data))
            if index == anchor:
                final_chunks.append((self.CHUNK_EXIF, exif_data))

        webp_data = bytearray()
        webp_data.extend(b'RIFF')
        webp_data.extend(b'\x00\x00\x00\x00')
        webp_data.extend(b'WEBP')

        for chunk_type, chunk_data in final_chunks:
            webp_data.extend(self._write_chunk(chunk_type, chunk_data))

        webp_data[4:8] = struct.pack('<I', len(webp_data) - 8)

        logger.debug(
            "WebP rewritten: EXIF chunk of %d bytes after %r; %d -> %d bytes",
            len(exif_data), chunks[anchor].type, len(original_data), len(webp_data)
        )
        return bytes(webp_data)

    def _image_chunk_index(self, chunks: List[RiffChunk]) -> int:
        frames = [i for i, chunk in enumerate(chunks) if chunk.type == self.CHUNK_ANMF]
        if frames:
            return frames[-1]
        for i, chunk in enumerate(chunks):
            if chunk.type in (self.CHUNK_VP8, self.CHUNK_VP8L):
                return i
        raise CorruptContainerError("Invalid WebP file: no VP8, VP8L or ANMF image chunk")

    def _with_exif_flag(self, vp8x_data: bytes) -> bytes:
        if len(vp8x_data) < 10:
            raise CorruptContainerError("Malformed VP8X chunk")
        payload = bytearray(vp8x_data)
        payload[0] |= self.FLAG_EXIF
        return bytes(payload)

    def _synthesize_vp8x(self, chunks: List[RiffChunk]) -> bytes:
        """Build a VP8X payload for a simple-format file."""
        flags = self.FLAG_EXIF
        dimensions = None
        for chunk in chunks:
            if chunk.type == self.CHUNK_VP8:
                dimensions = self._extract_vp8_dimensions(chunk.data)
            elif chunk.type == self.CHUNK_VP8L:
                dimensions = self._extract_vp8l_dimensions(chunk.data)
                if self._vp8l_has_alpha(chunk.data):
                    flags |= self.FLAG_ALPHA
            elif chunk.type == self.CHUNK_ICCP:
                flags |= self.FLAG_ICC
            elif chunk.type == self.CHUNK_ALPHA:
                flags |= self.FLAG_ALPHA
            if dimensions:
                break

        if not dimensions:
            raise MetadataWriteError("Unable to determine canvas size for VP8X chunk")
        return self._build_vp8x_payload(flags, *dimensions)

    def _write_chunk(self, chunk_type: bytes, chunk_data: bytes) -> bytes:
        """
        Write a RIFF chunk: type, little-endian size, data and pad byte.
        """
        chunk = bytearray()
        chunk.extend(chunk_type)
        chunk.extend(struct.pack('<I', len(chunk_data)))
        chunk.extend(chunk_data)
        if len(chunk_data) % 2 == 1:
            chunk.append(0)
        return bytes(chunk)

    @staticmethod
    def _extract_vp8_dimensions(chunk_data: bytes) -> Optional[Tuple[int, int]]:
        """Extract canvas width/height from a VP8 key frame header."""
        if len(chunk_data) < 10:
            return None
        # Start code 0x9d 0x01 0x2a
        if chunk_data[3:6] != b'\x9d\x01\x2a':
            return None
        width = struct.unpack('<H', chunk_data[6:8])[0] & 0x3FFF
        height = struct.unpack('<H', chunk_data[8:10])[0] & 0x3FFF
        if width == 0 or height == 0:
            return None
        return width, height

    @staticmethod
    def _extract_vp8l_dimensions(chunk_data: bytes) -> Optional[Tuple[int, int]]:
        """Extract canvas width/height from a VP8L header."""
        if len(chunk_data) < 5 or chunk_data[0] != 0x2f:
            return None
        bits = struct.unpack('<I', chunk_data[1:5])[0]
        width = (bits & 0x3FFF) + 1
        height = ((bits >> 14) & 0x3FFF) + 1
        return width, height

    @staticmethod
    def _vp8l_has_alpha(chunk_data: bytes) -> bool:
        if len(chunk_data) < 5 or chunk_data[0] != 0x2f:
            return False
        bits = struct.unpack('<I', chunk_data[1:5])[0]
        return bool((bits >> 28) & 1)

    def _build_vp8x_payload(self, flags: int, width: int, height: int) -> bytes:
        """Build a VP8X chunk payload with the provided flags and canvas size."""
        payload = bytearray(10)
        payload[0] = flags & 0xFF
        payload[4:7] = (width - 1).to_bytes(3, 'little')
        payload[7:10] = (height - 1).to_bytes(3, 'little')
        return bytes(payload)


def write_webp(buffer: bytes, metadata: MetadataInfo, config: Optional[CodecConfig] = None) -> bytes:
    """Write metadata to WebP file data. See WebPWriter.write_webp."""
    return WebPWriter(config).write_webp(buffer, metadata)
