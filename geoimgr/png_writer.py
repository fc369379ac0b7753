# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
PNG metadata writer

This module writes geolocation, description and keywords to PNG files as
text chunks placed directly after IHDR. Text chunks left by earlier
writes are removed first, so repeated writes never accumulate duplicates.

Copyright 2025 DNAi inc.
"""

import json
import logging
from datetime import datetime, timezone
from typing import List, Optional

from geoimgr.config import DEFAULT_CONFIG, CodecConfig
from geoimgr.exceptions import CorruptContainerError, MalformedFieldError
from geoimgr.models import MetadataInfo
from geoimgr.png_chunks import (
    CHUNK_IHDR,
    CHUNK_ITXT,
    CHUNK_TEXT,
    PNG_SIGNATURE,
    REWRITTEN_CATEGORIES,
    Chunk,
    classify,
    create_text_chunk,
    decode_text_chunk,
    iter_chunks,
    serialize_chunk,
)

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


class PNGWriter:
    """
    Writes metadata to PNG files as text chunks.

    GPS is written in four formats (JSON, comma-separated, key=value and
    pipe-separated) so that readers looking for any of them find it.
    """

    def __init__(self, config: Optional[CodecConfig] = None):
        self.config = config or DEFAULT_CONFIG

    def _is_rewritten(self, chunk: Chunk) -> bool:
        if chunk.type not in (CHUNK_TEXT, CHUNK_ITXT):
            return False
        try:
            keyword, text = decode_text_chunk(chunk)
        except MalformedFieldError:
            return False
        if text is None:
            return False
        return classify(keyword) in REWRITTEN_CATEGORIES

    def build_metadata_chunks(self, metadata: MetadataInfo) -> List[bytes]:
        """
        Build the text chunks for a write, in insertion order.

        Args:
            metadata: Values to write

        Returns:
            List of complete chunks
        """
        timestamp = _timestamp()
        chunks = []

        if metadata.gps is not None:
            lat, lon = metadata.gps.lat, metadata.gps.lon
            gps_json = json.dumps({'lat': lat, 'lon': lon, 'timestamp': timestamp})
            chunks.append(create_text_chunk('GPS_Location', gps_json))
            chunks.append(create_text_chunk('GPS_Coordinates', f"{lat},{lon}"))
            chunks.append(create_text_chunk('Location', f"lat={lat};lon={lon}"))
            chunks.append(create_text_chunk('Geolocation', f"{lat}|{lon}"))

        description = (metadata.description or '').strip()
        if description:
            for keyword in ('Description', 'Comment', 'Title'):
                chunks.append(create_text_chunk(keyword, description))

        keywords = (metadata.keywords or '').strip()
        if keywords:
            for keyword in ('Keywords', 'Subject'):
                chunks.append(create_text_chunk(keyword, keywords))

        chunks.append(create_text_chunk('Creation Time', timestamp))
        chunks.append(create_text_chunk('Software', self.config.software_name))
        return chunks

    def write_png(self, original_data: bytes, metadata: MetadataInfo) -> bytes:
        """
        Write metadata to PNG file data.

        Every chunk other than the replaced text chunks is copied through
        unchanged, CRC included.

        Args:
            original_data: Original PNG file data
            metadata: Values to write

        Returns:
            New PNG file data

        Raises:
            CorruptContainerError: If the chunk structure is broken or
                there is no IHDR chunk
        """
        chunks = list(iter_chunks(original_data))
        if not any(chunk.type == CHUNK_IHDR for chunk in chunks):
            raise CorruptContainerError("Invalid PNG file: missing IHDR chunk")

        metadata_chunks = self.build_metadata_chunks(metadata)

        png_data = bytearray(PNG_SIGNATURE)
        inserted = False
        dropped = 0
        for chunk in chunks:
            if self._is_rewritten(chunk):
                dropped += 1
                continue
            png_data.extend(serialize_chunk(chunk))
            if chunk.type == CHUNK_IHDR and not inserted:
                for new_chunk in metadata_chunks:
                    png_data.extend(new_chunk)
                inserted = True

        logger.debug(
            "PNG rewritten: dropped %d text chunks, inserted %d; %d -> %d bytes",
            dropped, len(metadata_chunks), len(original_data), len(png_data)
        )
        return bytes(png_data)


def write_png(buffer: bytes, metadata: MetadataInfo, config: Optional[CodecConfig] = None) -> bytes:
    """Write metadata to PNG file data. See PNGWriter.write_png."""
    return PNGWriter(config).write_png(buffer, metadata)
