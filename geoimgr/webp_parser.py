# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
WebP metadata parser

WebP files use the RIFF container. Metadata lives in an 'EXIF' chunk
holding a TIFF-structured EXIF block.

Copyright 2025 DNAi inc.
"""

import logging
import struct
from typing import Iterator, NamedTuple

from geoimgr.exceptions import CorruptContainerError
from geoimgr.exif_parser import read_exif
from geoimgr.models import MetadataInfo

logger = logging.getLogger(__name__)

CHUNK_EXIF = b'EXIF'


class RiffChunk(NamedTuple):
    """One chunk of a RIFF container; ``offset`` is that of its header."""
    type: bytes
    data: bytes
    offset: int


def check_header(buffer: bytes) -> None:
    """
    Raises:
        CorruptContainerError: If the buffer is not a RIFF/WEBP file
    """
    if len(buffer) < 12 or buffer[0:4] != b'RIFF' or buffer[8:12] != b'WEBP':
        raise CorruptContainerError("Invalid WebP file: missing RIFF/WEBP header")


def iter_chunks(buffer: bytes) -> Iterator[RiffChunk]:
    """
    Iterate over the chunks of a WebP file.

    Iteration is bounded by the RIFF size field when it lies within the
    buffer. Chunk payloads are padded to an even size; a missing pad byte
    after the last chunk is tolerated.

    Args:
        buffer: WebP file data

    Yields:
        RiffChunk records in file order

    Raises:
        CorruptContainerError: If the header is invalid or a chunk runs
            past the end of the data
    """
    check_header(buffer)

    riff_size = struct.unpack('<I', buffer[4:8])[0]
    end = min(len(buffer), 8 + riff_size)

    offset = 12
    while offset < end:
        if offset + 8 > end:
            raise CorruptContainerError(f"Truncated WebP chunk header at offset {offset}")
        chunk_type = buffer[offset:offset + 4]
        chunk_size = struct.unpack('<I', buffer[offset + 4:offset + 8])[0]
        data_end = offset + 8 + chunk_size
        if data_end > end:
            raise CorruptContainerError(
                f"WebP chunk {chunk_type!r} at offset {offset} runs past end of file"
            )
        yield RiffChunk(chunk_type, buffer[offset + 8:data_end], offset)
        offset = data_end + (chunk_size & 1)


def read_webp(buffer: bytes) -> MetadataInfo:
    """
    Read metadata from the first EXIF chunk of a WebP file.

    Args:
        buffer: WebP file data

    Returns:
        MetadataInfo (empty when there is no EXIF chunk)

    Raises:
        CorruptContainerError: If the RIFF structure or the EXIF block is
            broken
    """
    for chunk in iter_chunks(buffer):
        if chunk.type == CHUNK_EXIF:
            logger.debug("EXIF chunk found at offset %d (%d bytes)", chunk.offset, len(chunk.data))
            return read_exif(chunk.data)
    return MetadataInfo()
