# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
CRC-32 for PNG chunks

PNG uses the IEEE 802.3 CRC (reflected polynomial 0xEDB88320, initial
value and final XOR 0xFFFFFFFF) computed over the chunk type followed by
the chunk data. zlib.crc32 implements exactly that checksum.

Copyright 2025 DNAi inc.
"""

import zlib


def crc32(chunk_type: bytes, chunk_data: bytes = b'') -> int:
    """
    Compute the PNG CRC of a chunk.

    Args:
        chunk_type: 4-byte chunk type
        chunk_data: Chunk payload (the length field is not included)

    Returns:
        Unsigned 32-bit checksum
    """
    crc = zlib.crc32(chunk_type)
    crc = zlib.crc32(chunk_data, crc)
    return crc & 0xffffffff
