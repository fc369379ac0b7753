"""
Byte-level builders for minimal JPEG, TIFF, PNG, WebP and HEIF files
"""

import struct
import zlib

from geoimgr.crc32 import crc32

PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'


def png_chunk(chunk_type: bytes, data: bytes) -> bytes:
    return struct.pack('>I', len(data)) + chunk_type + data + struct.pack('>I', crc32(chunk_type, data))


def text_chunk(keyword: str, text: str) -> bytes:
    return png_chunk(b'tEXt', keyword.encode('latin-1') + b'\x00' + text.encode('latin-1'))


def build_png(*extra_chunks: bytes) -> bytes:
    """1x1 RGB PNG; extra chunks go between IHDR and IDAT."""
    ihdr = struct.pack('>IIBBBBB', 1, 1, 8, 2, 0, 0, 0)
    idat = zlib.compress(b'\x00\xff\x00\x00')
    return b''.join([
        PNG_SIGNATURE,
        png_chunk(b'IHDR', ihdr),
        *extra_chunks,
        png_chunk(b'IDAT', idat),
        png_chunk(b'IEND', b''),
    ])


JFIF_APP0 = b'\xff\xe0' + struct.pack('>H', 16) + b'JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00'
COM_SEGMENT = b'\xff\xfe' + struct.pack('>H', 6) + b'test'
SOS_SEGMENT = b'\xff\xda' + struct.pack('>H', 8) + b'\x01\x01\x00\x00\x3f\x00'
SCAN_DATA = b'\x12\x34\xff\x00\x56\xff\xd0\x78'


def exif_app1(tiff_block: bytes) -> bytes:
    return b'\xff\xe1' + struct.pack('>H', 2 + 6 + len(tiff_block)) + b'Exif\x00\x00' + tiff_block


def build_jpeg(exif_block: bytes = None, with_app0: bool = True) -> bytes:
    """Segment-level JPEG skeleton: SOI, [APP0], [APP1], COM, SOS, scan data, EOI."""
    parts = [b'\xff\xd8']
    if with_app0:
        parts.append(JFIF_APP0)
    if exif_block is not None:
        parts.append(exif_app1(exif_block))
    parts += [COM_SEGMENT, SOS_SEGMENT, SCAN_DATA, b'\xff\xd9']
    return b''.join(parts)


def build_tiff(endian: str = '<', make: bytes = None) -> bytes:
    """
    1x1 8-bit grayscale uncompressed TIFF. The pixel sits at offset 8 and
    IFD0 follows it, so every value is inline.
    """
    entries = [
        (256, 3, 1, 1),    # ImageWidth
        (257, 3, 1, 1),    # ImageLength
        (258, 3, 1, 8),    # BitsPerSample
        (259, 3, 1, 1),    # Compression
        (262, 3, 1, 1),    # PhotometricInterpretation
        (273, 4, 1, 8),    # StripOffsets
        (277, 3, 1, 1),    # SamplesPerPixel
        (278, 3, 1, 1),    # RowsPerStrip
        (279, 4, 1, 1),    # StripByteCounts
    ]
    if make is not None:
        entries.append((271, 2, len(make), make))
    entries.sort()

    header = (b'II' if endian == '<' else b'MM') + struct.pack(f'{endian}HI', 42, 10)
    pixel = b'\x80\x00'
    ifd = struct.pack(f'{endian}H', len(entries))
    for tag, field_type, count, value in entries:
        if isinstance(value, bytes):
            ifd += struct.pack(f'{endian}HHI', tag, field_type, count) + value.ljust(4, b'\x00')
        elif field_type == 3:
            ifd += struct.pack(f'{endian}HHIHH', tag, field_type, count, value, 0)
        else:
            ifd += struct.pack(f'{endian}HHII', tag, field_type, count, value)
    ifd += struct.pack(f'{endian}I', 0)
    return header + pixel + ifd


def riff_chunk(chunk_type: bytes, data: bytes) -> bytes:
    return chunk_type + struct.pack('<I', len(data)) + data + (b'\x00' if len(data) & 1 else b'')


def build_riff(*chunks: bytes) -> bytes:
    body = b'WEBP' + b''.join(chunks)
    return b'RIFF' + struct.pack('<I', len(body)) + body


def vp8l_payload(width: int = 4, height: int = 3) -> bytes:
    """VP8L header with the given size; 9 bytes so the chunk needs padding."""
    bits = (width - 1) | ((height - 1) << 14)
    return b'\x2f' + struct.pack('<I', bits) + b'\x00' * 4


def vp8_payload(width: int = 5, height: int = 7) -> bytes:
    """VP8 key frame header with the given size."""
    return b'\x10\x02\x00' + b'\x9d\x01\x2a' + struct.pack('<HH', width, height) + b'\x00' * 6


def vp8x_payload(flags: int = 0, width: int = 5, height: int = 7) -> bytes:
    return bytes([flags, 0, 0, 0]) + (width - 1).to_bytes(3, 'little') + (height - 1).to_bytes(3, 'little')


def box(box_type: bytes, payload: bytes) -> bytes:
    return struct.pack('>I', 8 + len(payload)) + box_type + payload


def full_box(box_type: bytes, version: int, payload: bytes) -> bytes:
    return box(box_type, bytes([version, 0, 0, 0]) + payload)


def build_heif(exif_block: bytes = None, use_idat: bool = False) -> bytes:
    """
    HEIF skeleton: ftyp, meta (iinf + iloc [+ idat]) and mdat. The Exif
    item holds a 4-byte zero offset followed by ``exif_block``.
    """
    ftyp = box(b'ftyp', b'heic' + struct.pack('>I', 0) + b'mif1heic')
    if exif_block is None:
        return ftyp + box(b'mdat', b'\x00' * 16)

    item = struct.pack('>I', 0) + exif_block
    infe = full_box(b'infe', 2, struct.pack('>HH', 1, 0) + b'Exif' + b'\x00')
    iinf = full_box(b'iinf', 0, struct.pack('>H', 1) + infe)

    def meta_with(item_offset: int) -> bytes:
        if use_idat:
            # version 1: item_count, item_ID, construction_method (1 = idat),
            # data_reference_index, extent_count, then offset/length into idat
            iloc = full_box(b'iloc', 1, bytes([0x44, 0x00]) + struct.pack(
                '>HHHHH', 1, 1, 1, 0, 1) + struct.pack('>II', 0, len(item))
            )
            return full_box(b'meta', 0, iinf + iloc + box(b'idat', item))
        iloc = full_box(b'iloc', 0, bytes([0x44, 0x00]) + struct.pack(
            '>HHHH', 1, 1, 0, 1) + struct.pack('>II', item_offset, len(item))
        )
        return full_box(b'meta', 0, iinf + iloc)

    if use_idat:
        return ftyp + meta_with(0) + box(b'mdat', b'\x00' * 4)

    meta = meta_with(0)
    item_offset = len(ftyp) + len(meta) + 8
    return ftyp + meta_with(item_offset) + box(b'mdat', item)


