# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
EXIF tag definitions and value codecs

Only the tags this codec reads or writes are defined. Each one belongs to
a single IFD and has a single value kind, so decoding never has to guess
the shape of a value. Entries with any other tag ID are kept as opaque
IfdEntry records and written back unchanged.

Copyright 2025 DNAi inc.
"""

import struct
from enum import Enum, IntEnum
from typing import Dict, List, NamedTuple, Sequence, Tuple

import chardet

from geoimgr.exceptions import MalformedFieldError


class ExifTagType(IntEnum):
    """TIFF field types"""
    BYTE = 1
    ASCII = 2
    SHORT = 3
    LONG = 4
    RATIONAL = 5
    SBYTE = 6
    UNDEFINED = 7
    SSHORT = 8
    SLONG = 9
    SRATIONAL = 10
    FLOAT = 11
    DOUBLE = 12
    IFD = 13


# Field type sizes in bytes
TAG_SIZES = {
    ExifTagType.BYTE: 1,
    ExifTagType.ASCII: 1,
    ExifTagType.SHORT: 2,
    ExifTagType.LONG: 4,
    ExifTagType.RATIONAL: 8,
    ExifTagType.SBYTE: 1,
    ExifTagType.UNDEFINED: 1,
    ExifTagType.SSHORT: 2,
    ExifTagType.SLONG: 4,
    ExifTagType.SRATIONAL: 8,
    ExifTagType.FLOAT: 4,
    ExifTagType.DOUBLE: 8,
    ExifTagType.IFD: 4,
}


class Ifd(Enum):
    """IFDs of an EXIF block, in serialization order."""
    IMAGE = '0th'
    EXIF = 'Exif'
    INTEROP = 'Interop'
    GPS = 'GPS'
    THUMBNAIL = '1st'


class ValueKind(Enum):
    TEXT = 'text'
    RATIONALS = 'rationals'
    BYTES = 'bytes'
    POINTER = 'pointer'


class ExifTag(IntEnum):
    """Tag IDs understood by this codec."""
    # 0th IFD
    IMAGE_DESCRIPTION = 0x010E
    MAKE = 0x010F
    MODEL = 0x0110
    DATE_TIME = 0x0132
    EXIF_IFD_POINTER = 0x8769
    GPS_IFD_POINTER = 0x8825
    XP_KEYWORDS = 0x9C9E
    # Exif IFD
    INTEROP_IFD_POINTER = 0xA005
    # 1st IFD
    JPEG_INTERCHANGE_FORMAT = 0x0201
    JPEG_INTERCHANGE_FORMAT_LENGTH = 0x0202
    # GPS IFD
    GPS_VERSION_ID = 0x0000
    GPS_LATITUDE_REF = 0x0001
    GPS_LATITUDE = 0x0002
    GPS_LONGITUDE_REF = 0x0003
    GPS_LONGITUDE = 0x0004


class TagSpec(NamedTuple):
    ifd: Ifd
    kind: ValueKind
    field_type: ExifTagType


TAG_SPECS: Dict[ExifTag, TagSpec] = {
    ExifTag.IMAGE_DESCRIPTION: TagSpec(Ifd.IMAGE, ValueKind.TEXT, ExifTagType.ASCII),
    ExifTag.MAKE: TagSpec(Ifd.IMAGE, ValueKind.TEXT, ExifTagType.ASCII),
    ExifTag.MODEL: TagSpec(Ifd.IMAGE, ValueKind.TEXT, ExifTagType.ASCII),
    ExifTag.DATE_TIME: TagSpec(Ifd.IMAGE, ValueKind.TEXT, ExifTagType.ASCII),
    ExifTag.EXIF_IFD_POINTER: TagSpec(Ifd.IMAGE, ValueKind.POINTER, ExifTagType.LONG),
    ExifTag.GPS_IFD_POINTER: TagSpec(Ifd.IMAGE, ValueKind.POINTER, ExifTagType.LONG),
    ExifTag.XP_KEYWORDS: TagSpec(Ifd.IMAGE, ValueKind.BYTES, ExifTagType.BYTE),
    ExifTag.INTEROP_IFD_POINTER: TagSpec(Ifd.EXIF, ValueKind.POINTER, ExifTagType.LONG),
    ExifTag.JPEG_INTERCHANGE_FORMAT: TagSpec(Ifd.THUMBNAIL, ValueKind.POINTER, ExifTagType.LONG),
    ExifTag.JPEG_INTERCHANGE_FORMAT_LENGTH: TagSpec(Ifd.THUMBNAIL, ValueKind.POINTER, ExifTagType.LONG),
    ExifTag.GPS_VERSION_ID: TagSpec(Ifd.GPS, ValueKind.BYTES, ExifTagType.BYTE),
    ExifTag.GPS_LATITUDE_REF: TagSpec(Ifd.GPS, ValueKind.TEXT, ExifTagType.ASCII),
    ExifTag.GPS_LATITUDE: TagSpec(Ifd.GPS, ValueKind.RATIONALS, ExifTagType.RATIONAL),
    ExifTag.GPS_LONGITUDE_REF: TagSpec(Ifd.GPS, ValueKind.TEXT, ExifTagType.ASCII),
    ExifTag.GPS_LONGITUDE: TagSpec(Ifd.GPS, ValueKind.RATIONALS, ExifTagType.RATIONAL),
}


class IfdEntry(NamedTuple):
    """
    One directory entry with its value bytes.

    ``payload`` holds exactly count * size(field_type) bytes in the byte
    order of the block the entry came from, whether the value was stored
    inline or out of line.
    """
    tag: int
    field_type: int
    count: int
    payload: bytes


Rational = Tuple[int, int]


def field_size(field_type: int) -> int:
    """Byte size of one value of a field type (1 for unknown types)."""
    try:
        return TAG_SIZES[ExifTagType(field_type)]
    except ValueError:
        return 1


def decode_text(raw: bytes) -> str:
    """
    Decode an EXIF ASCII value.

    EXIF 'ASCII' strings are frequently UTF-8 or a legacy code page in
    practice. UTF-8 is tried first, then the encoding chardet detects,
    then Latin-1.
    """
    raw = raw.split(b'\x00', 1)[0]
    try:
        return raw.decode('utf-8')
    except UnicodeDecodeError:
        pass

    detected = chardet.detect(raw)
    encoding = detected.get('encoding')
    if encoding and (detected.get('confidence') or 0) > 0.5:
        try:
            return raw.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            pass
    return raw.decode('latin-1')


def decode_rationals(entry: IfdEntry, endian: str) -> List[float]:
    """Decode a RATIONAL entry into floats."""
    if entry.field_type != ExifTagType.RATIONAL:
        raise MalformedFieldError(f"Tag 0x{entry.tag:04X} is not RATIONAL")
    if len(entry.payload) < entry.count * 8:
        raise MalformedFieldError(f"Tag 0x{entry.tag:04X} payload is truncated")

    values = []
    for i in range(entry.count):
        numerator, denominator = struct.unpack(f'{endian}II', entry.payload[i * 8:i * 8 + 8])
        if denominator == 0:
            raise MalformedFieldError(f"Tag 0x{entry.tag:04X} has a zero denominator")
        values.append(numerator / denominator)
    return values


def decode_entry(tag: ExifTag, entry: IfdEntry, endian: str):
    """
    Decode an entry of a known tag into its typed value.

    Returns:
        str for TEXT, list of floats for RATIONALS, bytes for BYTES,
        int for POINTER

    Raises:
        MalformedFieldError: If the entry does not have the expected shape
    """
    kind = TAG_SPECS[tag].kind

    if kind is ValueKind.TEXT:
        if entry.field_type not in (ExifTagType.ASCII, ExifTagType.UNDEFINED, ExifTagType.BYTE):
            raise MalformedFieldError(f"Tag {tag.name} is not text")
        return decode_text(entry.payload)

    if kind is ValueKind.RATIONALS:
        return decode_rationals(entry, endian)

    if kind is ValueKind.BYTES:
        if entry.field_type not in (ExifTagType.BYTE, ExifTagType.UNDEFINED):
            raise MalformedFieldError(f"Tag {tag.name} is not a byte array")
        return bytes(entry.payload[:entry.count])

    if entry.field_type == ExifTagType.SHORT and len(entry.payload) >= 2:
        return struct.unpack(f'{endian}H', entry.payload[:2])[0]
    if entry.field_type in (ExifTagType.LONG, ExifTagType.IFD) and len(entry.payload) >= 4:
        return struct.unpack(f'{endian}I', entry.payload[:4])[0]
    raise MalformedFieldError(f"Tag {tag.name} is not an offset")


def encode_text(tag: ExifTag, value: str) -> IfdEntry:
    """Encode a string as a NUL-terminated ASCII entry (UTF-8 bytes when non-ASCII)."""
    try:
        payload = value.encode('ascii') + b'\x00'
    except UnicodeEncodeError:
        payload = value.encode('utf-8') + b'\x00'
    return IfdEntry(int(tag), ExifTagType.ASCII, len(payload), payload)


def encode_rationals(tag: ExifTag, values: Sequence[Rational], endian: str) -> IfdEntry:
    """Encode (numerator, denominator) pairs as a RATIONAL entry."""
    payload = b''.join(struct.pack(f'{endian}II', n, d) for n, d in values)
    return IfdEntry(int(tag), ExifTagType.RATIONAL, len(values), payload)


def encode_bytes(tag: ExifTag, value: bytes) -> IfdEntry:
    """Encode raw bytes as an entry of the tag's byte field type."""
    field_type = TAG_SPECS[tag].field_type
    return IfdEntry(int(tag), field_type, len(value), bytes(value))


def encode_pointer(tag: ExifTag, offset: int, endian: str) -> IfdEntry:
    return IfdEntry(int(tag), ExifTagType.LONG, 1, struct.pack(f'{endian}I', offset))
