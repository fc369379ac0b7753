"""
Tests for the capability registry and MIME detection
"""

import pytest

from geoimgr.format_detector import FormatDetector
from geoimgr.format_support import (
    FORMAT_SUPPORT,
    METHOD_CUSTOM,
    METHOD_EXIF,
    METHOD_RIFF,
    UNSUPPORTED,
    get_format_support,
    normalize_mime_type,
    supported_mime_types,
    writing_suggestion,
)


@pytest.mark.parametrize("mime_type, method", [
    ('image/jpeg', METHOD_EXIF),
    ('image/jpg', METHOD_EXIF),
    ('image/tiff', METHOD_EXIF),
    ('image/webp', METHOD_RIFF),
    ('image/png', METHOD_CUSTOM),
])
def test_writable_formats(mime_type, method):
    support = get_format_support(mime_type)
    assert support.method == method
    assert support.can_read_gps and support.can_write_gps
    assert support.can_read_metadata and support.can_write_metadata


@pytest.mark.parametrize("mime_type", ['image/heic', 'image/heif'])
def test_heif_is_read_only(mime_type):
    support = get_format_support(mime_type)
    assert support.can_read_gps
    assert support.can_read_metadata
    assert not support.can_write_gps
    assert not support.can_write_metadata
    assert support.method == METHOD_EXIF


def test_unknown_mime_type_is_all_false():
    support = get_format_support('image/bmp')
    assert support is UNSUPPORTED
    assert not any([support.can_read_gps, support.can_write_gps,
                    support.can_read_metadata, support.can_write_metadata])
    assert support.method == METHOD_CUSTOM


def test_lookup_is_idempotent():
    assert get_format_support('image/png') is get_format_support('image/png')
    assert get_format_support('') is get_format_support('application/pdf')


def test_lookup_normalizes_case_and_parameters():
    assert normalize_mime_type(' Image/PNG; q=1 ') == 'image/png'
    assert get_format_support('IMAGE/JPEG') is FORMAT_SUPPORT['image/jpeg']


def test_supported_mime_types_lists_registry():
    assert set(supported_mime_types()) == {
        'image/jpeg', 'image/jpg', 'image/tiff', 'image/webp',
        'image/png', 'image/heic', 'image/heif',
    }


def test_writing_suggestion():
    assert writing_suggestion('image/heic').startswith("Convert to JPEG format for GPS writing support")
    assert writing_suggestion('image/png') == "This format supports GPS metadata writing."
    assert "Convert to JPEG" in writing_suggestion('image/gif')


@pytest.mark.parametrize("name, mime_type", [
    ('photo.JPG', 'image/jpeg'),
    ('scan.tiff', 'image/tiff'),
    ('map.png', 'image/png'),
    ('clip.webp', 'image/webp'),
    ('IMG_0001.HEIC', 'image/heic'),
    ('notes.txt', None),
])
def test_detect_from_extension(name, mime_type):
    assert FormatDetector.from_extension(name) == mime_type


@pytest.mark.parametrize("data, mime_type", [
    (b'\xff\xd8\xff\xe0\x00\x10JFIF', 'image/jpeg'),
    (b'II*\x00\x08\x00\x00\x00', 'image/tiff'),
    (b'MM\x00*\x00\x00\x00\x08', 'image/tiff'),
    (b'\x89PNG\r\n\x1a\n\x00\x00', 'image/png'),
    (b'RIFF\x10\x00\x00\x00WEBPVP8L', 'image/webp'),
    (b'\x00\x00\x00\x18ftypheic\x00\x00\x00\x00', 'image/heic'),
    (b'\x00\x00\x00\x18ftypmif1\x00\x00\x00\x00', 'image/heif'),
    (b'RIFF\x10\x00\x00\x00WAVEfmt ', None),
    (b'', None),
])
def test_detect_from_signature(data, mime_type):
    assert FormatDetector.from_signature(data) == mime_type


def test_detect_prefers_extension_then_content():
    assert FormatDetector.detect_mime_type('upload.png', b'\xff\xd8\xff') == 'image/png'
    assert FormatDetector.detect_mime_type('upload.bin', b'\xff\xd8\xff') == 'image/jpeg'
    assert FormatDetector.detect_mime_type() is None
