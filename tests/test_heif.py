"""
Tests for the HEIC/HEIF EXIF reader
"""

import struct

import pytest

from builders import box, build_heif
from geoimgr.exceptions import CorruptContainerError
from geoimgr.heif_parser import find_exif_item, iter_boxes, read_heif


def test_iter_boxes_handles_large_and_open_ended_sizes():
    large = struct.pack('>I', 1) + b'free' + struct.pack('>Q', 20) + b'\x00' * 4
    open_ended = struct.pack('>I', 0) + b'mdat' + b'\x00' * 6
    boxes = list(iter_boxes(large + open_ended))
    assert boxes == [(b'free', 16, 20), (b'mdat', 28, 34)]


@pytest.mark.parametrize("data", [
    struct.pack('>I', 64) + b'free',
    struct.pack('>I', 4) + b'free',
    b'\x00\x00\x00',
])
def test_iter_boxes_rejects_broken_boxes(data):
    with pytest.raises(CorruptContainerError):
        list(iter_boxes(data))


def test_read_exif_item_from_file_offset(exif_block):
    metadata = read_heif(build_heif(exif_block))
    assert metadata.gps.lat == pytest.approx(40.7128, abs=1e-5)
    assert metadata.gps.lon == pytest.approx(-74.006, abs=1e-5)
    assert metadata.description == 'Liberty Island at dusk'


def test_read_exif_item_from_idat(exif_block):
    item = find_exif_item(build_heif(exif_block, use_idat=True))
    assert item == struct.pack('>I', 0) + exif_block
    assert read_heif(build_heif(exif_block, use_idat=True)).keywords == 'harbor,statue,nyc'


def test_file_without_meta_is_empty():
    assert read_heif(build_heif()).is_empty()


def test_missing_ftyp_is_corrupt(exif_block):
    data = build_heif(exif_block)
    with pytest.raises(CorruptContainerError):
        read_heif(box(b'free', b'') + data)


def test_truncated_file_is_corrupt(exif_block):
    data = build_heif(exif_block)
    with pytest.raises(CorruptContainerError):
        read_heif(data[:-10])
