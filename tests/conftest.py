"""
Shared fixtures: sample metadata, EXIF blocks, and real images produced
by Pillow.
"""

import io

import pytest
from PIL import Image, features

from geoimgr.exif_writer import build_exif_block
from geoimgr.models import GPSCoordinates, MetadataInfo


def sample_metadata() -> MetadataInfo:
    return MetadataInfo(
        gps=GPSCoordinates(40.7128, -74.006),
        keywords='harbor,statue,nyc',
        description='Liberty Island at dusk',
    )


@pytest.fixture
def metadata():
    return sample_metadata()


@pytest.fixture
def exif_block():
    """TIFF block carrying the sample metadata."""
    return build_exif_block(sample_metadata())


@pytest.fixture
def pil_bytes():
    """Factory returning an encoded 32x24 image in the given Pillow format."""
    def make(fmt: str, **save_kwargs) -> bytes:
        if fmt == 'WEBP' and not features.check('webp'):
            pytest.skip("Pillow built without WebP support")
        image = Image.new('RGB', (32, 24), (200, 40, 40))
        buffer = io.BytesIO()
        image.save(buffer, format=fmt, **save_kwargs)
        return buffer.getvalue()
    return make


@pytest.fixture
def open_image():
    """Decode bytes with Pillow, failing the test if decoding fails."""
    def decode(data: bytes) -> Image.Image:
        image = Image.open(io.BytesIO(data))
        image.load()
        return image
    return decode
