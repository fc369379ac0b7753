# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Image MIME type detector

The codec itself never guesses a MIME type; callers that only have a file
name or raw bytes use this module to derive one.

Copyright 2025 DNAi inc.
"""

from typing import Optional, Dict, Tuple
from pathlib import Path


class FormatDetector:
    """
    Detects image MIME types from file extensions and content signatures.
    """

    # (offset, signature) -> MIME type
    FORMAT_SIGNATURES: Dict[Tuple[int, bytes], str] = {
        (0, b'\xff\xd8\xff'): 'image/jpeg',
        (0, b'II*\x00'): 'image/tiff',
        (0, b'MM\x00*'): 'image/tiff',
        (0, b'\x89PNG\r\n\x1a\n'): 'image/png',
    }

    # ftyp major brands of HEIF still images
    HEIC_BRANDS = (b'heic', b'heix', b'heim', b'heis', b'hevc', b'hevx')
    HEIF_BRANDS = (b'mif1', b'msf1', b'heif')

    EXTENSION_FORMATS: Dict[str, str] = {
        '.jpg': 'image/jpeg', '.jpeg': 'image/jpeg', '.jpe': 'image/jpeg',
        '.tif': 'image/tiff', '.tiff': 'image/tiff',
        '.png': 'image/png',
        '.webp': 'image/webp',
        '.heic': 'image/heic', '.heif': 'image/heif',
    }

    @classmethod
    def from_extension(cls, file_path: str) -> Optional[str]:
        """Return the MIME type for a file name's extension, if known."""
        return cls.EXTENSION_FORMATS.get(Path(file_path).suffix.lower())

    @classmethod
    def from_signature(cls, file_data: bytes) -> Optional[str]:
        """Return the MIME type implied by the leading bytes, if known."""
        if not file_data:
            return None

        for (offset, signature), mime_type in cls.FORMAT_SIGNATURES.items():
            if file_data[offset:offset + len(signature)] == signature:
                return mime_type

        if file_data[:4] == b'RIFF' and file_data[8:12] == b'WEBP':
            return 'image/webp'

        if file_data[4:8] == b'ftyp':
            brand = file_data[8:12]
            if brand in cls.HEIC_BRANDS:
                return 'image/heic'
            if brand in cls.HEIF_BRANDS:
                return 'image/heif'

        return None

    @classmethod
    def detect_mime_type(cls, file_path: Optional[str] = None, file_data: Optional[bytes] = None) -> Optional[str]:
        """
        Detect a MIME type from file path and/or data.

        Args:
            file_path: Path or file name
            file_data: File data (the first 16 bytes are enough)

        Returns:
            MIME type or None if not detected
        """
        # Check extension first
        if file_path:
            mime_type = cls.from_extension(file_path)
            if mime_type:
                return mime_type

        if file_data:
            return cls.from_signature(file_data)

        return None
