# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Codec configuration

Copyright 2025 DNAi inc.
"""

from typing import Optional


# Seconds of arc are stored as n/100 in every EXIF GPS rational we write.
GPS_SECONDS_DENOMINATOR = 100


class CodecConfig:
    """
    Configuration shared by the metadata facade and the writers.

    Instances are treated as read-only once handed to the facade; build a
    new one to change a setting.
    """

    def __init__(
        self,
        max_input_bytes: int = 256 * 1024 * 1024,
        software_name: Optional[str] = None,
        exif_byte_order: str = '<'
    ):
        """
        Initialize configuration.

        Args:
            max_input_bytes: Largest buffer the facade will parse
            software_name: Value of the PNG ``Software`` text chunk
            exif_byte_order: Byte order for newly created EXIF blocks
                             ('<' little-endian, '>' big-endian)
        """
        if max_input_bytes <= 0:
            raise ValueError("max_input_bytes must be positive")
        if exif_byte_order not in ('<', '>'):
            raise ValueError("exif_byte_order must be '<' or '>'")

        if software_name is None:
            from geoimgr import __version__
            software_name = f"GeoImgr {__version__}"

        self.max_input_bytes = max_input_bytes
        self.software_name = software_name
        self.exif_byte_order = exif_byte_order

    def __repr__(self) -> str:
        return (
            f"CodecConfig(max_input_bytes={self.max_input_bytes}, "
            f"software_name={self.software_name!r}, "
            f"exif_byte_order={self.exif_byte_order!r})"
        )


DEFAULT_CONFIG = CodecConfig()
