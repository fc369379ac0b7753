# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Exception classes for GeoImgr

Every codec error derives from GeoImgrError and carries a stable ``code``
string so the facade can turn it into a structured write failure.

Copyright 2025 DNAi inc.
"""


class GeoImgrError(Exception):
    """
    Base exception for all GeoImgr errors.

    All GeoImgr exceptions inherit from this class, allowing
    catch-all error handling for any codec-related errors.
    """
    code = "error"

    def __init__(self, message: str = ""):
        """
        Initialize the exception with an optional error message.

        Args:
            message: Descriptive error message explaining what went wrong
        """
        self.message = message
        super().__init__(message)


class UnsupportedFormatError(GeoImgrError):
    """
    Raised when a MIME type or container cannot be handled.

    This exception is raised when:
    - The capability registry reports no read/write support
    - A buffer handed to a codec is not the container it expects
    """
    code = "unsupported_format"


class CorruptContainerError(GeoImgrError):
    """
    Raised when the container structure itself is broken.

    This exception is raised when:
    - The file signature is wrong
    - A chunk, segment or IFD declares a length past the end of the buffer
    - A required structural chunk (IHDR, VP8/VP8L) is missing
    """
    code = "corrupt_container"


class MalformedFieldError(GeoImgrError):
    """
    Raised when a recognized field has an unparseable inner structure.

    Readers catch this per field and carry on with the rest of the file.
    """
    code = "malformed_field"


class MetadataWriteError(GeoImgrError):
    """
    Raised when metadata cannot be serialized into the carrier.

    This exception is raised when:
    - The rebuilt EXIF segment exceeds the JPEG APP1 size limit
    - The carrier cannot hold the requested values
    """
    code = "write_failed"


class InvalidCoordinatesError(GeoImgrError, ValueError):
    """Raised when a latitude/longitude pair is missing, non-numeric or out of range."""
    code = "invalid_coordinates"


class InputTooLargeError(GeoImgrError):
    """Raised when an input buffer exceeds the configured size bound."""
    code = "input_too_large"
