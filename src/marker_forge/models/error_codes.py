"""
Error Codes
===========

Fixed set of machine-readable error codes returned to clients.

Every error response carries exactly ONE code next to the
human-readable message and the underlying detail string.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """
    Machine-readable failure codes.

    Attributes:
        NO_FILE: Request carried no image field
        UNSUPPORTED_TYPE: Extension or MIME type not allowed
        FILE_TOO_LARGE: Upload exceeded the body limit
        DECODE_FAILED: Bytes could not be decoded as an image
        IMAGE_TOO_SMALL: Decoded image below minimum dimension
        PIPELINE_FAILED: Resampling, compositing or writing failed
        TIMEOUT: Request exceeded its time budget and was aborted
        INVALID_REQUEST: Query or form parameters failed validation
        NOT_FOUND: Unknown route or resource
        METHOD_NOT_ALLOWED: Route exists but not for this HTTP method
        INTERNAL_ERROR: Anything unexpected
    """

    # Input rejected (4xx)
    NO_FILE = "NO_FILE"
    UNSUPPORTED_TYPE = "UNSUPPORTED_TYPE"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    DECODE_FAILED = "DECODE_FAILED"
    IMAGE_TOO_SMALL = "IMAGE_TOO_SMALL"

    # Pipeline failures (5xx)
    PIPELINE_FAILED = "PIPELINE_FAILED"
    TIMEOUT = "TIMEOUT"

    # Routing
    INVALID_REQUEST = "INVALID_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
