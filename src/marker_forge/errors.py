"""
Error Taxonomy
==============

Exceptions raised by the marker generation pipeline.

Classes of failure:
    - InputRejectedError: bad upload or undecodable image (4xx, no retry)
    - PipelineError: resampling/compositing/writing failed (5xx)
    - PipelineAborted: caller cancelled between steps
    - TrackingCompilerError: external compiler failed (absorbed by fallback)

Only TrackingCompilerError is recovered locally. Everything else ends
the request with a single JSON error response.
"""

from typing import Optional

from marker_forge.models.error_codes import ErrorCode


class MarkerForgeError(Exception):
    """Base class for all service errors."""

    status_code: int = 500
    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class InputRejectedError(MarkerForgeError):
    """Upload was rejected before any artifact was written."""

    status_code = 400

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNSUPPORTED_TYPE,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, details)
        self.code = code


class UploadTooLargeError(InputRejectedError):
    """Upload body exceeded the configured size limit."""

    status_code = 413

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message, ErrorCode.FILE_TOO_LARGE, details)


class ImageDecodeError(InputRejectedError):
    """Raised when image decoding fails."""

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message, ErrorCode.DECODE_FAILED, details)


class ImageTooSmallError(InputRejectedError):
    """Decoded image is below the minimum usable dimension."""

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message, ErrorCode.IMAGE_TOO_SMALL, details)


class PipelineError(MarkerForgeError):
    """A processing step failed after the input was accepted."""

    code = ErrorCode.PIPELINE_FAILED


class PipelineAborted(MarkerForgeError):
    """The caller asked the pipeline to stop between steps."""

    status_code = 504
    code = ErrorCode.TIMEOUT


class TrackingCompilerError(Exception):
    """Raised when the external tracking compiler fails."""
    pass
