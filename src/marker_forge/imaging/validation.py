"""
Upload Validation
=================

Cheap checks performed BEFORE any byte is decoded.

Rules:
    - An upload must be present and non-empty
    - Extension AND declared MIME type must both be allowed
    - Size must not exceed the configured limit
"""

import logging
import os
from typing import Iterable, Optional

from marker_forge.errors import InputRejectedError, UploadTooLargeError
from marker_forge.models.error_codes import ErrorCode


logger = logging.getLogger(__name__)


def file_extension(filename: Optional[str]) -> str:
    """Lowercase extension with the leading dot, or '' if none."""
    if not filename:
        return ""
    return os.path.splitext(filename)[1].lower()


def validate_upload(
    filename: Optional[str],
    content_type: Optional[str],
    size: int,
    allowed_extensions: Iterable[str],
    allowed_mime_types: Iterable[str],
    max_bytes: int,
) -> None:
    """
    Validate upload metadata.

    Args:
        filename: Client-supplied filename
        content_type: Declared MIME type
        size: Body size in bytes
        allowed_extensions: Accepted extensions (lowercase, with dot)
        allowed_mime_types: Accepted MIME types
        max_bytes: Maximum body size

    Raises:
        InputRejectedError: Missing file or disallowed type
        UploadTooLargeError: Body exceeds max_bytes
    """
    if not filename or size <= 0:
        raise InputRejectedError("No image was uploaded.", ErrorCode.NO_FILE)

    extension = file_extension(filename)
    mime = (content_type or "").split(";")[0].strip().lower()

    extension_ok = extension in {e.lower() for e in allowed_extensions}
    mime_ok = mime in {m.lower() for m in allowed_mime_types}

    if not (extension_ok and mime_ok):
        logger.info(
            f"Rejected upload: filename={filename!r}, content_type={content_type!r}"
        )
        raise InputRejectedError(
            "Only JPEG and PNG images can be uploaded.",
            ErrorCode.UNSUPPORTED_TYPE,
            details=f"extension={extension or '<none>'}, content_type={mime or '<none>'}",
        )

    if size > max_bytes:
        raise UploadTooLargeError(
            "Uploaded image is too large.",
            details=f"{size} bytes exceeds limit of {max_bytes} bytes",
        )
