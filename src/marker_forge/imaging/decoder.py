"""
Image Decoder
=============

Dedicated module for decoding uploaded bytes into RGB numpy arrays.

Design Rules:
    - This is the ONLY place in the codebase that decodes uploads
    - Validates shape and dtype
    - Fails fast on corrupt images
    - Always returns 3-channel RGB (alpha is dropped)
"""

import logging

import cv2
import numpy as np

from marker_forge.errors import ImageDecodeError, ImageTooSmallError


logger = logging.getLogger(__name__)


def decode_image(data: bytes) -> np.ndarray:
    """
    Decode encoded image bytes to an RGB numpy array.

    Args:
        data: Raw JPEG/PNG bytes

    Returns:
        RGB image as np.ndarray (H, W, 3), dtype=uint8

    Raises:
        ImageDecodeError: If decoding fails or image is invalid
    """
    if not data:
        raise ImageDecodeError(
            "Uploaded file is not a readable image.",
            details="empty buffer",
        )

    try:
        nparr = np.frombuffer(data, np.uint8)
        bgr = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
    except cv2.error as e:
        raise ImageDecodeError(
            "Uploaded file is not a readable image.",
            details=f"cv2.imdecode failed: {e}",
        )

    if bgr is None:
        raise ImageDecodeError(
            "Uploaded file is not a readable image.",
            details="cv2.imdecode returned None",
        )

    # Validate shape
    if bgr.ndim != 3 or bgr.shape[2] != 3:
        raise ImageDecodeError(
            "Uploaded file is not a readable image.",
            details=f"invalid image shape: {bgr.shape}",
        )

    # Validate dtype (16-bit PNGs are reduced by IMREAD_COLOR, but check anyway)
    if bgr.dtype != np.uint8:
        raise ImageDecodeError(
            "Uploaded file is not a readable image.",
            details=f"invalid dtype: {bgr.dtype}",
        )

    return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)


def check_min_dimension(image: np.ndarray, min_dimension: int) -> None:
    """
    Reject images below the minimum usable size.

    Args:
        image: Decoded image (H, W, C)
        min_dimension: Minimum width and height in pixels

    Raises:
        ImageTooSmallError: If width or height is below min_dimension
    """
    height, width = image.shape[:2]
    if width < min_dimension or height < min_dimension:
        raise ImageTooSmallError(
            f"Image is too small. At least {min_dimension}x{min_dimension} pixels required.",
            details=f"got {width}x{height}",
        )
