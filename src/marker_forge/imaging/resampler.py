"""
Resampler
=========

Deterministic resize of an arbitrary source image to the square
working resolution.

Fit Modes:
    cover:  scale by max(size/w, size/h), centre-crop the overflow.
            No distortion, edges may be lost.
    inside: scale by min(1, size/w, size/h), centre on a padded square.
            Never upscales; no distortion, no loss.
    fill:   stretch to size x size. May distort aspect.

A deployment uses ONE fit mode. Pattern and target are both derived
from the single working image this module returns.
"""

import logging
from typing import Tuple

import cv2
import numpy as np

from marker_forge.models.pipeline import FitMode, Interpolation


logger = logging.getLogger(__name__)


_CV2_INTERPOLATION = {
    Interpolation.AREA: cv2.INTER_AREA,
    Interpolation.LINEAR: cv2.INTER_LINEAR,
    Interpolation.CUBIC: cv2.INTER_CUBIC,
    Interpolation.LANCZOS: cv2.INTER_LANCZOS4,
}


def cv2_interpolation(interpolation: Interpolation) -> int:
    """Map an Interpolation policy to the OpenCV flag."""
    return _CV2_INTERPOLATION[Interpolation(interpolation)]


def _resize(image: np.ndarray, width: int, height: int, interpolation: Interpolation) -> np.ndarray:
    if image.shape[1] == width and image.shape[0] == height:
        return image.copy()
    return cv2.resize(
        image,
        (width, height),
        interpolation=cv2_interpolation(interpolation),
    )


def resample(
    image: np.ndarray,
    size: int,
    fit_mode: FitMode = FitMode.COVER,
    interpolation: Interpolation = Interpolation.AREA,
    pad_color: Tuple[int, int, int] = (255, 255, 255),
) -> np.ndarray:
    """
    Resize an RGB image to the square working resolution.

    Args:
        image: RGB source (H, W, 3), dtype=uint8
        size: Working resolution (output is size x size)
        fit_mode: How aspect mismatch is resolved
        interpolation: Resize filter
        pad_color: Letterbox color for the 'inside' mode

    Returns:
        RGB working image (size, size, 3), dtype=uint8
    """
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"expected RGB image (H, W, 3), got shape {image.shape}")
    if size < 1:
        raise ValueError("size must be positive")

    height, width = image.shape[:2]
    fit_mode = FitMode(fit_mode)

    if fit_mode == FitMode.FILL:
        working = _resize(image, size, size, interpolation)

    elif fit_mode == FitMode.COVER:
        scale = max(size / width, size / height)
        scaled_w = max(size, int(round(width * scale)))
        scaled_h = max(size, int(round(height * scale)))
        scaled = _resize(image, scaled_w, scaled_h, interpolation)

        left = (scaled_w - size) // 2
        top = (scaled_h - size) // 2
        working = np.ascontiguousarray(scaled[top:top + size, left:left + size])

    else:
        scale = min(1.0, size / width, size / height)
        fitted_w = max(1, min(size, int(round(width * scale))))
        fitted_h = max(1, min(size, int(round(height * scale))))
        fitted = _resize(image, fitted_w, fitted_h, interpolation)

        working = np.empty((size, size, 3), dtype=np.uint8)
        working[:, :] = pad_color
        left = (size - fitted_w) // 2
        top = (size - fitted_h) // 2
        working[top:top + fitted_h, left:left + fitted_w] = fitted

    logger.debug(
        f"Resampled {width}x{height} -> {size}x{size} "
        f"(fit={fit_mode.value}, interpolation={Interpolation(interpolation).value})"
    )
    return working


def prescale(image: np.ndarray, max_dimension: int, target: int) -> np.ndarray:
    """
    Shrink an oversized source before the working resize.

    Sources whose longest side exceeds max_dimension are scaled so their
    longest side equals target, preserving aspect. Smaller sources are
    returned unchanged.

    Args:
        image: RGB source (H, W, 3)
        max_dimension: Longest side that is left alone
        target: Longest side after shrinking

    Returns:
        Possibly shrunk RGB image
    """
    height, width = image.shape[:2]
    longest = max(width, height)
    if longest <= max_dimension:
        return image

    scale = target / longest
    new_w = max(1, int(round(width * scale)))
    new_h = max(1, int(round(height * scale)))
    logger.info(f"Pre-shrinking oversized source {width}x{height} -> {new_w}x{new_h}")
    return cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_AREA)


def resize_square(
    image: np.ndarray,
    size: int,
    interpolation: Interpolation = Interpolation.AREA,
) -> np.ndarray:
    """Resize a square image to size x size."""
    return _resize(image, size, size, interpolation)
