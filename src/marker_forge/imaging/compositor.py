"""
Target Compositor
=================

Produces the human-facing target image from the working image.

Variants:
    plain:    working image re-encoded as JPEG at the configured quality
    bordered: square canvas, solid outer border, working image inset by
              border_size on every side, encoded as lossless PNG

Layer order (bordered): background -> border rectangles -> image.

The canvas size and border width are a contract with the AR client that
later renders and matches against the target. A mismatch cannot be
detected here.
"""

import logging
from typing import Tuple

import cv2
import numpy as np

from marker_forge.errors import PipelineError
from marker_forge.imaging.resampler import resize_square
from marker_forge.models.pipeline import Interpolation, TargetImage


logger = logging.getLogger(__name__)


Color = Tuple[int, int, int]


def compose_bordered(
    working: np.ndarray,
    canvas_size: int = 512,
    border_size: int = 40,
    border_color: Color = (0, 0, 0),
    background_color: Color = (255, 255, 255),
    interpolation: Interpolation = Interpolation.AREA,
) -> np.ndarray:
    """
    Compose the bordered target canvas.

    Args:
        working: RGB working image (N, N, 3)
        canvas_size: Side of the output canvas
        border_size: Border width on every side
        border_color: RGB outer border color
        background_color: RGB canvas fill
        interpolation: Filter used to fit the image into the inset

    Returns:
        RGB canvas (canvas_size, canvas_size, 3), dtype=uint8
    """
    if 2 * border_size >= canvas_size:
        raise ValueError("border_size must be less than half of canvas_size")

    inner_size = canvas_size - 2 * border_size
    far = canvas_size - 1

    canvas = np.empty((canvas_size, canvas_size, 3), dtype=np.uint8)
    canvas[:, :] = background_color

    # Border rectangles (filled); the inner one is fully covered by the image
    cv2.rectangle(canvas, (0, 0), (far, far), _cv_color(border_color), thickness=-1)
    cv2.rectangle(
        canvas,
        (border_size, border_size),
        (far - border_size, far - border_size),
        _cv_color(background_color),
        thickness=-1,
    )

    # Image on top
    inset = resize_square(working, inner_size, interpolation)
    canvas[border_size:border_size + inner_size, border_size:border_size + inner_size] = inset

    return canvas


def encode_jpeg(image: np.ndarray, quality: int = 95) -> bytes:
    """Encode an RGB image as JPEG."""
    ok, buf = cv2.imencode(
        ".jpg",
        cv2.cvtColor(image, cv2.COLOR_RGB2BGR),
        [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)],
    )
    if not ok:
        raise PipelineError("Failed to encode target image.", details="cv2.imencode(.jpg) failed")
    return buf.tobytes()


def encode_png(image: np.ndarray) -> bytes:
    """Encode an RGB image as lossless PNG."""
    ok, buf = cv2.imencode(
        ".png",
        cv2.cvtColor(image, cv2.COLOR_RGB2BGR),
        [int(cv2.IMWRITE_PNG_COMPRESSION), 3],
    )
    if not ok:
        raise PipelineError("Failed to encode target image.", details="cv2.imencode(.png) failed")
    return buf.tobytes()


def _cv_color(color: Color) -> Tuple[int, int, int]:
    # Canvas is RGB, so the color tuple is passed through unchanged.
    return tuple(int(c) for c in color)


class TargetCompositor:
    """
    Renders the target artifact for one working image.

    Attributes:
        border_enabled: Compose the bordered PNG instead of the plain JPEG
        jpeg_quality: Quality of the plain JPEG
        canvas_size: Bordered canvas side
        border_size: Bordered border width

    Example:
        compositor = TargetCompositor(border_enabled=True)
        target = compositor.render(working)
        path.write_bytes(target.data)
    """

    def __init__(
        self,
        border_enabled: bool = False,
        jpeg_quality: int = 95,
        canvas_size: int = 512,
        border_size: int = 40,
        border_color: Color = (0, 0, 0),
            background_color: Color = (255, 255, 255),
        interpolation: Interpolation = Interpolation.AREA,
    ) -> None:
        if 2 * border_size >= canvas_size:
            raise ValueError("border_size must be less than half of canvas_size")
        if not 1 <= jpeg_quality <= 100:
            raise ValueError("jpeg_quality must be in [1, 100]")

        self.border_enabled = border_enabled
        self.jpeg_quality = jpeg_quality
        self.canvas_size = canvas_size
        self.border_size = border_size
        self.border_color = border_color
        self.background_color = background_color
        self.interpolation = interpolation

        if border_enabled:
            logger.info(
                f"TargetCompositor initialized: bordered png, "
                f"canvas={canvas_size}px, border={border_size}px"
            )
        else:
            logger.info(f"TargetCompositor initialized: plain jpeg, quality={jpeg_quality}")

    def compose(self, working: np.ndarray) -> np.ndarray:
        """Raster of the target before encoding."""
        if not self.border_enabled:
            return working
        return compose_bordered(
            working,
            canvas_size=self.canvas_size,
            border_size=self.border_size,
            border_color=self.border_color,
            background_color=self.background_color,
            interpolation=self.interpolation,
        )

    def render(self, working: np.ndarray) -> TargetImage:
        """
        Compose and encode the target artifact.

        Args:
            working: RGB working image

        Returns:
            TargetImage (PNG when bordered, JPEG otherwise)
        """
        raster = self.compose(working)
        if self.border_enabled:
            return TargetImage(data=encode_png(raster), extension="png", media_type="image/png")
        return TargetImage(
            data=encode_jpeg(raster, self.jpeg_quality),
            extension="jpg",
            media_type="image/jpeg",
        )
