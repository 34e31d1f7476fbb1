"""
Pipeline Models
===============

Policy enums and result types shared across the marker pipeline.

The historical service shipped several near-duplicate variants
(memory vs disk storage, plain vs bordered target, .patt vs .mind).
They are all expressed here as ONE pipeline parameterized by
PipelineConfig: {fit_mode, working_size, border_enabled, pattern_backend}.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class FitMode(str, Enum):
    """
    How a non-square source maps onto the square working buffer.

    Attributes:
        COVER: Scale to fill, crop overflow (no distortion)
        INSIDE: Scale to fit without upscaling, letterbox the rest
        FILL: Stretch to the square (may distort aspect)
    """

    COVER = "cover"
    INSIDE = "inside"
    FILL = "fill"


class PatternBackend(str, Enum):
    """
    Which artifact encodes the tracking pattern.

    Attributes:
        PATT: Textual 3x16x16 intensity grid (.patt)
        MIND: External feature compiler output (.mind)
    """

    PATT = "patt"
    MIND = "mind"

    @property
    def extension(self) -> str:
        return self.value


class Interpolation(str, Enum):
    """Interpolation used when resizing to the working resolution."""

    AREA = "area"
    LINEAR = "linear"
    CUBIC = "cubic"
    LANCZOS = "lanczos"


@dataclass(frozen=True, slots=True)
class TargetImage:
    """
    Encoded target artifact ready to be written.

    Attributes:
        data: Encoded image bytes
        extension: File extension without the dot ("jpg" or "png")
        media_type: MIME type of the encoded bytes
    """

    data: bytes
    extension: str
    media_type: str

    def __repr__(self) -> str:
        return (
            f"TargetImage(extension={self.extension!r}, "
            f"bytes={len(self.data)})"
        )


@dataclass(frozen=True, slots=True)
class PipelineResult:
    """
    Outcome of one successful pipeline run.

    Attributes:
        request_id: Shared filename stem of both artifacts
        marker_path: Path of the written pattern artifact
        target_path: Path of the written target image
        pattern_backend: Backend that produced the marker artifact
        fallback_used: True if the placeholder was written instead
        working_size: Side of the square working image in pixels
    """

    request_id: str
    marker_path: Path
    target_path: Path
    pattern_backend: PatternBackend
    fallback_used: bool
    working_size: int

    def to_dict(self) -> dict:
        """Export as dictionary for logging/serialization."""
        return {
            "request_id": self.request_id,
            "marker_path": str(self.marker_path),
            "target_path": str(self.target_path),
            "pattern_backend": self.pattern_backend.value,
            "fallback_used": self.fallback_used,
            "working_size": self.working_size,
        }
