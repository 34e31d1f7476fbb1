"""
Imaging Module
==============

Everything that touches pixels before the pattern is built.

Components:
    - validate_upload: Metadata checks before decoding
    - decode_image: Bytes -> RGB array (the ONLY decoder)
    - resample / prescale: Source -> square working image
    - TargetCompositor: Working image -> plain JPEG or bordered PNG
"""

from marker_forge.imaging.validation import file_extension, validate_upload
from marker_forge.imaging.decoder import check_min_dimension, decode_image
from marker_forge.imaging.resampler import prescale, resample, resize_square
from marker_forge.imaging.compositor import (
    TargetCompositor,
    compose_bordered,
    encode_jpeg,
    encode_png,
)

__all__ = [
    "validate_upload",
    "file_extension",
    "decode_image",
    "check_min_dimension",
    "resample",
    "prescale",
    "resize_square",
    "TargetCompositor",
    "compose_bordered",
    "encode_jpeg",
    "encode_png",
]
