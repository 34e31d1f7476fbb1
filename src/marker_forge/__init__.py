"""
MarkerForge
===========

Image normalization and pattern encoding for AR marker tracking.

This package turns one uploaded photograph into two correlated artifacts:
a normalized target image shown to the user, and a compact tracking
pattern consumed by a marker-tracking engine.

Components:
    - imaging: Upload validation, decoding, resampling, target compositing
    - pattern: 3x16x16 .patt grid and the optional external compiler
    - storage: Request naming and artifact persistence
    - pipeline: The single configuration-driven pipeline
    - observability: Structured pipeline event sinks

Example:
    from marker_forge.config import settings
    from marker_forge.pipeline import build_pipeline

    pipeline = build_pipeline(settings)
    pipeline.store.ensure_directories()
    result = pipeline.run(open("photo.jpg", "rb").read())
"""

__version__ = "0.1.0"
__author__ = "MarkerForge Project"

__all__ = [
    "__version__",
]
