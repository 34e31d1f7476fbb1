"""
Pipeline Module
===============

The single, configuration-driven marker pipeline.

Components:
    - MarkerPipeline: Runs decode -> resample -> target + pattern
    - build_pipeline: Factory from Settings
"""

from marker_forge.pipeline.runner import AbortCheck, MarkerPipeline, build_pipeline

__all__ = [
    "AbortCheck",
    "MarkerPipeline",
    "build_pipeline",
]
