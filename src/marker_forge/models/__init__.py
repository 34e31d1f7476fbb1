"""
Data Models
===========

Typed models for the marker generation service.

Models:
    Pipeline:
        - FitMode, PatternBackend, Interpolation: Policy enums
        - TargetImage: Encoded target artifact
        - PipelineResult: Outcome of one run

    Output:
        - GenerateMarkerResponse: Success contract
        - ErrorResponse: Error contract
        - HealthResponse: Liveness payload
        - EventRecord, EventLogResponse: Event log payloads

    Codes:
        - ErrorCode: Machine-readable failure codes
"""

from marker_forge.models.error_codes import ErrorCode
from marker_forge.models.pipeline import (
    FitMode,
    Interpolation,
    PatternBackend,
    PipelineResult,
    TargetImage,
)
from marker_forge.models.output import (
    ErrorResponse,
    EventLogResponse,
    EventRecord,
    GenerateMarkerResponse,
    HealthResponse,
)

__all__ = [
    # Codes
    "ErrorCode",
    # Pipeline
    "FitMode",
    "Interpolation",
    "PatternBackend",
    "PipelineResult",
    "TargetImage",
    # Output
    "GenerateMarkerResponse",
    "ErrorResponse",
    "HealthResponse",
    "EventRecord",
    "EventLogResponse",
]
