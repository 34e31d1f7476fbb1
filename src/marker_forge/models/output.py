"""
Response Models
===============

JSON contract returned by the marker generation service.

Every request yields exactly ONE JSON body. Field names are camelCase
on the wire because the AR client consumes them directly.

Success Contract:
    {
        "success": true,
        "requestId": "1770500938284-483920114",
        "markerUrl": "http://localhost:3000/markers/1770500938284-483920114.patt",
        "targetImageUrl": "http://localhost:3000/targets/1770500938284-483920114.jpg",
        "patternBackend": "patt",
        "fallbackUsed": false,
        "message": "Marker generated successfully."
    }

Error Contract:
    {
        "success": false,
        "errorCode": "DECODE_FAILED",
        "error": "Uploaded file is not a readable image.",
        "details": "cv2.imdecode returned None"
    }
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from marker_forge.models.error_codes import ErrorCode
from marker_forge.models.pipeline import PatternBackend


class GenerateMarkerResponse(BaseModel):
    """
    Successful marker generation.

    Attributes:
        request_id: Identifier shared by both artifacts
        marker_url: Location of the pattern artifact
        target_image_url: Location of the target image
        pattern_backend: Backend that produced the marker
        fallback_used: True if the placeholder marker was written
        message: Human-readable status
    """

    model_config = ConfigDict(populate_by_name=True)

    success: bool = Field(default=True)

    request_id: str = Field(
        ...,
        alias="requestId",
        description="Identifier shared by marker and target artifacts",
    )

    marker_url: str = Field(
        ...,
        alias="markerUrl",
        description="URL of the tracking-pattern artifact",
    )

    target_image_url: str = Field(
        ...,
        alias="targetImageUrl",
        description="URL of the target image shown to the user",
    )

    pattern_backend: PatternBackend = Field(
        ...,
        alias="patternBackend",
        description="Pattern backend used: 'patt' or 'mind'",
    )

    fallback_used: bool = Field(
        default=False,
        alias="fallbackUsed",
        description="Placeholder marker written after compiler failure",
    )

    message: str = Field(
        default="Marker generated successfully.",
        description="Human-readable status message",
    )


class ErrorResponse(BaseModel):
    """
    Failed request.

    Attributes:
        error_code: Machine-readable failure code
        error: Human-readable message
        details: Underlying failure detail string
    """

    model_config = ConfigDict(populate_by_name=True)

    success: bool = Field(default=False)

    error_code: ErrorCode = Field(
        ...,
        alias="errorCode",
        description="Machine-readable failure code",
    )

    error: str = Field(..., description="Human-readable error message")

    details: Optional[str] = Field(
        default=None,
        description="Underlying failure detail",
    )


class HealthResponse(BaseModel):
    """Liveness payload."""

    status: str = Field(default="ok")
    message: str = Field(default="Server is running")
    timestamp: str = Field(..., description="ISO-8601 UTC timestamp")
    uptime_seconds: float = Field(..., ge=0.0)


class EventRecord(BaseModel):
    """Single pipeline event as exposed by /api/logs."""

    timestamp: float
    level: str
    stage: str
    message: str
    request_id: Optional[str] = None
    details: dict = Field(default_factory=dict)


class EventLogResponse(BaseModel):
    """Recent pipeline events, oldest first."""

    events: List[EventRecord] = Field(default_factory=list)
    dropped_count: int = Field(default=0, ge=0)
