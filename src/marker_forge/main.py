"""
MarkerForge Main Application
============================

FastAPI entry point for the AR marker generation service.

Endpoints:
    GET  /                     - Service information
    GET  /health               - Liveness probe
    POST /api/generate-marker  - Upload an image, get marker + target URLs
    GET  /api/logs             - Recent pipeline events
    GET  /markers/<file>       - Generated pattern artifacts (static)
    GET  /targets/<file>       - Generated target images (static)

Every request is answered with exactly one JSON body (static files
aside). The pipeline runs in the worker threadpool, bounded by
server.request_timeout_seconds; on timeout it is told to abort before
its next step and its partial artifacts are removed.
"""

import asyncio
import logging
import os
import threading
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

from fastapi import FastAPI, File, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from marker_forge.config import Settings, settings
from marker_forge.errors import InputRejectedError, MarkerForgeError, PipelineAborted
from marker_forge.imaging.validation import validate_upload
from marker_forge.models.error_codes import ErrorCode
from marker_forge.models.output import (
    ErrorResponse,
    EventLogResponse,
    EventRecord,
    GenerateMarkerResponse,
    HealthResponse,
)
from marker_forge.observability import CompositeEventSink, LoggingEventSink, MemoryEventSink
from marker_forge.pattern.compiler import TrackingCompiler
from marker_forge.pipeline import MarkerPipeline, build_pipeline


logger = logging.getLogger(__name__)


# =============================================================================
# Error Responses
# =============================================================================

def error_response(
    status_code: int,
    code: ErrorCode,
    message: str,
    details: Optional[str] = None,
) -> JSONResponse:
    body = ErrorResponse(error_code=code, error=message, details=details)
    return JSONResponse(body.model_dump(mode="json", by_alias=True), status_code=status_code)


async def _handle_marker_error(request: Request, exc: MarkerForgeError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.code.value}: {exc.message} ({exc.details})")
    else:
        logger.info(f"Rejected request: {exc.code.value}: {exc.message} ({exc.details})")
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


async def _handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return error_response(404, ErrorCode.NOT_FOUND, "The requested resource was not found.")
    if exc.status_code == 405:
        return error_response(405, ErrorCode.METHOD_NOT_ALLOWED, "Method not allowed.", str(exc.detail))
    if exc.status_code < 500:
        return error_response(exc.status_code, ErrorCode.INVALID_REQUEST, str(exc.detail))
    return error_response(exc.status_code, ErrorCode.INTERNAL_ERROR, str(exc.detail))


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
        for err in exc.errors()
    )
    return error_response(422, ErrorCode.INVALID_REQUEST, "Invalid request parameters.", problems)


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled server error: {exc}")
    return error_response(500, ErrorCode.INTERNAL_ERROR, "Internal server error.", str(exc))


# =============================================================================
# Application Factory
# =============================================================================

def create_app(
    app_settings: Settings = settings,
    compiler: Optional[TrackingCompiler] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        app_settings: Settings to run with (default: global settings)
        compiler: Override the configured tracking compiler

    Returns:
        FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Provision artifact directories."""
        app.state.startup_time = time.time()
        logger.info(f"Starting {app_settings.service.name} {app_settings.service.version}")

        app.state.pipeline.store.ensure_directories()
        logger.info(f"Public base URL: {app_settings.server.base_url}")

        yield

        logger.info("Shutdown complete")

    app = FastAPI(
        title="MarkerForge",
        description="Image to AR marker pattern generation service",
        version=app_settings.service.version,
        lifespan=lifespan,
    )

    memory_sink = MemoryEventSink(maxsize=app_settings.events.buffer_size)
    app.state.settings = app_settings
    app.state.event_log = memory_sink
    app.state.startup_time = time.time()
    app.state.pipeline = build_pipeline(
        app_settings,
        sink=CompositeEventSink([LoggingEventSink(), memory_sink]),
        compiler=compiler,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.server.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )

    app.add_exception_handler(MarkerForgeError, _handle_marker_error)
    app.add_exception_handler(StarletteHTTPException, _handle_http_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)

    # =========================================================================
    # HTTP Endpoints
    # =========================================================================

    @app.get("/")
    async def root() -> JSONResponse:
        """Service information endpoint."""
        pipeline: MarkerPipeline = app.state.pipeline
        return JSONResponse({
            "service": "MarkerForge",
            "name": app_settings.service.name,
            "version": app_settings.service.version,
            "status": "running",
            "fit_mode": pipeline.fit_mode.value,
            "working_size": pipeline.working_size,
            "border_enabled": pipeline.compositor.border_enabled,
            "pattern_backend": pipeline.pattern_backend.value,
        })

    @app.get("/health")
    async def health() -> JSONResponse:
        """
        Liveness probe - is the process alive?

        Always returns 200 if the service is running.
        """
        body = HealthResponse(
            timestamp=datetime.now(timezone.utc).isoformat(),
            uptime_seconds=round(time.time() - app.state.startup_time, 1),
        )
        return JSONResponse(body.model_dump(mode="json"))

    @app.post("/api/generate-marker")
    async def generate_marker(image: Optional[UploadFile] = File(default=None)) -> JSONResponse:
        """
        Generate a marker from one uploaded JPEG/PNG.

        Returns marker and target URLs sharing one request id.
        """
        if image is None:
            raise InputRejectedError("No image was uploaded.", ErrorCode.NO_FILE)

        upload_cfg = app_settings.upload
        # Read one byte past the limit so oversize uploads are detected
        data = await image.read(upload_cfg.max_bytes + 1)
        validate_upload(
            image.filename,
            image.content_type,
            len(data),
            allowed_extensions=upload_cfg.allowed_extensions,
            allowed_mime_types=upload_cfg.allowed_mime_types,
            max_bytes=upload_cfg.max_bytes,
        )
        logger.info(f"Processing upload {image.filename!r} ({len(data)} bytes)")

        pipeline: MarkerPipeline = app.state.pipeline
        # Worker threads cannot be interrupted; the pipeline polls this
        # flag between steps and cleans up after itself.
        abort = threading.Event()
        timer = asyncio.get_running_loop().call_later(
            app_settings.server.request_timeout_seconds,
            abort.set,
        )
        try:
            result = await run_in_threadpool(pipeline.run, data, abort.is_set)
        finally:
            timer.cancel()

        if abort.is_set():
            # Deadline passed after the pipeline's last check
            pipeline.store.discard([result.marker_path, result.target_path])
            raise PipelineAborted(
                "Marker generation was cancelled.",
                details=f"request {result.request_id} exceeded "
                f"{app_settings.server.request_timeout_seconds}s",
            )

        base_url = app_settings.server.base_url
        markers_prefix = app_settings.storage.markers_dir
        targets_prefix = app_settings.storage.targets_dir
        message = "Marker generated successfully."
        if result.fallback_used:
            message = "Target generated; tracking compiler unavailable, placeholder marker written."

        body = GenerateMarkerResponse(
            request_id=result.request_id,
            marker_url=f"{base_url}/{markers_prefix}/{result.marker_path.name}",
            target_image_url=f"{base_url}/{targets_prefix}/{result.target_path.name}",
            pattern_backend=result.pattern_backend,
            fallback_used=result.fallback_used,
            message=message,
        )
        return JSONResponse(body.model_dump(mode="json", by_alias=True))

    @app.get("/api/logs")
    async def logs(limit: int = Query(default=50, ge=1, le=1000)) -> JSONResponse:
        """Recent pipeline events, oldest first."""
        sink: MemoryEventSink = app.state.event_log
        body = EventLogResponse(
            events=[EventRecord(**event.to_dict()) for event in sink.recent(limit)],
            dropped_count=sink.dropped_count,
        )
        return JSONResponse(body.model_dump(mode="json"))

    # =========================================================================
    # Static Artifacts
    # =========================================================================

    store = app.state.pipeline.store
    app.mount(
        f"/{app_settings.storage.markers_dir}",
        StaticFiles(directory=str(store.markers_dir), check_dir=False),
        name="markers",
    )
    app.mount(
        f"/{app_settings.storage.targets_dir}",
        StaticFiles(directory=str(store.targets_dir), check_dir=False),
        name="targets",
    )

    return app


app = create_app()


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    # PaaS platforms use PORT env var
    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "marker_forge.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )
