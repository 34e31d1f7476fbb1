"""
Marker Pipeline
===============

One request: raw upload bytes -> pattern artifact + target artifact.

Data Flow:
    bytes -> decode -> (pre-shrink) -> resample -> working image
    working image -> TargetCompositor -> target artifact
    working image -> PatternGrid      -> .patt artifact      (patt backend)
    target image  -> TrackingCompiler -> .mind artifact      (mind backend)

Both artifacts share one request id. Every buffer is request-scoped;
the pipeline holds no mutable state between runs and may be called
from several worker threads at once.

Cancellation:
    An optional should_abort() callable is polled between steps and
    once more after the last write. If it returns True the run stops
    with PipelineAborted and anything already written for the request
    is removed.
"""

import logging
import time
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from marker_forge.errors import MarkerForgeError, PipelineAborted, PipelineError
from marker_forge.imaging.compositor import TargetCompositor
from marker_forge.imaging.decoder import check_min_dimension, decode_image
from marker_forge.imaging.resampler import prescale, resample
from marker_forge.models.pipeline import (
    FitMode,
    Interpolation,
    PatternBackend,
    PipelineResult,
)
from marker_forge.observability.events import EventSink, LoggingEventSink, PipelineEvent
from marker_forge.pattern.compiler import (
    ExternalTrackingCompiler,
    TrackingCompiler,
    compile_with_fallback,
)
from marker_forge.pattern.grid import PatternGrid
from marker_forge.storage.artifacts import ArtifactStore
from marker_forge.storage.naming import RequestIdFactory, new_request_id


logger = logging.getLogger(__name__)


AbortCheck = Callable[[], bool]


class MarkerPipeline:
    """
    Deterministic image -> marker pipeline.

    Identical input bytes under identical configuration always yield
    byte-identical artifacts.

    Attributes:
        store: Where artifacts are written
        compositor: Target image renderer
        pattern_backend: 'patt' grid or 'mind' compiler
        fit_mode: Working resize policy
        working_size: Side of the square working image

    Example:
        pipeline = MarkerPipeline(store=ArtifactStore("./public"))
        result = pipeline.run(upload_bytes)
        print(result.marker_path, result.target_path)
    """

    def __init__(
        self,
        store: ArtifactStore,
        compositor: Optional[TargetCompositor] = None,
        pattern_backend: PatternBackend = PatternBackend.PATT,
        fit_mode: FitMode = FitMode.COVER,
        working_size: int = 512,
        interpolation: Interpolation = Interpolation.AREA,
        pad_color: Tuple[int, int, int] = (255, 255, 255),
        min_dimension: int = 300,
        prescale_max_dimension: Optional[int] = None,
        prescale_target: int = 1024,
        compiler: Optional[TrackingCompiler] = None,
        placeholder: str = "MARKER-FORGE-PLACEHOLDER\n",
        sink: Optional[EventSink] = None,
        id_factory: RequestIdFactory = new_request_id,
    ) -> None:
        if working_size < 16:
            raise ValueError("working_size must be >= 16")

        self.store = store
        self.compositor = compositor or TargetCompositor()
        self.pattern_backend = PatternBackend(pattern_backend)
        self.fit_mode = FitMode(fit_mode)
        self.working_size = working_size
        self.interpolation = Interpolation(interpolation)
        self.pad_color = pad_color
        self.min_dimension = min_dimension
        self.prescale_max_dimension = prescale_max_dimension
        self.prescale_target = prescale_target
        self.compiler = compiler or ExternalTrackingCompiler()
        self.placeholder = placeholder
        self.sink = sink or LoggingEventSink()
        self._id_factory = id_factory

        logger.info(
            f"MarkerPipeline initialized: fit={self.fit_mode.value}, "
            f"working_size={working_size}, backend={self.pattern_backend.value}, "
            f"bordered={self.compositor.border_enabled}"
        )

    def run(self, data: bytes, should_abort: Optional[AbortCheck] = None) -> PipelineResult:
        """
        Run the full pipeline for one upload.

        Args:
            data: Raw encoded image bytes
            should_abort: Optional callable polled between steps

        Returns:
            PipelineResult describing both written artifacts

        Raises:
            InputRejectedError: Undecodable or too-small image (nothing written)
            PipelineAborted: should_abort() returned True (partials removed)
            PipelineError: Any processing or writing failure (partials removed)
        """
        request_id = self._id_factory()
        written: List[Path] = []
        start_time = time.time()

        try:
            result = self._run(request_id, data, should_abort, written)
        except MarkerForgeError as e:
            self.store.discard(written)
            self._emit(request_id, "failed", e.message, level="ERROR", error=e.details)
            raise
        except Exception as e:
            self.store.discard(written)
            self._emit(request_id, "failed", "unexpected pipeline error", level="ERROR", error=str(e))
            raise PipelineError("Marker generation failed.", details=str(e)) from e

        elapsed_ms = (time.time() - start_time) * 1000
        self._emit(
            request_id,
            "done",
            "artifacts written",
            elapsed_ms=round(elapsed_ms, 1),
            fallback_used=result.fallback_used,
        )
        return result

    def _run(
        self,
        request_id: str,
        data: bytes,
        should_abort: Optional[AbortCheck],
        written: List[Path],
    ) -> PipelineResult:
        self._check_abort(should_abort, request_id, "decode")
        source = decode_image(data)
        check_min_dimension(source, self.min_dimension)
        height, width = source.shape[:2]
        self._emit(request_id, "decode", "image decoded", width=width, height=height)

        if self.prescale_max_dimension is not None:
            source = prescale(source, self.prescale_max_dimension, self.prescale_target)

        self._check_abort(should_abort, request_id, "resample")
        working = resample(
            source,
            self.working_size,
            fit_mode=self.fit_mode,
            interpolation=self.interpolation,
            pad_color=self.pad_color,
        )
        del source
        self._emit(request_id, "resample", "working image ready", size=self.working_size)

        self._check_abort(should_abort, request_id, "compose")
        target = self.compositor.render(working)

        pattern_text: Optional[str] = None
        if self.pattern_backend == PatternBackend.PATT:
            pattern_text = PatternGrid.from_working_image(working).to_patt()
        del working

        self._check_abort(should_abort, request_id, "write_target")
        target_path = self.store.target_path(request_id, target.extension)
        written.append(target_path)
        self.store.write_bytes(target_path, target.data)
        self._emit(request_id, "target", "target image written", path=str(target_path))

        self._check_abort(should_abort, request_id, "write_pattern")
        marker_path = self.store.marker_path(request_id, self.pattern_backend.extension)
        written.append(marker_path)

        fallback_used = False
        if pattern_text is not None:
            self.store.write_text(marker_path, pattern_text)
        else:
            outcome = compile_with_fallback(
                self.compiler,
                target_path,
                marker_path,
                self.placeholder,
                sink=self.sink,
                request_id=request_id,
            )
            fallback_used = outcome.fallback_used
        self._emit(request_id, "pattern", "pattern artifact written", path=str(marker_path))

        # The compile step can outlive the deadline; nothing may be
        # reported once the caller has given up.
        self._check_abort(should_abort, request_id, "finish")

        return PipelineResult(
            request_id=request_id,
            marker_path=marker_path,
            target_path=target_path,
            pattern_backend=self.pattern_backend,
            fallback_used=fallback_used,
            working_size=self.working_size,
        )

    def _check_abort(self, should_abort: Optional[AbortCheck], request_id: str, stage: str) -> None:
        if should_abort is not None and should_abort():
            raise PipelineAborted(
                "Marker generation was cancelled.",
                details=f"aborted before {stage} (request {request_id})",
            )

    def _emit(self, request_id: str, stage: str, message: str, level: str = "INFO", **details) -> None:
        try:
            self.sink.emit(PipelineEvent(
                stage=stage,
                message=message,
                level=level,
                request_id=request_id,
                details=details,
            ))
        except Exception as e:
            logger.error(f"Event sink failed: {e}")


def build_pipeline(
    settings,
    sink: Optional[EventSink] = None,
    compiler: Optional[TrackingCompiler] = None,
    id_factory: RequestIdFactory = new_request_id,
) -> MarkerPipeline:
    """
    Create a MarkerPipeline from Settings.

    Args:
        settings: marker_forge.config.Settings
        sink: Event sink (default: logging only)
        compiler: Override the configured external compiler
        id_factory: Request id generator

    Returns:
        Configured MarkerPipeline (directories not yet provisioned)
    """
    pipeline_cfg = settings.pipeline
    border_cfg = settings.border

    store = ArtifactStore(
        root=settings.storage.root,
        markers_dir=settings.storage.markers_dir,
        targets_dir=settings.storage.targets_dir,
    )
    compositor = TargetCompositor(
        border_enabled=pipeline_cfg.border_enabled,
        jpeg_quality=pipeline_cfg.jpeg_quality,
        canvas_size=border_cfg.canvas_size,
        border_size=border_cfg.border_size,
        border_color=border_cfg.border_color,
        background_color=border_cfg.background_color,
        interpolation=pipeline_cfg.interpolation,
    )
    if compiler is None:
        compiler = ExternalTrackingCompiler(
            command=settings.compiler.command,
            timeout_seconds=settings.compiler.timeout_seconds,
            min_output_bytes=settings.compiler.min_output_bytes,
        )

    return MarkerPipeline(
        store=store,
        compositor=compositor,
        pattern_backend=pipeline_cfg.pattern_backend,
        fit_mode=pipeline_cfg.fit_mode,
        working_size=pipeline_cfg.working_size,
        interpolation=pipeline_cfg.interpolation,
        pad_color=pipeline_cfg.pad_color,
        min_dimension=pipeline_cfg.min_dimension,
        prescale_max_dimension=pipeline_cfg.prescale_max_dimension,
        prescale_target=pipeline_cfg.prescale_target,
        compiler=compiler,
        placeholder=settings.compiler.placeholder,
        sink=sink,
        id_factory=id_factory,
    )
