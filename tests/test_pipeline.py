"""
Pipeline Tests
==============

End-to-end runs of the marker pipeline against a temporary store.
"""

import threading

import numpy as np
import pytest

from marker_forge.errors import (
    ImageDecodeError,
    ImageTooSmallError,
    PipelineAborted,
    PipelineError,
)
from marker_forge.imaging.compositor import TargetCompositor
from marker_forge.imaging.decoder import decode_image
from marker_forge.imaging.resampler import resample
from marker_forge.models.pipeline import FitMode, PatternBackend
from marker_forge.observability import MemoryEventSink
from marker_forge.pattern.compiler import ExternalTrackingCompiler
from marker_forge.pattern.grid import PatternGrid, parse_patt
from marker_forge.pipeline import MarkerPipeline, build_pipeline
from marker_forge.storage import ArtifactStore

from conftest import (
    FailingCompiler,
    FakeCompiler,
    FixedIds,
    SlowCompiler,
    decode_rgb,
    encode,
    make_rgb,
)


def artifact_files(store: ArtifactStore):
    return sorted(p.name for p in store.markers_dir.iterdir()) + sorted(
        p.name for p in store.targets_dir.iterdir()
    )


class TestPattBackend:
    """Default configuration: cover, 512, plain JPEG, .patt."""

    def test_writes_both_artifacts(self, store, landscape_jpeg):
        pipeline = MarkerPipeline(store=store, id_factory=FixedIds())

        result = pipeline.run(landscape_jpeg)

        assert result.request_id == "req-1"
        assert result.marker_path == store.markers_dir / "req-1.patt"
        assert result.target_path == store.targets_dir / "req-1.jpg"
        assert result.marker_path.exists()
        assert result.target_path.exists()
        assert result.fallback_used is False
        assert result.pattern_backend == PatternBackend.PATT

    def test_result_export(self, store, landscape_jpeg):
        result = MarkerPipeline(store=store, id_factory=FixedIds()).run(landscape_jpeg)

        assert result.to_dict() == {
            "request_id": "req-1",
            "marker_path": str(store.markers_dir / "req-1.patt"),
            "target_path": str(store.targets_dir / "req-1.jpg"),
            "pattern_backend": "patt",
            "fallback_used": False,
            "working_size": 512,
        }

    def test_pattern_format(self, store, landscape_jpeg):
        result = MarkerPipeline(store=store).run(landscape_jpeg)

        text = result.marker_path.read_text(encoding="utf-8")
        lines = text.split("\n")[:-1]
        assert len([line for line in lines if line]) == 48
        assert len([line for line in lines if not line]) == 2
        assert len(parse_patt(text).values()) == 768

    def test_pattern_samples_working_image(self, store, landscape_jpeg):
        """1000x800 cover -> 512x512 working image, sampled at a 32px stride."""
        result = MarkerPipeline(store=store).run(landscape_jpeg)

        working = resample(decode_image(landscape_jpeg), 512, FitMode.COVER)
        grid = parse_patt(result.marker_path.read_text(encoding="utf-8"))

        assert grid == PatternGrid.from_working_image(working)
        assert grid.values()[:16] == [int(working[0, x * 32, 0]) for x in range(16)]

    def test_target_is_working_image(self, store, landscape_jpeg):
        result = MarkerPipeline(store=store).run(landscape_jpeg)

        target = decode_rgb(result.target_path.read_bytes())
        assert target.shape == (512, 512, 3)

    @pytest.mark.parametrize("fit_mode", list(FitMode))
    @pytest.mark.parametrize("size", [(1000, 800), (300, 900), (2400, 2400)])
    def test_shape_independent_of_source(self, store, fit_mode, size):
        data = encode(make_rgb(*size), ".png")

        result = MarkerPipeline(store=store, fit_mode=fit_mode).run(data)

        text = result.marker_path.read_text(encoding="utf-8")
        assert parse_patt(text).data.shape == (3, 16, 16)
        assert decode_rgb(result.target_path.read_bytes()).shape == (512, 512, 3)


class TestDeterminism:
    """Identical input + configuration -> byte-identical artifacts."""

    @pytest.mark.parametrize("border_enabled", [False, True])
    def test_rerun_is_byte_identical(self, tmp_path, landscape_jpeg, border_enabled):
        results = []
        for name in ("a", "b"):
            store = ArtifactStore(root=str(tmp_path / name))
            store.ensure_directories()
            pipeline = MarkerPipeline(
                store=store,
                compositor=TargetCompositor(border_enabled=border_enabled),
                id_factory=FixedIds(),
            )
            results.append(pipeline.run(landscape_jpeg))

        first, second = results
        assert first.marker_path.read_bytes() == second.marker_path.read_bytes()
        assert first.target_path.read_bytes() == second.target_path.read_bytes()

    def test_distinct_ids_per_run(self, store, square_png):
        pipeline = MarkerPipeline(store=store)

        first = pipeline.run(square_png)
        second = pipeline.run(square_png)

        assert first.request_id != second.request_id
        assert first.marker_path.read_bytes() == second.marker_path.read_bytes()


class TestBorderedTarget:

    def test_bordered_png(self, store, square_png):
        pipeline = MarkerPipeline(
            store=store,
            compositor=TargetCompositor(border_enabled=True, canvas_size=512, border_size=40),
        )

        result = pipeline.run(square_png)

        assert result.target_path.suffix == ".png"
        image = decode_rgb(result.target_path.read_bytes())
        assert image.shape == (512, 512, 3)
        assert tuple(image[39, 39]) == (0, 0, 0)
        assert tuple(image[0, 0]) == (0, 0, 0)


class TestInputRejection:
    """Rejected inputs never leave artifacts behind."""

    def test_too_small(self, store, tiny_png):
        with pytest.raises(ImageTooSmallError):
            MarkerPipeline(store=store).run(tiny_png)
        assert artifact_files(store) == []

    def test_corrupt_bytes(self, store):
        with pytest.raises(ImageDecodeError):
            MarkerPipeline(store=store).run(b"\x89PNG\r\n\x1a\nnot really a png")
        assert artifact_files(store) == []

    def test_min_dimension_configurable(self, store, tiny_png):
        result = MarkerPipeline(store=store, min_dimension=100).run(tiny_png)
        assert result.marker_path.exists()


class TestAbort:
    """Cancellation between steps."""

    def test_abort_before_pattern_removes_target(self, store, landscape_jpeg):
        calls = []

        def should_abort():
            calls.append(1)
            # decode, resample, compose, write_target, write_pattern
            return len(calls) >= 5

        with pytest.raises(PipelineAborted):
            MarkerPipeline(store=store).run(landscape_jpeg, should_abort=should_abort)

        assert len(calls) == 5
        assert artifact_files(store) == []

    def test_abort_before_start(self, store, landscape_jpeg):
        with pytest.raises(PipelineAborted):
            MarkerPipeline(store=store).run(landscape_jpeg, should_abort=lambda: True)
        assert artifact_files(store) == []

    def test_abort_after_last_write_removes_both(self, store, landscape_jpeg):
        calls = []

        def should_abort():
            calls.append(1)
            return len(calls) >= 6

        with pytest.raises(PipelineAborted) as exc_info:
            MarkerPipeline(store=store).run(landscape_jpeg, should_abort=should_abort)

        assert "finish" in exc_info.value.details
        assert artifact_files(store) == []

    def test_deadline_passes_during_compile(self, store, landscape_jpeg):
        expired = threading.Event()
        compiler = SlowCompiler(delay=0.05, on_start=expired.set)
        pipeline = MarkerPipeline(
            store=store,
            pattern_backend=PatternBackend.MIND,
            compiler=compiler,
        )

        with pytest.raises(PipelineAborted):
            pipeline.run(landscape_jpeg, should_abort=expired.is_set)

        assert compiler.calls == 1
        assert artifact_files(store) == []

    def test_no_abort(self, store, landscape_jpeg):
        result = MarkerPipeline(store=store).run(landscape_jpeg, should_abort=lambda: False)
        assert result.marker_path.exists()


class TestPipelineFailure:

    def test_unexpected_error_is_wrapped(self, store, landscape_jpeg):
        class BrokenCompositor(TargetCompositor):
            def render(self, working):
                raise RuntimeError("unsupported color space")

        pipeline = MarkerPipeline(store=store, compositor=BrokenCompositor())

        with pytest.raises(PipelineError) as exc_info:
            pipeline.run(landscape_jpeg)

        assert "unsupported color space" in exc_info.value.details
        assert artifact_files(store) == []

    def test_failure_after_target_discards_target(self, store, landscape_jpeg, monkeypatch):
        def broken_write_text(path, text):
            raise OSError("disk full")

        monkeypatch.setattr(store, "write_text", broken_write_text)

        with pytest.raises(PipelineError):
            MarkerPipeline(store=store).run(landscape_jpeg)
        assert artifact_files(store) == []


class TestMindBackend:
    """External compiler with placeholder fallback."""

    def test_compiler_failure_falls_back(self, store, landscape_jpeg):
        sink = MemoryEventSink()
        compiler = FailingCompiler()
        pipeline = MarkerPipeline(
            store=store,
            pattern_backend=PatternBackend.MIND,
            compiler=compiler,
            placeholder="PLACEHOLDER\n",
            sink=sink,
        )

        result = pipeline.run(landscape_jpeg)

        assert compiler.calls == 1
        assert result.fallback_used is True
        assert result.marker_path.suffix == ".mind"
        assert result.marker_path.read_text(encoding="utf-8") == "PLACEHOLDER\n"
        assert result.target_path.exists()

        errors = [e for e in sink.for_request(result.request_id) if e.level == "ERROR"]
        assert len(errors) == 1
        assert errors[0].stage == "compile"
        assert "native tracking library missing" in errors[0].details["error"]

    def test_unconfigured_compiler_falls_back(self, store, landscape_jpeg):
        pipeline = MarkerPipeline(
            store=store,
            pattern_backend=PatternBackend.MIND,
            compiler=ExternalTrackingCompiler(command=[]),
        )

        result = pipeline.run(landscape_jpeg)
        assert result.fallback_used is True

    def test_compiler_success(self, store, landscape_jpeg):
        compiler = FakeCompiler(size=256)
        pipeline = MarkerPipeline(store=store, pattern_backend="mind", compiler=compiler)

        result = pipeline.run(landscape_jpeg)

        assert result.fallback_used is False
        assert result.marker_path.stat().st_size == 256


class TestBuildPipeline:

    def test_from_settings(self, make_settings):
        settings = make_settings(
            pipeline={"fit_mode": "inside", "working_size": 480, "border_enabled": True},
        )

        pipeline = build_pipeline(settings)

        assert pipeline.fit_mode == FitMode.INSIDE
        assert pipeline.working_size == 480
        assert pipeline.compositor.border_enabled is True
        assert pipeline.compositor.border_size == 40

    def test_events_emitted(self, make_settings, square_png):
        sink = MemoryEventSink()
        pipeline = build_pipeline(make_settings(), sink=sink)
        pipeline.store.ensure_directories()

        result = pipeline.run(square_png)

        stages = [e.stage for e in sink.for_request(result.request_id)]
        assert stages == ["decode", "resample", "target", "pattern", "done"]
