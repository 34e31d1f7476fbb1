"""
Test Configuration
==================

Pytest fixtures and test configuration for MarkerForge.

Images are synthesized with numpy and encoded with OpenCV so tests
never depend on files outside the repository.
"""

import time

import cv2
import numpy as np
import pytest

from marker_forge.config import Settings
from marker_forge.storage import ArtifactStore


def make_rgb(width: int, height: int) -> np.ndarray:
    """Deterministic RGB test image with gradients and a checkerboard."""
    y, x = np.mgrid[0:height, 0:width]
    r = (x * 255) // max(width - 1, 1)
    g = (y * 255) // max(height - 1, 1)
    b = ((x // 37 + y // 29) % 2) * 200 + 27
    return np.stack([r, g, b], axis=-1).astype(np.uint8)


def solid_rgb(width: int, height: int, color=(200, 40, 90)) -> np.ndarray:
    image = np.empty((height, width, 3), dtype=np.uint8)
    image[:, :] = color
    return image


def encode(image: np.ndarray, ext: str = ".jpg") -> bytes:
    """Encode an RGB array as JPEG or PNG bytes."""
    ok, buf = cv2.imencode(ext, cv2.cvtColor(image, cv2.COLOR_RGB2BGR))
    assert ok
    return buf.tobytes()


def decode_rgb(data: bytes) -> np.ndarray:
    bgr = cv2.imdecode(np.frombuffer(data, np.uint8), cv2.IMREAD_COLOR)
    assert bgr is not None
    return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)


class FixedIds:
    """Request id factory yielding predictable ids."""

    def __init__(self, prefix: str = "req") -> None:
        self.prefix = prefix
        self.count = 0

    def __call__(self) -> str:
        self.count += 1
        return f"{self.prefix}-{self.count}"


class FailingCompiler:
    """Tracking compiler that always raises."""

    def __init__(self, exc: Exception = None) -> None:
        self.exc = exc or RuntimeError("native tracking library missing")
        self.calls = 0

    def compile(self, image_path, output_path) -> None:
        self.calls += 1
        raise self.exc


class FakeCompiler:
    """Tracking compiler that writes a deterministic blob."""

    def __init__(self, size: int = 256) -> None:
        self.size = size
        self.calls = 0

    def compile(self, image_path, output_path) -> None:
        self.calls += 1
        output_path.write_bytes(image_path.read_bytes()[: self.size].ljust(self.size, b"\0"))


class SlowCompiler:
    """Tracking compiler that takes a while, then succeeds."""

    def __init__(self, delay: float = 1.0, on_start=None) -> None:
        self.delay = delay
        self.on_start = on_start
        self.calls = 0

    def compile(self, image_path, output_path) -> None:
        self.calls += 1
        if self.on_start is not None:
            self.on_start()
        time.sleep(self.delay)
        output_path.write_bytes(b"\x01" * 256)


@pytest.fixture
def landscape_jpeg() -> bytes:
    """1000x800 JPEG source."""
    return encode(make_rgb(1000, 800), ".jpg")


@pytest.fixture
def square_png() -> bytes:
    """600x600 PNG source."""
    return encode(make_rgb(600, 600), ".png")


@pytest.fixture
def tiny_png() -> bytes:
    """Image below the default 300px minimum."""
    return encode(make_rgb(200, 120), ".png")


@pytest.fixture
def store(tmp_path) -> ArtifactStore:
    artifact_store = ArtifactStore(root=str(tmp_path / "public"))
    artifact_store.ensure_directories()
    return artifact_store


@pytest.fixture
def make_settings(tmp_path):
    """Factory for Settings rooted in a temporary directory."""

    def _make(**sections) -> Settings:
        data = {"storage": {"root": str(tmp_path / "public")}}
        for name, values in sections.items():
            data.setdefault(name, {}).update(values)
        return Settings.model_validate(data)

    return _make
