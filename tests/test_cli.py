"""
Offline CLI Tests
=================

scripts/generate_marker.py driven with parsed arguments.
"""

import argparse
import importlib.util
from pathlib import Path

import pytest
from pydantic import ValidationError

from marker_forge.config import Settings
from marker_forge.models.pipeline import FitMode

from conftest import encode, make_rgb


SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "generate_marker.py"


@pytest.fixture(scope="module")
def cli():
    spec = importlib.util.spec_from_file_location("generate_marker", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("logging:\n  format: text\n")
    return str(path)


def make_args(**overrides) -> argparse.Namespace:
    values = {
        "image": None,
        "config": None,
        "out": None,
        "fit_mode": None,
        "working_size": None,
        "border": False,
        "backend": None,
    }
    values.update(overrides)
    return argparse.Namespace(**values)


class TestOverrides:

    def test_applies_values(self, cli, tmp_path):
        settings = cli.apply_overrides(
            Settings(),
            make_args(fit_mode="inside", working_size=256, border=True, out=str(tmp_path)),
        )

        assert settings.pipeline.fit_mode == FitMode.INSIDE
        assert settings.pipeline.working_size == 256
        assert settings.pipeline.border_enabled is True
        assert settings.storage.root == str(tmp_path)

    def test_out_of_range_size_rejected(self, cli):
        with pytest.raises(ValidationError):
            cli.apply_overrides(Settings(), make_args(working_size=8))


class TestGenerate:

    def test_writes_artifacts(self, cli, tmp_path, config_file):
        image = tmp_path / "photo.png"
        image.write_bytes(encode(make_rgb(600, 400), ".png"))
        out = tmp_path / "public"

        code = cli.generate(make_args(image=str(image), config=config_file, out=str(out)))

        assert code == 0
        assert len(list((out / "markers").glob("*.patt"))) == 1
        assert len(list((out / "targets").glob("*.jpg"))) == 1

    def test_invalid_size_exits_with_error(self, cli, tmp_path, config_file):
        image = tmp_path / "photo.png"
        image.write_bytes(encode(make_rgb(600, 400), ".png"))

        code = cli.generate(
            make_args(image=str(image), config=config_file, out=str(tmp_path), working_size=8)
        )

        assert code == 1

    def test_rejected_image_exits_with_error(self, cli, tmp_path, config_file):
        image = tmp_path / "tiny.png"
        image.write_bytes(encode(make_rgb(120, 80), ".png"))

        code = cli.generate(make_args(image=str(image), config=config_file, out=str(tmp_path)))

        assert code == 1
