#!/usr/bin/env python3
"""
Offline Marker Generation
=========================

Run the marker pipeline on a local image without starting the server.

This script:
    1. Loads the service configuration (config.yaml + environment)
    2. Applies command-line overrides
    3. Writes the pattern and target artifacts under --out
    4. Reports what was written

Usage:
    python scripts/generate_marker.py photo.jpg
    python scripts/generate_marker.py photo.png --fit-mode inside --border
    python scripts/generate_marker.py photo.jpg --backend mind --out ./public
"""

import argparse
import logging
import os
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from pydantic import ValidationError

from marker_forge.config import Settings, load_config
from marker_forge.errors import MarkerForgeError
from marker_forge.models.pipeline import FitMode, PatternBackend
from marker_forge.observability import MemoryEventSink
from marker_forge.pipeline import build_pipeline


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """
    Merge command-line overrides into settings.

    Overrides are validated the same way as config.yaml values.

    Raises:
        pydantic.ValidationError: An override is out of range
    """
    pipeline_updates = {}
    if args.fit_mode:
        pipeline_updates["fit_mode"] = args.fit_mode
    if args.working_size is not None:
        pipeline_updates["working_size"] = args.working_size
    if args.border:
        pipeline_updates["border_enabled"] = True
    if args.backend:
        pipeline_updates["pattern_backend"] = args.backend

    data = settings.model_dump()
    data["pipeline"].update(pipeline_updates)
    if args.out:
        data["storage"]["root"] = args.out
    return Settings.model_validate(data)


def generate(args: argparse.Namespace) -> int:
    """
    Generate one marker.

    Returns:
        Process exit code
    """
    try:
        settings = apply_overrides(load_config(args.config), args)
    except ValidationError as e:
        logger.error(f"❌ Invalid option: {e}")
        return 1

    events = MemoryEventSink()
    pipeline = build_pipeline(settings, sink=events)
    pipeline.store.ensure_directories()

    data = Path(args.image).read_bytes()
    logger.info("=" * 60)
    logger.info(f"Source: {args.image} ({len(data)} bytes)")
    logger.info(
        f"Policy: fit={pipeline.fit_mode.value}, size={pipeline.working_size}, "
        f"border={pipeline.compositor.border_enabled}, backend={pipeline.pattern_backend.value}"
    )
    logger.info("=" * 60)

    try:
        result = pipeline.run(data)
    except MarkerForgeError as e:
        logger.error(f"❌ {e.code.value}: {e.message} ({e.details})")
        return 1

    for event in events.for_request(result.request_id):
        logger.info(f"  {event.stage:<10} {event.message} {event.details or ''}")

    logger.info("-" * 40)
    for key, value in result.to_dict().items():
        logger.info(f"{key:<16} {value}")
    if result.fallback_used:
        logger.warning("Tracking compiler failed, placeholder marker written")
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Generate an AR marker pattern and target image from a local file"
    )
    parser.add_argument("image", type=str, help="Path to a JPEG or PNG image")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config.yaml (default: search common locations)",
    )
    parser.add_argument(
        "--out",
        type=str,
        default=None,
        help="Artifact root directory (default: storage.root from config)",
    )
    parser.add_argument(
        "--fit-mode",
        choices=[m.value for m in FitMode],
        default=None,
        help="Override the fit mode",
    )
    parser.add_argument(
        "--working-size",
        type=int,
        default=None,
        help="Override the working resolution",
    )
    parser.add_argument(
        "--border",
        action="store_true",
        help="Compose a bordered PNG target",
    )
    parser.add_argument(
        "--backend",
        choices=[b.value for b in PatternBackend],
        default=None,
        help="Override the pattern backend",
    )

    args = parser.parse_args()
    sys.exit(generate(args))


if __name__ == "__main__":
    main()
