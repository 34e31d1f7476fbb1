"""
Artifact Store
==============

Filesystem layout for generated artifacts.

Layout:
    <root>/<markers_dir>/<request_id>.<patt|mind>
    <root>/<targets_dir>/<request_id>.<jpg|png>

Design Rules:
    - One distinct path per request id, so requests never contend
    - Writes go to a temporary sibling and are renamed into place
    - Artifacts of a failed request are discarded, never referenced
    - No retention policy: files are kept until removed externally
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, Optional


logger = logging.getLogger(__name__)


class ArtifactStore:
    """
    Writes pattern and target artifacts under a public root.

    Attributes:
        root: Public root directory
        markers_dir: Directory holding pattern artifacts
        targets_dir: Directory holding target images

    Example:
        store = ArtifactStore("./public")
        store.ensure_directories()
        path = store.target_path("1770500938284-42", "jpg")
        store.write_bytes(path, data)
    """

    def __init__(
        self,
        root: str = "./public",
        markers_dir: str = "markers",
        targets_dir: str = "targets",
    ) -> None:
        self.root = Path(root)
        self.markers_dir = self.root / markers_dir
        self.targets_dir = self.root / targets_dir

    def ensure_directories(self) -> None:
        """Create root, markers and targets directories if missing."""
        for directory in (self.root, self.markers_dir, self.targets_dir):
            directory.mkdir(parents=True, exist_ok=True)
        logger.info(f"Artifact directories ready under {self.root.resolve()}")

    def marker_path(self, request_id: str, extension: str) -> Path:
        return self.markers_dir / f"{_safe_stem(request_id)}.{extension}"

    def target_path(self, request_id: str, extension: str) -> Path:
        return self.targets_dir / f"{_safe_stem(request_id)}.{extension}"

    def write_bytes(self, path: Path, data: bytes) -> Path:
        """
        Atomically write bytes to path.

        Returns:
            The written path
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return path

    def write_text(self, path: Path, text: str) -> Path:
        """Atomically write UTF-8 text to path."""
        return self.write_bytes(path, text.encode("utf-8"))

    def discard(self, paths: Iterable[Optional[Path]]) -> int:
        """
        Remove artifacts of a failed request.

        Returns:
            Number of files removed
        """
        removed = 0
        for path in paths:
            if path is None:
                continue
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Could not discard artifact {path}: {e}")
        if removed:
            logger.info(f"Discarded {removed} partial artifact(s)")
        return removed


def _safe_stem(request_id: str) -> str:
    if not request_id or "/" in request_id or "\\" in request_id or request_id.startswith("."):
        raise ValueError(f"invalid request id: {request_id!r}")
    return request_id
