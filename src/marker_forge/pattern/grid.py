"""
Pattern Grid
============

Quantizes the working image into the 3 x 16 x 16 textual pattern
consumed by the marker tracker (.patt).

Sampling:
    Nearest-neighbour only. Grid cell (x, y) takes the working pixel at
    ((x * size) // 16, (y * size) // 16). For a 512px working image this
    is a 32px stride starting at the origin. No averaging: the tracker
    was calibrated against raw sampled intensities, and averaging would
    blur the transitions that keep patterns distinguishable.

Format:
    For channel in R, G, B:
        16 rows, each 16 values right-aligned to width 3, joined by
        single spaces, newline-terminated.
    One blank line after R and after G. Nothing after B.
    Exactly 48 data rows + 2 blank lines.
"""

import logging
from dataclasses import dataclass
from typing import List

import numpy as np


logger = logging.getLogger(__name__)


GRID_SIZE = 16
CHANNELS = 3
CHANNEL_NAMES = ("R", "G", "B")
VALUE_COUNT = CHANNELS * GRID_SIZE * GRID_SIZE


class PatternFormatError(ValueError):
    """Raised when pattern text cannot be parsed."""
    pass


def sample_indices(size: int, grid: int = GRID_SIZE) -> np.ndarray:
    """Source coordinates sampled for each of the grid cells along one axis."""
    return (np.arange(grid) * size) // grid


@dataclass(frozen=True, eq=False)
class PatternGrid:
    """
    3 x 16 x 16 unsigned byte intensities, channel-major (R, G, B).

    Attributes:
        data: np.ndarray of shape (3, 16, 16), dtype=uint8
    """

    data: np.ndarray

    def __post_init__(self) -> None:
        """Validate invariants."""
        if self.data.shape != (CHANNELS, GRID_SIZE, GRID_SIZE):
            raise ValueError(
                f"pattern grid must have shape {(CHANNELS, GRID_SIZE, GRID_SIZE)}, "
                f"got {self.data.shape}"
            )
        if self.data.dtype != np.uint8:
            raise ValueError(f"pattern grid must be uint8, got {self.data.dtype}")

    @classmethod
    def from_working_image(cls, working: np.ndarray) -> "PatternGrid":
        """
        Sample the working image down to 16 x 16 with nearest-neighbour.

        Args:
            working: RGB working image (H, W, 3), dtype=uint8

        Returns:
            PatternGrid of the sampled intensities
        """
        if working.ndim != 3 or working.shape[2] != CHANNELS:
            raise ValueError(f"expected RGB image (H, W, 3), got shape {working.shape}")

        height, width = working.shape[:2]
        rows = sample_indices(height)
        cols = sample_indices(width)

        # (16, 16, 3) -> (3, 16, 16)
        sampled = working[np.ix_(rows, cols)]
        grid = np.ascontiguousarray(np.transpose(sampled, (2, 0, 1)), dtype=np.uint8)
        return cls(grid)

    def channel(self, index: int) -> np.ndarray:
        """One 16 x 16 channel block."""
        return self.data[index]

    def values(self) -> List[int]:
        """All 768 values in serialization order."""
        return [int(v) for v in self.data.reshape(-1)]

    def to_patt(self) -> str:
        """Serialize to the textual pattern format."""
        blocks = []
        for channel in range(CHANNELS):
            rows = [
                " ".join(f"{int(v):>3}" for v in row)
                for row in self.channel(channel)
            ]
            blocks.append("".join(row + "\n" for row in rows))
        return "\n".join(blocks)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PatternGrid):
            return NotImplemented
        return bool(np.array_equal(self.data, other.data))

    def __repr__(self) -> str:
        means = ", ".join(
            f"{name}={self.data[i].mean():.1f}" for i, name in enumerate(CHANNEL_NAMES)
        )
        return f"PatternGrid({means})"


def parse_patt(text: str) -> PatternGrid:
    """
    Parse pattern text back into a PatternGrid.

    Strict: requires exactly three blocks of 16 rows of 16 integers in
    [0, 255], separated by single blank lines.

    Args:
        text: Content of a .patt file

    Returns:
        Parsed PatternGrid

    Raises:
        PatternFormatError: On any structural or range violation
    """
    if not text.endswith("\n"):
        raise PatternFormatError("pattern text must end with a newline")

    blocks = text[:-1].split("\n\n")
    if len(blocks) != CHANNELS:
        raise PatternFormatError(f"expected {CHANNELS} channel blocks, got {len(blocks)}")

    grid = np.zeros((CHANNELS, GRID_SIZE, GRID_SIZE), dtype=np.uint8)
    for c, block in enumerate(blocks):
        rows = block.split("\n")
        if len(rows) != GRID_SIZE:
            raise PatternFormatError(
                f"channel {CHANNEL_NAMES[c]}: expected {GRID_SIZE} rows, got {len(rows)}"
            )
        for y, row in enumerate(rows):
            fields = row.split()
            if len(fields) != GRID_SIZE:
                raise PatternFormatError(
                    f"channel {CHANNEL_NAMES[c]} row {y}: "
                    f"expected {GRID_SIZE} fields, got {len(fields)}"
                )
            for x, field in enumerate(fields):
                if not (field.isascii() and field.isdigit()):
                    raise PatternFormatError(
                        f"channel {CHANNEL_NAMES[c]} row {y}: invalid value {field!r}"
                    )
                value = int(field)
                if value > 255:
                    raise PatternFormatError(
                        f"channel {CHANNEL_NAMES[c]} row {y}: value {value} out of range"
                    )
                grid[c, y, x] = value

    return PatternGrid(grid)
