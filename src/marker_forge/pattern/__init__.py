"""
Pattern Module
==============

Tracking-pattern artifacts.

Components:
    - PatternGrid / parse_patt: 3x16x16 textual grid (.patt backend)
    - TrackingCompiler: Protocol for external compilers (.mind backend)
    - ExternalTrackingCompiler: Subprocess-based compiler
    - compile_with_fallback: Placeholder-on-failure wrapper
"""

from marker_forge.pattern.grid import (
    GRID_SIZE,
    VALUE_COUNT,
    PatternFormatError,
    PatternGrid,
    parse_patt,
    sample_indices,
)
from marker_forge.pattern.compiler import (
    CompileOutcome,
    ExternalTrackingCompiler,
    TrackingCompiler,
    compile_with_fallback,
)

__all__ = [
    "GRID_SIZE",
    "VALUE_COUNT",
    "PatternGrid",
    "PatternFormatError",
    "parse_patt",
    "sample_indices",
    "TrackingCompiler",
    "ExternalTrackingCompiler",
    "CompileOutcome",
    "compile_with_fallback",
]
