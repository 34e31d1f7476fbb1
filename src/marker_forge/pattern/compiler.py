"""
Tracking Compiler
=================

Optional external feature compiler for the 'mind' pattern backend.

The compiler is a separate native tool (configured as an argv with
{input} and {output} placeholders). It is treated as a black box that
either produces a compiled tracking file or fails.

Fallback Policy:
    A compiler failure NEVER fails the request. The fixed placeholder
    sentinel is written in place of the compiled output, the failure is
    logged at ERROR and emitted as a pipeline event, and the request
    still succeeds with fallback_used=True.

Failures absorbed:
    - No command configured / executable not on PATH
    - Non-zero exit status
    - Timeout
    - Missing or implausibly small output
    - Any other exception raised while compiling
"""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from marker_forge.errors import TrackingCompilerError
from marker_forge.observability.events import EventSink, PipelineEvent


logger = logging.getLogger(__name__)


class TrackingCompiler(Protocol):
    """
    Protocol for tracking compilers.

    Implementations read the target image at image_path and write the
    compiled tracking data to output_path, raising TrackingCompilerError
    on failure.
    """

    def compile(self, image_path: Path, output_path: Path) -> None:
        ...


class ExternalTrackingCompiler:
    """
    Runs an external compiler executable as a subprocess.

    Attributes:
        command: argv template, e.g. ["mind-compile", "{input}", "-o", "{output}"]
        timeout_seconds: Maximum runtime before the compile is abandoned
        min_output_bytes: Smaller outputs are treated as failures
    """

    def __init__(
        self,
        command: Sequence[str] = (),
        timeout_seconds: float = 30.0,
        min_output_bytes: int = 100,
    ) -> None:
        self.command: List[str] = list(command)
        self.timeout_seconds = timeout_seconds
        self.min_output_bytes = min_output_bytes

        if self.command:
            logger.info(
                f"ExternalTrackingCompiler configured: {self.command[0]} "
                f"(timeout={timeout_seconds}s)"
            )
        else:
            logger.info("ExternalTrackingCompiler not configured, placeholder output only")

    @property
    def available(self) -> bool:
        """True if a command is configured and its executable is on PATH."""
        return bool(self.command) and shutil.which(self.command[0]) is not None

    def build_argv(self, image_path: Path, output_path: Path) -> List[str]:
        return [
            arg.replace("{input}", str(image_path)).replace("{output}", str(output_path))
            for arg in self.command
        ]

    def compile(self, image_path: Path, output_path: Path) -> None:
        """
        Compile image_path into output_path.

        Raises:
            TrackingCompilerError: On any failure
        """
        if not self.command:
            raise TrackingCompilerError("no tracking compiler command configured")
        if shutil.which(self.command[0]) is None:
            raise TrackingCompilerError(f"compiler executable not found: {self.command[0]}")

        argv = self.build_argv(image_path, output_path)
        try:
            completed = subprocess.run(
                argv,
                capture_output=True,
                timeout=self.timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired:
            raise TrackingCompilerError(
                f"compiler timed out after {self.timeout_seconds}s"
            )
        except OSError as e:
            raise TrackingCompilerError(f"compiler could not be started: {e}")

        if completed.returncode != 0:
            stderr = completed.stderr.decode("utf-8", errors="replace").strip()
            raise TrackingCompilerError(
                f"compiler exited with status {completed.returncode}: {stderr[-500:]}"
            )

        if not output_path.exists():
            raise TrackingCompilerError("compiler produced no output file")

        size = output_path.stat().st_size
        if size < self.min_output_bytes:
            raise TrackingCompilerError(
                f"compiled output too small ({size} bytes < {self.min_output_bytes})"
            )


@dataclass(frozen=True, slots=True)
class CompileOutcome:
    """
    Result of a compile attempt.

    Attributes:
        fallback_used: True if the placeholder was written
        detail: Failure description when fallback_used, else None
    """

    fallback_used: bool
    detail: Optional[str] = None


def compile_with_fallback(
    compiler: TrackingCompiler,
    image_path: Path,
    output_path: Path,
    placeholder: str,
    sink: Optional[EventSink] = None,
    request_id: Optional[str] = None,
) -> CompileOutcome:
    """
    Compile, writing the placeholder sentinel if the compiler fails.

    Args:
        compiler: Compiler to run
        image_path: Written target image
        output_path: Destination of the compiled tracking file
        placeholder: Sentinel text written on failure
        sink: Optional event sink for the failure event
        request_id: Request the compile belongs to

    Returns:
        CompileOutcome
    """
    try:
        compiler.compile(image_path, output_path)
        return CompileOutcome(fallback_used=False)
    except Exception as e:
        detail = str(e) or type(e).__name__
        logger.error(f"Tracking compiler failed for {request_id}, writing placeholder: {detail}")

    output_path.write_text(placeholder, encoding="utf-8")

    if sink is not None:
        sink.emit(PipelineEvent(
            stage="compile",
            message="tracking compiler failed, placeholder written",
            level="ERROR",
            request_id=request_id,
            details={"error": detail},
        ))
    return CompileOutcome(fallback_used=True, detail=detail)
