"""
Pipeline Events
===============

Structured event sink the pipeline reports progress and failures to.

The pipeline never talks to a UI or transport directly. It emits
PipelineEvent records to an EventSink; what happens next is up to the
sink:
    - LoggingEventSink: forwards to the stdlib logging tree
    - MemoryEventSink: bounded, drop-oldest buffer served by /api/logs
    - CompositeEventSink: fan-out to several sinks

Design Rules:
    - Emitting an event never raises into the pipeline
    - Events are immutable once created
    - Memory is bounded (drops oldest on overflow)
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Iterable, List, Optional, Protocol


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PipelineEvent:
    """
    One structured pipeline event.

    Attributes:
        stage: Pipeline stage name ("decode", "resample", "pattern", ...)
        message: Human-readable description
        level: Log level name ("INFO", "WARNING", "ERROR")
        request_id: Request the event belongs to, if any
        timestamp: UNIX timestamp when the event was created
        details: Extra structured fields
    """

    stage: str
    message: str
    level: str = "INFO"
    request_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Export as dictionary for logging/serialization."""
        return {
            "timestamp": round(self.timestamp, 3),
            "level": self.level,
            "stage": self.stage,
            "message": self.message,
            "request_id": self.request_id,
            "details": dict(self.details),
        }


class EventSink(Protocol):
    """Anything that accepts pipeline events."""

    def emit(self, event: PipelineEvent) -> None:
        ...


class LoggingEventSink:
    """Forward events to a stdlib logger."""

    def __init__(self, logger_name: str = "marker_forge.pipeline") -> None:
        self._logger = logging.getLogger(logger_name)

    def emit(self, event: PipelineEvent) -> None:
        level = getattr(logging, event.level.upper(), logging.INFO)
        prefix = f"[{event.request_id}] " if event.request_id else ""
        suffix = f" {event.details}" if event.details else ""
        self._logger.log(level, f"{prefix}{event.stage}: {event.message}{suffix}")


class MemoryEventSink:
    """
    Bounded in-memory event log.

    Thread-safe: the pipeline runs in worker threads while the HTTP
    layer reads recent events from the event loop.

    Attributes:
        size: Number of events currently retained
        dropped_count: Events discarded due to overflow

    Example:
        sink = MemoryEventSink(maxsize=200)
        sink.emit(PipelineEvent(stage="decode", message="ok"))
        recent = sink.recent(limit=50)
    """

    def __init__(self, maxsize: int = 200) -> None:
        """
        Initialize event log.

        Args:
            maxsize: Maximum events to retain. Must be >= 1.
        """
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")

        self._maxsize = maxsize
        self._events: Deque[PipelineEvent] = deque()
        self._lock = threading.Lock()
        self._dropped_count: int = 0
        self._total_emitted: int = 0

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._events)

    @property
    def dropped_count(self) -> int:
        return self._dropped_count

    def emit(self, event: PipelineEvent) -> None:
        with self._lock:
            self._total_emitted += 1
            if len(self._events) >= self._maxsize:
                self._events.popleft()
                self._dropped_count += 1
            self._events.append(event)

    def recent(self, limit: Optional[int] = None) -> List[PipelineEvent]:
        """
        Most recent events, oldest first.

        Args:
            limit: Maximum number of events. None = all retained.
        """
        with self._lock:
            events = list(self._events)
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return events

    def for_request(self, request_id: str) -> List[PipelineEvent]:
        """All retained events of one request."""
        with self._lock:
            return [e for e in self._events if e.request_id == request_id]

    def clear(self) -> int:
        """
        Drop all retained events.

        Returns:
            Number of events cleared.
        """
        with self._lock:
            cleared = len(self._events)
            self._events.clear()
        return cleared

    def metrics(self) -> dict:
        """Sink metrics for observability."""
        with self._lock:
            size = len(self._events)
        return {
            "size": size,
            "maxsize": self._maxsize,
            "dropped_count": self._dropped_count,
            "total_emitted": self._total_emitted,
        }


class CompositeEventSink:
    """Fan an event out to several sinks."""

    def __init__(self, sinks: Iterable[EventSink]) -> None:
        self._sinks = list(sinks)

    def emit(self, event: PipelineEvent) -> None:
        for sink in self._sinks:
            try:
                sink.emit(event)
            except Exception as e:
                logger.error(f"Event sink {type(sink).__name__} failed: {e}")
