"""
Observability Module
====================

Structured pipeline events, decoupled from any transport.

Components:
    - PipelineEvent: Immutable event record
    - EventSink: Protocol every sink implements
    - LoggingEventSink: Forwards to stdlib logging
    - MemoryEventSink: Bounded buffer behind /api/logs
    - CompositeEventSink: Fan-out
"""

from marker_forge.observability.events import (
    CompositeEventSink,
    EventSink,
    LoggingEventSink,
    MemoryEventSink,
    PipelineEvent,
)

__all__ = [
    "PipelineEvent",
    "EventSink",
    "LoggingEventSink",
    "MemoryEventSink",
    "CompositeEventSink",
]
