"""Structured event logging for gridcalc.

Provides an event schema, a filesystem NDJSON sink, and safe emit helpers
that never raise uncaught exceptions.
"""

from gridcalc.logging.events import (
    EventLevel,
    EventType,
    GridcalcEvent,
    emit,
    emit_error,
    emit_info,
    emit_warning,
    error_code_for,
    get_sink,
    set_project_dir,
)
from gridcalc.logging.sink import EventSink

__all__ = [
    "EventLevel",
    "EventSink",
    "EventType",
    "GridcalcEvent",
    "emit",
    "emit_error",
    "emit_info",
    "emit_warning",
    "error_code_for",
    "get_sink",
    "set_project_dir",
]
