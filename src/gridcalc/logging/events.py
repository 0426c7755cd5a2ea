"""Unified event schema and module-level emit helpers.

All timestamps use UTC ISO-8601 with ``Z`` suffix.  The ``emit()``
family of functions is safe to call from any context -- failures are
swallowed and printed to stderr.
"""

from __future__ import annotations

import sys
import time
import traceback
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class EventLevel(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"


class EventType(str, Enum):
    # Editing
    formula_rejected = "formula_rejected"
    cache_purged = "cache_purged"

    # Evaluation
    cell_eval_error = "cell_eval_error"
    cycle_detected = "cycle_detected"

    # Sheet files
    sheet_loaded = "sheet_loaded"
    sheet_saved = "sheet_saved"
    sheet_load_failed = "sheet_load_failed"


# ---------------------------------------------------------------------------
# Error codes
# ---------------------------------------------------------------------------

PARSE_ERROR = "parse_error"
SCAN_ERROR = "scan_error"
CIRCULAR_REFERENCE = "circular_reference"
DIVISION_BY_ZERO = "division_by_zero"
UNKNOWN_FUNCTION = "unknown_function"
UNKNOWN_REFERENCE = "unknown_reference"


def error_code_for(exc: BaseException) -> str | None:
    """Map a formula exception to its event error code."""
    from gridcalc.formulas.errors import (
        CircularEvaluationError,
        FormulaFunctionError,
        FormulaParseError,
        FormulaRefError,
        ScanError,
    )

    if isinstance(exc, CircularEvaluationError):
        return CIRCULAR_REFERENCE
    if isinstance(exc, ZeroDivisionError):
        return DIVISION_BY_ZERO
    if isinstance(exc, FormulaFunctionError):
        return UNKNOWN_FUNCTION
    if isinstance(exc, FormulaRefError):
        return UNKNOWN_REFERENCE
    if isinstance(exc, ScanError):
        return SCAN_ERROR
    if isinstance(exc, FormulaParseError):
        return PARSE_ERROR
    return None


# ---------------------------------------------------------------------------
# Event model
# ---------------------------------------------------------------------------


def _utc_now() -> str:
    """Return current UTC timestamp in ISO-8601 with Z suffix."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class GridcalcEvent(BaseModel):
    """A single structured log event."""

    schema_version: int = 1
    ts: str = Field(default_factory=_utc_now)
    level: EventLevel
    event_type: EventType
    context: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    error_code: str | None = None


# ---------------------------------------------------------------------------
# Module-level sink reference
# ---------------------------------------------------------------------------

# Lazily initialised when ``set_project_dir`` is called.
_sink: Any = None  # EventSink | None


def set_project_dir(project_dir: Path | str | None) -> None:
    """Configure the module-level event sink for a project directory.

    Call early in a CLI command.  If it is never called, ``emit()``
    silently discards events.  Passing None detaches the sink.

    Reads ``logging_fsync`` and ``logging_tail_bytes`` from the project
    config (``gridcalc.yaml``) to configure the sink.
    """
    global _sink
    from gridcalc.config import load_config
    from gridcalc.logging.sink import EventSink

    if project_dir is None:
        _sink = None
        return

    project_dir = Path(project_dir)
    cfg = load_config(project_dir)
    _sink = EventSink(
        project_dir,
        fsync=bool(cfg["logging_fsync"]),
        tail_bytes=int(cfg["logging_tail_bytes"]),
    )


def get_sink() -> Any:
    """Return the module-level sink, or None."""
    return _sink


# ---------------------------------------------------------------------------
# Rate-limited stderr warnings
# ---------------------------------------------------------------------------

_last_stderr_ts: float = 0.0
_STDERR_INTERVAL_SECS = 60.0


def _stderr_warning(msg: str) -> None:
    """Print a warning to stderr, rate-limited to one per 60 seconds."""
    global _last_stderr_ts
    now = time.monotonic()
    if now - _last_stderr_ts < _STDERR_INTERVAL_SECS:
        return
    _last_stderr_ts = now
    try:
        print(f"[gridcalc] {msg}", file=sys.stderr)
    except Exception:
        pass


# ---------------------------------------------------------------------------
# Safe emit helpers
# ---------------------------------------------------------------------------


def emit(event: GridcalcEvent) -> None:
    """Write an event to the project event log.

    **Never raises.**  On failure, prints a rate-limited warning to stderr.
    """
    try:
        sink = get_sink()
        if sink is None:
            return
        sink.write(event)
    except Exception:
        _stderr_warning(f"logging failed: {traceback.format_exc()}")


def emit_info(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
) -> None:
    """Convenience: emit an info-level event."""
    emit(
        GridcalcEvent(
            level=EventLevel.info,
            event_type=event_type,
            message=message,
            context=context or {},
        )
    )


def emit_warning(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
) -> None:
    """Convenience: emit a warning-level event."""
    emit(
        GridcalcEvent(
            level=EventLevel.warning,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        )
    )


def emit_error(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
) -> None:
    """Convenience: emit an error-level event."""
    emit(
        GridcalcEvent(
            level=EventLevel.error,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        )
    )
