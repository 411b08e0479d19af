from __future__ import annotations

from .context import (
    LogContext,
    add_error,
    bind_context,
    current,
    new_session_id,
    new_trace_id,
    set_state,
    snapshot,
)
from .logging import configure_logging, get_logger

__all__ = [
    "LogContext",
    "add_error",
    "bind_context",
    "configure_logging",
    "current",
    "get_logger",
    "new_session_id",
    "new_trace_id",
    "set_state",
    "snapshot",
]
