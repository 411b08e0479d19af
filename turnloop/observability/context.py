"""Per-turn logging context.

The orchestrator binds one `LogContext` per user turn and updates its state
on every transition; the JSON formatter attaches the fields to each record.
"""

from __future__ import annotations

import secrets
from contextvars import ContextVar
from dataclasses import dataclass, replace


@dataclass(frozen=True, slots=True)
class LogContext:
    session_id: str | None = None
    trace_id: str | None = None
    turn_id: int | None = None
    state: str | None = None
    errors: tuple[str, ...] = ()

    def as_fields(self) -> dict[str, object]:
        out: dict[str, object] = {}
        for key in ("trace_id", "session_id", "turn_id", "state"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        if self.errors:
            out["errors"] = list(self.errors)
        return out


_current: ContextVar[LogContext] = ContextVar("turnloop_log_context", default=LogContext())


def new_trace_id() -> str:
    return secrets.token_hex(16)


def new_session_id() -> str:
    return secrets.token_hex(12)


def current() -> LogContext:
    return _current.get()


def bind_context(*, trace_id: str, session_id: str, turn_id: int) -> None:
    """Start a new turn scope. Errors reset; the last known state carries over."""

    _current.set(LogContext(session_id=session_id, trace_id=trace_id, turn_id=turn_id, state=_current.get().state))


def set_state(state: str) -> None:
    _current.set(replace(_current.get(), state=state))


def add_error(message: str) -> None:
    ctx = _current.get()
    _current.set(replace(ctx, errors=(*ctx.errors, message)))


def snapshot() -> dict[str, object]:
    return _current.get().as_fields()
