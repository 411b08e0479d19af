"""Conversation data model, error taxonomy and cancellation primitives."""

from __future__ import annotations

from .cancel import CancelToken
from .errors import (
    ConfigError,
    GenerationCancelled,
    OrchestratorBusyError,
    TransportError,
    TurnloopError,
    UnknownInvocationError,
)
from .types import JsonObject, JsonValue, Role, ToolInvocation, ToolOutcome, Turn, Usage

__all__ = [
    "CancelToken",
    "ConfigError",
    "GenerationCancelled",
    "JsonObject",
    "JsonValue",
    "OrchestratorBusyError",
    "Role",
    "ToolInvocation",
    "ToolOutcome",
    "TransportError",
    "Turn",
    "TurnloopError",
    "UnknownInvocationError",
    "Usage",
]
