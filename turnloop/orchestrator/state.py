from __future__ import annotations

from enum import Enum

from typing_extensions import TypedDict

from turnloop.core.types import ToolInvocation


class TurnState(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    EXECUTING_TOOL = "executing_tool"
    CANCELLED = "cancelled"


class CycleState(TypedDict, total=False):
    # Invocations cleared to run without further confirmation.
    ready: list[ToolInvocation]
