"""Typed stream events produced by the SSE parser.

Events are transient: the orchestrator consumes them immediately and never
stores them in the conversation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from turnloop.core.types import Usage


@dataclass(frozen=True, slots=True)
class TextDelta:
    text: str


@dataclass(frozen=True, slots=True)
class ToolCallFragment:
    """A partial tool call keyed by its position within one model turn."""

    index: int
    id: str | None = None
    name: str | None = None
    arguments_delta: str = ""


@dataclass(frozen=True, slots=True)
class TurnComplete:
    usage: Usage | None = None
    finish_reason: str | None = None


StreamEvent = Union[TextDelta, ToolCallFragment, TurnComplete]
