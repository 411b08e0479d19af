from __future__ import annotations

from .backend import BackendRequest, ModelBackend, OpenAICompatBackend
from .events import StreamEvent, TextDelta, ToolCallFragment, TurnComplete
from .messages import build_messages
from .sse import parse_stream
from .tool_call_accumulator import ToolCallAccumulator, assemble

__all__ = [
    "BackendRequest",
    "ModelBackend",
    "OpenAICompatBackend",
    "StreamEvent",
    "TextDelta",
    "ToolCallAccumulator",
    "ToolCallFragment",
    "TurnComplete",
    "assemble",
    "build_messages",
    "parse_stream",
]
