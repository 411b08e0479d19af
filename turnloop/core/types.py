from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Union

JsonValue = Union[str, int, float, bool, None, list["JsonValue"], dict[str, "JsonValue"]]
JsonObject = dict[str, JsonValue]

REJECTED_BY_USER = "Tool execution was rejected by the user."
CANCELLED_BY_USER = "Tool execution was cancelled."


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True, slots=True)
class ToolInvocation:
    """A fully assembled tool call (stable once created)."""

    id: str
    name: str
    arguments: JsonObject
    raw_arguments: str = field(default="", compare=False)


@dataclass(frozen=True, slots=True)
class ToolOutcome:
    invocation_id: str
    content: str
    is_error: bool = False
    is_permission_denied: bool = False
    elapsed_ms: int | None = field(default=None, compare=False)

    @classmethod
    def rejected(cls, invocation_id: str) -> "ToolOutcome":
        return cls(invocation_id=invocation_id, content=REJECTED_BY_USER, is_error=True)

    @classmethod
    def cancelled(cls, invocation_id: str) -> "ToolOutcome":
        return cls(invocation_id=invocation_id, content=CANCELLED_BY_USER, is_error=True)


TurnContent = Union[str, ToolInvocation, ToolOutcome]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class Turn:
    """One role-tagged entry in a conversation.

    Invariants:
    - `tool` turns carry a ToolOutcome, and only `tool` turns do.
    - only `assistant` turns carry a ToolInvocation.
    """

    role: Role
    content: TurnContent
    timestamp: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if not isinstance(self.role, Role):
            object.__setattr__(self, "role", Role(self.role))

        if self.role is Role.TOOL and not isinstance(self.content, ToolOutcome):
            raise ValueError("tool turns must carry a ToolOutcome")
        if isinstance(self.content, ToolOutcome) and self.role is not Role.TOOL:
            raise ValueError("ToolOutcome content requires the tool role")
        if isinstance(self.content, ToolInvocation) and self.role is not Role.ASSISTANT:
            raise ValueError("ToolInvocation content requires the assistant role")
        if not isinstance(self.content, (str, ToolInvocation, ToolOutcome)):
            raise TypeError(f"unsupported turn content: {type(self.content).__name__}")

    @property
    def text(self) -> str | None:
        return self.content if isinstance(self.content, str) else None

    @property
    def invocation(self) -> ToolInvocation | None:
        return self.content if isinstance(self.content, ToolInvocation) else None

    @property
    def outcome(self) -> ToolOutcome | None:
        return self.content if isinstance(self.content, ToolOutcome) else None

    @classmethod
    def user(cls, text: str) -> "Turn":
        return cls(role=Role.USER, content=text)

    @classmethod
    def assistant(cls, text: str) -> "Turn":
        return cls(role=Role.ASSISTANT, content=text)

    @classmethod
    def system(cls, text: str) -> "Turn":
        return cls(role=Role.SYSTEM, content=text)

    @classmethod
    def for_invocation(cls, invocation: ToolInvocation) -> "Turn":
        return cls(role=Role.ASSISTANT, content=invocation)

    @classmethod
    def for_outcome(cls, outcome: ToolOutcome) -> "Turn":
        return cls(role=Role.TOOL, content=outcome)


@dataclass(frozen=True, slots=True)
class Usage:
    """Token counters reported by the backend for one model turn."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    model: str = ""
