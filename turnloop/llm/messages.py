from __future__ import annotations

import json
from datetime import date
from typing import Any, Sequence

from turnloop.core.types import Role, ToolInvocation, Turn


def system_prompt_with_date(prompt: str, today: date) -> str:
    return f"{prompt}\n\nCurrent Date: {today.isoformat()}"


def tool_call_entry(invocation: ToolInvocation) -> dict[str, Any]:
    return {
        "id": invocation.id,
        "type": "function",
        "function": {
            "name": invocation.name,
            "arguments": json.dumps(invocation.arguments, ensure_ascii=False),
        },
    }


def build_messages(turns: Sequence[Turn], *, system_prompt: str | None = None) -> list[dict[str, Any]]:
    """Convert a turn history into OpenAI-compatible chat messages.

    An assistant text turn followed by invocation turns, or a run of
    consecutive invocation turns, becomes one assistant message carrying
    `tool_calls`. Each tool turn becomes a `tool` message.
    """

    messages: list[dict[str, Any]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})

    # The assistant message currently open for tool_calls, if any.
    open_call: dict[str, Any] | None = None

    for turn in turns:
        invocation = turn.invocation
        if invocation is not None:
            if open_call is None:
                prev = messages[-1] if messages else None
                if prev is not None and prev["role"] == "assistant" and "tool_calls" not in prev:
                    open_call = prev
                else:
                    open_call = {"role": "assistant", "content": None}
                    messages.append(open_call)
                open_call["tool_calls"] = []
            open_call["tool_calls"].append(tool_call_entry(invocation))
            continue

        open_call = None
        outcome = turn.outcome
        if outcome is not None:
            messages.append(
                {
                    "role": "tool",
                    "tool_call_id": outcome.invocation_id,
                    "content": outcome.content,
                }
            )
        elif turn.role is Role.SYSTEM:
            messages.append({"role": "system", "content": turn.text or ""})
        else:
            messages.append({"role": turn.role.value, "content": turn.text or ""})

    return messages
