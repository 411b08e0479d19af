"""Scripted collaborators shared by the test suite."""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Sequence

from turnloop.core.errors import TransportError
from turnloop.core.types import JsonObject, Turn, Usage
from turnloop.llm.backend import BackendRequest
from turnloop.tools.catalog import ToolDescriptor

DONE = "data: [DONE]"


def sse(payload: dict[str, Any]) -> str:
    return "data: " + json.dumps(payload)


def text(content: str) -> str:
    return sse({"choices": [{"index": 0, "delta": {"content": content}}]})


def tool_call(index: int, *, id: str | None = None, name: str | None = None, args: str = "") -> str:
    fn: dict[str, Any] = {"arguments": args}
    if name is not None:
        fn["name"] = name
    tc: dict[str, Any] = {"index": index, "function": fn}
    if id is not None:
        tc["id"] = id
        tc["type"] = "function"
    return sse({"choices": [{"index": 0, "delta": {"tool_calls": [tc]}}]})


def finish(reason: str = "stop") -> str:
    return sse({"choices": [{"index": 0, "delta": {}, "finish_reason": reason}]})


def usage(prompt: int, completion: int, *, model: str = "gpt-4o-mini") -> str:
    return sse(
        {
            "model": model,
            "choices": [],
            "usage": {
                "prompt_tokens": prompt,
                "completion_tokens": completion,
                "total_tokens": prompt + completion,
            },
        }
    )


class ScriptedResponse:
    """Line-by-line response; optionally hangs or fails after its lines."""

    def __init__(
        self,
        lines: Sequence[str],
        *,
        status_code: int = 200,
        body: bytes = b"",
        hang: bool = False,
        fail_with: Exception | None = None,
    ) -> None:
        self.status_code = status_code
        self._lines = list(lines)
        self._body = body
        self._hang = hang
        self._fail_with = fail_with

    async def aread(self) -> bytes:
        return self._body

    async def aiter_lines(self) -> AsyncIterator[str]:
        for line in self._lines:
            await asyncio.sleep(0)
            yield line
        if self._fail_with is not None:
            raise self._fail_with
        if self._hang:
            await asyncio.Event().wait()


def reply(*lines: str) -> ScriptedResponse:
    """A complete stream: the given lines, a blank separator each, then [DONE]."""

    out: list[str] = []
    for line in (*lines, DONE):
        out.extend([line, ""])
    return ScriptedResponse(out)


def text_reply(content: str) -> ScriptedResponse:
    return reply(text(content), finish("stop"))


def tool_reply(*calls: tuple[str, str, JsonObject], content: str = "") -> ScriptedResponse:
    lines: list[str] = []
    if content:
        lines.append(text(content))
    for index, (call_id, name, args) in enumerate(calls):
        raw = json.dumps(args)
        half = len(raw) // 2
        lines.append(tool_call(index, id=call_id, name=name, args=raw[:half]))
        lines.append(tool_call(index, args=raw[half:]))
    lines.append(finish("tool_calls"))
    return reply(*lines)


def transport_failure(*lines: str, message: str = "connection reset") -> ScriptedResponse:
    return ScriptedResponse(list(lines), fail_with=TransportError(None, message))


class ScriptedBackend:
    model = "gpt-4o-mini"

    def __init__(self, *responses: ScriptedResponse) -> None:
        self._responses = list(responses)
        self.requests: list[BackendRequest] = []

    @asynccontextmanager
    async def open_stream(self, request: BackendRequest) -> AsyncIterator[ScriptedResponse]:
        self.requests.append(request)
        if not self._responses:
            raise AssertionError("backend called more often than scripted")
        yield self._responses.pop(0)


class RecordingSink:
    def __init__(self) -> None:
        self.snapshots: list[tuple[Turn, ...]] = []

    def on_turns_changed(self, turns: Sequence[Turn]) -> None:
        self.snapshots.append(tuple(turns))


class RecordingMeter:
    def __init__(self) -> None:
        self.usages: list[Usage] = []

    def record(self, usage: Usage) -> None:
        self.usages.append(usage)


class ToolCalls:
    """Records every call made to tools built by `tool()`."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, JsonObject]] = []

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def tool(
        self,
        name: str,
        *,
        output: Any = "ok",
        confirmation_required: bool = False,
        raises: Exception | None = None,
        block: asyncio.Event | None = None,
    ) -> ToolDescriptor:
        async def execute(arguments: JsonObject) -> Any:
            self.calls.append((name, arguments))
            if block is not None:
                await block.wait()
            if raises is not None:
                raise raises
            return output

        return ToolDescriptor(
            name=name,
            description=f"test tool {name}",
            execute=execute,
            parameters={"type": "object", "properties": {"q": {"type": "string"}}},
            confirmation_required=confirmation_required,
        )
