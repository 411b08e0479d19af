"""Server-sent-events parser for OpenAI-compatible chat completion streams.

Wire format (one event per line, blank-line separated):

    data: {"choices":[{"delta":{"content":"Hi"}}]}
    data: {"choices":[{"delta":{},"finish_reason":"stop"}]}
    data: {"choices":[],"usage":{"prompt_tokens":9,"completion_tokens":2}}
    data: [DONE]

Malformed lines are skipped; the stream as a whole never fails on them.
"""

from __future__ import annotations

import json
from typing import Any, AsyncIterator, Protocol

from turnloop.core.cancel import CancelToken
from turnloop.core.errors import TransportError
from turnloop.core.types import Usage
from turnloop.observability import get_logger

from .events import StreamEvent, TextDelta, ToolCallFragment, TurnComplete

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"
COMMENT_PREFIX = ":"

_log = get_logger("turnloop.llm.sse")


class StreamResponse(Protocol):
    """The subset of `httpx.Response` the parser relies on."""

    status_code: int

    async def aread(self) -> bytes: ...

    def aiter_lines(self) -> AsyncIterator[str]: ...


def _error_message(body: bytes) -> str | None:
    text = body.decode("utf-8", errors="replace").strip()
    if not text:
        return None
    try:
        obj = json.loads(text)
    except json.JSONDecodeError:
        return text
    if isinstance(obj, dict):
        err = obj.get("error")
        if isinstance(err, dict) and isinstance(err.get("message"), str):
            return err["message"]
    return text


def parse_usage(payload: dict[str, Any], *, default_model: str = "") -> Usage | None:
    """Extract usage counters, or None when the payload carries none."""

    usage = payload.get("usage")
    if not isinstance(usage, dict):
        return None

    prompt = usage.get("prompt_tokens")
    completion = usage.get("completion_tokens")
    if not isinstance(prompt, int) or not isinstance(completion, int):
        return None

    total = usage.get("total_tokens")
    if not isinstance(total, int):
        total = prompt + completion

    model = payload.get("model")
    return Usage(
        prompt_tokens=prompt,
        completion_tokens=completion,
        total_tokens=total,
        model=model if isinstance(model, str) and model else default_model,
    )


def _fragments(tool_calls: Any) -> list[ToolCallFragment]:
    out: list[ToolCallFragment] = []
    if not isinstance(tool_calls, list):
        return out

    for tc in tool_calls:
        if not isinstance(tc, dict):
            continue
        index = tc.get("index")
        fn = tc.get("function")
        if not isinstance(fn, dict):
            fn = {}
        args = fn.get("arguments")
        out.append(
            ToolCallFragment(
                index=index if isinstance(index, int) else 0,
                id=tc.get("id") or None,
                name=fn.get("name") or None,
                arguments_delta=args if isinstance(args, str) else "",
            )
        )
    return out


def decode_payload(payload: dict[str, Any]) -> list[StreamEvent]:
    """Map one decoded `data:` payload to zero or more delta events.

    Completion is not emitted here; the caller decides when the turn ends.
    """

    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return []
    choice = choices[0]
    if not isinstance(choice, dict):
        return []

    delta = choice.get("delta")
    if not isinstance(delta, dict):
        return []

    events: list[StreamEvent] = []
    content = delta.get("content")
    if isinstance(content, str) and content:
        events.append(TextDelta(content))
    events.extend(_fragments(delta.get("tool_calls")))
    return events


async def parse_stream(
    response: StreamResponse,
    *,
    cancel: CancelToken | None = None,
    default_model: str = "",
) -> AsyncIterator[StreamEvent]:
    """Decode a streaming response into events.

    Exactly one `TurnComplete` is yielded, always last. It carries the most
    recent usage counters and finish reason seen on the stream.

    Raises:
        TransportError: non-2xx status, before any event is yielded; or a
            read failure before any finish_reason. A failure after the finish
            marker ends the turn normally.
        GenerationCancelled: the cancel token was set while reading.
    """

    if not 200 <= response.status_code < 300:
        body = await response.aread()
        raise TransportError(response.status_code, _error_message(body))

    usage: Usage | None = None
    finish_reason: str | None = None

    try:
        async for raw_line in response.aiter_lines():
            if cancel is not None:
                cancel.raise_if_cancelled()

            line = raw_line.rstrip("\r")
            if not line or line.startswith(COMMENT_PREFIX):
                continue
            if not line.startswith(DATA_PREFIX):
                continue

            data = line[len(DATA_PREFIX) :].strip()
            if data == DONE_SENTINEL:
                break

            try:
                payload = json.loads(data)
            except json.JSONDecodeError as exc:
                _log.warning("malformed_event", error=str(exc), line=data[:200])
                continue
            if not isinstance(payload, dict):
                _log.warning("malformed_event", error="payload is not an object", line=data[:200])
                continue

            seen = parse_usage(payload, default_model=default_model)
            if seen is not None:
                usage = seen

            for event in decode_payload(payload):
                yield event

            choices = payload.get("choices")
            if isinstance(choices, list) and choices and isinstance(choices[0], dict):
                reason = choices[0].get("finish_reason")
                if isinstance(reason, str) and reason:
                    finish_reason = reason
    except TransportError as exc:
        if finish_reason is None:
            raise
        # The turn already finished; only trailing usage can be missing.
        _log.warning("stream_dropped_after_finish", finish_reason=finish_reason, error=str(exc))

    if cancel is not None:
        cancel.raise_if_cancelled()

    yield TurnComplete(usage=usage, finish_reason=finish_reason)
