from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncContextManager, AsyncIterator, Protocol, Sequence

import httpx

from turnloop.config.model import LlmConfig
from turnloop.core.errors import TransportError
from turnloop.core.types import Turn
from turnloop.observability import get_logger

from .messages import build_messages
from .sse import StreamResponse


@dataclass(frozen=True, slots=True)
class BackendRequest:
    turns: Sequence[Turn]
    system_prompt: str
    tools: list[dict[str, Any]] = field(default_factory=list)


class ModelBackend(Protocol):
    """Opens one streaming generation for a turn history."""

    model: str

    def open_stream(self, request: BackendRequest) -> AsyncContextManager[StreamResponse]: ...


class _TranslatingResponse:
    """Wraps an `httpx.Response` so read failures surface as TransportError."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response

    @property
    def status_code(self) -> int:
        return self._response.status_code

    async def aread(self) -> bytes:
        try:
            return await self._response.aread()
        except httpx.HTTPError as e:
            raise TransportError(None, str(e) or type(e).__name__) from e

    async def aiter_lines(self) -> AsyncIterator[str]:
        try:
            async for line in self._response.aiter_lines():
                yield line
        except httpx.HTTPError as e:
            raise TransportError(None, str(e) or type(e).__name__) from e


class OpenAICompatBackend:
    """Streaming POST to an OpenAI-compatible `/chat/completions` endpoint."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o",
        timeout_s: float = 120.0,
        connect_timeout_s: float = 10.0,
        include_usage: bool = True,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.model = model
        self._api_key = api_key
        self._url = f"{base_url.rstrip('/')}/chat/completions"
        self._include_usage = include_usage
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_s, connect=connect_timeout_s))
        self._log = get_logger("turnloop.llm.backend")

    @classmethod
    def from_config(cls, cfg: LlmConfig, *, client: httpx.AsyncClient | None = None) -> "OpenAICompatBackend":
        return cls(
            api_key=cfg.api_key.get_secret_value(),
            base_url=cfg.base_url,
            model=cfg.model,
            timeout_s=cfg.timeout_s,
            connect_timeout_s=cfg.connect_timeout_s,
            include_usage=cfg.include_usage,
            client=client,
        )

    def build_body(self, request: BackendRequest) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.model,
            "messages": build_messages(request.turns, system_prompt=request.system_prompt),
            "stream": True,
        }
        if self._include_usage:
            body["stream_options"] = {"include_usage": True}
        if request.tools:
            body["tools"] = list(request.tools)
        return body

    @asynccontextmanager
    async def open_stream(self, request: BackendRequest) -> AsyncIterator[StreamResponse]:
        body = self.build_body(request)
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Accept": "text/event-stream",
        }

        try:
            async with self._client.stream("POST", self._url, json=body, headers=headers) as response:
                self._log.info(
                    "stream_opened",
                    status=response.status_code,
                    model=self.model,
                    messages=len(body["messages"]),
                    tools=len(body.get("tools", [])),
                )
                yield _TranslatingResponse(response)
        except httpx.HTTPError as e:
            raise TransportError(None, str(e) or type(e).__name__) from e

    async def aclose(self) -> None:
        await self._client.aclose()
