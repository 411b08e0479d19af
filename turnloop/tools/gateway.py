from __future__ import annotations

import asyncio

from turnloop.core.clock import monotonic_ms
from turnloop.core.types import ToolInvocation, ToolOutcome
from turnloop.observability import add_error, get_logger

from .catalog import ToolCatalog
from .errors import ToolError
from .policy import PolicyError, ToolPolicy
from .result_codec import render_output


class ToolGateway:
    """Resolve, run and classify one tool invocation.

    `execute` never raises for tool-level failures; every failure becomes an
    error outcome the model can react to. Task cancellation propagates.
    Confirmation is the orchestrator's job: the gateway runs whatever it is
    handed.
    """

    def __init__(
        self,
        catalog: ToolCatalog,
        *,
        policy: ToolPolicy | None = None,
        timeout_s: float | None = None,
    ) -> None:
        self._catalog = catalog
        self._policy = policy
        self._timeout_s = timeout_s
        self._log = get_logger("turnloop.tools.gateway")

    @property
    def catalog(self) -> ToolCatalog:
        return self._catalog

    @property
    def policy(self) -> ToolPolicy | None:
        return self._policy

    def _error(self, invocation: ToolInvocation, text: str, *, t0: int, permission_denied: bool = False) -> ToolOutcome:
        elapsed = monotonic_ms() - t0
        self._log.warning(
            "tool_error",
            tool_call_id=invocation.id,
            tool=invocation.name,
            elapsed_ms=elapsed,
            error=text,
        )
        add_error(f"tool:{invocation.name}")
        return ToolOutcome(
            invocation_id=invocation.id,
            content=f"Error: {text}",
            is_error=True,
            is_permission_denied=permission_denied,
            elapsed_ms=elapsed,
        )

    async def execute(self, invocation: ToolInvocation) -> ToolOutcome:
        t0 = monotonic_ms()

        descriptor = self._catalog.resolve(invocation.name)
        if descriptor is None:
            return self._error(invocation, f"Unknown tool '{invocation.name}'", t0=t0)

        if self._policy is not None:
            try:
                self._policy.check(invocation.name)
            except PolicyError as e:
                return self._error(invocation, f"Not allowed: {e.message}", t0=t0)

        try:
            if self._timeout_s is None:
                output = await descriptor.execute(dict(invocation.arguments))
            else:
                output = await asyncio.wait_for(descriptor.execute(dict(invocation.arguments)), self._timeout_s)
        except ToolError as e:
            return self._error(invocation, e.describe(), t0=t0, permission_denied=e.is_permission_denied)
        except asyncio.TimeoutError as e:
            if self._timeout_s is None:
                return self._error(invocation, str(e) or type(e).__name__, t0=t0)
            return self._error(invocation, f"Tool '{invocation.name}' timed out after {self._timeout_s:g}s", t0=t0)
        except Exception as e:  # noqa: BLE001
            return self._error(invocation, str(e) or type(e).__name__, t0=t0)

        elapsed = monotonic_ms() - t0
        content = render_output(output)
        self._log.info(
            "tool_ok",
            tool_call_id=invocation.id,
            tool=invocation.name,
            elapsed_ms=elapsed,
            content_len=len(content),
        )
        return ToolOutcome(invocation_id=invocation.id, content=content, elapsed_ms=elapsed)
