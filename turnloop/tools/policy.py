"""Tool governance: enable switch, allowlist and per-tool rate limits.

Policy rules:
- If tools are disabled (`tools.enabled=false`), no tool is advertised or run.
- If the allowlist (`tools.whitelist`) is empty, every registered tool is allowed.
- If the allowlist is non-empty, only listed tool names are allowed.
- Per-tool rate limits are enforced at execution time when configured.

Violations are expected control flow: the gateway turns them into error
outcomes the model can read.
"""

from __future__ import annotations

import time

from turnloop.config.model import ToolsConfig


class PolicyError(RuntimeError):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ToolDisabledError(PolicyError):
    pass


class ToolNotAllowedError(PolicyError):
    pass


class ToolRateLimitedError(PolicyError):
    pass


class RateLimiter:
    """Simple per-tool rate limiter.

    The configured value is interpreted as "calls per second".
    """

    def __init__(self, calls_per_second: float) -> None:
        if calls_per_second <= 0:
            raise ValueError("calls_per_second must be > 0")
        self._interval_s = 1.0 / float(calls_per_second)
        self._next_allowed_ts = 0.0

    def check(self, now_ts: float | None = None) -> None:
        now = time.monotonic() if now_ts is None else float(now_ts)
        if now < self._next_allowed_ts:
            wait_s = self._next_allowed_ts - now
            raise ToolRateLimitedError(f"Rate limited, retry in {wait_s:.2f}s")
        self._next_allowed_ts = now + self._interval_s


class ToolPolicy:
    """Evaluate whether a tool may be advertised and executed."""

    def __init__(
        self,
        *,
        enabled: bool = True,
        whitelist: list[str] | None = None,
        rate_limit: dict[str, float] | None = None,
    ) -> None:
        self._enabled = bool(enabled)
        self._whitelist = [t for t in (whitelist or []) if isinstance(t, str) and t]
        self._rate_limiters = {name: RateLimiter(float(cps)) for name, cps in (rate_limit or {}).items()}

    @classmethod
    def from_config(cls, cfg: ToolsConfig) -> "ToolPolicy":
        return cls(enabled=cfg.enabled, whitelist=cfg.whitelist, rate_limit=cfg.rate_limit)

    def permits(self, tool_name: str) -> bool:
        """Whether the tool may be offered to the model. Does not consume a rate slot."""

        if not self._enabled:
            return False
        return not self._whitelist or tool_name in self._whitelist

    def check(self, tool_name: str, *, now_ts: float | None = None) -> None:
        """Raise a PolicyError if the tool call is not permitted."""

        if not self._enabled:
            raise ToolDisabledError("Tool execution is disabled by configuration")

        if self._whitelist and tool_name not in self._whitelist:
            raise ToolNotAllowedError(f"Tool '{tool_name}' is not in allowlist")

        limiter = self._rate_limiters.get(tool_name)
        if limiter is not None:
            limiter.check(now_ts)
