from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Protocol

from turnloop.core.clock import utc_today
from turnloop.core.types import Usage
from turnloop.observability import get_logger

MAX_DAILY_STATS = 30
MAX_RECENT_USAGE = 100

# USD per 1M tokens: (input, output).
PRICING: dict[str, tuple[float, float]] = {
    "gpt-4o": (5.0, 15.0),
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4-turbo": (10.0, 30.0),
    "gpt-4": (30.0, 60.0),
    "gpt-3.5-turbo": (0.50, 1.50),
}
DEFAULT_PRICING_MODEL = "gpt-4o"


class UsageMeter(Protocol):
    def record(self, usage: Usage) -> None: ...


def estimate_cost(usage: Usage) -> float:
    price_in, price_out = PRICING.get(usage.model, PRICING[DEFAULT_PRICING_MODEL])
    return usage.prompt_tokens / 1_000_000 * price_in + usage.completion_tokens / 1_000_000 * price_out


@dataclass(slots=True)
class DailyUsageStats:
    day: date
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    estimated_cost: float = 0.0
    request_count: int = 0

    def add(self, usage: Usage) -> None:
        self.prompt_tokens += usage.prompt_tokens
        self.completion_tokens += usage.completion_tokens
        self.total_tokens += usage.total_tokens
        self.estimated_cost += estimate_cost(usage)
        self.request_count += 1


@dataclass(slots=True)
class AggregateUsageStats:
    total_prompt_tokens: int = 0
    total_completion_tokens: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    total_requests: int = 0
    daily: list[DailyUsageStats] = field(default_factory=list)

    @property
    def average_tokens_per_request(self) -> int:
        return self.total_tokens // self.total_requests if self.total_requests else 0

    @property
    def average_cost_per_request(self) -> float:
        return self.total_cost / self.total_requests if self.total_requests else 0.0


class TokenTracker:
    """In-memory usage meter with cost estimates."""

    def __init__(self, *, today: Callable[[], date] = utc_today) -> None:
        self._today = today
        self.stats = AggregateUsageStats()
        self._recent: deque[Usage] = deque(maxlen=MAX_RECENT_USAGE)
        self._log = get_logger("turnloop.metering")

    @property
    def recent(self) -> list[Usage]:
        return list(self._recent)

    def record(self, usage: Usage) -> None:
        cost = estimate_cost(usage)
        s = self.stats
        s.total_prompt_tokens += usage.prompt_tokens
        s.total_completion_tokens += usage.completion_tokens
        s.total_tokens += usage.total_tokens
        s.total_cost += cost
        s.total_requests += 1

        today = self._today()
        if s.daily and s.daily[-1].day == today:
            s.daily[-1].add(usage)
        else:
            day = DailyUsageStats(day=today)
            day.add(usage)
            s.daily.append(day)
            del s.daily[:-MAX_DAILY_STATS]

        self._recent.append(usage)
        self._log.info(
            "usage_recorded",
            model=usage.model,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_tokens=usage.total_tokens,
            estimated_cost=round(cost, 6),
        )

    def reset(self) -> None:
        self.stats = AggregateUsageStats()
        self._recent.clear()

    def today_stats(self) -> DailyUsageStats:
        today = self._today()
        for day in self.stats.daily:
            if day.day == today:
                return day
        return DailyUsageStats(day=today)

    def window(self, days: int) -> tuple[int, float, int]:
        """(tokens, cost, requests) over the last `days` days, today included."""

        since = self._today() - timedelta(days=days - 1)
        picked = [d for d in self.stats.daily if d.day >= since]
        return (
            sum(d.total_tokens for d in picked),
            sum(d.estimated_cost for d in picked),
            sum(d.request_count for d in picked),
        )


def format_token_count(count: int) -> str:
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M"
    if count >= 1_000:
        return f"{count / 1_000:.1f}K"
    return str(count)


def format_cost(cost: float) -> str:
    if cost < 0.01:
        return f"${cost:.4f}"
    if cost < 1:
        return f"${cost:.3f}"
    return f"${cost:.2f}"
