from __future__ import annotations

from .tracker import (
    AggregateUsageStats,
    DailyUsageStats,
    TokenTracker,
    UsageMeter,
    estimate_cost,
    format_cost,
    format_token_count,
)

__all__ = [
    "AggregateUsageStats",
    "DailyUsageStats",
    "TokenTracker",
    "UsageMeter",
    "estimate_cost",
    "format_cost",
    "format_token_count",
]
