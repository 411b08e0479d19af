from __future__ import annotations

import time
from datetime import date, datetime, timezone


def monotonic_ms() -> int:
    """Monotonic clock in milliseconds.

    Use this for latency measurements.
    """

    return int(time.monotonic() * 1000)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()
