from __future__ import annotations

from typing import Protocol, Sequence

from turnloop.core.types import Turn
from turnloop.observability import get_logger


class Sink(Protocol):
    """Persistence boundary, notified synchronously after every append."""

    def on_turns_changed(self, turns: Sequence[Turn]) -> None: ...


class LoggingSink:
    def __init__(self) -> None:
        self._log = get_logger("turnloop.sink")

    def on_turns_changed(self, turns: Sequence[Turn]) -> None:
        last = turns[-1] if turns else None
        self._log.debug(
            "turns_changed",
            turns=len(turns),
            last_role=last.role.value if last is not None else None,
        )
