from __future__ import annotations

from .conversation import Orchestrator
from .sink import LoggingSink, Sink
from .state import TurnState

__all__ = ["LoggingSink", "Orchestrator", "Sink", "TurnState"]
