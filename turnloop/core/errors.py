from __future__ import annotations


class TurnloopError(Exception):
    """Base exception for this project."""


class ConfigError(TurnloopError):
    """Raised when configuration is invalid or incomplete."""

    def __init__(self, message: str, *, path: str | None = None):
        super().__init__(f"{path}: {message}" if path else message)
        self.path = path


class TransportError(TurnloopError):
    """The model backend failed at the transport level.

    `status_code` is None for connection-level failures (DNS, reset, timeout).
    """

    def __init__(self, status_code: int | None, message: str | None = None) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(self._describe())

    def _describe(self) -> str:
        if self.status_code is None:
            return f"Network error: {self.message or 'connection failed'}"
        if self.message:
            return f"API error ({self.status_code}): {self.message}"
        return f"API error with status code {self.status_code}"


class GenerationCancelled(TurnloopError):
    """Raised when a generation cycle observes its cancellation signal."""


class OrchestratorBusyError(TurnloopError):
    """Raised when a new generation is requested while one is in flight."""


class UnknownInvocationError(TurnloopError, KeyError):
    """Raised by confirm/reject for an invocation id that is not pending."""

    def __init__(self, invocation_id: str) -> None:
        super().__init__(invocation_id)
        self.invocation_id = invocation_id

    def __str__(self) -> str:
        return f"No pending tool invocation with id {self.invocation_id!r}"
