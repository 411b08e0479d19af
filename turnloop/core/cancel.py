from __future__ import annotations

from .errors import GenerationCancelled


class CancelToken:
    """Cancellation signal scoped to one generation cycle.

    The token only records the request; readers poll it at each iteration.
    Unblocking a suspended read is the owner's job (task cancellation).
    """

    __slots__ = ("_cancelled", "_reason")

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled by caller") -> None:
        if not self._cancelled:
            self._cancelled = True
            self._reason = reason

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise GenerationCancelled(self._reason or "cancelled")
