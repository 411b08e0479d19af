from __future__ import annotations

from enum import Enum


class ToolErrorKind(str, Enum):
    INVALID_ARGUMENTS = "invalid_arguments"
    NOT_ALLOWED = "not_allowed"
    EXECUTION_FAILED = "execution_failed"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    ToolErrorKind.INVALID_ARGUMENTS: "Invalid arguments",
    ToolErrorKind.NOT_ALLOWED: "Not allowed",
    ToolErrorKind.EXECUTION_FAILED: "Execution failed",
    ToolErrorKind.PERMISSION_DENIED: "Permission denied",
    ToolErrorKind.NOT_FOUND: "Not found",
}


class ToolError(RuntimeError):
    """Structured tool failure.

    Raise this from a tool when the failure has a known kind, rather than
    letting an arbitrary exception escape.
    """

    def __init__(self, kind: ToolErrorKind | str, message: str) -> None:
        super().__init__(message)
        self.kind = ToolErrorKind(kind)
        self.message = message

    @property
    def is_permission_denied(self) -> bool:
        return self.kind is ToolErrorKind.PERMISSION_DENIED

    def describe(self) -> str:
        return f"{self.kind.label}: {self.message}"
