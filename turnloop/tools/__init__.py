from __future__ import annotations

from .builtin import build_file_tools
from .catalog import ToolCatalog, ToolDescriptor
from .errors import ToolError, ToolErrorKind
from .gateway import ToolGateway
from .policy import PolicyError, ToolDisabledError, ToolNotAllowedError, ToolPolicy, ToolRateLimitedError

__all__ = [
    "PolicyError",
    "ToolCatalog",
    "ToolDescriptor",
    "ToolDisabledError",
    "ToolError",
    "ToolErrorKind",
    "ToolGateway",
    "ToolNotAllowedError",
    "ToolPolicy",
    "ToolRateLimitedError",
    "build_file_tools",
]
