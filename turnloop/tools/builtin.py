"""Workspace file tools.

All paths are resolved against an explicit root directory handed in at
construction time; anything that resolves outside it is refused with a
permission-denied failure.
"""

from __future__ import annotations

from pathlib import Path

from langchain_core.tools import StructuredTool
from pydantic import BaseModel, Field

from .catalog import ToolDescriptor
from .errors import ToolError, ToolErrorKind

MAX_LIST_ENTRIES = 50
DEFAULT_MAX_LINES = 100


class FilesListArgs(BaseModel):
    path: str = Field(default=".", description="Directory path, relative to the workspace root")
    show_hidden: bool = Field(default=False, description="Include hidden files (default: false)")


class FilesReadArgs(BaseModel):
    path: str = Field(description="File path, relative to the workspace root")
    max_lines: int = Field(default=DEFAULT_MAX_LINES, ge=1, description="Maximum lines to read (default: 100)")


class FilesWriteArgs(BaseModel):
    path: str = Field(description="File path, relative to the workspace root")
    content: str = Field(description="Content to write")
    append: bool = Field(default=False, description="Append instead of overwrite (default: false)")


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


class Workspace:
    """A directory the file tools are confined to."""

    def __init__(self, root: Path) -> None:
        self.root = root.expanduser().resolve()

    def resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if target != self.root and not target.is_relative_to(self.root):
            raise ToolError(ToolErrorKind.PERMISSION_DENIED, f"Path '{path}' is outside the workspace")
        return target

    def list(self, path: str = ".", show_hidden: bool = False) -> str:
        target = self.resolve(path)
        if not target.exists():
            raise ToolError(ToolErrorKind.NOT_FOUND, f"No such directory: {path}")
        if not target.is_dir():
            raise ToolError(ToolErrorKind.INVALID_ARGUMENTS, f"Not a directory: {path}")

        try:
            entries = sorted(target.iterdir(), key=lambda p: p.name)
        except PermissionError as e:
            raise ToolError(ToolErrorKind.PERMISSION_DENIED, str(e)) from e

        if not show_hidden:
            entries = [p for p in entries if not p.name.startswith(".")]
        if not entries:
            return "Directory is empty."

        lines: list[str] = []
        for p in entries[:MAX_LIST_ENTRIES]:
            if p.is_dir():
                lines.append(f"[dir]  {p.name}/")
            else:
                lines.append(f"[file] {p.name} ({_format_size(p.stat().st_size)})")

        header = f"Contents of {path}"
        if len(entries) > MAX_LIST_ENTRIES:
            header += f" (showing first {MAX_LIST_ENTRIES})"
        return header + ":\n" + "\n".join(lines)

    def read(self, path: str, max_lines: int = DEFAULT_MAX_LINES) -> str:
        target = self.resolve(path)
        if not target.exists():
            raise ToolError(ToolErrorKind.NOT_FOUND, f"No such file: {path}")
        if target.is_dir():
            raise ToolError(ToolErrorKind.INVALID_ARGUMENTS, f"Is a directory: {path}")

        try:
            content = target.read_text(encoding="utf-8")
        except PermissionError as e:
            raise ToolError(ToolErrorKind.PERMISSION_DENIED, str(e)) from e
        except UnicodeDecodeError as e:
            raise ToolError(ToolErrorKind.EXECUTION_FAILED, f"Not a UTF-8 text file: {path}") from e

        lines = content.splitlines()
        if len(lines) <= max_lines:
            return content
        kept = "\n".join(lines[:max_lines])
        return f"{kept}\n\n... (truncated, {len(lines) - max_lines} more lines)"

    def write(self, path: str, content: str, append: bool = False) -> str:
        target = self.resolve(path)
        if target.is_dir():
            raise ToolError(ToolErrorKind.INVALID_ARGUMENTS, f"Is a directory: {path}")

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if append and target.exists():
                with target.open("a", encoding="utf-8") as f:
                    f.write(content)
                return f"Appended {len(content)} characters to {path}"
            target.write_text(content, encoding="utf-8")
        except PermissionError as e:
            raise ToolError(ToolErrorKind.PERMISSION_DENIED, str(e)) from e
        return f"Wrote {len(content)} characters to {path}"


def build_file_tools(root: Path) -> list[ToolDescriptor]:
    """files_list and files_read run without confirmation; files_write always asks."""

    ws = Workspace(root)

    files_list = StructuredTool.from_function(
        func=ws.list,
        name="files_list",
        description="List files in a directory of the workspace.",
        args_schema=FilesListArgs,
    )
    files_read = StructuredTool.from_function(
        func=ws.read,
        name="files_read",
        description="Read contents of a text file in the workspace.",
        args_schema=FilesReadArgs,
    )
    files_write = StructuredTool.from_function(
        func=ws.write,
        name="files_write",
        description="Write content to a file in the workspace. Creates the file if it doesn't exist.",
        args_schema=FilesWriteArgs,
    )

    return [
        ToolDescriptor.from_langchain(files_list, confirmation_required=False),
        ToolDescriptor.from_langchain(files_read, confirmation_required=False),
        ToolDescriptor.from_langchain(files_write, confirmation_required=True),
    ]
