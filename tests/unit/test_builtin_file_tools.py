from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from turnloop.core.types import JsonObject, ToolInvocation, ToolOutcome
from turnloop.tools import ToolCatalog, ToolError, ToolErrorKind, ToolGateway, build_file_tools
from turnloop.tools.builtin import Workspace


def _gateway(root: Path) -> ToolGateway:
    return ToolGateway(ToolCatalog(build_file_tools(root)))


def _call(gateway: ToolGateway, name: str, arguments: JsonObject) -> ToolOutcome:
    return asyncio.run(gateway.execute(ToolInvocation(id="c1", name=name, arguments=arguments)))


def test_descriptors_and_confirmation_flags(tmp_path: Path) -> None:
    tools = {d.name: d for d in build_file_tools(tmp_path)}

    assert sorted(tools) == ["files_list", "files_read", "files_write"]
    assert not tools["files_list"].confirmation_required
    assert not tools["files_read"].confirmation_required
    assert tools["files_write"].confirmation_required
    props = tools["files_write"].parameters["properties"]
    assert set(props) == {"path", "content", "append"}
    assert tools["files_write"].parameters["required"] == ["path", "content"]


def test_list_skips_hidden_entries(tmp_path: Path) -> None:
    (tmp_path / "notes.txt").write_text("hello", encoding="utf-8")
    (tmp_path / ".secret").write_text("x", encoding="utf-8")
    (tmp_path / "docs").mkdir()

    out = _call(_gateway(tmp_path), "files_list", {"path": "."})

    assert not out.is_error
    assert out.content == "Contents of .:\n[dir]  docs/\n[file] notes.txt (5 B)"

    hidden = _call(_gateway(tmp_path), "files_list", {"show_hidden": True})
    assert ".secret" in hidden.content


def test_read_truncates_long_files(tmp_path: Path) -> None:
    (tmp_path / "log.txt").write_text("\n".join(f"line {i}" for i in range(5)), encoding="utf-8")

    out = _call(_gateway(tmp_path), "files_read", {"path": "log.txt", "max_lines": 2})

    assert out.content == "line 0\nline 1\n\n... (truncated, 3 more lines)"


def test_write_then_append(tmp_path: Path) -> None:
    gateway = _gateway(tmp_path)

    first = _call(gateway, "files_write", {"path": "sub/out.txt", "content": "abc"})
    second = _call(gateway, "files_write", {"path": "sub/out.txt", "content": "de", "append": True})

    assert first.content == "Wrote 3 characters to sub/out.txt"
    assert second.content == "Appended 2 characters to sub/out.txt"
    assert (tmp_path / "sub" / "out.txt").read_text(encoding="utf-8") == "abcde"


def test_paths_outside_workspace_are_permission_denied(tmp_path: Path) -> None:
    root = tmp_path / "ws"
    root.mkdir()
    (tmp_path / "outside.txt").write_text("nope", encoding="utf-8")

    out = _call(_gateway(root), "files_read", {"path": "../outside.txt"})

    assert out.is_error
    assert out.is_permission_denied
    assert out.content == "Error: Permission denied: Path '../outside.txt' is outside the workspace"


def test_missing_file_is_not_found(tmp_path: Path) -> None:
    out = _call(_gateway(tmp_path), "files_read", {"path": "ghost.txt"})

    assert out.is_error
    assert out.content == "Error: Not found: No such file: ghost.txt"


def test_invalid_arguments_are_reported(tmp_path: Path) -> None:
    out = _call(_gateway(tmp_path), "files_read", {"max_lines": 3})

    assert out.is_error
    assert not out.is_permission_denied
    assert out.content.startswith("Error: Invalid arguments: ")
    assert "path" in out.content


def test_workspace_resolve_allows_root_itself(tmp_path: Path) -> None:
    ws = Workspace(tmp_path)

    assert ws.resolve(".") == tmp_path.resolve()
    with pytest.raises(ToolError) as ei:
        ws.resolve("/etc/passwd")
    assert ei.value.kind is ToolErrorKind.PERMISSION_DENIED
