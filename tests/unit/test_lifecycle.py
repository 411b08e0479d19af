from __future__ import annotations

import asyncio
from pathlib import Path

from pydantic import SecretStr

from fakes import ScriptedBackend, text_reply, tool_reply
from turnloop.config import AppConfig, LlmConfig, OrchestratorConfig, ToolsConfig
from turnloop.metering import TokenTracker
from turnloop.orchestrator import TurnState
from turnloop.runtime.lifecycle import build_catalog, build_orchestrator


def _cfg(tmp_path: Path, **tools: object) -> AppConfig:
    return AppConfig(
        llm=LlmConfig(api_key=SecretStr("sk-test"), model="gpt-4o-mini"),
        tools=ToolsConfig(files_root=str(tmp_path / "ws"), **tools),  # type: ignore[arg-type]
        orchestrator=OrchestratorConfig(max_steps=10),
    )


def test_catalog_holds_file_tools_only_with_a_root(tmp_path: Path) -> None:
    assert sorted(d.name for d in build_catalog(_cfg(tmp_path))) == ["files_list", "files_read", "files_write"]
    assert (tmp_path / "ws").is_dir()

    no_root = AppConfig(llm=LlmConfig(api_key=SecretStr("k")))
    assert len(build_catalog(no_root)) == 0


def test_orchestrator_wiring_runs_file_tools(tmp_path: Path) -> None:
    cfg = _cfg(tmp_path)
    (tmp_path / "ws").mkdir()
    (tmp_path / "ws" / "todo.txt").write_text("buy milk", encoding="utf-8")
    backend = ScriptedBackend(
        tool_reply(("c1", "files_read", {"path": "todo.txt"})),
        text_reply("You need milk."),
    )
    tracker = TokenTracker()

    orch = build_orchestrator(cfg, backend=backend, meter=tracker)
    asyncio.run(orch.start_turn("what's on my list?"))

    outcome = orch.turns[2].outcome
    assert outcome is not None
    assert outcome.content == "buy milk"
    assert orch.turns[-1].text == "You need milk."
    assert orch.state is TurnState.IDLE
    assert [t["function"]["name"] for t in backend.requests[0].tools] == ["files_list", "files_read", "files_write"]


def test_whitelist_hides_tools_from_model(tmp_path: Path) -> None:
    cfg = _cfg(tmp_path, whitelist=["files_read"])
    backend = ScriptedBackend(text_reply("ok"))

    orch = build_orchestrator(cfg, backend=backend)
    asyncio.run(orch.start_turn("hi"))

    assert [t["function"]["name"] for t in backend.requests[0].tools] == ["files_read"]


def test_file_write_waits_for_confirmation(tmp_path: Path) -> None:
    cfg = _cfg(tmp_path)
    backend = ScriptedBackend(
        tool_reply(("c1", "files_write", {"path": "a.txt", "content": "hi"})),
        text_reply("Done."),
    )
    orch = build_orchestrator(cfg, backend=backend)

    async def scenario() -> None:
        await orch.start_turn("write a.txt")
        assert orch.state is TurnState.AWAITING_CONFIRMATION
        assert not (tmp_path / "ws" / "a.txt").exists()
        await orch.confirm("c1")

    asyncio.run(scenario())

    assert (tmp_path / "ws" / "a.txt").read_text(encoding="utf-8") == "hi"
