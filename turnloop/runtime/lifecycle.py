"""Process lifecycle and main entrypoint (`turnloop` console script)."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import signal
import sys
from pathlib import Path
from typing import Iterator, Sequence

from turnloop.config import AppConfig, load_config
from turnloop.core.errors import ConfigError, TransportError
from turnloop.llm.backend import ModelBackend, OpenAICompatBackend
from turnloop.metering import TokenTracker, format_cost, format_token_count
from turnloop.observability import configure_logging, get_logger
from turnloop.orchestrator import Orchestrator, TurnState
from turnloop.orchestrator.conversation import TextDeltaCallback
from turnloop.tools import ToolCatalog, ToolGateway, ToolPolicy, build_file_tools

log = get_logger("turnloop.cli")


def build_catalog(cfg: AppConfig) -> ToolCatalog:
    catalog = ToolCatalog()
    if cfg.tools.files_root:
        root = Path(cfg.tools.files_root).expanduser()
        root.mkdir(parents=True, exist_ok=True)
        for descriptor in build_file_tools(root):
            catalog.register(descriptor)
    return catalog


def build_orchestrator(
    cfg: AppConfig,
    *,
    backend: ModelBackend | None = None,
    meter: TokenTracker | None = None,
    on_text_delta: TextDeltaCallback | None = None,
) -> Orchestrator:
    gateway = ToolGateway(
        build_catalog(cfg),
        policy=ToolPolicy.from_config(cfg.tools),
        timeout_s=cfg.tools.timeout_s,
    )
    return Orchestrator(
        backend=backend or OpenAICompatBackend.from_config(cfg.llm),
        gateway=gateway,
        system_prompt=cfg.agent.system_prompt,
        meter=meter,
        max_steps=cfg.orchestrator.max_steps,
        on_text_delta=on_text_delta,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="turnloop", description="Streaming tool-using chat agent")
    parser.add_argument("--config", type=Path, default=Path("configs/app.yaml"), help="Path to a YAML config file")
    parser.add_argument("--log-level", default=None, help="Logging level (overrides logging.level)")

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("chat", help="Interactive chat session")
    sub.add_parser("print-config", help="Load and print the expanded config (secrets redacted)")
    return parser


@contextlib.contextmanager
def _sigint_cancels(orch: Orchestrator) -> Iterator[None]:
    """Route Ctrl-C to `orch.cancel()` while a generation runs."""

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, orch.cancel)
    except (NotImplementedError, RuntimeError):
        # No loop signal handlers on this platform.
        yield
        return
    try:
        yield
    finally:
        loop.remove_signal_handler(signal.SIGINT)


async def _ask(prompt: str) -> str:
    return await asyncio.to_thread(input, prompt)


def _print_usage(tracker: TokenTracker) -> None:
    s = tracker.stats
    today = tracker.today_stats()
    print(
        f"requests={s.total_requests} "
        f"tokens={format_token_count(s.total_tokens)} "
        f"(prompt {format_token_count(s.total_prompt_tokens)}, "
        f"completion {format_token_count(s.total_completion_tokens)}) "
        f"cost={format_cost(s.total_cost)} "
        f"today={format_token_count(today.total_tokens)}/{format_cost(today.estimated_cost)}"
    )


async def _drive(orch: Orchestrator, coro_factory) -> None:  # noqa: ANN001
    with _sigint_cancels(orch):
        try:
            await coro_factory()
        except TransportError as e:
            print(f"\n[error] {e}", file=sys.stderr)
            orch.dismiss_error()
    print()


async def _resolve_confirmations(orch: Orchestrator) -> None:
    while orch.state is TurnState.AWAITING_CONFIRMATION and orch.pending:
        invocation = orch.pending[0]
        args = json.dumps(invocation.arguments, ensure_ascii=False)
        answer = (await _ask(f"\nRun tool '{invocation.name}' with {args}? [y/N] ")).strip().lower()
        if answer in ("y", "yes"):
            await _drive(orch, lambda: orch.confirm(invocation.id))
        else:
            await _drive(orch, lambda: orch.reject(invocation.id))


async def run_chat(cfg: AppConfig) -> None:
    tracker = TokenTracker()

    def on_delta(delta: str, _buffer: str) -> None:
        sys.stdout.write(delta)
        sys.stdout.flush()

    backend = OpenAICompatBackend.from_config(cfg.llm)
    orch = build_orchestrator(cfg, backend=backend, meter=tracker, on_text_delta=on_delta)
    print("turnloop chat. Commands: /new, /usage, /quit. Ctrl-C cancels a running answer.")

    try:
        while True:
            try:
                line = (await _ask("\n> ")).strip()
            except EOFError:
                return
            if not line:
                continue
            if line == "/quit":
                return
            if line == "/new":
                await orch.new_conversation()
                print("(new conversation)")
                continue
            if line == "/usage":
                _print_usage(tracker)
                continue

            await _drive(orch, lambda: orch.start_turn(line))
            await _resolve_confirmations(orch)
    finally:
        await backend.aclose()


def main(argv: Sequence[str] | None = None) -> int:
    argv_list = list(argv) if argv is not None else sys.argv[1:]

    parser = _build_parser()
    try:
        ns = parser.parse_args(argv_list)
    except SystemExit as e:
        code = e.code
        return int(code) if isinstance(code, int) else 1

    command = ns.command or "chat"
    if ns.log_level:
        configure_logging(level=ns.log_level)

    try:
        cfg = load_config(ns.config)
        if not ns.log_level:
            configure_logging(level=cfg.logging.level)
        log.info("config_loaded", config_file=str(ns.config), command=command)

        if command == "print-config":
            sys.stdout.write(json.dumps(cfg.redacted(), ensure_ascii=False, indent=2))
            sys.stdout.write("\n")
            return 0

        asyncio.run(run_chat(cfg))
        return 0

    except ConfigError as e:
        log.error("config_error", error=str(e))
        sys.stderr.write(f"ConfigError: {e}\n")
        return 2
    except KeyboardInterrupt:
        return 0
    except Exception as e:  # noqa: BLE001
        log.exception("fatal_error")
        sys.stderr.write(f"Fatal error: {e}\n")
        return 1
