from __future__ import annotations

import json
import logging

from turnloop.observability import (
    add_error,
    bind_context,
    current,
    get_logger,
    new_session_id,
    new_trace_id,
    set_state,
    snapshot,
)
from turnloop.observability.logging import JsonFormatter


def _record(logger_name: str, **extra: object) -> logging.LogRecord:
    return logging.makeLogRecord({"name": logger_name, "levelname": "INFO", "msg": "tool_ok", **extra})


def test_json_formatter_includes_context_and_extras() -> None:
    bind_context(trace_id="t-1", session_id="s-1", turn_id=3)
    set_state("executing_tool")
    add_error("tool:files_read")

    line = JsonFormatter().format(_record("turnloop.tools", tool="files_read", elapsed_ms=12, obj=object()))
    payload = json.loads(line)

    assert payload["message"] == "tool_ok"
    assert payload["logger"] == "turnloop.tools"
    assert payload["trace_id"] == "t-1"
    assert payload["turn_id"] == 3
    assert payload["state"] == "executing_tool"
    assert payload["errors"] == ["tool:files_read"]
    assert payload["tool"] == "files_read"
    assert payload["elapsed_ms"] == 12
    assert payload["obj"].startswith("<object object")


def test_bind_context_resets_errors() -> None:
    bind_context(trace_id="a", session_id="b", turn_id=1)
    add_error("x")
    bind_context(trace_id="c", session_id="b", turn_id=2)

    assert "errors" not in snapshot()
    assert snapshot()["trace_id"] == "c"


def test_kv_logger_passes_fields_as_extras(caplog) -> None:  # noqa: ANN001
    log = get_logger("turnloop.test")

    with caplog.at_level(logging.INFO, logger="turnloop.test"):
        log.info("usage_recorded", total_tokens=42, model="gpt-4o")

    record = caplog.records[-1]
    assert record.getMessage() == "usage_recorded"
    assert record.total_tokens == 42  # type: ignore[attr-defined]
    assert record.model == "gpt-4o"  # type: ignore[attr-defined]


def test_state_survives_rebinding_and_ids_differ() -> None:
    set_state("generating")
    bind_context(trace_id=new_trace_id(), session_id=new_session_id(), turn_id=7)

    ctx = current()
    assert ctx.state == "generating"
    assert ctx.turn_id == 7
    assert ctx.errors == ()
    assert new_trace_id() != new_trace_id()
