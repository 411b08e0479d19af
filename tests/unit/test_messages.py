from __future__ import annotations

from datetime import date

from turnloop.core.types import ToolInvocation, ToolOutcome, Turn
from turnloop.llm.messages import build_messages, system_prompt_with_date


def test_system_prompt_gets_current_date() -> None:
    assert system_prompt_with_date("Be brief.", date(2026, 3, 9)) == "Be brief.\n\nCurrent Date: 2026-03-09"


def test_plain_turns_map_to_role_messages() -> None:
    msgs = build_messages([Turn.user("hi"), Turn.assistant("hello")], system_prompt="sys")

    assert msgs == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
    ]


def test_invocations_merge_into_preceding_assistant_text() -> None:
    a = ToolInvocation(id="c1", name="lookup", arguments={"q": "x"})
    b = ToolInvocation(id="c2", name="lookup", arguments={"q": "ü"})

    msgs = build_messages(
        [
            Turn.user("find"),
            Turn.assistant("Checking."),
            Turn.for_invocation(a),
            Turn.for_invocation(b),
            Turn.for_outcome(ToolOutcome(invocation_id="c1", content="one")),
            Turn.for_outcome(ToolOutcome(invocation_id="c2", content="two", is_error=True)),
        ]
    )

    assert msgs[1]["content"] == "Checking."
    assert [tc["id"] for tc in msgs[1]["tool_calls"]] == ["c1", "c2"]
    assert msgs[1]["tool_calls"][1]["function"] == {"name": "lookup", "arguments": '{"q": "ü"}'}
    assert msgs[2:] == [
        {"role": "tool", "tool_call_id": "c1", "content": "one"},
        {"role": "tool", "tool_call_id": "c2", "content": "two"},
    ]
    assert len(msgs) == 4


def test_bare_invocation_opens_assistant_message_without_content() -> None:
    inv = ToolInvocation(id="c1", name="lookup", arguments={})

    msgs = build_messages([Turn.user("go"), Turn.for_invocation(inv)])

    assert msgs[1]["role"] == "assistant"
    assert msgs[1]["content"] is None
    assert msgs[1]["tool_calls"][0]["type"] == "function"


def test_separate_tool_rounds_stay_separate() -> None:
    a = ToolInvocation(id="c1", name="t", arguments={})
    b = ToolInvocation(id="c2", name="t", arguments={})

    msgs = build_messages(
        [
            Turn.for_invocation(a),
            Turn.for_outcome(ToolOutcome(invocation_id="c1", content="r1")),
            Turn.for_invocation(b),
            Turn.for_outcome(ToolOutcome(invocation_id="c2", content="r2")),
        ]
    )

    assert [m["role"] for m in msgs] == ["assistant", "tool", "assistant", "tool"]
    assert [len(m.get("tool_calls", [])) for m in msgs] == [1, 0, 1, 0]
