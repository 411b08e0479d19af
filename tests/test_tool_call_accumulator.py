from __future__ import annotations

from turnloop.core.types import ToolInvocation
from turnloop.llm.events import ToolCallFragment
from turnloop.llm.tool_call_accumulator import ToolCallAccumulator, assemble


def test_accumulator_parses_fragmented_json_args() -> None:
    acc = ToolCallAccumulator()

    acc.add(ToolCallFragment(index=0, id="c1", name="lookup", arguments_delta='{"q":'))
    acc.add(ToolCallFragment(index=0, arguments_delta='"x"}'))

    assert acc.finalize() == [ToolInvocation(id="c1", name="lookup", arguments={"q": "x"})]


def test_accumulator_keeps_invalid_json_as_empty_arguments() -> None:
    invocations = assemble([ToolCallFragment(index=0, id="c1", name="echo", arguments_delta='{"text":')])

    assert len(invocations) == 1
    assert invocations[0].arguments == {}
    assert invocations[0].raw_arguments == '{"text":'


def test_non_object_and_blank_arguments_become_empty_maps() -> None:
    invocations = assemble(
        [
            ToolCallFragment(index=0, id="a", name="t", arguments_delta="[1, 2]"),
            ToolCallFragment(index=1, id="b", name="t", arguments_delta="   "),
        ]
    )

    assert [inv.arguments for inv in invocations] == [{}, {}]


def test_invocations_are_emitted_in_index_order() -> None:
    invocations = assemble(
        [
            ToolCallFragment(index=2, id="c3", name="third", arguments_delta="{}"),
            ToolCallFragment(index=0, id="c1", name="first", arguments_delta="{"),
            ToolCallFragment(index=1, id="c2", name="second", arguments_delta='{"n": 2}'),
            ToolCallFragment(index=0, arguments_delta='"n": 1}'),
        ]
    )

    assert [(inv.id, inv.name, inv.arguments) for inv in invocations] == [
        ("c1", "first", {"n": 1}),
        ("c2", "second", {"n": 2}),
        ("c3", "third", {}),
    ]


def test_entries_missing_id_or_name_are_dropped() -> None:
    invocations = assemble(
        [
            ToolCallFragment(index=0, name="no_id", arguments_delta="{}"),
            ToolCallFragment(index=1, id="no_name", arguments_delta="{}"),
            ToolCallFragment(index=2, id="ok", name="kept", arguments_delta="{}"),
        ]
    )

    assert [inv.id for inv in invocations] == ["ok"]


def test_later_id_and_name_overwrite_earlier_ones() -> None:
    invocations = assemble(
        [
            ToolCallFragment(index=0, id="tmp", name="draft"),
            ToolCallFragment(index=0, id="final", name="lookup", arguments_delta="{}"),
        ]
    )

    assert [(inv.id, inv.name) for inv in invocations] == [("final", "lookup")]


def test_finalize_is_repeatable() -> None:
    acc = ToolCallAccumulator()
    acc.add_all(
        [
            ToolCallFragment(index=0, id="c1", name="lookup", arguments_delta='{"q": "x"}'),
            ToolCallFragment(index=1, id="c2", name="lookup", arguments_delta='{"q": "y"}'),
        ]
    )

    first = acc.finalize()
    second = acc.finalize()

    assert first == second
    assert len(acc) == 2


def test_reset_discards_entries() -> None:
    acc = ToolCallAccumulator()
    acc.add(ToolCallFragment(index=0, id="c1", name="lookup"))

    acc.reset()

    assert len(acc) == 0
    assert acc.finalize() == []
