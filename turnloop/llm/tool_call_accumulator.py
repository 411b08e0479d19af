"""Streaming tool-call fragment accumulator.

OpenAI-compatible streaming delivers each tool call's id and name once and its
JSON arguments split across many chunks, all keyed by the call's `index`.
This module merges those fragments into complete invocations.

Parsing is best-effort: a garbled argument string yields an empty argument
map instead of dropping the call. The tool validates its own arguments.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Iterable

from turnloop.core.types import JsonObject, ToolInvocation

from .events import ToolCallFragment


@dataclass(slots=True)
class _Entry:
    id: str | None = None
    name: str | None = None
    arguments_text: str = ""


def decode_arguments(raw: str) -> JsonObject:
    if not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


class ToolCallAccumulator:
    """Accumulate streamed fragments for one model turn."""

    def __init__(self) -> None:
        self._entries: dict[int, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, fragment: ToolCallFragment) -> None:
        entry = self._entries.get(fragment.index)
        if entry is None:
            entry = _Entry()
            self._entries[fragment.index] = entry

        if fragment.id is not None:
            entry.id = fragment.id
        if fragment.name is not None:
            entry.name = fragment.name
        entry.arguments_text += fragment.arguments_delta

    def add_all(self, fragments: Iterable[ToolCallFragment]) -> None:
        for fragment in fragments:
            self.add(fragment)

    def reset(self) -> None:
        self._entries.clear()

    def finalize(self) -> list[ToolInvocation]:
        """Return complete invocations in ascending index order.

        Entries missing an id or a name are dropped. The accumulator itself is
        left untouched.
        """

        out: list[ToolInvocation] = []
        for index in sorted(self._entries):
            entry = self._entries[index]
            if not entry.id or not entry.name:
                continue
            out.append(
                ToolInvocation(
                    id=entry.id,
                    name=entry.name,
                    arguments=decode_arguments(entry.arguments_text),
                    raw_arguments=entry.arguments_text,
                )
            )
        return out


def assemble(fragments: Iterable[ToolCallFragment]) -> list[ToolInvocation]:
    acc = ToolCallAccumulator()
    acc.add_all(fragments)
    return acc.finalize()
