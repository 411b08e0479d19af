from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterator

from langchain_core.tools import BaseTool
from langchain_core.utils.function_calling import convert_to_openai_tool
from pydantic import ValidationError

from turnloop.core.types import JsonObject

from .errors import ToolError, ToolErrorKind

ToolExecute = Callable[[JsonObject], Awaitable[Any]]

_EMPTY_PARAMETERS: dict[str, Any] = {"type": "object", "properties": {}}


@dataclass(frozen=True)
class ToolDescriptor:
    """Capability descriptor the gateway resolves invocations against.

    `execute` returns text (or any value the result codec can render) and
    signals failure by raising, preferably a ToolError.
    """

    name: str
    description: str
    execute: ToolExecute
    parameters: dict[str, Any] = field(default_factory=lambda: dict(_EMPTY_PARAMETERS))
    confirmation_required: bool = True

    def to_openai_spec(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    @classmethod
    def from_langchain(cls, tool: BaseTool, *, confirmation_required: bool = True) -> "ToolDescriptor":
        """Wrap a LangChain tool; its pydantic schema becomes the parameters."""

        spec = convert_to_openai_tool(tool)
        fn = spec.get("function") or {}
        parameters = fn.get("parameters")
        if not isinstance(parameters, dict):
            parameters = dict(_EMPTY_PARAMETERS)

        async def execute(arguments: JsonObject) -> Any:
            try:
                return await tool.ainvoke(arguments)
            except ValidationError as e:
                problems = "; ".join(
                    f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}" for err in e.errors()
                )
                raise ToolError(ToolErrorKind.INVALID_ARGUMENTS, problems) from e

        return cls(
            name=tool.name,
            description=tool.description or "",
            execute=execute,
            parameters=parameters,
            confirmation_required=confirmation_required,
        )


class ToolCatalog:
    """Name -> descriptor registry.

    Mutate only between generation cycles; orchestrators read it while
    generating.
    """

    def __init__(self, descriptors: list[ToolDescriptor] | None = None) -> None:
        self._tools: dict[str, ToolDescriptor] = {}
        for d in descriptors or []:
            self.register(d)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(list(self._tools.values()))

    def register(self, descriptor: ToolDescriptor) -> None:
        if descriptor.name in self._tools:
            raise ValueError(f"tool already registered: {descriptor.name}")
        self._tools[descriptor.name] = descriptor

    def unregister(self, name: str) -> ToolDescriptor | None:
        return self._tools.pop(name, None)

    def resolve(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def descriptors(self) -> list[ToolDescriptor]:
        return list(self._tools.values())

    def openai_specs(self, *, permits: Callable[[str], bool] | None = None) -> list[dict[str, Any]]:
        return [d.to_openai_spec() for d in self._tools.values() if permits is None or permits(d.name)]
