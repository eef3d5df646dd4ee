"""Named wiki tools and their dispatch."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

ToolHandler = Callable[[dict[str, object]], dict[str, object]]

UNKNOWN_TOOL = "UNKNOWN_TOOL"


@dataclass(slots=True, frozen=True)
class ToolDispatchError(Exception):
    """A request-scoped failure reported to the caller as an error envelope."""

    code: str
    message: str


@dataclass(slots=True, frozen=True)
class ToolSpec:
    name: str
    handler: ToolHandler
    summary: str = ""


@dataclass(slots=True)
class ToolRegistry:
    """Tools keyed by name; listing follows registration order."""

    _tools: dict[str, ToolSpec] = field(default_factory=dict)

    def register(self, name: str, handler: ToolHandler, summary: str = "") -> None:
        if not name:
            raise ValueError("Tool name must be non-empty")
        if name in self._tools:
            raise ValueError(f"Tool already registered: {name}")
        self._tools[name] = ToolSpec(name=name, handler=handler, summary=summary)

    def names(self) -> tuple[str, ...]:
        return tuple(self._tools)

    def describe(self) -> list[dict[str, str]]:
        """Name and summary of every tool, for ``tools/list``."""
        return [{"name": tool.name, "summary": tool.summary} for tool in self._tools.values()]

    def dispatch(self, name: str, arguments: dict[str, object]) -> dict[str, object]:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolDispatchError(code=UNKNOWN_TOOL, message=f"Unknown tool: {name}")
        return tool.handler(arguments)
