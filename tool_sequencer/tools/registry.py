"""
Tool Registry - Single source of truth for tool definitions.

Holds the named tools available to one session, with their parameter
schemas, descriptions and async executors.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional


@dataclass
class ToolResult:
    """Outcome of a tool execution: content, or an error the model can read."""

    content: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ParameterSpec:
    """Schema for a single tool parameter."""

    type: str
    description: str
    items: Optional[str] = None  # element type for arrays

    def to_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.type, "description": self.description}
        if self.items:
            schema["items"] = {"type": self.items}
        return schema


ToolHandler = Callable[[dict], Awaitable[ToolResult]]


@dataclass
class ToolDefinition:
    """Metadata for a tool - defined once, used everywhere."""

    name: str
    description: str
    parameters: dict[str, ParameterSpec]
    execute: ToolHandler
    required: list[str] = field(default_factory=list)

    def missing_parameters(self, params: dict) -> list[str]:
        """Names of required parameters absent from ``params``."""
        return [name for name in self.required if params.get(name) is None]

    def to_schema(self) -> dict[str, Any]:
        """Provider-neutral JSON schema for this tool."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": {
                "type": "object",
                "properties": {
                    name: spec.to_schema() for name, spec in self.parameters.items()
                },
                "required": list(self.required),
            },
        }


class ToolRegistry:
    """Registry of the tools available to one session."""

    def __init__(self, tools: Optional[list[ToolDefinition]] = None) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: ToolDefinition) -> None:
        """Register a tool. Names must be unique."""
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Optional[ToolDefinition]:
        """Get a tool by name."""
        return self._tools.get(name)

    lookup = get

    def all_tools(self) -> dict[str, ToolDefinition]:
        """Get a copy of all registered tools."""
        return self._tools.copy()

    def names(self) -> list[str]:
        return list(self._tools)

    def schemas(self) -> list[dict[str, Any]]:
        """JSON schemas for every registered tool, in registration order."""
        return [tool.to_schema() for tool in self._tools.values()]

    def get_tools_summary(self) -> str:
        """Get formatted summary of all tools for prompts."""
        lines = []
        for name, tool in self._tools.items():
            lines.append(f"- {name}: {tool.description}")
        return "\n".join(lines)

    def clear(self) -> None:
        """Clear all registered tools."""
        self._tools.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
