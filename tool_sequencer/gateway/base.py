"""
Provider-neutral model gateway contract.

The engine talks to a model only through ``ModelGateway``: one request in,
either a text response or a tool-call response out. Streaming yields text
chunks and ends with exactly one usage chunk.
"""

from dataclasses import dataclass, field
from typing import AsyncIterator, Optional, Protocol, Union, runtime_checkable

from ..conversation.turns import Turn


@dataclass
class Usage:
    """Token usage reported by the provider."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class ModelRequest:
    """One request to the model."""

    turns: list[Turn]
    tool_schemas: list[dict] = field(default_factory=list)
    force_tool_use: bool = False
    temperature: float = 0.0
    max_output_tokens: Optional[int] = None


@dataclass
class TextResponse:
    """The model answered in plain text."""

    text: str
    usage: Usage = field(default_factory=Usage)


@dataclass
class ToolCallRequest:
    """A tool invocation requested by the model."""

    name: str
    arguments: dict = field(default_factory=dict)
    call_id: Optional[str] = None


@dataclass
class ToolCallResponse:
    """The model asked for one or more tool calls."""

    calls: list[ToolCallRequest]
    usage: Usage = field(default_factory=Usage)

    @property
    def first(self) -> ToolCallRequest:
        return self.calls[0]


@dataclass
class TextChunk:
    """A streamed fragment of response text."""

    text: str


@dataclass
class UsageChunk:
    """Final chunk of a stream carrying token usage."""

    usage: Usage


ModelResponse = Union[TextResponse, ToolCallResponse]
StreamChunk = Union[TextChunk, UsageChunk]


@runtime_checkable
class ModelGateway(Protocol):
    """Anything that can answer model requests."""

    model_id: str

    async def complete(self, request: ModelRequest) -> ModelResponse:
        """Send a request and return a text or tool-call response."""
        ...

    def stream(self, request: ModelRequest) -> AsyncIterator[StreamChunk]:
        """Stream a text response, ending with one ``UsageChunk``."""
        ...
