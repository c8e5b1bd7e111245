"""
Turn and content-block data model for conversations.

A turn's content is either plain text or an ordered list of typed content
blocks. The block types form a closed set; consumers match on them with
``isinstance`` and treat anything else as a programming error.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Optional, Union


class Role:
    """Well-known turn roles. Provider-specific roles are plain strings."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True)
class TextBlock:
    """A run of plain text inside a block-structured turn."""

    text: str
    type: str = field(default="text", init=False)


@dataclass(frozen=True)
class ImageBlock:
    """Reference to externally supplied image data (data URL or http URL)."""

    url: str
    type: str = field(default="image", init=False)


@dataclass(frozen=True)
class ToolCallBlock:
    """A structured tool invocation issued by the model."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    call_id: Optional[str] = None
    type: str = field(default="tool_call", init=False)


@dataclass(frozen=True)
class ToolResultBlock:
    """The outcome of executing a tool call, fed back to the model."""

    name: str
    content: str
    error: Optional[str] = None
    call_id: Optional[str] = None
    type: str = field(default="tool_result", init=False)


ContentBlock = Union[TextBlock, ImageBlock, ToolCallBlock, ToolResultBlock]
TurnContent = Union[str, list[ContentBlock]]


def now_ms() -> float:
    """Current wall-clock time in epoch milliseconds."""
    return time.time() * 1000


@dataclass
class Turn:
    """One role-tagged entry in a conversation."""

    role: str
    content: TurnContent
    timestamp: Optional[float] = None

    @property
    def is_text(self) -> bool:
        """True when the content is a plain string."""
        return isinstance(self.content, str)

    @property
    def blocks(self) -> list[ContentBlock]:
        """Content as a block list; plain text becomes a single TextBlock."""
        if isinstance(self.content, str):
            return [TextBlock(self.content)]
        return list(self.content)

    def first_tool_call(self) -> Optional[ToolCallBlock]:
        """Return the first tool call block, if any."""
        for block in self.blocks:
            if isinstance(block, ToolCallBlock):
                return block
        return None

    def text(self) -> str:
        """Concatenate the textual parts of this turn."""
        if isinstance(self.content, str):
            return self.content
        parts: list[str] = []
        for block in self.content:
            if isinstance(block, TextBlock):
                parts.append(block.text)
            elif isinstance(block, ToolResultBlock):
                parts.append(block.error or block.content)
            elif isinstance(block, (ImageBlock, ToolCallBlock)):
                continue
            else:
                raise TypeError(f"Unsupported content block: {block!r}")
        return "\n".join(parts)


def user_text(text: str) -> Turn:
    """Build a plain-text user turn."""
    return Turn(role=Role.USER, content=text)


def assistant_text(text: str) -> Turn:
    """Build a plain-text assistant turn."""
    return Turn(role=Role.ASSISTANT, content=text)


def tool_call_turn(name: str, arguments: dict, call_id: Optional[str] = None) -> Turn:
    """Build the assistant turn that records a model-issued tool call."""
    return Turn(
        role=Role.ASSISTANT,
        content=[ToolCallBlock(name=name, arguments=dict(arguments), call_id=call_id)],
    )


def tool_result_turn(
    name: str,
    content: str,
    error: Optional[str] = None,
    call_id: Optional[str] = None,
) -> Turn:
    """Build the user turn carrying a tool's outcome back to the model."""
    return Turn(
        role=Role.USER,
        content=[
            ToolResultBlock(name=name, content=content, error=error, call_id=call_id)
        ],
    )
