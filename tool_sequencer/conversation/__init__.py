"""
Conversation history: turn model, token estimation and sliding-window
truncation.
"""

from .store import Conversation
from .tokens import estimate_tokens
from .truncation import (
    TOKEN_BUFFER_FRACTION,
    truncate_conversation,
    truncate_conversation_if_needed,
)
from .turns import (
    ContentBlock,
    ImageBlock,
    Role,
    TextBlock,
    ToolCallBlock,
    ToolResultBlock,
    Turn,
    assistant_text,
    tool_call_turn,
    tool_result_turn,
    user_text,
)

__all__ = [
    "Conversation",
    "estimate_tokens",
    "TOKEN_BUFFER_FRACTION",
    "truncate_conversation",
    "truncate_conversation_if_needed",
    "ContentBlock",
    "ImageBlock",
    "Role",
    "TextBlock",
    "ToolCallBlock",
    "ToolResultBlock",
    "Turn",
    "assistant_text",
    "tool_call_turn",
    "tool_result_turn",
    "user_text",
]
