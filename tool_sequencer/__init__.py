"""
Tool Sequencer - sequential tool execution for function-calling LLMs

This package provides:
- Conversation history with sliding-window truncation
- A tool registry with an approval gate and reference workspace tools
- A sequential tool-execution engine driven by a model gateway
- A chat session and interactive CLI
"""

from .conversation import Conversation
from .engine import EngineHooks, EngineSettings, EngineState, SequentialToolEngine
from .errors import ModelGatewayError, ToolSequencerError
from .session import ChatReply, ChatSession

__all__ = [
    "ChatReply",
    "ChatSession",
    "Conversation",
    "EngineHooks",
    "EngineSettings",
    "EngineState",
    "ModelGatewayError",
    "SequentialToolEngine",
    "ToolSequencerError",
]

__version__ = "0.1.0"
