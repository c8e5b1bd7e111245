"""
Model gateways: the provider-neutral contract and an OpenAI-compatible
implementation.
"""

from ..errors import ModelGatewayError, ToolSequencerError
from .base import (
    ModelGateway,
    ModelRequest,
    ModelResponse,
    StreamChunk,
    TextChunk,
    TextResponse,
    ToolCallRequest,
    ToolCallResponse,
    Usage,
    UsageChunk,
)
from .openai_gateway import OpenAIGateway, turns_to_messages

__all__ = [
    "ModelGateway",
    "ModelGatewayError",
    "ModelRequest",
    "ModelResponse",
    "OpenAIGateway",
    "StreamChunk",
    "TextChunk",
    "TextResponse",
    "ToolCallRequest",
    "ToolCallResponse",
    "ToolSequencerError",
    "Usage",
    "UsageChunk",
    "turns_to_messages",
]
