"""
OpenAI-compatible model gateway.

Converts conversation turns to Chat Completions messages, sends them with
``openai.AsyncOpenAI`` and maps the reply back onto gateway responses. Works
against any endpoint speaking the OpenAI protocol (OpenAI, vLLM, Ollama's
compatibility layer, Gemini's OpenAI endpoint).
"""

import json
import logging
from typing import Any, AsyncIterator, Optional

from openai import APIError, AsyncOpenAI

from ..conversation.turns import (
    ImageBlock,
    TextBlock,
    ToolCallBlock,
    ToolResultBlock,
    Turn,
)
from ..errors import ModelGatewayError
from ..models.config import GatewayConfig
from .base import (
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

logger = logging.getLogger(__name__)


def _tool_result_text(block: ToolResultBlock) -> str:
    if block.error and block.content:
        return f"{block.content}\nError: {block.error}"
    if block.error:
        return f"Error: {block.error}"
    return block.content


def turns_to_messages(turns: list[Turn]) -> list[dict[str, Any]]:
    """
    Convert turns to Chat Completions messages.

    Tool calls become assistant ``tool_calls``; tool results answering them
    become ``tool`` messages. A result with no matching preceding call is
    sent as user text, since providers reject dangling ``tool`` messages.
    Calls without a provider id get a synthetic one so their results can
    still be paired.
    """
    messages: list[dict[str, Any]] = []
    # call id -> tool name, for calls still awaiting a result
    pending: dict[str, str] = {}

    for turn_index, turn in enumerate(turns):
        if isinstance(turn.content, str):
            messages.append({"role": turn.role, "content": turn.content})
            pending.clear()
            continue

        parts: list[dict[str, Any]] = []
        tool_calls: list[dict[str, Any]] = []
        tool_messages: list[dict[str, Any]] = []

        for block_index, block in enumerate(turn.content):
            if isinstance(block, TextBlock):
                parts.append({"type": "text", "text": block.text})
            elif isinstance(block, ImageBlock):
                parts.append({"type": "image_url", "image_url": {"url": block.url}})
            elif isinstance(block, ToolCallBlock):
                call_id = block.call_id or f"call_{turn_index}_{block_index}"
                tool_calls.append(
                    {
                        "id": call_id,
                        "type": "function",
                        "function": {
                            "name": block.name,
                            "arguments": json.dumps(block.arguments),
                        },
                    }
                )
            elif isinstance(block, ToolResultBlock):
                call_id = block.call_id
                if call_id is None:
                    call_id = next(
                        (cid for cid, name in pending.items() if name == block.name),
                        None,
                    )
                if call_id is not None and call_id in pending:
                    del pending[call_id]
                    tool_messages.append(
                        {
                            "role": "tool",
                            "tool_call_id": call_id,
                            "content": _tool_result_text(block),
                        }
                    )
                else:
                    parts.append(
                        {
                            "type": "text",
                            "text": f"[{block.name} result]\n{_tool_result_text(block)}",
                        }
                    )
            else:
                raise TypeError(f"Unsupported content block: {block!r}")

        messages.extend(tool_messages)

        if tool_calls:
            text = "\n".join(p["text"] for p in parts if p["type"] == "text")
            messages.append(
                {"role": turn.role, "content": text or None, "tool_calls": tool_calls}
            )
            pending = {
                call["id"]: call["function"]["name"] for call in tool_calls
            }
        elif parts:
            if all(p["type"] == "text" for p in parts):
                content: Any = "\n".join(p["text"] for p in parts)
            else:
                content = parts
            messages.append({"role": turn.role, "content": content})
            pending.clear()

    return messages


def _parse_arguments(raw: Optional[str], name: str) -> dict:
    if not raw:
        return {}
    try:
        arguments = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Malformed arguments for tool '%s': %s", name, raw[:200])
        return {}
    if not isinstance(arguments, dict):
        logger.warning("Non-object arguments for tool '%s': %s", name, raw[:200])
        return {}
    return arguments


def _usage_from(raw_usage: Any) -> Usage:
    if raw_usage is None:
        return Usage()
    return Usage(
        input_tokens=raw_usage.prompt_tokens or 0,
        output_tokens=raw_usage.completion_tokens or 0,
    )


class OpenAIGateway:
    """Model gateway backed by ``openai.AsyncOpenAI``."""

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 120.0,
        max_retries: int = 2,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model_id = model
        self._client = client or AsyncOpenAI(
            api_key=api_key or "not-needed",
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
        )

    @classmethod
    def from_config(cls, gateway_config: GatewayConfig) -> "OpenAIGateway":
        """Build a gateway from the ``gateway`` configuration section."""
        return cls(
            model=gateway_config.model,
            api_key=gateway_config.api_key,
            base_url=gateway_config.base_url or None,
            timeout=gateway_config.timeout,
            max_retries=gateway_config.max_retries,
        )

    def _create_kwargs(self, request: ModelRequest) -> dict[str, Any]:
        create_kwargs: dict[str, Any] = {
            "model": self.model_id,
            "messages": turns_to_messages(request.turns),
            "temperature": request.temperature,
        }
        if request.max_output_tokens:
            create_kwargs["max_tokens"] = request.max_output_tokens
        if request.tool_schemas:
            create_kwargs["tools"] = [
                {"type": "function", "function": schema}
                for schema in request.tool_schemas
            ]
            if request.force_tool_use:
                create_kwargs["tool_choice"] = "required"
        return create_kwargs

    async def complete(self, request: ModelRequest) -> ModelResponse:
        """
        Send one request.

        Raises:
            ModelGatewayError: On any SDK or provider failure.
        """
        create_kwargs = self._create_kwargs(request)
        logger.debug(
            "Requesting %s with %d messages, %d tools",
            self.model_id,
            len(create_kwargs["messages"]),
            len(request.tool_schemas),
        )
        try:
            response = await self._client.chat.completions.create(**create_kwargs)
        except APIError as e:
            logger.error("Model request to %s failed: %s", self.model_id, e)
            raise ModelGatewayError(
                f"Model request failed: {e}", getattr(e, "status_code", None)
            ) from e

        if not response.choices:
            raise ModelGatewayError("Model returned no choices")

        message = response.choices[0].message
        usage = _usage_from(response.usage)

        if message.tool_calls:
            calls = [
                ToolCallRequest(
                    name=call.function.name,
                    arguments=_parse_arguments(call.function.arguments, call.function.name),
                    call_id=call.id,
                )
                for call in message.tool_calls
            ]
            return ToolCallResponse(calls=calls, usage=usage)

        return TextResponse(text=message.content or "", usage=usage)

    async def stream(self, request: ModelRequest) -> AsyncIterator[StreamChunk]:
        """
        Stream a text reply.

        Yields ``TextChunk`` items followed by exactly one ``UsageChunk``.

        Raises:
            ModelGatewayError: On any SDK or provider failure.
        """
        create_kwargs = self._create_kwargs(request)
        create_kwargs.pop("tools", None)
        create_kwargs.pop("tool_choice", None)
        usage = Usage()
        try:
            response_stream = await self._client.chat.completions.create(
                **create_kwargs,
                stream=True,
                stream_options={"include_usage": True},
            )
            async for chunk in response_stream:
                if chunk.usage is not None:
                    usage = _usage_from(chunk.usage)
                if chunk.choices and chunk.choices[0].delta.content:
                    yield TextChunk(text=chunk.choices[0].delta.content)
        except APIError as e:
            logger.error("Streaming request to %s failed: %s", self.model_id, e)
            raise ModelGatewayError(
                f"Streaming request failed: {e}", getattr(e, "status_code", None)
            ) from e
        yield UsageChunk(usage=usage)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.close()
