"""
Chat session: the caller-facing entry point.

Owns a conversation and runs a fresh engine for every user message. Without
tools, replies are streamed as plain text.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

from .conversation.store import Conversation
from .conversation.turns import Role, user_text
from .engine import EngineHooks, EngineSettings, RunOutcome, SequentialToolEngine
from .errors import ModelGatewayError
from .gateway.base import (
    ModelGateway,
    ModelRequest,
    TextChunk,
    TextResponse,
    Usage,
    UsageChunk,
)
from .models.catalog import ModelInfo, get_model_info
from .tools.registry import ToolRegistry
from .tracing import TracingContext, get_tracing_client

logger = logging.getLogger(__name__)


@dataclass
class ChatReply:
    """Result of one user message."""

    text: str
    usage: Usage = field(default_factory=Usage)
    outcome: Optional[RunOutcome] = None


class ChatSession:
    """
    One user's chat with a model, with or without tools.

    If a run stops on a deferred clarifying question, the next message is
    taken as the answer and the same engine resumes.
    """

    def __init__(
        self,
        gateway: ModelGateway,
        registry: Optional[ToolRegistry] = None,
        settings: Optional[EngineSettings] = None,
        hooks: Optional[EngineHooks] = None,
        model_info: Optional[ModelInfo] = None,
        block_token_cost: int = 0,
        session_id: Optional[str] = None,
    ):
        self.gateway = gateway
        self.registry = registry or ToolRegistry()
        self.settings = settings or EngineSettings()
        self.hooks = hooks or EngineHooks()
        self.model_info = model_info or get_model_info(gateway.model_id)
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self.conversation = Conversation(block_token_cost=block_token_cost)
        self.engine: Optional[SequentialToolEngine] = None

    def _prepare(self, text: str, conversation: Conversation) -> None:
        conversation.set_model_limits_from(self.model_info)
        last = conversation.last()
        # A user turn left behind by a failed request is retried, not duplicated.
        if last is not None and last.role == Role.USER and last.content == text:
            logger.debug("Last turn is already a user message; not appending")
            return
        conversation.add_user_text(text)

    async def send_message(
        self, text: str, conversation: Optional[Conversation] = None
    ) -> ChatReply:
        """
        Send a user message and return the assistant's reply.

        Raises:
            ModelGatewayError: If a model request fails.
        """
        conversation = conversation if conversation is not None else self.conversation

        if self.engine is not None and self.engine.pending_question is not None:
            if not self.engine.aborted:
                conversation.set_model_limits_from(self.model_info)
                self.engine.provide_answer(text)
                return await self._run_engine(self.engine, conversation)
            # An aborted run is not resumed; the message starts a new one.
            self.engine.cancel_question(conversation)
            self.engine = None

        self._prepare(text, conversation)

        if len(self.registry) == 0:
            chunks: list[str] = []
            usage = Usage()
            async for chunk in self._stream(conversation):
                if isinstance(chunk, TextChunk):
                    chunks.append(chunk.text)
                else:
                    usage = chunk.usage
            reply = "".join(chunks)
            conversation.add_assistant_text(reply)
            return ChatReply(text=reply, usage=usage)

        execution_id = uuid.uuid4().hex[:8]
        tracing_context = None
        client = get_tracing_client()
        if client is not None and client.enabled:
            tracing_context = TracingContext(
                execution_id=execution_id, session_id=self.session_id
            )

        self.engine = SequentialToolEngine(
            gateway=self.gateway,
            registry=self.registry,
            settings=self.settings,
            hooks=self.hooks,
            execution_id=execution_id,
            tracing_context=tracing_context,
        )
        return await self._run_engine(self.engine, conversation)

    async def _run_engine(
        self, engine: SequentialToolEngine, conversation: Conversation
    ) -> ChatReply:
        tracing_context = engine.tracing_context
        if tracing_context is not None:
            last = conversation.last()
            tracing_context.start_trace(
                name="chat_message", input=last.text() if last else None
            )
        try:
            outcome = await engine.run(conversation)
        except BaseException:
            if tracing_context is not None:
                tracing_context.end_trace(status="error")
            raise

        if tracing_context is not None:
            tracing_context.end_trace(
                output={"state": outcome.state.value, "text": outcome.text},
            )

        reply = outcome.text or outcome.question or ""
        return ChatReply(text=reply, usage=outcome.usage, outcome=outcome)

    def _request(self, conversation: Conversation) -> ModelRequest:
        return ModelRequest(
            turns=conversation.messages(),
            temperature=self.settings.temperature,
            max_output_tokens=self.settings.max_output_tokens,
        )

    def _stream(self, conversation: Conversation):
        return self.gateway.stream(self._request(conversation))

    async def stream_message(
        self, text: str, conversation: Optional[Conversation] = None
    ) -> AsyncIterator[str]:
        """Stream a plain-text reply, then append it to the conversation."""
        conversation = conversation if conversation is not None else self.conversation
        self._prepare(text, conversation)

        chunks: list[str] = []
        async for chunk in self._stream(conversation):
            if isinstance(chunk, UsageChunk):
                logger.debug(
                    "Streamed reply used %d input / %d output tokens",
                    chunk.usage.input_tokens,
                    chunk.usage.output_tokens,
                )
                continue
            chunks.append(chunk.text)
            yield chunk.text

        conversation.add_assistant_text("".join(chunks))

    async def complete_prompt(self, prompt: str) -> str:
        """One-shot completion outside the conversation history."""
        response = await self.gateway.complete(
            ModelRequest(
                turns=[user_text(prompt)],
                temperature=self.settings.temperature,
                max_output_tokens=self.settings.max_output_tokens,
            )
        )
        if not isinstance(response, TextResponse):
            raise ModelGatewayError("Expected a text response to a plain prompt")
        return response.text

    def abort(self) -> None:
        """Abort the engine currently running, if any."""
        if self.engine is not None:
            self.engine.abort()

    def clear(self) -> None:
        """Forget the conversation and any pending question."""
        self.conversation.clear()
        self.engine = None
