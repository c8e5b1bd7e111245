"""
Collaborator interfaces the engine calls out to.

All four are optional. The engine awaits each hook at a fixed point in the
run; approver and question-handler failures propagate to the caller, while
observer failures are logged and ignored.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from ..tools.registry import ToolResult
from ..tracing import TracingContext

logger = logging.getLogger(__name__)


@runtime_checkable
class ToolApprover(Protocol):
    """Decides whether a side-effecting tool may run."""

    async def approve(self, tool_name: str, params: dict) -> bool: ...


@runtime_checkable
class ExecutionObserver(Protocol):
    """Notified after every successful tool execution."""

    async def on_tool_executed(
        self, tool_name: str, params: dict, result: ToolResult
    ) -> None: ...


@runtime_checkable
class CompletionHandler(Protocol):
    """Receives the final result when the model signals task completion."""

    async def on_task_completed(self, result: str, command: Optional[str]) -> None: ...


@runtime_checkable
class QuestionHandler(Protocol):
    """
    Answers a clarifying question from the model.

    Returning ``None`` defers the answer: the run stops and the caller
    resumes it later with ``engine.provide_answer``.
    """

    async def ask(self, question: str) -> Optional[str]: ...


@dataclass
class EngineHooks:
    approver: Optional[ToolApprover] = None
    observer: Optional[ExecutionObserver] = None
    completion_handler: Optional[CompletionHandler] = None
    question_handler: Optional[QuestionHandler] = None


class TracingObserver:
    """Execution observer that records successful tool runs as Langfuse spans."""

    def __init__(self, tracing_context: TracingContext):
        self.tracing_context = tracing_context

    async def on_tool_executed(
        self, tool_name: str, params: dict, result: ToolResult
    ) -> None:
        with self.tracing_context.span(
            name=f"tool_executed:{tool_name}",
            input=params,
        ) as span:
            content = result.content
            span.set_output({"result": content[:500] if len(content) > 500 else content})
        logger.debug(
            "[%s] Recorded execution of '%s'", self.tracing_context.execution_id, tool_name
        )
