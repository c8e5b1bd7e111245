"""
Tool executor: the boundary between model-requested tool calls and tool code.

Looks tools up, validates parameters, applies the approval gate, runs the
tool and normalizes every failure into a ``ToolResult`` carrying an error.
Nothing a tool does can raise past ``invoke``. The executor also owns the
consecutive-failure counter that the engine's error budget reads.
"""

import logging
from typing import Iterable, Optional

from ..tools.registry import ToolDefinition, ToolRegistry, ToolResult
from ..tracing import TracingContext
from .hooks import ExecutionObserver, ToolApprover

logger = logging.getLogger(__name__)

DECLINED_CONTENT = "user declined"
MAX_ERROR_CHARS = 500


def _error_message(e: Exception) -> str:
    message = str(e) or type(e).__name__
    if len(message) > MAX_ERROR_CHARS:
        message = message[:MAX_ERROR_CHARS] + "..."
    return message


class ToolExecutor:
    """
    Runs tools on behalf of one engine.

    Failure accounting:
        - not found, missing parameters, a raised exception, or a result
          carrying an error: counter += 1
        - success: counter reset to 0
        - approval denied: counter unchanged

    The engine resets the counter itself when it intercepts the completion
    tool.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        requires_approval: Iterable[str] = (),
        approver: Optional[ToolApprover] = None,
        observer: Optional[ExecutionObserver] = None,
        tracing_context: Optional[TracingContext] = None,
        execution_id: Optional[str] = None,
    ):
        self.registry = registry
        self.requires_approval = frozenset(requires_approval)
        self.approver = approver
        self.observer = observer
        self.tracing_context = tracing_context
        self.execution_id = execution_id

        self.consecutive_failures = 0
        self.last_error: Optional[str] = None

    @property
    def _prefix(self) -> str:
        return f"[{self.execution_id}] " if self.execution_id else ""

    def reset_failures(self) -> None:
        self.consecutive_failures = 0

    def _record_failure(self, tool_name: str, error: str) -> None:
        self.consecutive_failures += 1
        self.last_error = error
        logger.warning(
            "%sTool '%s' failed (%d consecutive): %s",
            self._prefix,
            tool_name,
            self.consecutive_failures,
            error,
        )

    async def invoke(self, tool_name: str, params: dict) -> ToolResult:
        """
        Execute a tool by name.

        Returns:
            The tool's result. Errors are reported in ``ToolResult.error``.

        Raises:
            Whatever the approver raises; approval is caller code.
        """
        tool_def = self.registry.get(tool_name)
        if tool_def is None:
            result = ToolResult(content="", error=f"tool not found: {tool_name}")
            self._record_failure(tool_name, result.error)
            return result

        missing = tool_def.missing_parameters(params)
        if missing:
            result = ToolResult(
                content="",
                error=f"missing required parameter(s) for {tool_name}: {', '.join(missing)}",
            )
            self._record_failure(tool_name, result.error)
            return result

        if tool_name in self.requires_approval and self.approver is not None:
            approved = await self.approver.approve(tool_name, params)
            if not approved:
                logger.info("%sUser declined '%s'", self._prefix, tool_name)
                return ToolResult(content=DECLINED_CONTENT)

        result = await self._execute(tool_def, params)

        if result.error is not None:
            self._record_failure(tool_name, result.error)
            return result

        self.reset_failures()
        await self._notify_observer(tool_name, params, result)
        return result

    async def _execute(self, tool_def: ToolDefinition, params: dict) -> ToolResult:
        logger.debug("%sExecuting tool '%s'", self._prefix, tool_def.name)
        if self.tracing_context is None:
            return await self._run(tool_def, params)

        with self.tracing_context.span(name=f"tool:{tool_def.name}", input=params) as span:
            result = await self._run(tool_def, params)
            if result.error is not None:
                span.set_status("error")
                span.set_output({"error": result.error})
            else:
                content = result.content
                span.set_output({"result": content[:500] if len(content) > 500 else content})
            return result

    async def _run(self, tool_def: ToolDefinition, params: dict) -> ToolResult:
        try:
            return await tool_def.execute(params)
        except Exception as e:
            logger.error("%sTool '%s' raised: %s", self._prefix, tool_def.name, e)
            return ToolResult(content="", error=_error_message(e))

    async def _notify_observer(
        self, tool_name: str, params: dict, result: ToolResult
    ) -> None:
        if self.observer is None:
            return
        try:
            await self.observer.on_tool_executed(tool_name, params, result)
        except Exception as e:
            logger.warning(
                "%sExecution observer failed for '%s': %s", self._prefix, tool_name, e
            )
