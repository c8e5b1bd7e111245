"""
Sequential tool-execution engine.

Drives one conversation turn to a terminal state: ask the model, and while
it answers with a tool call, run exactly that one tool, append the call and
its result to the conversation, and ask again. The loop is an explicit state
machine; a run ends with a text answer, an explicit completion, a pending
clarifying question, an abort, an exhausted error budget or the iteration
ceiling.

Per-iteration flow:
    1. Stop if aborted, out of error budget, or at the iteration ceiling
    2. Send the conversation and tool schemas to the model
    3. Text: append it and stop
    4. Completion tool: notify the completion handler, append the result, stop
    5. Question tool with a handler: append the call, ask, append the answer
    6. Any other tool: append the call, execute, append the result
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..conversation.store import Conversation
from ..conversation.turns import tool_call_turn, tool_result_turn
from ..errors import ToolSequencerError
from ..gateway.base import (
    ModelGateway,
    ModelRequest,
    ModelResponse,
    TextResponse,
    ToolCallRequest,
    Usage,
)
from ..models.config import DEFAULT_APPROVAL_TOOLS, EngineConfig
from ..tools.control import format_completion
from ..tools.registry import ToolRegistry
from ..tracing import TracingContext
from .executor import ToolExecutor
from .hooks import EngineHooks
from .state import EngineState, EngineStep, RunOutcome

logger = logging.getLogger(__name__)


@dataclass
class EngineSettings:
    """Tunables for one engine instance."""

    temperature: float = 0.0
    max_output_tokens: Optional[int] = None
    max_consecutive_failures: int = 3
    max_iterations: Optional[int] = 25  # None disables the ceiling
    completion_tool: str = "attempt_completion"
    question_tool: str = "ask_followup_question"
    requires_approval: frozenset[str] = field(
        default_factory=lambda: frozenset(DEFAULT_APPROVAL_TOOLS)
    )

    @classmethod
    def from_config(cls, engine_config: EngineConfig) -> "EngineSettings":
        """Build settings from the ``engine`` section of the app config."""
        return cls(
            temperature=engine_config.temperature,
            max_output_tokens=engine_config.max_output_tokens or None,
            max_consecutive_failures=engine_config.max_consecutive_failures,
            max_iterations=engine_config.max_iterations or None,
            completion_tool=engine_config.completion_tool,
            question_tool=engine_config.question_tool,
            requires_approval=frozenset(engine_config.requires_approval),
        )


@dataclass
class _PendingQuestion:
    tool_name: str
    question: str
    call_id: Optional[str] = None
    answer: Optional[str] = None


def _interruption_message(e: BaseException) -> str:
    return f"interrupted: {str(e) or type(e).__name__}"


class SequentialToolEngine:
    """
    Runs one tool at a time until the model stops asking for tools.

    One engine per conversation run; engines are never shared between
    concurrent runs. Failure accounting and the abort flag live on the
    engine, so resuming a run after a deferred question keeps them.
    """

    def __init__(
        self,
        gateway: ModelGateway,
        registry: Optional[ToolRegistry] = None,
        settings: Optional[EngineSettings] = None,
        hooks: Optional[EngineHooks] = None,
        execution_id: Optional[str] = None,
        tracing_context: Optional[TracingContext] = None,
    ):
        self.gateway = gateway
        self.registry = registry or ToolRegistry()
        self.settings = settings or EngineSettings()
        self.hooks = hooks or EngineHooks()
        self.execution_id = execution_id
        self.tracing_context = tracing_context

        self.executor = ToolExecutor(
            registry=self.registry,
            requires_approval=self.settings.requires_approval,
            approver=self.hooks.approver,
            observer=self.hooks.observer,
            tracing_context=tracing_context,
            execution_id=execution_id,
        )

        self.state = EngineState.AWAITING_MODEL
        self.aborted = False
        self.steps: list[EngineStep] = []
        self._pending: Optional[_PendingQuestion] = None
        self._usage = Usage()

    @property
    def _prefix(self) -> str:
        return f"[{self.execution_id}] " if self.execution_id else ""

    @property
    def consecutive_failures(self) -> int:
        return self.executor.consecutive_failures

    @property
    def pending_question(self) -> Optional[str]:
        """The question awaiting an answer, if the run is suspended on one."""
        return self._pending.question if self._pending else None

    def abort(self) -> None:
        """Request cooperative cancellation, honored at the next iteration."""
        logger.info("%sAbort requested", self._prefix)
        self.aborted = True

    def provide_answer(self, answer: str) -> None:
        """
        Supply the user's answer to a deferred clarifying question.

        Raises:
            ToolSequencerError: If no question is pending.
        """
        if self._pending is None:
            raise ToolSequencerError("No clarifying question is awaiting an answer")
        self._pending.answer = answer

    def cancel_question(self, conversation: Conversation) -> None:
        """Close a deferred question without an answer so the run cannot resume."""
        pending = self._pending
        if pending is None:
            return
        logger.info("%sDropping unanswered question '%s'", self._prefix, pending.question)
        conversation.add(
            tool_result_turn(
                pending.tool_name, "", error="question cancelled", call_id=pending.call_id
            )
        )
        self._pending = None

    def _close_interrupted_call(
        self, conversation: Conversation, call: ToolCallRequest, e: BaseException
    ) -> None:
        # The call turn is already in the conversation; it must get a result.
        logger.warning("%sTool '%s' interrupted: %r", self._prefix, call.name, e)
        conversation.add(
            tool_result_turn(call.name, "", _interruption_message(e), call.call_id)
        )

    async def run(self, conversation: Conversation) -> RunOutcome:
        """
        Drive the conversation to a terminal state.

        Raises:
            ModelGatewayError: If a model request fails. Turns appended before
                the failure stay in the conversation.
            ToolSequencerError: If resumed while a question is still unanswered.

        Exceptions from the approver or question handler propagate after the
        interrupted call has been given an error result.
        """
        if self._pending is not None:
            self._resume_with_answer(conversation)

        self.steps = []
        self._usage = Usage()
        logger.debug("%sStarting run with %d turns", self._prefix, len(conversation))

        if self.tracing_context is None:
            return await self._run_loop(conversation)

        with self.tracing_context.span(
            name="engine_run",
            metadata={
                "max_iterations": self.settings.max_iterations,
                "execution_id": self.execution_id,
            },
            input={"turns": len(conversation)},
        ) as run_span:
            outcome = await self._run_loop(conversation)
            run_span.set_output(
                {
                    "state": outcome.state.value,
                    "iterations": outcome.iterations,
                    "text": (outcome.text or "")[:500],
                }
            )
            return outcome

    def _resume_with_answer(self, conversation: Conversation) -> None:
        pending = self._pending
        if pending.answer is None:
            raise ToolSequencerError(
                "Run is awaiting an answer; call provide_answer() first"
            )
        conversation.add(
            tool_result_turn(pending.tool_name, pending.answer, call_id=pending.call_id)
        )
        self._pending = None
        self.state = EngineState.AWAITING_MODEL

    async def _run_loop(self, conversation: Conversation) -> RunOutcome:
        iteration = 0
        while True:
            if self.aborted:
                return self._finish(EngineState.DONE_ABORTED, iteration)

            if self.executor.consecutive_failures >= self.settings.max_consecutive_failures:
                logger.warning(
                    "%sStopping after %d consecutive tool failures",
                    self._prefix,
                    self.executor.consecutive_failures,
                )
                return self._finish(
                    EngineState.DONE_ERROR_BUDGET_EXHAUSTED,
                    iteration,
                    last_error=self.executor.last_error,
                )

            if (
                self.settings.max_iterations is not None
                and iteration >= self.settings.max_iterations
            ):
                logger.warning(
                    "%sMax iterations (%d) reached", self._prefix, self.settings.max_iterations
                )
                return self._finish(EngineState.DONE_ITERATION_LIMIT, iteration)

            iteration += 1
            step = EngineStep(step_number=iteration)

            self.state = EngineState.AWAITING_MODEL
            response = await self._call_model(conversation, iteration)
            self._usage.input_tokens += response.usage.input_tokens
            self._usage.output_tokens += response.usage.output_tokens

            if isinstance(response, TextResponse):
                self.state = EngineState.TEXT_RESPONSE
                conversation.add_assistant_text(response.text)
                step.is_final = True
                step.final_text = response.text
                self.steps.append(step)
                return self._finish(EngineState.DONE_TEXT, iteration, text=response.text)

            self.state = EngineState.TOOL_REQUESTED
            if len(response.calls) > 1:
                logger.warning(
                    "%sModel requested %d tool calls; executing only '%s'",
                    self._prefix,
                    len(response.calls),
                    response.calls[0].name,
                )
            call = response.calls[0]
            step.action = call.name
            step.action_input = call.arguments

            if call.name == self.settings.completion_tool:
                return await self._complete(conversation, call, step, iteration)

            if (
                call.name == self.settings.question_tool
                and self.hooks.question_handler is not None
            ):
                outcome = await self._ask(conversation, call, step, iteration)
                if outcome is not None:
                    return outcome
                continue

            self.state = EngineState.EXECUTING_TOOL
            conversation.add(tool_call_turn(call.name, call.arguments, call.call_id))
            try:
                result = await self.executor.invoke(call.name, call.arguments)
            except BaseException as e:
                self._close_interrupted_call(conversation, call, e)
                raise
            conversation.add(
                tool_result_turn(call.name, result.content, result.error, call.call_id)
            )
            step.observation = result.content
            step.error = result.error
            self.steps.append(step)

    async def _complete(
        self,
        conversation: Conversation,
        call: ToolCallRequest,
        step: EngineStep,
        iteration: int,
    ) -> RunOutcome:
        result = str(call.arguments.get("result", ""))
        command = call.arguments.get("command") or None
        if self.hooks.completion_handler is not None:
            await self.hooks.completion_handler.on_task_completed(result, command)

        conversation.add_assistant_text(format_completion(result, command))
        self.executor.reset_failures()

        step.is_final = True
        step.final_text = result
        self.steps.append(step)
        return self._finish(
            EngineState.DONE_COMPLETION, iteration, text=result, command=command
        )

    async def _ask(
        self,
        conversation: Conversation,
        call: ToolCallRequest,
        step: EngineStep,
        iteration: int,
    ) -> Optional[RunOutcome]:
        """Put a clarifying question to the user; a RunOutcome means suspend."""
        question = str(call.arguments.get("question", ""))
        conversation.add(tool_call_turn(call.name, call.arguments, call.call_id))

        try:
            answer = await self.hooks.question_handler.ask(question)
        except BaseException as e:
            self._close_interrupted_call(conversation, call, e)
            raise
        if answer is None:
            self._pending = _PendingQuestion(
                tool_name=call.name, question=question, call_id=call.call_id
            )
            step.is_final = True
            self.steps.append(step)
            return self._finish(
                EngineState.AWAITING_USER_ANSWER, iteration, question=question
            )

        conversation.add(tool_result_turn(call.name, answer, call_id=call.call_id))
        step.observation = answer
        self.steps.append(step)
        return None

    async def _call_model(
        self, conversation: Conversation, iteration: int
    ) -> ModelResponse:
        tool_schemas = self.registry.schemas()
        request = ModelRequest(
            turns=conversation.messages(),
            tool_schemas=tool_schemas,
            force_tool_use=bool(tool_schemas),
            temperature=self.settings.temperature,
            max_output_tokens=self.settings.max_output_tokens,
        )
        logger.debug("%sIteration %d: calling model", self._prefix, iteration)

        if self.tracing_context is None:
            return await self.gateway.complete(request)

        with self.tracing_context.generation(
            name=f"engine_step_{iteration}",
            model=getattr(self.gateway, "model_id", "unknown"),
            input={"turns": len(request.turns), "tools": len(tool_schemas)},
            model_parameters={
                "temperature": request.temperature,
                "max_tokens": request.max_output_tokens,
            },
        ) as gen:
            response = await self.gateway.complete(request)
            if isinstance(response, TextResponse):
                gen.set_output(response.text[:2000])
            else:
                gen.set_output(
                    [{"name": c.name, "arguments": c.arguments} for c in response.calls]
                )
            gen.set_usage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
            )
            return response

    def _finish(
        self,
        state: EngineState,
        iterations: int,
        text: Optional[str] = None,
        command: Optional[str] = None,
        question: Optional[str] = None,
        last_error: Optional[str] = None,
    ) -> RunOutcome:
        self.state = state
        outcome = RunOutcome(
            state=state,
            text=text,
            command=command,
            question=question,
            last_error=last_error,
            iterations=iterations,
            usage=Usage(self._usage.input_tokens, self._usage.output_tokens),
            tools_used=self._unique_tools_used(),
        )
        logger.info("%sRun finished: %s after %d iteration(s)", self._prefix, state.value, iterations)
        self._log_trace_summary()
        return outcome

    def _unique_tools_used(self) -> list[str]:
        """Tools executed this run, in first-use order, excluding the completion tool."""
        seen: set[str] = set()
        result: list[str] = []
        for step in self.steps:
            if (
                step.action
                and step.action != self.settings.completion_tool
                and step.action not in seen
            ):
                seen.add(step.action)
                result.append(step.action)
        return result

    def _log_trace_summary(self) -> None:
        """Log a compact trace summary."""
        if not self.steps:
            return
        logger.debug("%s%s", self._prefix, "─" * 50)
        logger.debug("%sTRACE SUMMARY", self._prefix)
        for step in self.steps:
            if step.is_final:
                logger.debug(
                    "%sStep %d [FINAL]: %s",
                    self._prefix,
                    step.step_number,
                    step.action or "text",
                )
            elif step.error:
                logger.debug(
                    "%sStep %d: %s failed: %s",
                    self._prefix,
                    step.step_number,
                    step.action,
                    step.error,
                )
            else:
                obs_preview = (
                    (step.observation[:80] + "...")
                    if step.observation and len(step.observation) > 80
                    else step.observation
                )
                logger.debug(
                    "%sStep %d: %s -> %s",
                    self._prefix,
                    step.step_number,
                    step.action,
                    obs_preview,
                )

    def get_trace(self) -> list[dict]:
        """
        Get a trace of the last run's steps.

        Returns:
            List of step dictionaries.
        """
        return [
            {
                "step": s.step_number,
                "action": s.action,
                "action_input": s.action_input,
                "observation": s.observation,
                "error": s.error,
                "is_final": s.is_final,
                "final_text": s.final_text,
            }
            for s in self.steps
        ]
