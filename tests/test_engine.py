"""
Tests for the sequential tool-execution engine.

Tests cover:
- Executor failure accounting, the approval gate and observer isolation
- Engine terminal states (text, completion, abort, error budget, iteration
  limit, deferred question)
- Clarifying-question and completion interception
- Gateway and hook error propagation
"""

import logging
from unittest.mock import AsyncMock, Mock

import pytest

from tool_sequencer.conversation import Conversation, Role, ToolCallBlock, ToolResultBlock
from tool_sequencer.engine import (
    DECLINED_CONTENT,
    EngineHooks,
    EngineSettings,
    EngineState,
    SequentialToolEngine,
    ToolExecutor,
)
from tool_sequencer.errors import ModelGatewayError, ToolSequencerError
from tool_sequencer.gateway import (
    TextResponse,
    ToolCallRequest,
    ToolCallResponse,
    Usage,
    turns_to_messages,
)
from tool_sequencer.models import EngineConfig
from tool_sequencer.tools import ParameterSpec, ToolDefinition, ToolRegistry, ToolResult
from tool_sequencer.tracing import TracingContext


def _text(text: str) -> TextResponse:
    return TextResponse(text=text, usage=Usage(10, 5))


def _call(name: str, arguments: dict, call_id: str | None = None) -> ToolCallResponse:
    return ToolCallResponse(
        calls=[ToolCallRequest(name=name, arguments=arguments, call_id=call_id)],
        usage=Usage(10, 5),
    )


def _tool(name: str, result: ToolResult | None = None, **kwargs) -> ToolDefinition:
    execute = kwargs.pop("execute", None) or AsyncMock(
        return_value=result or ToolResult(content="ok")
    )
    return ToolDefinition(
        name=name,
        description=f"The {name} tool",
        parameters={"path": ParameterSpec("string", "A path")},
        execute=execute,
        **kwargs,
    )


def _failing_read_file() -> ToolDefinition:
    return _tool(
        "read_file",
        ToolResult(content="", error="not found"),
        required=["path"],
    )


def _conversation(text: str = "Read x.json") -> Conversation:
    conversation = Conversation()
    conversation.add_user_text(text)
    return conversation


def _request_turns(gateway: Mock, index: int) -> list:
    return gateway.complete.await_args_list[index].args[0].turns


class TestToolExecutor:
    """Tests for ToolExecutor.invoke."""

    @pytest.mark.asyncio
    async def test_success_resets_counter(self):
        executor = ToolExecutor(ToolRegistry([_tool("list_dir")]))
        executor.consecutive_failures = 2

        result = await executor.invoke("list_dir", {})

        assert result == ToolResult(content="ok")
        assert executor.consecutive_failures == 0

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        executor = ToolExecutor(ToolRegistry())
        result = await executor.invoke("nope", {})

        assert result.error.startswith("tool not found")
        assert result.error == "tool not found: nope"
        assert executor.consecutive_failures == 1
        assert executor.last_error == "tool not found: nope"

    @pytest.mark.asyncio
    async def test_missing_required_parameter(self):
        tool = _failing_read_file()
        executor = ToolExecutor(ToolRegistry([tool]))

        result = await executor.invoke("read_file", {})

        assert "missing required parameter" in result.error
        assert executor.consecutive_failures == 1
        tool.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_raised_exception_becomes_error(self):
        tool = _tool("list_dir", execute=AsyncMock(side_effect=RuntimeError("disk on fire")))
        executor = ToolExecutor(ToolRegistry([tool]))

        result = await executor.invoke("list_dir", {})

        assert result.content == ""
        assert result.error == "disk on fire"
        assert executor.consecutive_failures == 1

    @pytest.mark.asyncio
    async def test_approval_denial_is_not_a_failure(self):
        tool = _tool("write_to_file")
        approver = Mock(approve=AsyncMock(return_value=False))
        executor = ToolExecutor(
            ToolRegistry([tool]),
            requires_approval={"write_to_file"},
            approver=approver,
        )
        executor.consecutive_failures = 2

        result = await executor.invoke("write_to_file", {"path": "a"})

        assert result == ToolResult(content=DECLINED_CONTENT)
        assert executor.consecutive_failures == 2
        approver.approve.assert_awaited_once_with("write_to_file", {"path": "a"})
        tool.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_approval_granted_runs_tool(self):
        tool = _tool("write_to_file")
        approver = Mock(approve=AsyncMock(return_value=True))
        executor = ToolExecutor(
            ToolRegistry([tool]),
            requires_approval={"write_to_file"},
            approver=approver,
        )

        await executor.invoke("write_to_file", {"path": "a"})

        tool.execute.assert_awaited_once_with({"path": "a"})

    @pytest.mark.asyncio
    async def test_no_approver_runs_tool(self):
        tool = _tool("write_to_file")
        executor = ToolExecutor(ToolRegistry([tool]), requires_approval={"write_to_file"})

        await executor.invoke("write_to_file", {"path": "a"})

        tool.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_observer_notified_on_success(self):
        observer = Mock(on_tool_executed=AsyncMock())
        executor = ToolExecutor(ToolRegistry([_tool("list_dir")]), observer=observer)

        await executor.invoke("list_dir", {"path": "."})

        observer.on_tool_executed.assert_awaited_once_with(
            "list_dir", {"path": "."}, ToolResult(content="ok")
        )

    @pytest.mark.asyncio
    async def test_observer_not_notified_on_failure(self):
        observer = Mock(on_tool_executed=AsyncMock())
        executor = ToolExecutor(ToolRegistry([_failing_read_file()]), observer=observer)

        await executor.invoke("read_file", {"path": "x.json"})

        observer.on_tool_executed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_observer_failure_is_swallowed(self, caplog):
        observer = Mock(on_tool_executed=AsyncMock(side_effect=RuntimeError("boom")))
        executor = ToolExecutor(ToolRegistry([_tool("list_dir")]), observer=observer)

        with caplog.at_level(logging.WARNING):
            result = await executor.invoke("list_dir", {})

        assert result.ok
        assert executor.consecutive_failures == 0
        assert "observer failed" in caplog.text


class TestEngineScenarios:
    """End-to-end engine runs against a scripted gateway."""

    @pytest.mark.asyncio
    async def test_text_response_ends_run(self, mock_gateway):
        mock_gateway.complete.side_effect = [_text("Hello!")]
        conversation = _conversation("Hi")
        engine = SequentialToolEngine(mock_gateway)

        outcome = await engine.run(conversation)

        assert outcome.state is EngineState.DONE_TEXT
        assert outcome.text == "Hello!"
        assert conversation.last().role == Role.ASSISTANT
        assert conversation.last().content == "Hello!"
        assert outcome.usage.total_tokens == 15

    @pytest.mark.asyncio
    async def test_no_tools_means_no_forced_tool_use(self, mock_gateway):
        mock_gateway.complete.side_effect = [_text("Hello!")]
        await SequentialToolEngine(mock_gateway).run(_conversation())

        request = mock_gateway.complete.await_args.args[0]
        assert request.tool_schemas == []
        assert request.force_tool_use is False

    @pytest.mark.asyncio
    async def test_tools_force_tool_use(self, mock_gateway):
        mock_gateway.complete.side_effect = [_text("Hello!")]
        settings = EngineSettings(temperature=0.3, max_output_tokens=1000)
        engine = SequentialToolEngine(
            mock_gateway, ToolRegistry([_tool("list_dir")]), settings
        )

        await engine.run(_conversation())

        request = mock_gateway.complete.await_args.args[0]
        assert request.force_tool_use is True
        assert [s["name"] for s in request.tool_schemas] == ["list_dir"]
        assert request.temperature == 0.3
        assert request.max_output_tokens == 1000

    @pytest.mark.asyncio
    async def test_scenario_b_failed_tool_continues(self, mock_gateway):
        """A failing read_file is reported back and the loop asks again."""
        mock_gateway.complete.side_effect = [
            _call("read_file", {"path": "x.json"}, "call_1"),
            _text("That file does not exist."),
        ]
        conversation = _conversation()
        engine = SequentialToolEngine(mock_gateway, ToolRegistry([_failing_read_file()]))

        outcome = await engine.run(conversation)

        turns = conversation.messages()
        assert turns[1].role == Role.ASSISTANT
        assert turns[1].content == [ToolCallBlock("read_file", {"path": "x.json"}, "call_1")]
        assert turns[2].role == Role.USER
        assert turns[2].content == [
            ToolResultBlock("read_file", "", error="not found", call_id="call_1")
        ]
        assert engine.consecutive_failures == 1
        assert mock_gateway.complete.await_count == 2
        assert _request_turns(mock_gateway, 1) == turns[:3]
        assert outcome.state is EngineState.DONE_TEXT

    @pytest.mark.asyncio
    async def test_scenario_c_error_budget_exhausted(self, mock_gateway):
        """Three consecutive failures stop the run before a fourth model call."""
        mock_gateway.complete.side_effect = [
            _call("read_file", {"path": "x.json"}) for _ in range(3)
        ] + [_text("never reached")]
        engine = SequentialToolEngine(
            mock_gateway,
            ToolRegistry([_failing_read_file()]),
            EngineSettings(max_consecutive_failures=3),
        )

        outcome = await engine.run(_conversation())

        assert outcome.state is EngineState.DONE_ERROR_BUDGET_EXHAUSTED
        assert outcome.last_error == "not found"
        assert mock_gateway.complete.await_count == 3
        assert engine.state is EngineState.DONE_ERROR_BUDGET_EXHAUSTED

    @pytest.mark.asyncio
    async def test_scenario_d_clarifying_question(self, mock_gateway):
        """The handler's answer is appended and the model is asked again."""
        mock_gateway.complete.side_effect = [
            _call("ask_followup_question", {"question": "Which file?"}),
            _text("Reading config.json"),
        ]
        handler = Mock(ask=AsyncMock(return_value="config.json"))
        conversation = _conversation("Fix the config")
        engine = SequentialToolEngine(
            mock_gateway,
            ToolRegistry([_tool("ask_followup_question")]),
            hooks=EngineHooks(question_handler=handler),
        )

        outcome = await engine.run(conversation)

        handler.ask.assert_awaited_once_with("Which file?")
        assert mock_gateway.complete.await_count == 2
        second_turns = _request_turns(mock_gateway, 1)
        assert second_turns[-1].content == [
            ToolResultBlock("ask_followup_question", "config.json")
        ]
        assert outcome.state is EngineState.DONE_TEXT

    @pytest.mark.asyncio
    async def test_scenario_e_completion(self, mock_gateway):
        """The completion tool notifies the handler and ends the run."""
        mock_gateway.complete.side_effect = [
            _call("attempt_completion", {"result": "Done", "command": "open index.html"})
        ]
        handler = Mock(on_task_completed=AsyncMock())
        conversation = _conversation("Build a page")
        engine = SequentialToolEngine(
            mock_gateway,
            ToolRegistry([_tool("attempt_completion")]),
            hooks=EngineHooks(completion_handler=handler),
        )

        outcome = await engine.run(conversation)

        handler.on_task_completed.assert_awaited_once_with("Done", "open index.html")
        assert outcome.state is EngineState.DONE_COMPLETION
        assert outcome.text == "Done"
        assert outcome.command == "open index.html"
        assert len(conversation) == 2
        assert conversation.last().content == (
            "[Task completed]\nDone\n\nCommand: open index.html"
        )

    @pytest.mark.asyncio
    async def test_completion_resets_failures(self, mock_gateway):
        mock_gateway.complete.side_effect = [
            _call("read_file", {"path": "x.json"}),
            _call("read_file", {"path": "y.json"}),
            _call("attempt_completion", {"result": "Gave up politely"}),
        ]
        engine = SequentialToolEngine(
            mock_gateway, ToolRegistry([_failing_read_file(), _tool("attempt_completion")])
        )

        outcome = await engine.run(_conversation())

        assert outcome.state is EngineState.DONE_COMPLETION
        assert outcome.command is None
        assert engine.consecutive_failures == 0

    @pytest.mark.asyncio
    async def test_question_tool_without_handler_is_ordinary(self, mock_gateway):
        mock_gateway.complete.side_effect = [
            _call("ask_followup_question", {"question": "Which file?"}),
            _text("ok"),
        ]
        tool = _tool("ask_followup_question", ToolResult(content="Which file?"))
        conversation = _conversation()
        engine = SequentialToolEngine(mock_gateway, ToolRegistry([tool]))

        await engine.run(conversation)

        tool.execute.assert_awaited_once_with({"question": "Which file?"})
        assert conversation.messages()[2].content == [
            ToolResultBlock("ask_followup_question", "Which file?")
        ]


class TestEngineControl:
    """Tests for abort, limits, deferred questions and errors."""

    @pytest.mark.asyncio
    async def test_abort_before_run(self, mock_gateway):
        engine = SequentialToolEngine(mock_gateway)
        engine.abort()

        outcome = await engine.run(_conversation())

        assert outcome.state is EngineState.DONE_ABORTED
        mock_gateway.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_abort_during_tool(self, mock_gateway):
        mock_gateway.complete.side_effect = [
            _call("list_dir", {"path": "."}),
            _text("never reached"),
        ]
        engine = None

        async def execute(params):
            engine.abort()
            return ToolResult(content="listing")

        engine = SequentialToolEngine(
            mock_gateway, ToolRegistry([_tool("list_dir", execute=execute)])
        )
        conversation = _conversation()

        outcome = await engine.run(conversation)

        assert outcome.state is EngineState.DONE_ABORTED
        assert mock_gateway.complete.await_count == 1
        assert conversation.last().content == [ToolResultBlock("list_dir", "listing")]

    @pytest.mark.asyncio
    async def test_iteration_limit(self, mock_gateway):
        mock_gateway.complete.side_effect = [_call("list_dir", {}) for _ in range(5)]
        engine = SequentialToolEngine(
            mock_gateway,
            ToolRegistry([_tool("list_dir")]),
            EngineSettings(max_iterations=2),
        )

        outcome = await engine.run(_conversation())

        assert outcome.state is EngineState.DONE_ITERATION_LIMIT
        assert outcome.iterations == 2
        assert mock_gateway.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_only_first_tool_call_executed(self, mock_gateway, caplog):
        mock_gateway.complete.side_effect = [
            ToolCallResponse(
                calls=[
                    ToolCallRequest("list_dir", {"path": "a"}),
                    ToolCallRequest("list_dir", {"path": "b"}),
                ]
            ),
            _text("done"),
        ]
        tool = _tool("list_dir")
        engine = SequentialToolEngine(mock_gateway, ToolRegistry([tool]))

        with caplog.at_level(logging.WARNING):
            await engine.run(_conversation())

        tool.execute.assert_awaited_once_with({"path": "a"})
        assert "requested 2 tool calls" in caplog.text

    @pytest.mark.asyncio
    async def test_deferred_question_and_resume(self, mock_gateway):
        mock_gateway.complete.side_effect = [
            _call("ask_followup_question", {"question": "Which file?"}, "call_q"),
            _text("Reading a.txt"),
        ]
        handler = Mock(ask=AsyncMock(return_value=None))
        conversation = _conversation()
        engine = SequentialToolEngine(
            mock_gateway,
            ToolRegistry([_tool("ask_followup_question")]),
            hooks=EngineHooks(question_handler=handler),
        )

        outcome = await engine.run(conversation)

        assert outcome.state is EngineState.AWAITING_USER_ANSWER
        assert outcome.question == "Which file?"
        assert engine.pending_question == "Which file?"
        assert len(conversation) == 2

        with pytest.raises(ToolSequencerError):
            await engine.run(conversation)

        engine.provide_answer("a.txt")
        outcome = await engine.run(conversation)

        assert outcome.state is EngineState.DONE_TEXT
        assert engine.pending_question is None
        assert _request_turns(mock_gateway, 1)[-1].content == [
            ToolResultBlock("ask_followup_question", "a.txt", call_id="call_q")
        ]

    def test_provide_answer_without_question(self, mock_gateway):
        with pytest.raises(ToolSequencerError):
            SequentialToolEngine(mock_gateway).provide_answer("hello")

    @pytest.mark.asyncio
    async def test_approver_error_closes_tool_call(self, mock_gateway):
        mock_gateway.complete.side_effect = [
            _call("write_to_file", {"path": "a.txt"}, "call_w"),
        ]
        tool = _tool("write_to_file")
        approver = Mock(approve=AsyncMock(side_effect=RuntimeError("prompt closed")))
        conversation = _conversation("Write a.txt")
        engine = SequentialToolEngine(
            mock_gateway,
            ToolRegistry([tool]),
            hooks=EngineHooks(approver=approver),
        )

        with pytest.raises(RuntimeError):
            await engine.run(conversation)

        tool.execute.assert_not_awaited()
        assert len(conversation) == 3
        assert conversation.last().content == [
            ToolResultBlock(
                "write_to_file", "", error="interrupted: prompt closed", call_id="call_w"
            )
        ]
        messages = turns_to_messages(conversation.messages())
        assert messages[-1]["role"] == "tool"
        assert messages[-1]["tool_call_id"] == "call_w"

    @pytest.mark.asyncio
    async def test_question_handler_error_closes_tool_call(self, mock_gateway):
        mock_gateway.complete.side_effect = [
            _call("ask_followup_question", {"question": "Which file?"}, "call_q"),
        ]
        handler = Mock(ask=AsyncMock(side_effect=EOFError()))
        conversation = _conversation()
        engine = SequentialToolEngine(
            mock_gateway,
            ToolRegistry([_tool("ask_followup_question")]),
            hooks=EngineHooks(question_handler=handler),
        )

        with pytest.raises(EOFError):
            await engine.run(conversation)

        assert engine.pending_question is None
        assert conversation.last().content == [
            ToolResultBlock(
                "ask_followup_question", "", error="interrupted: EOFError", call_id="call_q"
            )
        ]
        assert turns_to_messages(conversation.messages())[-1]["role"] == "tool"

    @pytest.mark.asyncio
    async def test_cancel_question_closes_pending_call(self, mock_gateway):
        mock_gateway.complete.side_effect = [
            _call("ask_followup_question", {"question": "Which file?"}, "call_q"),
        ]
        conversation = _conversation()
        engine = SequentialToolEngine(
            mock_gateway,
            ToolRegistry([_tool("ask_followup_question")]),
            hooks=EngineHooks(question_handler=Mock(ask=AsyncMock(return_value=None))),
        )
        await engine.run(conversation)

        engine.cancel_question(conversation)
        engine.cancel_question(conversation)

        assert engine.pending_question is None
        assert len(conversation) == 3
        assert conversation.last().content == [
            ToolResultBlock(
                "ask_followup_question", "", error="question cancelled", call_id="call_q"
            )
        ]

    @pytest.mark.asyncio
    async def test_gateway_error_propagates(self, mock_gateway):
        mock_gateway.complete.side_effect = ModelGatewayError("503 upstream", 503)
        conversation = _conversation()

        with pytest.raises(ModelGatewayError) as exc_info:
            await SequentialToolEngine(mock_gateway).run(conversation)

        assert exc_info.value.status_code == 503
        assert len(conversation) == 1

    @pytest.mark.asyncio
    async def test_trace(self, mock_gateway):
        mock_gateway.complete.side_effect = [
            _call("list_dir", {"path": "."}),
            _text("done"),
        ]
        engine = SequentialToolEngine(
            mock_gateway, ToolRegistry([_tool("list_dir")]), execution_id="abc123"
        )

        outcome = await engine.run(_conversation())
        trace = engine.get_trace()

        assert outcome.tools_used == ["list_dir"]
        assert [step["action"] for step in trace] == ["list_dir", None]
        assert trace[0]["observation"] == "ok"
        assert trace[1]["is_final"] is True
        assert trace[1]["final_text"] == "done"

    @pytest.mark.asyncio
    async def test_runs_with_disabled_tracing_context(self, mock_gateway):
        mock_gateway.complete.side_effect = [_call("list_dir", {}), _text("done")]
        engine = SequentialToolEngine(
            mock_gateway,
            ToolRegistry([_tool("list_dir")]),
            tracing_context=TracingContext(execution_id="exec-1"),
        )

        outcome = await engine.run(_conversation())

        assert outcome.state is EngineState.DONE_TEXT


class TestEngineSettings:
    """Tests for building settings from configuration."""

    def test_from_config(self):
        settings = EngineSettings.from_config(
            EngineConfig(
                temperature=0.2,
                max_output_tokens=0,
                max_iterations=0,
                requires_approval=["edit_file"],
            )
        )

        assert settings.temperature == 0.2
        assert settings.max_output_tokens is None
        assert settings.max_iterations is None
        assert settings.requires_approval == frozenset({"edit_file"})

    def test_defaults(self):
        settings = EngineSettings()
        assert settings.max_consecutive_failures == 3
        assert settings.max_iterations == 25
        assert settings.requires_approval == frozenset({"write_to_file", "edit_file"})
