"""
Tests for the interactive CLI wiring and console hooks.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from tool_sequencer.engine import EngineState, RunOutcome
from tool_sequencer.errors import ModelGatewayError
from tool_sequencer.gateway import OpenAIGateway, Usage
from tool_sequencer.interactive import (
    CompletionPrinter,
    ConsoleApprover,
    ConsoleQuestionHandler,
    InteractiveCLI,
    build_session,
    load_config,
)
from tool_sequencer.models import AppConfig
from tool_sequencer.session import ChatReply


class TestConsoleHooks:
    """Tests for the terminal approver, question handler and printer."""

    @pytest.mark.asyncio
    async def test_auto_approve(self):
        assert await ConsoleApprover(auto_approve=True).approve("edit_file", {}) is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("answer,expected", [("y", True), ("YES", True), ("n", False), ("", False)])
    async def test_approver_prompts(self, monkeypatch, answer, expected):
        monkeypatch.setattr("builtins.input", lambda prompt="": answer)
        approved = await ConsoleApprover().approve("write_to_file", {"path": "a.txt"})
        assert approved is expected

    @pytest.mark.asyncio
    async def test_empty_answer_defers_question(self, monkeypatch):
        monkeypatch.setattr("builtins.input", lambda prompt="": "   ")
        assert await ConsoleQuestionHandler().ask("Which file?") is None

    @pytest.mark.asyncio
    async def test_answer_is_stripped(self, monkeypatch):
        monkeypatch.setattr("builtins.input", lambda prompt="": " config.json ")
        assert await ConsoleQuestionHandler().ask("Which file?") == "config.json"

    @pytest.mark.asyncio
    async def test_completion_printer(self, capsys):
        await CompletionPrinter().on_task_completed("Built the page", "open index.html")
        out = capsys.readouterr().out
        assert "Built the page" in out
        assert "Try: open index.html" in out


class TestBuildSession:
    """Tests for config loading and session wiring."""

    def test_load_config_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("gateway:\n  model: gpt-4o\n")
        assert load_config(str(path)).gateway.model == "gpt-4o"

    def test_build_session(self, workspace):
        app_config = AppConfig()
        app_config.engine.max_iterations = 10

        session = build_session(app_config, workspace=str(workspace), model="gpt-4.1")

        assert isinstance(session.gateway, OpenAIGateway)
        assert session.gateway.model_id == "gpt-4.1"
        assert session.model_info.context_window == 1_047_576
        assert len(session.registry) == 7
        assert session.settings.max_iterations == 10
        assert isinstance(session.hooks.approver, ConsoleApprover)


class TestInteractiveCLI:
    """Tests for InteractiveCLI.process_query output."""

    @pytest.mark.asyncio
    async def test_prints_text_reply(self, capsys):
        outcome = RunOutcome(state=EngineState.DONE_TEXT, text="Hello!", iterations=1)
        session = Mock(
            send_message=AsyncMock(
                return_value=ChatReply(text="Hello!", usage=Usage(3, 2), outcome=outcome)
            )
        )

        await InteractiveCLI(session).process_query("Hi")

        out = capsys.readouterr().out
        assert "Hello!" in out
        assert "(1 step, 5 tokens)" in out

    @pytest.mark.asyncio
    async def test_prints_error_budget_stop(self, capsys):
        outcome = RunOutcome(
            state=EngineState.DONE_ERROR_BUDGET_EXHAUSTED,
            last_error="not found",
            iterations=3,
        )
        session = Mock(send_message=AsyncMock(return_value=ChatReply("", outcome=outcome)))

        await InteractiveCLI(session).process_query("Read x.json")

        assert "repeated tool failures: not found" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_prints_gateway_error(self, capsys):
        session = Mock(send_message=AsyncMock(side_effect=ModelGatewayError("503")))

        await InteractiveCLI(session).process_query("Hi")

        assert "Error: 503" in capsys.readouterr().out
