"""
Engine states, run outcomes and the per-iteration step trace.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..gateway.base import Usage


class EngineState(str, Enum):
    AWAITING_MODEL = "awaiting_model"
    TEXT_RESPONSE = "text_response"
    TOOL_REQUESTED = "tool_requested"
    EXECUTING_TOOL = "executing_tool"

    DONE_TEXT = "done_text"
    DONE_COMPLETION = "done_completion"
    DONE_ABORTED = "done_aborted"
    DONE_ERROR_BUDGET_EXHAUSTED = "done_error_budget_exhausted"
    DONE_ITERATION_LIMIT = "done_iteration_limit"
    AWAITING_USER_ANSWER = "awaiting_user_answer"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {
        EngineState.DONE_TEXT,
        EngineState.DONE_COMPLETION,
        EngineState.DONE_ABORTED,
        EngineState.DONE_ERROR_BUDGET_EXHAUSTED,
        EngineState.DONE_ITERATION_LIMIT,
        EngineState.AWAITING_USER_ANSWER,
    }
)


@dataclass
class EngineStep:
    """A single iteration of the engine loop."""

    step_number: int
    action: Optional[str] = None
    action_input: Optional[dict] = None
    observation: Optional[str] = None
    error: Optional[str] = None
    is_final: bool = False
    final_text: Optional[str] = None


@dataclass
class RunOutcome:
    """How and why a run stopped."""

    state: EngineState
    text: Optional[str] = None
    command: Optional[str] = None
    question: Optional[str] = None
    last_error: Optional[str] = None
    iterations: int = 0
    usage: Usage = field(default_factory=Usage)
    tools_used: list[str] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        """True when the run ended with a text answer or an explicit completion."""
        return self.state in (EngineState.DONE_TEXT, EngineState.DONE_COMPLETION)
