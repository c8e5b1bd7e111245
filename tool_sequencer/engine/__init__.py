"""
Sequential tool-execution engine.
"""

from .executor import DECLINED_CONTENT, ToolExecutor
from .hooks import (
    CompletionHandler,
    EngineHooks,
    ExecutionObserver,
    QuestionHandler,
    ToolApprover,
    TracingObserver,
)
from .loop import EngineSettings, SequentialToolEngine
from .state import TERMINAL_STATES, EngineState, EngineStep, RunOutcome

__all__ = [
    "DECLINED_CONTENT",
    "CompletionHandler",
    "EngineHooks",
    "EngineSettings",
    "EngineState",
    "EngineStep",
    "ExecutionObserver",
    "QuestionHandler",
    "RunOutcome",
    "SequentialToolEngine",
    "TERMINAL_STATES",
    "ToolApprover",
    "ToolExecutor",
    "TracingObserver",
]
