"""
Control-flow tools.

``attempt_completion`` and ``ask_followup_question`` are ordinary tools to
the registry, but the engine intercepts them: the first ends a run, the
second suspends it for a user answer. Their executors only run when no
interception applies (e.g. no question handler is configured).
"""

from typing import Optional

from .registry import ParameterSpec, ToolDefinition, ToolResult

COMPLETION_TOOL_NAME = "attempt_completion"
QUESTION_TOOL_NAME = "ask_followup_question"


def format_completion(result: str, command: Optional[str] = None) -> str:
    """Render a task-completion message for the conversation."""
    text = f"[Task completed]\n{result}"
    if command:
        text += f"\n\nCommand: {command}"
    return text


def create_ask_followup_question_tool() -> ToolDefinition:
    """Build the ``ask_followup_question`` tool."""

    async def execute(params: dict) -> ToolResult:
        return ToolResult(content=params["question"])

    return ToolDefinition(
        name=QUESTION_TOOL_NAME,
        description=(
            "Ask the user a question to gather information needed to complete "
            "the task. Use it when the request is ambiguous or details are missing."
        ),
        parameters={
            "question": ParameterSpec(
                "string", "A specific question that names the information needed."
            ),
        },
        required=["question"],
        execute=execute,
    )


def create_attempt_completion_tool() -> ToolDefinition:
    """Build the ``attempt_completion`` tool."""

    async def execute(params: dict) -> ToolResult:
        return ToolResult(content=format_completion(params["result"], params.get("command")))

    return ToolDefinition(
        name=COMPLETION_TOOL_NAME,
        description=(
            "Present the result of the task once it is complete. Optionally "
            "provide a CLI command that demonstrates the result."
        ),
        parameters={
            "result": ParameterSpec(
                "string",
                "The final result, phrased so it needs no further input from the user.",
            ),
            "command": ParameterSpec(
                "string", "Optional command showing the result, e.g. `open index.html`."
            ),
        },
        required=["result"],
        execute=execute,
    )
