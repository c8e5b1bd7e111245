"""
Tool Sequencer Tools Package

Available tools:
- read_file, list_dir, write_to_file, edit_file: workspace file access
- codebase_search: relevance search over workspace files
- ask_followup_question, attempt_completion: control-flow tools
"""

from pathlib import Path
from typing import Union

from .control import (
    COMPLETION_TOOL_NAME,
    QUESTION_TOOL_NAME,
    create_ask_followup_question_tool,
    create_attempt_completion_tool,
    format_completion,
)
from .filesystem import (
    DEFAULT_LIST_MAX_ENTRIES,
    DEFAULT_READ_LINE_LIMIT,
    apply_code_edit,
    create_edit_file_tool,
    create_list_dir_tool,
    create_read_file_tool,
    create_write_to_file_tool,
)
from .registry import ParameterSpec, ToolDefinition, ToolRegistry, ToolResult
from .search import create_codebase_search_tool


def create_tools(
    workspace_root: Union[str, Path],
    read_line_limit: int = DEFAULT_READ_LINE_LIMIT,
    list_max_entries: int = DEFAULT_LIST_MAX_ENTRIES,
) -> ToolRegistry:
    """Build a registry with the full tool set bound to one workspace."""
    root = Path(workspace_root)
    return ToolRegistry(
        [
            create_read_file_tool(root, read_line_limit),
            create_codebase_search_tool(root),
            create_list_dir_tool(root, list_max_entries),
            create_ask_followup_question_tool(),
            create_attempt_completion_tool(),
            create_edit_file_tool(root),
            create_write_to_file_tool(root),
        ]
    )


__all__ = [
    "COMPLETION_TOOL_NAME",
    "QUESTION_TOOL_NAME",
    "ParameterSpec",
    "ToolDefinition",
    "ToolRegistry",
    "ToolResult",
    "apply_code_edit",
    "create_tools",
    "format_completion",
]
