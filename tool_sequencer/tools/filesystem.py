"""
Workspace file tools: read, list, write and edit.

Each factory binds a tool to one workspace root. Paths supplied by the model
are resolved inside that root; anything escaping it is reported as an error.
"""

import asyncio
import logging
import re
from pathlib import Path

from .file_utils import list_files, read_text_file, resolve_in_workspace
from .registry import ParameterSpec, ToolDefinition, ToolResult

logger = logging.getLogger(__name__)

DEFAULT_READ_LINE_LIMIT = 250
DEFAULT_LIST_MAX_ENTRIES = 50

EXISTING_CODE_MARKERS = frozenset(
    {
        "// ... existing code ...",
        "/* ... existing code ... */",
        "# ... existing code ...",
    }
)

_SINGLE_LINE_EDIT = re.compile(r"^(\d+)\s+\|\s+(.*)$")
_RANGE_EDIT = re.compile(r"^(\d+)-(\d+)\s+\|\s+(.*)$", re.DOTALL)


def create_read_file_tool(
    workspace_root: Path, line_limit: int = DEFAULT_READ_LINE_LIMIT
) -> ToolDefinition:
    """Build the ``read_file`` tool."""

    async def execute(params: dict) -> ToolResult:
        try:
            path = resolve_in_workspace(workspace_root, params["path"])
            offset = params.get("offset")
            limit = params.get("limit")
            content = await asyncio.to_thread(
                read_text_file,
                path,
                None if params.get("should_read_entire_file") else line_limit,
                int(offset) if offset is not None else None,
                int(limit) if limit is not None else None,
            )
            return ToolResult(content=content)
        except (OSError, ValueError) as e:
            return ToolResult(content="", error=f"read_file failed: {e}")

    return ToolDefinition(
        name="read_file",
        description=(
            "Read the contents of a file. Lines are prefixed with 1-based line "
            'numbers (e.g. "1 | const x = 1").'
        ),
        parameters={
            "path": ParameterSpec("string", "File path relative to the workspace root."),
            "offset": ParameterSpec("integer", "Zero-based line to start reading from."),
            "limit": ParameterSpec("integer", "Number of lines to read."),
            "should_read_entire_file": ParameterSpec(
                "boolean", "Read the whole file, ignoring the default line cap."
            ),
        },
        required=["path"],
        execute=execute,
    )


def create_list_dir_tool(
    workspace_root: Path, max_entries: int = DEFAULT_LIST_MAX_ENTRIES
) -> ToolDefinition:
    """Build the ``list_dir`` tool."""

    async def execute(params: dict) -> ToolResult:
        relative = params["relative_workspace_path"]
        try:
            directory = resolve_in_workspace(workspace_root, relative)
        except ValueError as e:
            return ToolResult(content="", error=f"list_dir failed: {e}")
        if not directory.is_dir():
            return ToolResult(content="", error=f"list_dir failed: not a directory: {relative}")

        entries = await asyncio.to_thread(list_files, directory, max_entries)
        if not entries:
            return ToolResult(content=f'Directory "{relative}" is empty.')

        listing = "\n".join(f"- {entry}" for entry in entries)
        return ToolResult(content=f'Contents of "{relative}":\n\n{listing}')

    return ToolDefinition(
        name="list_dir",
        description=(
            "List the contents of a directory. Use it to understand the "
            "structure of the codebase before reading specific files."
        ),
        parameters={
            "relative_workspace_path": ParameterSpec(
                "string", "Directory path relative to the workspace root."
            ),
            "explanation": ParameterSpec(
                "string", "One sentence on why this tool is being used."
            ),
        },
        required=["relative_workspace_path"],
        execute=execute,
    )


def create_write_to_file_tool(workspace_root: Path) -> ToolDefinition:
    """Build the ``write_to_file`` tool."""

    def write(path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    async def execute(params: dict) -> ToolResult:
        try:
            path = resolve_in_workspace(workspace_root, params["path"])
            await asyncio.to_thread(write, path, params["content"])
        except (OSError, ValueError) as e:
            return ToolResult(content="", error=f"write_to_file failed: {e}")
        logger.debug("Wrote %s", path)
        return ToolResult(content=f'Wrote "{params["path"]}".')

    return ToolDefinition(
        name="write_to_file",
        description=(
            "Create a new file or completely overwrite an existing one. "
            "Missing parent directories are created."
        ),
        parameters={
            "path": ParameterSpec("string", "File path relative to the workspace root."),
            "content": ParameterSpec("string", "Full content to write."),
            "line_count": ParameterSpec("integer", "Number of lines in the content."),
        },
        required=["path", "content", "line_count"],
        execute=execute,
    )


def apply_code_edit(existing: str, code_edit: str) -> str:
    """
    Merge an edit into existing file content.

    Supported edit forms:
        - ``N | text``: replace line N (1-based).
        - ``A-B | text``: replace lines A..B with the given text.
        - A sketch of the new content where unchanged regions are elided with
          an ``... existing code ...`` marker line.

    Raises:
        ValueError: If a line reference or an anchor line cannot be found.
    """
    if not existing.strip():
        return "\n".join(
            line
            for line in code_edit.split("\n")
            if line.strip() not in EXISTING_CODE_MARKERS
        )

    existing_lines = existing.split("\n")

    range_match = _RANGE_EDIT.match(code_edit)
    if range_match:
        start = int(range_match.group(1)) - 1
        end = int(range_match.group(2)) - 1
        if not (0 <= start <= end < len(existing_lines)):
            raise ValueError(f"Line range {start + 1}-{end + 1} is out of bounds")
        existing_lines[start : end + 1] = range_match.group(3).split("\n")
        return "\n".join(existing_lines)

    single_match = _SINGLE_LINE_EDIT.match(code_edit)
    if single_match and "\n" not in code_edit:
        line_no = int(single_match.group(1)) - 1
        if not 0 <= line_no < len(existing_lines):
            raise ValueError(f"Line {line_no + 1} is out of bounds")
        existing_lines[line_no] = single_match.group(2)
        return "\n".join(existing_lines)

    edit_lines = code_edit.split("\n")
    result: list[str] = []
    index = 0

    for i, line in enumerate(edit_lines):
        numbered = _SINGLE_LINE_EDIT.match(line)
        if numbered:
            line_no = int(numbered.group(1)) - 1
            if 0 <= line_no < len(existing_lines):
                if line_no > index:
                    result.extend(existing_lines[index:line_no])
                result.append(numbered.group(2))
                index = line_no + 1
                continue

        if line.strip() in EXISTING_CODE_MARKERS:
            next_line = edit_lines[i + 1].strip() if i + 1 < len(edit_lines) else ""
            if not next_line:
                result.extend(existing_lines[index:])
                index = len(existing_lines)
                break
            for j in range(index, len(existing_lines)):
                if existing_lines[j].strip() == next_line:
                    result.extend(existing_lines[index:j])
                    index = j
                    break
            else:
                raise ValueError(f"Could not locate anchor line: {next_line!r}")
        else:
            result.append(line)
            if index < len(existing_lines) and existing_lines[index].strip() == line.strip():
                index += 1

    return "\n".join(result)


def create_edit_file_tool(workspace_root: Path) -> ToolDefinition:
    """Build the ``edit_file`` tool."""

    def edit(path: Path, code_edit: str) -> None:
        existing = path.read_text(encoding="utf-8") if path.exists() else ""
        updated = apply_code_edit(existing, code_edit)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(updated, encoding="utf-8")

    async def execute(params: dict) -> ToolResult:
        try:
            path = resolve_in_workspace(workspace_root, params["target_file"])
            await asyncio.to_thread(edit, path, params["code_edit"])
        except (OSError, ValueError) as e:
            return ToolResult(content="", error=f"edit_file failed: {e}")
        return ToolResult(
            content=(
                f'Edited "{params["target_file"]}".\n\n'
                f'Instructions: {params["instructions"]}'
            )
        )

    return ToolDefinition(
        name="edit_file",
        description=(
            "Apply an edit to an existing file. Write only the changed lines and "
            "mark unchanged regions with a '// ... existing code ...' line. "
            "'N | text' replaces line N; 'A-B | text' replaces lines A to B."
        ),
        parameters={
            "target_file": ParameterSpec(
                "string", "File path relative to the workspace root."
            ),
            "instructions": ParameterSpec(
                "string", "One sentence, in the first person, describing the edit."
            ),
            "code_edit": ParameterSpec("string", "The edit to apply."),
        },
        required=["target_file", "instructions", "code_edit"],
        execute=execute,
    )
