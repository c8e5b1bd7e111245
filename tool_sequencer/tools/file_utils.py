"""
File helpers shared by the workspace tools.

Line numbering, head/tail output truncation and workspace-confined path
resolution.
"""

import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Share of the line budget given to the head of a truncated file.
HEAD_FRACTION = 0.2


class WorkspacePathError(ValueError):
    """Raised when a path resolves outside the workspace root."""


def resolve_in_workspace(workspace_root: Path, relative: str) -> Path:
    """
    Resolve ``relative`` against the workspace root.

    Raises:
        WorkspacePathError: If the resolved path escapes the workspace.
    """
    root = workspace_root.resolve()
    candidate = (root / relative).resolve()
    if candidate != root and root not in candidate.parents:
        raise WorkspacePathError(f"Path '{relative}' is outside the workspace")
    return candidate


def add_line_numbers(content: str, start_line: int = 1) -> str:
    """Prefix each line with a right-aligned line number: ``" 7 | text"``."""
    lines = content.split("\n")
    width = len(str(start_line + len(lines) - 1))
    return "\n".join(
        f"{str(start_line + i).rjust(width)} | {line}" for i, line in enumerate(lines)
    )


def truncate_output(content: str, line_limit: Optional[int] = None) -> str:
    """
    Cap output at ``line_limit`` lines, keeping the head and the tail.

    The first 20% of the budget comes from the top of the text and the rest
    from the bottom, with an omitted-lines marker in between.
    """
    if not line_limit:
        return content

    lines = content.split("\n")
    if len(lines) <= line_limit:
        return content

    head_count = int(line_limit * HEAD_FRACTION)
    tail_count = line_limit - head_count
    omitted = len(lines) - line_limit

    head = "\n".join(lines[:head_count])
    tail = "\n".join(lines[-tail_count:]) if tail_count else ""
    return f"{head}\n\n[...{omitted} lines omitted...]\n\n{tail}"


def read_text_file(
    path: Path,
    line_limit: Optional[int] = None,
    offset: Optional[int] = None,
    limit: Optional[int] = None,
) -> str:
    """
    Read a text file with line numbers.

    Args:
        path: File to read.
        line_limit: Cap on returned lines (head/tail truncation).
        offset: Zero-based first line when selecting a window.
        limit: Number of lines in the window. Requires ``offset``.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")

    numbered = add_line_numbers(path.read_text(encoding="utf-8"))

    if offset is not None and limit is not None:
        lines = numbered.split("\n")
        start = max(0, offset)
        end = min(len(lines), start + limit)
        return "\n".join(lines[start:end])

    return truncate_output(numbered, line_limit)


DEFAULT_IGNORE_DIRS = frozenset({".git", "node_modules", "dist", "build", "__pycache__"})


def list_files(
    directory: Path,
    max_files: int = 200,
    ignore_dirs: frozenset[str] = DEFAULT_IGNORE_DIRS,
) -> list[str]:
    """
    List files under ``directory`` recursively, relative to it.

    Directories in ``ignore_dirs`` are skipped. Unreadable directories yield
    an empty listing rather than an error.
    """
    files: list[str] = []

    def walk(current: Path) -> None:
        try:
            entries = sorted(current.iterdir(), key=lambda p: p.name)
        except OSError as e:
            logger.debug("Cannot list %s: %s", current, e)
            return
        for entry in entries:
            if len(files) >= max_files:
                return
            if entry.is_dir():
                if entry.name in ignore_dirs:
                    continue
                walk(entry)
            elif entry.is_file():
                files.append(entry.relative_to(directory).as_posix())

    walk(directory)
    return files
