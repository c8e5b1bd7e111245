"""
Codebase search tool.

A lightweight relevance search over workspace files: files are scored by how
well their name, path and extension match the query, and snippets of the best
matches are returned to the model.
"""

import asyncio
import logging
from pathlib import Path, PurePosixPath
from typing import Optional

from .file_utils import list_files, read_text_file, resolve_in_workspace
from .registry import ParameterSpec, ToolDefinition, ToolResult

logger = logging.getLogger(__name__)

MAX_CANDIDATE_FILES = 500
MAX_RANKED_FILES = 5
MAX_SNIPPETS = 3
SNIPPET_LINE_LIMIT = 100

# (query keywords, file extensions they imply)
LANGUAGE_HINTS: tuple[tuple[tuple[str, ...], tuple[str, ...]], ...] = (
    (("javascript", "js", "nodejs"), (".js", ".jsx", ".ts", ".tsx")),
    (("typescript", "ts"), (".ts", ".tsx")),
    (("react",), (".jsx", ".tsx", ".js")),
    (("vue",), (".vue",)),
    (("python",), (".py",)),
    (("java",), (".java",)),
    (("c#", "csharp"), (".cs",)),
    (("html",), (".html", ".htm")),
    (("css",), (".css", ".scss", ".sass")),
)

IMPORTANT_FILES = frozenset(
    {
        "package.json",
        "pyproject.toml",
        "tsconfig.json",
        "readme.md",
        "index.js",
        "main.py",
        "app.py",
    }
)


def score_file(query: str, file_path: str) -> int:
    """Relevance of ``file_path`` (workspace-relative) to ``query``."""
    query = query.lower()
    path = PurePosixPath(file_path.lower())
    extension = path.suffix
    score = 0

    if path.name in query or str(path) in query:
        score += 10
    if extension and extension[1:] in query:
        score += 5
    for keywords, extensions in LANGUAGE_HINTS:
        if extension in extensions and any(k in query for k in keywords):
            score += 3
    if path.name in IMPORTANT_FILES:
        score += 2
    return score


def rank_files(query: str, files: list[str], limit: int = MAX_RANKED_FILES) -> list[str]:
    """Return up to ``limit`` files with a positive score, best first."""
    scored = [(score_file(query, f), f) for f in files]
    scored = [item for item in scored if item[0] > 0]
    scored.sort(key=lambda item: item[0], reverse=True)
    return [f for _, f in scored[:limit]]


def _collect_candidates(root: Path, target_directories: Optional[list[str]]) -> list[str]:
    if not target_directories:
        return list_files(root, MAX_CANDIDATE_FILES)
    files: list[str] = []
    for target in target_directories:
        directory = resolve_in_workspace(root, target)
        if not directory.is_dir():
            continue
        prefix = directory.relative_to(root.resolve()).as_posix()
        for f in list_files(directory, MAX_CANDIDATE_FILES - len(files)):
            files.append(f if prefix == "." else f"{prefix}/{f}")
    return files


def search_codebase(
    root: Path, query: str, target_directories: Optional[list[str]] = None
) -> str:
    """Render snippets of the files most relevant to ``query``."""
    candidates = _collect_candidates(root, target_directories)
    sections: list[str] = []
    for relative in rank_files(query, candidates)[:MAX_SNIPPETS]:
        try:
            content = read_text_file(root / relative, line_limit=SNIPPET_LINE_LIMIT)
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("Skipping unreadable file %s: %s", relative, e)
            continue
        language = PurePosixPath(relative).suffix[1:] or "text"
        sections.append(f"```{language}:{relative}\n{content}\n```")
    return "\n\n".join(sections)


def create_codebase_search_tool(workspace_root: Path) -> ToolDefinition:
    """Build the ``codebase_search`` tool."""

    async def execute(params: dict) -> ToolResult:
        try:
            result = await asyncio.to_thread(
                search_codebase,
                workspace_root,
                params["query"],
                params.get("target_directories"),
            )
        except (OSError, ValueError) as e:
            return ToolResult(content="", error=f"codebase_search failed: {e}")
        if not result:
            return ToolResult(content="No files relevant to the query were found.")
        return ToolResult(content=result)

    return ToolDefinition(
        name="codebase_search",
        description=(
            "Find the code snippets most relevant to a search query."
        ),
        parameters={
            "query": ParameterSpec("string", "Search query describing the code to find."),
            "target_directories": ParameterSpec(
                "array", "Directories to restrict the search to.", items="string"
            ),
            "explanation": ParameterSpec(
                "string", "One sentence on why this tool is being used."
            ),
        },
        required=["query"],
        execute=execute,
    )
