"""Glob tool for finding files by pattern."""

import asyncio
from pathlib import Path
from typing import Any

from x_code.logging import get_logger
from x_code.tools.registry import Tool, ToolResult, resolve_tool_path

log = get_logger(__name__)

# Directories never worth descending into for code search.
IGNORED_DIRS = frozenset({
    ".git", ".hg", ".svn", "node_modules", "__pycache__", ".venv", "venv",
    ".mypy_cache", ".pytest_cache", ".ruff_cache", ".tox", "dist", "build",
})


def is_ignored(path: Path, root: Path) -> bool:
    try:
        parts = path.relative_to(root).parts
    except ValueError:
        parts = path.parts
    return any(part in IGNORED_DIRS for part in parts[:-1])


class GlobTool(Tool):
    """Find files by pattern."""

    name = "glob"
    description = "Find files matching a glob pattern. Returns absolute file paths sorted by modification time."
    parameters = {
        "type": "object",
        "properties": {
            "pattern": {
                "type": "string",
                "description": "Glob pattern (e.g., '**/*.py', 'src/**/*.ts')",
            },
            "cwd": {
                "type": "string",
                "description": "Directory to search in (defaults to working directory)",
            },
            "limit": {
                "type": "number",
                "description": "Maximum number of results (default: 200)",
            },
        },
        "required": ["pattern"],
    }

    def __init__(self, root: Path | None = None):
        self.root = root

    def _find(self, pattern: str, base: Path, limit: int) -> list[Path]:
        matches = [
            p for p in base.glob(pattern)
            if p.is_file() and not is_ignored(p, base)
        ]
        matches.sort(key=lambda p: p.stat().st_mtime, reverse=True)
        return matches[:limit]

    async def execute(
        self,
        pattern: str,
        cwd: str | None = None,
        limit: int = 200,
        **kwargs: Any,
    ) -> ToolResult:
        """Find files matching pattern.

        Args:
            pattern: Glob pattern, relative to the search directory
            cwd: Optional search directory
            limit: Max results

        Returns:
            ToolResult with matching files
        """
        try:
            base = resolve_tool_path(cwd, self.root) if cwd else (self.root or Path.cwd()).resolve()
            loop = asyncio.get_running_loop()
            matches = await loop.run_in_executor(None, lambda: self._find(pattern, base, int(limit)))
        except (OSError, ValueError, NotImplementedError) as e:
            log.error("Glob failed", pattern=pattern, error=str(e))
            return ToolResult(success=False, error=f"Error searching files: {e}")

        if not matches:
            return ToolResult(success=True, content="No files found matching the pattern.")
        return ToolResult(success=True, content="\n".join(str(m) for m in matches))
