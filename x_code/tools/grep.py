"""Grep tool: regex search over file contents."""

import asyncio
import fnmatch
import os
import re
from pathlib import Path
from typing import Any

from x_code.logging import get_logger
from x_code.tools.glob import IGNORED_DIRS
from x_code.tools.registry import Tool, ToolResult, resolve_tool_path

log = get_logger(__name__)

MAX_FILE_BYTES = 1_000_000


def _expand_braces(pattern: str) -> list[str]:
    """`*.{ts,tsx}` -> [`*.ts`, `*.tsx`]."""
    match = re.search(r"\{([^{}]*)\}", pattern)
    if not match:
        return [pattern]
    head, tail = pattern[:match.start()], pattern[match.end():]
    expanded: list[str] = []
    for option in match.group(1).split(","):
        expanded.extend(_expand_braces(f"{head}{option}{tail}"))
    return expanded


class GrepTool(Tool):
    """Search file contents by regex."""

    name = "grep"
    description = (
        "Search file contents by regex pattern. Returns matching lines with file paths and line numbers."
    )
    parameters = {
        "type": "object",
        "properties": {
            "pattern": {
                "type": "string",
                "description": "Regex pattern to search for",
            },
            "path": {
                "type": "string",
                "description": "File or directory to search in (defaults to working directory)",
            },
            "glob": {
                "type": "string",
                "description": "Glob pattern to filter files (e.g. '*.py', '*.{ts,tsx}')",
            },
            "max_results": {
                "type": "number",
                "description": "Max number of results (default: 50)",
            },
        },
        "required": ["pattern"],
    }

    def __init__(self, root: Path | None = None):
        self.root = root

    def _iter_files(self, target: Path, globs: list[str]):
        if target.is_file():
            yield target
            return
        for dirpath, dirnames, filenames in os.walk(target):
            dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRS)
            for filename in sorted(filenames):
                if globs and not any(fnmatch.fnmatch(filename, g) for g in globs):
                    continue
                yield Path(dirpath) / filename

    def _search(self, regex: re.Pattern[str], target: Path, globs: list[str], max_results: int) -> list[str]:
        results: list[str] = []
        for file_path in self._iter_files(target, globs):
            try:
                if file_path.stat().st_size > MAX_FILE_BYTES:
                    continue
                with open(file_path, encoding="utf-8") as f:
                    for line_no, line in enumerate(f, start=1):
                        if regex.search(line):
                            results.append(f"{file_path}:{line_no}:{line.rstrip()}")
                            if len(results) >= max_results:
                                return results
            except (OSError, UnicodeDecodeError):
                continue
        return results

    async def execute(
        self,
        pattern: str,
        path: str | None = None,
        glob: str | None = None,
        max_results: int = 50,
        **kwargs: Any,
    ) -> ToolResult:
        try:
            regex = re.compile(pattern)
        except re.error as e:
            return ToolResult(success=False, error=f"Invalid regex: {e}")

        target = resolve_tool_path(path, self.root) if path else (self.root or Path.cwd()).resolve()
        if not target.exists():
            return ToolResult(success=False, error=f"Path not found: {target}")

        globs = _expand_braces(glob) if glob else []
        loop = asyncio.get_running_loop()
        results = await loop.run_in_executor(
            None, lambda: self._search(regex, target, globs, max(1, int(max_results)))
        )
        log.debug("Grep finished", pattern=pattern, matches=len(results))
        return ToolResult(success=True, content="\n".join(results) or "No matches found.")
