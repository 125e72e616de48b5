"""Read tool for reading file contents."""

from pathlib import Path
from typing import Any

from x_code.logging import get_logger
from x_code.tools.registry import Tool, ToolResult, resolve_tool_path

log = get_logger(__name__)


class ReadFileTool(Tool):
    """Read file contents with line numbers."""

    name = "read_file"
    description = "Read the contents of a file at the given path. Returns the file content with line numbers."
    parameters = {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Absolute path to the file",
            },
            "offset": {
                "type": "number",
                "description": "Start line (1-based)",
            },
            "limit": {
                "type": "number",
                "description": "Max lines to read",
            },
        },
        "required": ["path"],
    }

    max_size = 2_000_000

    def __init__(self, root: Path | None = None):
        self.root = root

    async def execute(self, path: str, offset: int | None = None, limit: int | None = None, **kwargs: Any) -> ToolResult:
        """Read a file.

        Args:
            path: Path to file
            offset: Optional 1-based start line
            limit: Optional line limit

        Returns:
            ToolResult with numbered lines
        """
        try:
            file_path = resolve_tool_path(path, self.root)

            if not file_path.exists():
                return ToolResult(success=False, error=f"File not found: {path}")
            if not file_path.is_file():
                return ToolResult(success=False, error=f"Not a file: {path}")

            file_size = file_path.stat().st_size
            if file_size > self.max_size:
                return ToolResult(
                    success=False,
                    error=f"File too large: {file_size} bytes (max {self.max_size})",
                )

            lines = file_path.read_text(encoding="utf-8", errors="replace").split("\n")
            start = max(int(offset or 1), 1) - 1
            end = start + int(limit) if limit else len(lines)
            numbered = [f"{start + i + 1}\t{line}" for i, line in enumerate(lines[start:end])]

            return ToolResult(success=True, content="\n".join(numbered))

        except OSError as e:
            log.error("Read failed", path=path, error=str(e))
            return ToolResult(success=False, error=f"Error reading file: {e}")
