"""List directory tool."""

from pathlib import Path
from typing import Any

from x_code.logging import get_logger
from x_code.tools.registry import Tool, ToolResult, resolve_tool_path

log = get_logger(__name__)


class ListDirTool(Tool):
    """List directory contents."""

    name = "list_dir"
    description = "List the contents of a directory. Returns names with type indicators (/ for directories)."
    parameters = {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Absolute path to the directory",
            },
        },
        "required": ["path"],
    }

    def __init__(self, root: Path | None = None):
        self.root = root

    async def execute(self, path: str, **kwargs: Any) -> ToolResult:
        try:
            dir_path = resolve_tool_path(path, self.root)
            entries = sorted(dir_path.iterdir(), key=lambda p: p.name)
        except OSError as e:
            log.error("List dir failed", path=path, error=str(e))
            return ToolResult(success=False, error=f"Error listing directory: {e}")

        lines = [f"{entry.name}/" if entry.is_dir() else entry.name for entry in entries]
        return ToolResult(success=True, content="\n".join(lines) or "(empty directory)")
