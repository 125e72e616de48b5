"""write_file tool: create or overwrite a file."""

from pathlib import Path
from typing import Any

from x_code.logging import get_logger
from x_code.tools.registry import Tool, ToolKind, ToolResult, resolve_tool_path

log = get_logger(__name__)


class WriteFileTool(Tool):
    """Create or overwrite a file."""

    name = "write_file"
    description = (
        "Create or overwrite a file at the given path. Always prefer edit (string replacement) "
        "over write_file for modifying existing files."
    )
    kind = ToolKind.PERMISSION_GATED
    parameters = {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Absolute path to the file",
            },
            "content": {
                "type": "string",
                "description": "The full content to write",
            },
        },
        "required": ["path", "content"],
    }

    def __init__(self, root: Path | None = None):
        self.root = root

    async def execute(self, path: str, content: str, **kwargs: Any) -> ToolResult:
        try:
            file_path = resolve_tool_path(path, self.root)
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(content, encoding="utf-8")
        except OSError as e:
            log.error("Write failed", path=path, error=str(e))
            return ToolResult(success=False, error=f"Error writing file: {e}")

        log.info("File written", path=str(file_path), chars=len(content))
        return ToolResult(success=True, content=f"File written: {file_path} ({len(content)} characters)")
