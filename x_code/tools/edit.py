"""edit tool: exact string replacement in a file."""

from pathlib import Path
from typing import Any

from x_code.logging import get_logger
from x_code.tools.registry import Tool, ToolKind, ToolResult, resolve_tool_path

log = get_logger(__name__)


class EditTool(Tool):
    """Replace a specific string in a file."""

    name = "edit"
    description = (
        "Replace a specific string in a file. The old_string must be unique in the file "
        "unless replace_all is set. Preferred over write_file for modifications."
    )
    kind = ToolKind.PERMISSION_GATED
    parameters = {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Absolute path to the file",
            },
            "old_string": {
                "type": "string",
                "description": "The exact text to find and replace (must be unique in the file)",
            },
            "new_string": {
                "type": "string",
                "description": "The replacement text",
            },
            "replace_all": {
                "type": "boolean",
                "description": "Replace all occurrences (default: false)",
            },
        },
        "required": ["path", "old_string", "new_string"],
    }

    def __init__(self, root: Path | None = None):
        self.root = root

    async def execute(
        self,
        path: str,
        old_string: str,
        new_string: str,
        replace_all: bool = False,
        **kwargs: Any,
    ) -> ToolResult:
        if not old_string:
            return ToolResult(success=False, error="old_string must not be empty")

        file_path = resolve_tool_path(path, self.root)
        try:
            content = file_path.read_text(encoding="utf-8")
        except OSError as e:
            return ToolResult(success=False, error=f"Error reading file: {e}")

        count = content.count(old_string)
        if count == 0:
            return ToolResult(success=False, error=f"old_string not found in {file_path}")
        if count > 1 and not replace_all:
            return ToolResult(
                success=False,
                error=(
                    f"old_string is not unique in {file_path} (found {count} occurrences). "
                    "Provide more context or set replace_all: true."
                ),
            )

        updated = content.replace(old_string, new_string, -1 if replace_all else 1)
        try:
            file_path.write_text(updated, encoding="utf-8")
        except OSError as e:
            log.error("Edit failed", path=str(file_path), error=str(e))
            return ToolResult(success=False, error=f"Error writing file: {e}")

        log.info("File edited", path=str(file_path), replacements=count if replace_all else 1)
        return ToolResult(success=True, content=f"File edited: {file_path}")
