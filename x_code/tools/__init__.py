"""Tools package for X-Code."""

from pathlib import Path

from x_code.knowledge.auto_memory import MemoryStores
from x_code.tools.edit import EditTool
from x_code.tools.glob import GlobTool
from x_code.tools.grep import GrepTool
from x_code.tools.interactive import AskUserTool, EnterPlanModeTool, ExitPlanModeTool
from x_code.tools.list_dir import ListDirTool
from x_code.tools.read import ReadFileTool
from x_code.tools.registry import (
    MAX_TOOL_RESULT_CHARS,
    Tool,
    ToolKind,
    ToolRegistry,
    ToolResult,
    truncate_tool_result,
)
from x_code.tools.save_knowledge import SaveKnowledgeTool
from x_code.tools.shell import ShellTool
from x_code.tools.web_fetch import WebFetchTool
from x_code.tools.web_search import WebSearchTool
from x_code.tools.write import WriteFileTool


def build_tool_catalog(
    project_root: Path,
    memories: MemoryStores,
    max_result_chars: int = MAX_TOOL_RESULT_CHARS,
) -> ToolRegistry:
    """Register the full tool set for one project."""
    registry = ToolRegistry(max_result_chars=max_result_chars)
    for tool in (
        ReadFileTool(project_root),
        WriteFileTool(project_root),
        EditTool(project_root),
        ShellTool(project_root),
        GlobTool(project_root),
        GrepTool(project_root),
        ListDirTool(project_root),
        WebSearchTool(),
        WebFetchTool(),
        AskUserTool(),
        SaveKnowledgeTool(memories),
        EnterPlanModeTool(),
        ExitPlanModeTool(),
    ):
        registry.register(tool)
    return registry


__all__ = [
    "AskUserTool",
    "EditTool",
    "EnterPlanModeTool",
    "ExitPlanModeTool",
    "GlobTool",
    "GrepTool",
    "ListDirTool",
    "ReadFileTool",
    "SaveKnowledgeTool",
    "ShellTool",
    "Tool",
    "ToolKind",
    "ToolRegistry",
    "ToolResult",
    "WebFetchTool",
    "WebSearchTool",
    "WriteFileTool",
    "build_tool_catalog",
    "truncate_tool_result",
]
