"""save_knowledge tool: add or delete auto memory facts."""

from typing import Any

from x_code.knowledge.auto_memory import CATEGORIES, KnowledgeFact, MemoryStores, today
from x_code.logging import get_logger
from x_code.tools.registry import Tool, ToolResult

log = get_logger(__name__)


class SaveKnowledgeTool(Tool):
    """Save, update, or delete a knowledge fact."""

    name = "save_knowledge"
    description = (
        "Save, update, or delete a project/user knowledge fact in persistent memory. "
        "Use when you discover project conventions, user preferences, or important facts "
        "worth remembering for future sessions."
    )
    parameters = {
        "type": "object",
        "properties": {
            "action": {
                "type": "string",
                "enum": ["add", "delete"],
                "description": "add = create or update (replaces a fact with the same key), delete = remove outdated fact",
            },
            "key": {
                "type": "string",
                "description": 'Short unique identifier, e.g. "package-manager". Same key = same fact.',
            },
            "fact": {
                "type": "string",
                "description": 'The fact value, e.g. "uv", "pytest 8"',
            },
            "scope": {
                "type": "string",
                "enum": ["project", "global"],
                "description": "project = this repo (.x-code/), global = all repos (~/.xcode/)",
            },
            "category": {
                "type": "string",
                "enum": list(CATEGORIES),
            },
        },
        "required": ["action", "key", "scope", "category"],
    }

    def __init__(self, memories: MemoryStores):
        self.memories = memories

    async def execute(
        self,
        action: str,
        key: str,
        scope: str,
        category: str,
        fact: str = "",
        **kwargs: Any,
    ) -> ToolResult:
        if category not in CATEGORIES:
            return ToolResult(success=False, error=f"Unknown category: {category}")
        try:
            memory = self.memories.for_scope(scope)
        except ValueError as e:
            return ToolResult(success=False, error=str(e))

        if action == "add":
            if not fact.strip():
                return ToolResult(success=False, error="Missing fact for add")
            memory.add(KnowledgeFact(key=key, fact=fact, category=category, date=today()))
            log.info("Knowledge saved", scope=scope, category=category, key=key)
            return ToolResult(success=True, content=f"Knowledge saved: [{category}] {key}: {fact}")
        if action == "delete":
            memory.delete(key, category)
            log.info("Knowledge deleted", scope=scope, category=category, key=key)
            return ToolResult(success=True, content=f"Knowledge deleted: [{category}] {key}")
        return ToolResult(success=False, error=f"Unknown action: {action}")
