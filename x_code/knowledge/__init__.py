"""Persistent knowledge: auto memory, sessions, rules and the project scan."""

from x_code.knowledge.auto_memory import AutoMemory, KnowledgeFact, MemoryStores
from x_code.knowledge.loader import build_knowledge_context, find_rule_references, load_rules
from x_code.knowledge.project_scan import scan_project
from x_code.knowledge.session import (
    SessionStore,
    SessionSummary,
    format_for_prompt,
    generate_summary,
)

__all__ = [
    "AutoMemory",
    "KnowledgeFact",
    "MemoryStores",
    "SessionStore",
    "SessionSummary",
    "build_knowledge_context",
    "find_rule_references",
    "format_for_prompt",
    "generate_summary",
    "load_rules",
    "scan_project",
]
