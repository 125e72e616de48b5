"""Auto memory: key-based fact stores persisted as markdown.

File layout::

    ## Auto Memory

    ### tech-stack
    - [2026-03-01] package-manager: uv

At most one fact exists per (category, key); adding a fact with an existing
pair replaces it in place.
"""

import re
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from pathlib import Path
from typing import Literal

from x_code.config import GLOBAL_DIR, PROJECT_DIR_NAME
from x_code.logging import get_logger

log = get_logger(__name__)

CATEGORIES = ("tech-stack", "commands", "conventions", "preferences", "context")
MAX_PROMPT_LINES = 200
DEFAULT_MAX_AGE_DAYS = 90

_CATEGORY_RE = re.compile(r"^### (.+)$")
_FACT_RE = re.compile(r"^- \[(\d{4}-\d{2}-\d{2})\] (.+?):\s*(.+)$")

Scope = Literal["project", "global"]


def today() -> str:
    return datetime.now(UTC).date().isoformat()


@dataclass
class KnowledgeFact:
    key: str
    fact: str
    category: str
    date: str


def parse_memory(content: str) -> list[KnowledgeFact]:
    """Parse the markdown memory format; unrecognized lines are ignored."""
    facts: list[KnowledgeFact] = []
    category = ""
    for line in content.split("\n"):
        category_match = _CATEGORY_RE.match(line)
        if category_match:
            category = category_match.group(1).strip()
            continue
        fact_match = _FACT_RE.match(line)
        if fact_match and category:
            facts.append(KnowledgeFact(
                key=fact_match.group(2).strip(),
                fact=fact_match.group(3).strip(),
                category=category,
                date=fact_match.group(1),
            ))
    return facts


def serialize_memory(facts: list[KnowledgeFact]) -> str:
    if not facts:
        return ""

    by_category: dict[str, list[KnowledgeFact]] = {}
    for fact in facts:
        by_category.setdefault(fact.category, []).append(fact)

    lines = ["## Auto Memory", ""]
    for category, entries in by_category.items():
        lines.append(f"### {category}")
        lines.extend(f"- [{f.date}] {f.key}: {f.fact}" for f in entries)
        lines.append("")
    return "\n".join(lines)


class AutoMemory:
    """One scope's fact store backed by a markdown file."""

    def __init__(self, path: Path | str, max_prompt_lines: int = MAX_PROMPT_LINES):
        self.path = Path(path)
        self.max_prompt_lines = max_prompt_lines
        self._facts: list[KnowledgeFact] = []

    def load(self) -> None:
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            self._facts = []
            return
        except OSError as e:
            log.warning("Failed to read auto memory", path=str(self.path), error=str(e))
            self._facts = []
            return
        self._facts = parse_memory(content)

    def add(self, fact: KnowledgeFact) -> None:
        """Add a fact, replacing any existing one with the same category and key."""
        for index, existing in enumerate(self._facts):
            if existing.category == fact.category and existing.key == fact.key:
                self._facts[index] = fact
                break
        else:
            self._facts.append(fact)
        self._save()

    def delete(self, key: str, category: str | None = None) -> None:
        self._facts = [
            f for f in self._facts
            if not (f.key == key and (category is None or f.category == category))
        ]
        self._save()

    def find(self, key: str, category: str | None = None) -> KnowledgeFact | None:
        for fact in self._facts:
            if fact.key == key and (category is None or fact.category == category):
                return fact
        return None

    def evict(self, max_age_days: int = DEFAULT_MAX_AGE_DAYS) -> int:
        """Drop facts older than `max_age_days`; returns how many were removed."""
        cutoff = datetime.now(UTC).date() - timedelta(days=max_age_days)
        kept: list[KnowledgeFact] = []
        for fact in self._facts:
            try:
                fact_date = date.fromisoformat(fact.date)
            except ValueError:
                continue
            if fact_date > cutoff:
                kept.append(fact)
        removed = len(self._facts) - len(kept)
        if removed:
            self._facts = kept
            self._save()
        return removed

    def all(self) -> list[KnowledgeFact]:
        return list(self._facts)

    def prompt_content(self) -> str:
        content = serialize_memory(self._facts)
        lines = content.split("\n")
        if len(lines) > self.max_prompt_lines:
            return "\n".join(lines[:self.max_prompt_lines]) + "\n... (truncated)"
        return content

    def _save(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(serialize_memory(self._facts), encoding="utf-8")
        except OSError as e:
            log.warning("Failed to save auto memory", path=str(self.path), error=str(e))


class MemoryStores:
    """Project and global memory for one execution context."""

    def __init__(self, project: AutoMemory, global_: AutoMemory):
        self.project = project
        self.global_ = global_

    @classmethod
    def for_project(
        cls,
        project_root: Path | str,
        global_dir: Path | str | None = None,
        max_prompt_lines: int = MAX_PROMPT_LINES,
    ) -> "MemoryStores":
        root = Path(project_root)
        home = Path(global_dir) if global_dir is not None else GLOBAL_DIR
        return cls(
            project=AutoMemory(root / PROJECT_DIR_NAME / "memory" / "auto.md", max_prompt_lines),
            global_=AutoMemory(home / "memory" / "auto.md", max_prompt_lines),
        )

    def for_scope(self, scope: Scope) -> AutoMemory:
        if scope == "project":
            return self.project
        if scope == "global":
            return self.global_
        raise ValueError(f"Unknown memory scope: {scope}")

    def init(self, max_age_days: int = DEFAULT_MAX_AGE_DAYS) -> None:
        """Load both scopes from disk and evict stale facts."""
        self.project.load()
        self.global_.load()
        self.project.evict(max_age_days)
        self.global_.evict(max_age_days)
