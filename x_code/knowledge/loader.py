"""Knowledge context assembly: knowledge files, auto memory, rules, previous session."""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

import yaml

from x_code.config import GLOBAL_DIR, PROJECT_DIR_NAME
from x_code.knowledge.auto_memory import MemoryStores
from x_code.logging import get_logger

log = get_logger(__name__)

RULES_DIR = "rules"

_FRONT_MATTER_RE = re.compile(r"^---\n(.*?)\n---\n(.*)$", re.DOTALL)
_RULE_REF_RE = re.compile(r"(?<![\w@])@([A-Za-z0-9][\w\-]*)")


@dataclass
class RuleFile:
    name: str
    content: str
    always_apply: bool = False
    paths: list[str] = field(default_factory=list)
    description: str = ""


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return ""
    except OSError as e:
        log.warning("Failed to read knowledge file", path=str(path), error=str(e))
        return ""


def parse_front_matter(content: str) -> tuple[dict[str, Any], str]:
    """Split YAML front matter from a markdown body."""
    match = _FRONT_MATTER_RE.match(content)
    if not match:
        return {}, content
    try:
        meta = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as e:
        log.warning("Invalid rule front matter", error=str(e))
        meta = {}
    if not isinstance(meta, dict):
        meta = {}
    return meta, match.group(2)


def load_rules(project_root: Path | str) -> list[RuleFile]:
    """Load `.x-code/rules/*.md`, sorted by name."""
    rules_dir = Path(project_root) / PROJECT_DIR_NAME / RULES_DIR
    if not rules_dir.is_dir():
        return []

    rules: list[RuleFile] = []
    for path in sorted(rules_dir.glob("*.md")):
        meta, body = parse_front_matter(_read_text(path))
        paths = meta.get("paths") or []
        if isinstance(paths, str):
            paths = [paths]
        rules.append(RuleFile(
            name=path.stem,
            content=body,
            always_apply=bool(meta.get("alwaysApply", False)),
            paths=[str(p) for p in paths],
            description=str(meta.get("description") or ""),
        ))
    return rules


_GLOB_TOKEN_RE = re.compile(r"\*\*/|\*\*|\*|\?")
_GLOB_TOKENS = {"**/": "(?:.*/)?", "**": ".*", "*": "[^/]*", "?": "[^/]"}


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """`**` spans path segments (`**/` also matches none), `*` and `?` stay within one."""
    converted: list[str] = []
    pos = 0
    for match in _GLOB_TOKEN_RE.finditer(pattern):
        converted.append(re.escape(pattern[pos:match.start()]))
        converted.append(_GLOB_TOKENS[match.group()])
        pos = match.end()
    converted.append(re.escape(pattern[pos:]))
    return re.compile("".join(converted))


def matches_path(file_path: str, patterns: Iterable[str]) -> bool:
    """Whole-path match of a project-relative path against rule globs."""
    normalized = file_path.replace("\\", "/").removeprefix("./")
    return any(glob_to_regex(pattern).fullmatch(normalized) for pattern in patterns)


def find_rule_references(text: str) -> list[str]:
    """Names referenced as `@rule-name` in user text."""
    return list(dict.fromkeys(_RULE_REF_RE.findall(text or "")))


def build_knowledge_context(
    project_root: Path | str,
    memories: MemoryStores,
    global_dir: Path | str | None = None,
    active_file_paths: Iterable[str] = (),
    requested_rules: Iterable[str] = (),
    session_context: str = "",
) -> str:
    """Assemble the knowledge block appended to the system prompt.

    Empty sections are skipped; returns "" when nothing is available.
    """
    root = Path(project_root)
    home = Path(global_dir) if global_dir is not None else GLOBAL_DIR
    project_dir = root / PROJECT_DIR_NAME
    sections: list[str] = []

    def add(title: str, body: str) -> None:
        if body.strip():
            sections.append(f"### {title}\n{body}")

    add("Global Preferences", _read_text(home / "knowledge.md"))
    add("Global Auto Memory", memories.global_.prompt_content())
    add("Project Knowledge", _read_text(project_dir / "knowledge.md"))
    add("Project Auto Memory", memories.project.prompt_content())
    add("Local Preferences", _read_text(project_dir / "local" / "preferences.md"))

    rules = load_rules(root)
    active = [str(p) for p in active_file_paths]
    requested = set(requested_rules)
    included: set[str] = set()

    for rule in rules:
        if rule.always_apply:
            add(f"Rule: {rule.name}", rule.content)
            included.add(rule.name)

    for rule in rules:
        if rule.name in included:
            continue
        if rule.paths and active and any(matches_path(p, rule.paths) for p in active):
            add(f"Rule: {rule.name}", rule.content)
            included.add(rule.name)

    for rule in rules:
        if rule.name in requested and rule.name not in included:
            add(f"Rule: {rule.name}", rule.content)
            included.add(rule.name)

    requestable = [r for r in rules if r.description and not r.always_apply and r.name not in included]
    if requestable:
        listing = "\n".join(f"- @{r.name}: {r.description}" for r in requestable)
        sections.append(f"### Available Rules (mention @name to load)\n{listing}")

    if session_context:
        sections.append(session_context)

    if not sections:
        return ""
    return "## Project Knowledge\n\n" + "\n\n".join(sections)
