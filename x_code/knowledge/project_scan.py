"""Startup project scan: seed project memory from manifest files."""

import json
import re
import tomllib
from pathlib import Path
from typing import Any

from x_code.knowledge.auto_memory import AutoMemory, KnowledgeFact, today
from x_code.logging import get_logger

log = get_logger(__name__)

# Checked in order; the first lock file found decides the package manager.
LOCK_FILES: list[tuple[str, str]] = [
    ("uv.lock", "uv"),
    ("poetry.lock", "poetry"),
    ("Pipfile.lock", "pipenv"),
    ("requirements.txt", "pip"),
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("package-lock.json", "npm"),
]

PYTHON_FRAMEWORKS = {
    "django": "Django",
    "fastapi": "FastAPI",
    "flask": "Flask",
    "starlette": "Starlette",
    "aiohttp": "aiohttp",
}

_REQ_NAME_RE = re.compile(r"^\s*([A-Za-z0-9_.\-]+)")


def _read_json(path: Path) -> dict[str, Any] | None:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def _read_toml(path: Path) -> dict[str, Any] | None:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        return None


def _requirement_names(requirements: list[str]) -> set[str]:
    names: set[str] = set()
    for requirement in requirements:
        match = _REQ_NAME_RE.match(str(requirement))
        if match:
            names.add(match.group(1).lower().replace("_", "-"))
    return names


def _remember(memory: AutoMemory, key: str, fact: str, category: str) -> None:
    memory.add(KnowledgeFact(key=key, fact=fact, category=category, date=today()))


def _scan_pyproject(root: Path, memory: AutoMemory) -> None:
    data = _read_toml(root / "pyproject.toml")
    if data is None:
        return

    project = data.get("project") or {}
    tool = data.get("tool") or {}
    requires_python = project.get("requires-python")
    _remember(memory, "language", f"Python {requires_python}" if requires_python else "Python", "tech-stack")

    deps = _requirement_names(project.get("dependencies") or [])
    for extra in (project.get("optional-dependencies") or {}).values():
        deps |= _requirement_names(extra)
    poetry = tool.get("poetry") or {}
    deps |= {name.lower() for name in (poetry.get("dependencies") or {})}
    for group in (poetry.get("group") or {}).values():
        deps |= {name.lower() for name in (group.get("dependencies") or {})}

    for package, label in PYTHON_FRAMEWORKS.items():
        if package in deps:
            _remember(memory, "web-framework", label, "tech-stack")
            break

    if "pytest" in deps or "pytest" in tool:
        _remember(memory, "test-framework", "pytest", "tech-stack")
        _remember(memory, "test-command", "pytest", "commands")
    if "ruff" in deps or "ruff" in tool:
        _remember(memory, "lint-command", "ruff check .", "commands")
    if "build-system" in data:
        _remember(memory, "build-command", "python -m build", "commands")


def _scan_package_json(root: Path, memory: AutoMemory) -> None:
    pkg = _read_json(root / "package.json")
    if pkg is None:
        return

    scripts = pkg.get("scripts") or {}
    for script, key in (("test", "test-command"), ("build", "build-command"), ("lint", "lint-command")):
        if scripts.get(script):
            _remember(memory, key, str(scripts[script]), "commands")

    deps: dict[str, str] = {**(pkg.get("dependencies") or {}), **(pkg.get("devDependencies") or {})}
    if "react" in deps:
        _remember(memory, "ui-framework", f"React {deps['react']}", "tech-stack")
    if "vitest" in deps:
        _remember(memory, "test-framework", "Vitest", "tech-stack")
    if "typescript" in deps:
        _remember(memory, "language", f"TypeScript {deps['typescript']}", "tech-stack")


def scan_project(project_root: Path | str, memory: AutoMemory) -> None:
    """Record package manager, commands, language and framework facts."""
    root = Path(project_root)
    for filename, manager in LOCK_FILES:
        if (root / filename).exists():
            _remember(memory, "package-manager", manager, "tech-stack")
            break

    _scan_pyproject(root, memory)
    _scan_package_json(root, memory)
    log.debug("Project scanned", root=str(root), facts=len(memory.all()))
