"""Permission gate for tool calls.

Every call is classified as always-allow, ask, or deny. Shell commands are
split into their sub-commands so a harmless prefix cannot smuggle a
destructive tail past the gate.
"""

import re
from enum import Enum
from typing import Any, Awaitable, Callable

from x_code.llm import ToolCall
from x_code.logging import get_logger

log = get_logger(__name__)


class PermissionDecision(str, Enum):
    ALWAYS_ALLOW = "always-allow"
    ASK = "ask"
    DENY = "deny"


READ_ONLY_TOOLS = frozenset({
    "read_file",
    "glob",
    "grep",
    "list_dir",
    "web_search",
    "web_fetch",
    "ask_user",
    "save_knowledge",
    "enter_plan_mode",
    "exit_plan_mode",
})

ASK_TOOLS = frozenset({"write_file", "edit"})

DESTRUCTIVE_PATTERNS = [
    re.compile(r"\brm\s+(-[a-z]*f|-[a-z]*r|--force|--recursive)"),
    re.compile(r"\bsudo\b"),
    re.compile(r"\bmkfs\b"),
    re.compile(r"\bdd\s+if="),
    re.compile(r"\b(chmod|chown)\s+.*\/"),
    re.compile(r">\s*\/dev\/sd"),
    re.compile(r"\bformat\b"),
    re.compile(r"\bRemove-Item\s+.*-Recurse"),
]

READ_ONLY_COMMAND = re.compile(
    r"^\s*(ls|pwd|cat|head|tail|wc|echo|which|type|file|stat|du|df|env|printenv"
    r"|git\s+(status|log|diff|branch|show|remote|tag))\b"
)


def split_shell_commands(command: str) -> list[str]:
    """Split a command line on `|`, `||`, `&&` and `;` outside quotes."""
    parts: list[str] = []
    current: list[str] = []
    quote: str | None = None
    i = 0
    while i < len(command):
        ch = command[i]
        if quote:
            current.append(ch)
            if ch == quote:
                quote = None
            i += 1
            continue
        if ch in ("'", '"'):
            quote = ch
            current.append(ch)
            i += 1
            continue
        pair = command[i:i + 2]
        if pair in ("&&", "||"):
            parts.append("".join(current))
            current = []
            i += 2
            continue
        if ch in ("|", ";"):
            parts.append("".join(current))
            current = []
            i += 1
            continue
        current.append(ch)
        i += 1
    parts.append("".join(current))
    return [part.strip() for part in parts if part.strip()]


def is_destructive(command: str) -> bool:
    return any(pattern.search(command) for pattern in DESTRUCTIVE_PATTERNS)


def is_read_only(command: str) -> bool:
    return bool(READ_ONLY_COMMAND.match(command))


def classify_shell(command: str) -> PermissionDecision:
    sub_commands = split_shell_commands(command)
    if any(is_destructive(sub) for sub in sub_commands):
        return PermissionDecision.DENY
    if sub_commands and all(is_read_only(sub) for sub in sub_commands):
        return PermissionDecision.ALWAYS_ALLOW
    return PermissionDecision.ASK


def classify(tool_name: str, tool_input: dict[str, Any] | None) -> PermissionDecision:
    """Classify a tool call. Pure function of the tool name and its input."""
    if tool_name in READ_ONLY_TOOLS:
        return PermissionDecision.ALWAYS_ALLOW
    if tool_name in ASK_TOOLS:
        return PermissionDecision.ASK
    if tool_name == "shell":
        command = (tool_input or {}).get("command", "")
        return classify_shell(str(command or ""))
    return PermissionDecision.ASK


AskCallback = Callable[[ToolCall, PermissionDecision], Awaitable[bool]]


def pre_approve(call: ToolCall, trust_mode: bool) -> bool | None:
    """Resolve a call without asking; None means the user must be asked.

    Deny wins over trust mode.
    """
    decision = classify(call.name, call.input)
    if decision is PermissionDecision.DENY:
        log.warning("Blocked destructive tool call", tool=call.name)
        return False
    if decision is PermissionDecision.ALWAYS_ALLOW or trust_mode:
        return True
    return None


async def check_permission(call: ToolCall, trust_mode: bool, ask: AskCallback) -> bool:
    """Resolve a call against the gate, awaiting `ask` at most once."""
    verdict = pre_approve(call, trust_mode)
    if verdict is not None:
        return verdict
    return bool(await ask(call, PermissionDecision.ASK))
