import pytest

from x_code.llm import ToolCall
from x_code.permissions import (
    PermissionDecision,
    check_permission,
    classify,
    pre_approve,
    split_shell_commands,
)

ALLOW = PermissionDecision.ALWAYS_ALLOW
ASK = PermissionDecision.ASK
DENY = PermissionDecision.DENY


def test_read_only_tools_are_always_allowed():
    for name in ("read_file", "glob", "grep", "list_dir", "web_search", "web_fetch", "ask_user", "save_knowledge"):
        assert classify(name, {}) is ALLOW


def test_file_writing_and_unknown_tools_ask():
    assert classify("write_file", {"path": "a"}) is ASK
    assert classify("edit", {"path": "a"}) is ASK
    assert classify("mystery", {}) is ASK


@pytest.mark.parametrize(
    "command, expected",
    [
        ("ls -la | wc -l", ALLOW),
        ("git status; git diff", ALLOW),
        ("cat README.md && wc -l README.md", ALLOW),
        ("npm install", ASK),
        ("ls && python build.py", ASK),
        ("lsblk", ASK),
        ("", ASK),
        ("ls && rm -rf /", DENY),
        ("rm -f build.log", DENY),
        ("sudo ls", DENY),
        ("chmod 755 /usr/local/bin/tool", DENY),
        ("dd if=/dev/zero of=disk.img", DENY),
        ("echo hi > /dev/sda", DENY),
    ],
)
def test_shell_classification(command, expected):
    assert classify("shell", {"command": command}) is expected


def test_split_respects_quotes():
    assert split_shell_commands('echo "a|b; c" && ls') == ['echo "a|b; c"', "ls"]
    assert split_shell_commands("a || b | c ; d") == ["a", "b", "c", "d"]


def test_quoted_operator_does_not_hide_destructive_tail():
    assert classify("shell", {"command": "echo '&&' ; rm -rf build"}) is DENY


def test_pre_approve_deny_wins_over_trust():
    call = ToolCall("s1", "shell", {"command": "sudo reboot"})

    assert pre_approve(call, trust_mode=True) is False
    assert pre_approve(ToolCall("w1", "write_file", {}), trust_mode=False) is None
    assert pre_approve(ToolCall("w1", "write_file", {}), trust_mode=True) is True


class _Asker:
    def __init__(self, answer: bool):
        self.answer = answer
        self.calls: list[tuple[ToolCall, PermissionDecision]] = []

    async def __call__(self, call, decision):
        self.calls.append((call, decision))
        return self.answer


@pytest.mark.asyncio
async def test_check_permission_asks_once_for_ask_decisions():
    asker = _Asker(answer=True)
    call = ToolCall("w1", "write_file", {"path": "a", "content": "b"})

    assert await check_permission(call, trust_mode=False, ask=asker) is True
    assert asker.calls == [(call, ASK)]


@pytest.mark.asyncio
async def test_check_permission_never_asks_for_allow_deny_or_trust():
    asker = _Asker(answer=True)

    assert await check_permission(ToolCall("r", "read_file", {"path": "a"}), False, asker) is True
    assert await check_permission(ToolCall("s", "shell", {"command": "ls; rm -rf /"}), True, asker) is False
    assert await check_permission(ToolCall("w", "write_file", {}), True, asker) is True
    assert asker.calls == []


@pytest.mark.asyncio
async def test_check_permission_declined():
    asker = _Asker(answer=False)

    assert await check_permission(ToolCall("e", "edit", {}), False, asker) is False
    assert len(asker.calls) == 1
