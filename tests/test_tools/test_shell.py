import asyncio
from pathlib import Path

import pytest

from x_code.tools.shell import ShellTool


@pytest.mark.asyncio
async def test_shell_reports_exit_code_and_streams_output(tmp_path: Path):
    chunks: list[str] = []
    tool = ShellTool(tmp_path)

    result = await tool.execute(command="echo hello", _on_output=chunks.append)

    assert result.success is True
    assert result.content == "exit code: 0\nhello"
    assert "".join(chunks) == "hello\n"


@pytest.mark.asyncio
async def test_shell_nonzero_exit_is_not_a_tool_failure(tmp_path: Path):
    result = await ShellTool(tmp_path).execute(command="echo oops 1>&2; exit 3")

    assert result.success is True
    assert result.content.startswith("exit code: 3")
    assert "oops" in result.content


@pytest.mark.asyncio
async def test_shell_runs_in_project_directory(tmp_path: Path):
    (tmp_path / "marker.txt").write_text("", encoding="utf-8")

    result = await ShellTool(tmp_path).execute(command="ls")

    assert "marker.txt" in result.content


@pytest.mark.asyncio
async def test_shell_timeout_kills_command(tmp_path: Path):
    result = await ShellTool(tmp_path).execute(command="sleep 5", timeout=1)

    assert result.success is False
    assert result.error == "Command timed out after 1s"


@pytest.mark.asyncio
async def test_shell_abort_kills_command(tmp_path: Path):
    abort_event = asyncio.Event()

    async def _abort_soon():
        await asyncio.sleep(0.2)
        abort_event.set()

    abort_task = asyncio.create_task(_abort_soon())
    result = await ShellTool(tmp_path).execute(command="sleep 5", _abort_event=abort_event)
    await abort_task

    assert result.success is False
    assert result.error == "Command aborted"
