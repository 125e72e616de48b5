"""Shell tool for executing commands."""

import asyncio
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from x_code.config import get_config
from x_code.logging import get_logger
from x_code.tools.registry import Tool, ToolKind, ToolResult

log = get_logger(__name__)


@dataclass(frozen=True)
class ShellConfig:
    executable: str
    args: tuple[str, ...]
    type: str


def get_shell_config() -> ShellConfig:
    """The platform shell used to run commands."""
    if sys.platform == "win32":
        return ShellConfig("powershell.exe", ("-NoProfile", "-Command"), "powershell")
    user_shell = os.environ.get("SHELL") or "/bin/bash"
    return ShellConfig(user_shell, ("-c",), "zsh" if user_shell.endswith("zsh") else "bash")


async def _pump(stream: asyncio.StreamReader | None, chunks: list[str], on_output: Callable[[str], None] | None) -> None:
    if stream is None:
        return
    while True:
        data = await stream.read(4096)
        if not data:
            break
        text = data.decode("utf-8", errors="replace")
        chunks.append(text)
        if on_output is not None:
            on_output(text)


class ShellTool(Tool):
    """Execute shell commands."""

    name = "shell"
    description = (
        "Execute a shell command and return its exit code, stdout and stderr. "
        "Commands should be compatible with the current platform shell."
    )
    kind = ToolKind.PERMISSION_GATED
    # The tool enforces its own per-call timeout.
    timeout_seconds = None
    parameters = {
        "type": "object",
        "properties": {
            "command": {
                "type": "string",
                "description": "The command to execute",
            },
            "timeout": {
                "type": "number",
                "description": "Timeout in seconds (default from config, typically 30)",
            },
        },
        "required": ["command"],
    }

    def __init__(self, cwd: Path | None = None):
        self.cwd = cwd
        self.default_timeout = float(get_config().tools.shell.timeout or 30)

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            process.kill()
            await process.wait()

    async def execute(self, command: str, timeout: float | None = None, **kwargs: Any) -> ToolResult:
        """Execute a shell command.

        Args:
            command: Shell command to execute
            timeout: Optional timeout override in seconds

        Returns:
            ToolResult with `exit code: N` followed by stdout and stderr
        """
        effective_timeout = max(1.0, float(timeout or self.default_timeout))
        abort_event = kwargs.get("_abort_event")
        on_output = kwargs.get("_on_output")
        if isinstance(abort_event, asyncio.Event) and abort_event.is_set():
            return ToolResult(success=False, error="Command aborted")

        shell = get_shell_config()
        log.info("Executing shell command", command=command, timeout=effective_timeout)
        try:
            process = await asyncio.create_subprocess_exec(
                shell.executable,
                *shell.args,
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.cwd) if self.cwd else None,
            )
        except OSError as e:
            log.error("Shell command failed to start", command=command, error=str(e))
            return ToolResult(success=False, error=str(e))

        stdout_chunks: list[str] = []
        stderr_chunks: list[str] = []
        run_task = asyncio.create_task(self._run(process, stdout_chunks, stderr_chunks, on_output))
        abort_wait_task: asyncio.Task[bool] | None = None
        if isinstance(abort_event, asyncio.Event):
            abort_wait_task = asyncio.create_task(abort_event.wait())

        try:
            wait_tasks: set[asyncio.Task[Any]] = {run_task}
            if abort_wait_task is not None:
                wait_tasks.add(abort_wait_task)
            done, _ = await asyncio.wait(
                wait_tasks,
                timeout=effective_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )

            if run_task not in done:
                await self._kill(process)
                run_task.cancel()
                try:
                    await run_task
                except asyncio.CancelledError:
                    pass
                if abort_wait_task is not None and abort_wait_task in done:
                    return ToolResult(success=False, error="Command aborted")
                return ToolResult(
                    success=False,
                    error=f"Command timed out after {effective_timeout:g}s",
                )

            exit_code = await run_task
        except asyncio.CancelledError:
            await self._kill(process)
            run_task.cancel()
            raise
        finally:
            if abort_wait_task is not None and not abort_wait_task.done():
                abort_wait_task.cancel()
                try:
                    await abort_wait_task
                except asyncio.CancelledError:
                    pass

        output = f"exit code: {exit_code}\n{''.join(stdout_chunks)}\n{''.join(stderr_chunks)}".strip()
        return ToolResult(success=True, content=output)

    @staticmethod
    async def _run(
        process: asyncio.subprocess.Process,
        stdout_chunks: list[str],
        stderr_chunks: list[str],
        on_output: Callable[[str], None] | None,
    ) -> int:
        await asyncio.gather(
            _pump(process.stdout, stdout_chunks, on_output),
            _pump(process.stderr, stderr_chunks, on_output),
        )
        return await process.wait()
