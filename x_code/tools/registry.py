"""Tool registry and base tool class."""

import asyncio
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from pydantic import BaseModel, model_validator

from x_code.exceptions import ToolExecutionError, ToolNotFoundError
from x_code.logging import get_logger

log = get_logger(__name__)

MAX_TOOL_RESULT_CHARS = 30000


def truncate_tool_result(result: str, max_chars: int = MAX_TOOL_RESULT_CHARS) -> str:
    """Keep the head and tail of an oversized result around a truncation marker."""
    if len(result) <= max_chars:
        return result
    half = max_chars // 2
    dropped_lines = len(result[half:-half].split("\n"))
    return f"{result[:half]}\n\n... [truncated {dropped_lines} lines] ...\n\n{result[-half:]}"


def resolve_tool_path(path: str, root: Path | None = None) -> Path:
    """Resolve a tool path argument; relative paths are taken from `root`."""
    candidate = Path(path).expanduser()
    if not candidate.is_absolute() and root is not None:
        candidate = root / candidate
    return candidate.resolve()


class ToolKind(str, Enum):
    """How the agent loop dispatches a tool call."""

    AUTO_EXECUTED = "auto_executed"
    PERMISSION_GATED = "permission_gated"
    CONTROL = "control"
    INTERACTIVE = "interactive"


class ToolResult(BaseModel):
    """Result from tool execution."""

    success: bool = True
    content: str = ""
    error: str | None = None

    @model_validator(mode="after")
    def _normalize_failure_error(self) -> "ToolResult":
        """Ensure failed results always provide an error message."""
        if not self.success and not (self.error or "").strip():
            fallback = (self.content or "").strip()
            self.error = fallback or "Tool execution failed"
        return self

    def to_text(self) -> str:
        """Render the result as the text fed back to the model."""
        if self.success:
            return self.content
        return f"Error: {self.error}"


class Tool:
    """Base class for all tools.

    Control and interactive tools only describe their schema; the agent loop
    handles them itself, so their `execute` is never reached.
    """

    name: str = ""
    description: str = ""
    parameters: dict[str, Any] = {"type": "object", "properties": {}, "required": []}
    kind: ToolKind = ToolKind.AUTO_EXECUTED
    timeout_seconds: float | None = 30.0

    @property
    def has_executor(self) -> bool:
        return self.kind in (ToolKind.AUTO_EXECUTED, ToolKind.PERMISSION_GATED)

    async def execute(self, **kwargs: Any) -> ToolResult:
        """Execute the tool.

        Args:
            **kwargs: Tool-specific arguments plus `_`-prefixed runtime context

        Returns:
            ToolResult with success status and content
        """
        raise ToolExecutionError(self.name, "Tool is handled by the agent loop and has no executor")

    def get_definition(self) -> dict[str, Any]:
        """Get the tool definition for LLM.

        Returns:
            OpenAI function-style definition
        """
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    def validate_arguments(self, arguments: dict[str, Any]) -> None:
        """Validate tool arguments against the schema's required list.

        Raises:
            ToolExecutionError if a required argument is missing
        """
        required = self.parameters.get("required", [])
        for field in required:
            if field not in arguments:
                raise ToolExecutionError(
                    self.name,
                    f"Missing required argument: {field}",
                )


class ToolRegistry:
    """Catalog of tools offered to the model."""

    def __init__(self, max_result_chars: int = MAX_TOOL_RESULT_CHARS):
        self._tools: dict[str, Tool] = {}
        self.max_result_chars = max_result_chars

    def register(self, tool: Tool) -> None:
        """Register a tool.

        Args:
            tool: Tool instance to register
        """
        if not tool.name:
            raise ValueError("Tool must have a name")

        log.debug("Registering tool", tool=tool.name, kind=tool.kind.value)
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool:
        """Get a tool by name.

        Raises:
            ToolNotFoundError if not found
        """
        if name not in self._tools:
            raise ToolNotFoundError(name)
        return self._tools[name]

    def find(self, name: str) -> Tool | None:
        """Get a tool by name, or None."""
        return self._tools.get(name)

    def list_tools(self) -> list[str]:
        """List all registered tool names."""
        return list(self._tools)

    def get_definitions(self) -> list[dict[str, Any]]:
        """Get all tool definitions for LLM."""
        return [tool.get_definition() for tool in self._tools.values()]

    def truncate(self, result: str) -> str:
        return truncate_tool_result(result, self.max_result_chars)

    @staticmethod
    async def _cancel_task(task: asyncio.Task[Any] | None) -> None:
        """Cancel task and await it to avoid pending task warnings."""
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            log.debug("Cancelled task raised", error=str(e))

    @staticmethod
    async def _bridge_abort_event(source: asyncio.Event, target: asyncio.Event) -> None:
        """Mirror external abort event to local tool abort event."""
        await source.wait()
        target.set()

    async def execute(
        self,
        name: str,
        arguments: dict[str, Any],
        abort_event: asyncio.Event | None = None,
        on_output: Callable[[str], None] | None = None,
    ) -> ToolResult:
        """Execute a tool by name.

        Args:
            name: Tool name
            arguments: Tool arguments
            abort_event: Optional event that cancels the running tool
            on_output: Optional sink for incremental output (shell)

        Returns:
            ToolResult from execution

        Raises:
            ToolNotFoundError if tool not found
            ToolExecutionError if execution fails, times out or is aborted
        """
        tool = self.get(name)
        if not tool.has_executor:
            raise ToolExecutionError(name, "Tool is handled by the agent loop and has no executor")

        tool.validate_arguments(arguments)

        execute_task: asyncio.Task[ToolResult] | None = None
        abort_wait_task: asyncio.Task[bool] | None = None
        bridge_task: asyncio.Task[None] | None = None
        tool_abort_event = asyncio.Event()
        try:
            log.info("Executing tool", tool=name)
            timeout_seconds = tool.timeout_seconds

            if abort_event is not None:
                if abort_event.is_set():
                    raise ToolExecutionError(name, "Execution aborted")
                bridge_task = asyncio.create_task(
                    self._bridge_abort_event(abort_event, tool_abort_event)
                )

            execute_task = asyncio.create_task(
                tool.execute(
                    **arguments,
                    _abort_event=tool_abort_event,
                    _on_output=on_output,
                )
            )
            abort_wait_task = asyncio.create_task(tool_abort_event.wait())
            done, _ = await asyncio.wait(
                {execute_task, abort_wait_task},
                timeout=timeout_seconds,
                return_when=asyncio.FIRST_COMPLETED,
            )

            if execute_task in done:
                result = await execute_task
                if not isinstance(result, ToolResult):
                    raise ToolExecutionError(name, "Tool returned invalid result payload")
                log.info("Tool executed", tool=name, success=result.success)
                return result

            if abort_wait_task in done:
                await self._cancel_task(execute_task)
                raise ToolExecutionError(name, "Execution aborted")

            tool_abort_event.set()
            await self._cancel_task(execute_task)
            raise ToolExecutionError(name, f"Execution timed out after {timeout_seconds:g}s")
        except asyncio.CancelledError:
            tool_abort_event.set()
            await self._cancel_task(execute_task)
            raise
        except ToolExecutionError:
            raise
        except Exception as e:
            log.error("Tool execution failed", tool=name, error=str(e))
            raise ToolExecutionError(name, str(e))
        finally:
            await self._cancel_task(abort_wait_task)
            await self._cancel_task(bridge_task)

    async def execute_to_text(
        self,
        name: str,
        arguments: dict[str, Any],
        abort_event: asyncio.Event | None = None,
        on_output: Callable[[str], None] | None = None,
    ) -> str:
        """Execute a tool and render the outcome as text; never raises tool errors."""
        try:
            result = await self.execute(
                name,
                arguments,
                abort_event=abort_event,
                on_output=on_output,
            )
        except (ToolExecutionError, ToolNotFoundError) as e:
            return f"Error: {e}"
        return result.to_text()
