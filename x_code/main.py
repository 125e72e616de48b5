"""Command-line entry point for X-Code."""

import asyncio
import json
import signal
import sys
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from x_code.agent import AgentCallbacks, AgentLoop, AgentOptions, normalize_options
from x_code.config import Config, get_config, resolve_model_id, set_config
from x_code.context import AgentContext
from x_code.llm import ModelClient, ToolCall, create_model_client
from x_code.logging import configure_logging, log
from x_code.permissions import PermissionDecision
from x_code.state import ConversationState, TokenUsage

app = typer.Typer(help="X-Code - an AI coding assistant for the terminal", add_completion=False)

EXIT_COMMANDS = {"/exit", "/quit"}
OTHER_OPTION = "Other"


def _preview(value: Any, limit: int = 120) -> str:
    text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
    text = " ".join(text.split())
    return text if len(text) <= limit else text[:limit - 3] + "..."


class TerminalRenderer:
    """Plain rich rendering of agent events."""

    def __init__(self, console: Console, interactive: bool = True):
        self.console = console
        self.interactive = interactive
        self.usage: TokenUsage | None = None
        self._mid_line = False

    def _break_line(self) -> None:
        if self._mid_line:
            self.console.print()
            self._mid_line = False

    def on_text_delta(self, text: str) -> None:
        self.console.print(text, end="", markup=False, highlight=False, soft_wrap=True)
        self._mid_line = not text.endswith("\n")

    def on_tool_call(self, call: ToolCall) -> None:
        self._break_line()
        self.console.print(f"[cyan]> {call.name}[/cyan] [dim]{escape(_preview(call.input))}[/dim]", highlight=False)

    def on_tool_result(self, tool_call_id: str, text: str) -> None:
        first_line = text.strip().split("\n", 1)[0] if text.strip() else "(no output)"
        self.console.print(f"  [dim]{escape(_preview(first_line))}[/dim]", highlight=False)

    def on_shell_output(self, chunk: str) -> None:
        self.console.print(chunk, end="", style="dim", markup=False, highlight=False)

    def on_usage_update(self, usage: TokenUsage) -> None:
        self.usage = usage

    def on_context_compressed(self, notice: str) -> None:
        self._break_line()
        self.console.print(f"[yellow]{notice}[/yellow]")

    def on_error(self, error: Exception) -> None:
        self._break_line()
        self.console.print(f"[red]Error:[/red] {escape(str(error))}", highlight=False)

    async def on_ask_permission(self, call: ToolCall, decision: PermissionDecision) -> bool:
        self._break_line()
        self.console.print(Panel(
            escape(_preview(call.input, limit=600)),
            title=f"Allow {call.name}?",
            border_style="yellow",
        ))
        return await asyncio.to_thread(Confirm.ask, "Run this tool?", default=False)

    async def on_ask_user(self, question: str, options: list[Any]) -> str:
        self._break_line()
        table = Table(show_header=False, box=None)
        labels: list[str] = []
        for index, option in enumerate(normalize_options(options), start=1):
            label = option["label"]
            labels.append(label)
            table.add_row(f"[bold]{index}[/bold]", escape(label), f"[dim]{escape(option['description'])}[/dim]")
        table.add_row(f"[bold]{len(labels) + 1}[/bold]", OTHER_OPTION, "")
        self.console.print(Panel(table, title=escape(question), border_style="cyan"))

        choices = [str(i) for i in range(1, len(labels) + 2)]
        picked = await asyncio.to_thread(Prompt.ask, "Choice", choices=choices, default="1")
        index = int(picked) - 1
        if index < len(labels):
            return labels[index]
        return await asyncio.to_thread(Prompt.ask, "Your answer")

    def callbacks(self) -> AgentCallbacks:
        return AgentCallbacks(
            on_text_delta=self.on_text_delta,
            on_tool_call=self.on_tool_call,
            on_tool_result=self.on_tool_result,
            on_ask_permission=self.on_ask_permission if self.interactive else None,
            on_ask_user=self.on_ask_user if self.interactive else None,
            on_shell_output=self.on_shell_output,
            on_usage_update=self.on_usage_update,
            on_context_compressed=self.on_context_compressed,
            on_error=self.on_error,
        )

    def print_usage(self) -> None:
        self._break_line()
        if self.usage is None:
            self.console.print("[dim]No usage yet.[/dim]")
            return
        self.console.print(
            f"[dim]tokens: {self.usage.input_tokens} in / {self.usage.output_tokens} out, "
            f"cost: {self.usage.estimated_cost:.4f} {self.usage.currency}[/dim]"
        )


async def _run_with_abort(loop: AgentLoop, text: str, state: ConversationState, abort_event: asyncio.Event) -> ConversationState:
    """Run one prompt; Ctrl-C sets the abort event instead of killing the process."""
    abort_event.clear()
    event_loop = asyncio.get_running_loop()
    installed = False
    try:
        event_loop.add_signal_handler(signal.SIGINT, abort_event.set)
        installed = True
    except (NotImplementedError, RuntimeError):
        pass
    try:
        return await loop.run(text, state)
    finally:
        if installed:
            event_loop.remove_signal_handler(signal.SIGINT)


async def run_print_mode(loop: AgentLoop, prompt: str, abort_event: asyncio.Event) -> None:
    state = await _run_with_abort(loop, prompt, ConversationState(), abort_event)
    print()
    await loop.save_session(state)


async def run_interactive(
    loop: AgentLoop,
    renderer: TerminalRenderer,
    abort_event: asyncio.Event,
    initial_prompt: str | None = None,
) -> None:
    console = renderer.console
    console.print(Panel(
        f"model: {loop.options.model_id}\ncwd: {loop.context.project_root}\n"
        "/exit to quit, /clear for a new conversation, /usage for token usage",
        title="X-Code",
        border_style="blue",
    ))
    state = ConversationState()
    if initial_prompt:
        state = await _run_with_abort(loop, initial_prompt, state, abort_event)
        console.print()
    while True:
        try:
            text = (await asyncio.to_thread(Prompt.ask, "\n[bold blue]>[/bold blue]")).strip()
        except (EOFError, KeyboardInterrupt):
            break
        if not text:
            continue
        if text in EXIT_COMMANDS:
            break
        if text == "/clear":
            await loop.save_session(state)
            state = ConversationState()
            console.print("[dim]Started a new conversation.[/dim]")
            continue
        if text == "/usage":
            renderer.print_usage()
            continue

        state = await _run_with_abort(loop, text, state, abort_event)
        console.print()

    console.print("[dim]Saving session...[/dim]")
    await loop.save_session(state)


def _load_config(config_path: str) -> Config:
    if config_path:
        return Config.from_yaml(Path(config_path))
    return Config.load()


def build_agent(
    model_id: str,
    trust: bool,
    max_turns: int,
    callbacks: AgentCallbacks,
    abort_event: asyncio.Event,
    client: ModelClient | None = None,
    project_root: Path | None = None,
) -> AgentLoop:
    cfg = get_config()
    context = AgentContext.create(project_root or Path.cwd(), config=cfg)
    context.init(config=cfg)
    client = client or create_model_client(
        api_key=cfg.model.api_key,
        base_url=cfg.model.base_url,
        temperature=cfg.model.temperature,
        max_tokens=cfg.model.max_tokens,
        max_retries=cfg.model.max_retries,
    )
    options = AgentOptions(
        model_id=model_id,
        trust_mode=trust,
        max_turns=max_turns,
        abort_event=abort_event,
    )
    return AgentLoop(client, context, options, callbacks)


@app.command()
def run(
    prompt: Optional[str] = typer.Argument(None, help="Prompt to send (required with --print)"),
    model: str = typer.Option("", "-m", "--model", help="Model id (provider:model) or alias"),
    trust: bool = typer.Option(False, "--trust", help="Skip permission prompts (destructive commands stay blocked)"),
    max_turns: int = typer.Option(0, "--max-turns", help="Maximum model turns per session"),
    print_mode: bool = typer.Option(False, "-p", "--print", help="Run one prompt non-interactively and exit"),
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Debug logging"),
) -> None:
    """Start an X-Code session."""
    cfg = _load_config(config)
    set_config(cfg)
    configure_logging("DEBUG" if verbose else None)

    model_id = resolve_model_id(model or None, cfg)
    if not model_id:
        typer.echo(
            "No model configured. Pass --model, set X_CODE_MODEL, or export a provider API key "
            "(e.g. ANTHROPIC_API_KEY).",
            err=True,
        )
        raise typer.Exit(code=2)
    if print_mode and not prompt:
        typer.echo("--print requires a prompt argument.", err=True)
        raise typer.Exit(code=2)

    console = Console()
    renderer = TerminalRenderer(console, interactive=not print_mode)
    trust_mode = trust or cfg.agent.trust_mode

    async def _main() -> None:
        abort_event = asyncio.Event()
        loop = build_agent(
            model_id,
            trust_mode,
            max_turns or cfg.agent.max_turns,
            renderer.callbacks(),
            abort_event,
        )
        if print_mode:
            await run_print_mode(loop, prompt or "", abort_event)
            return
        await run_interactive(loop, renderer, abort_event, initial_prompt=prompt)

    try:
        asyncio.run(_main())
    except KeyboardInterrupt:
        log.info("Shutting down...")
        sys.exit(130)


def main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    main()
