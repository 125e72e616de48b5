"""Agent loop controller.

One run drives the model until it stops asking for tools. The run body is an
async generator that suspends with a `PendingInteraction` whenever it needs an
answer from outside (permission prompt or `ask_user` question); `start()` and
`resume()` step it, `run()` drives it to completion through the callbacks.
"""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncGenerator, Awaitable, Callable

from x_code.config import get_config
from x_code.context import AgentContext
from x_code.context_window import compress_messages, estimate_tokens, token_budget
from x_code.exceptions import (
    AgentAbortedError,
    ErrorKind,
    InteractionError,
    LLMAPIError,
    LLMError,
    MaxTurnsExceededError,
    classify_api_error,
)
from x_code.knowledge.loader import build_knowledge_context, find_rule_references
from x_code.knowledge.session import SessionSummary, format_for_prompt, generate_summary
from x_code.llm import (
    FINISH_TOOL_CALLS,
    ModelClient,
    StreamResponse,
    TextDelta,
    ToolCall,
    ToolCallEvent,
    ToolResultEvent,
    tool_result_message,
    user_message,
)
from x_code.logging import get_logger
from x_code.permissions import PermissionDecision, classify, pre_approve
from x_code.plan_mode import enter_plan_mode, exit_plan_mode
from x_code.state import ConversationState, TokenUsage
from x_code.system_prompt import build_system_prompt
from x_code.tools.registry import ToolKind, resolve_tool_path

log = get_logger(__name__)

DENIED_DESTRUCTIVE = "Permission denied: blocked destructive command."
DENIED_BY_USER = "Permission denied by user."
ABORTED_RESULT = "Error: Aborted by user"
COMPRESSED_NOTICE = "Context compressed to fit token budget."

FILE_WRITING_TOOLS = frozenset({"write_file", "edit"})


def _noop(*args: Any) -> None:
    return None


def normalize_options(raw: Any) -> list[dict[str, str]]:
    """Coerce model-supplied `ask_user` options into `{label, description}` dicts."""
    if not isinstance(raw, list):
        return []
    options: list[dict[str, str]] = []
    for index, item in enumerate(raw, start=1):
        if isinstance(item, dict):
            label = item.get("label")
            options.append({
                "label": str(label) if label not in (None, "") else f"Option {index}",
                "description": str(item.get("description") or ""),
            })
        else:
            options.append({"label": str(item), "description": ""})
    return options


@dataclass
class AgentOptions:
    model_id: str
    trust_mode: bool = False
    max_turns: int = 100
    abort_event: asyncio.Event | None = None


@dataclass
class AgentCallbacks:
    """Observers for one agent loop. Every hook is optional."""

    on_text_delta: Callable[[str], None] = _noop
    on_tool_call: Callable[[ToolCall], None] = _noop
    on_tool_result: Callable[[str, str], None] = _noop
    on_ask_permission: Callable[[ToolCall, PermissionDecision], Awaitable[bool]] | None = None
    on_ask_user: Callable[[str, list[dict[str, Any]]], Awaitable[str]] | None = None
    on_shell_output: Callable[[str], None] = _noop
    on_usage_update: Callable[[TokenUsage], None] = _noop
    on_context_compressed: Callable[[str], None] = _noop
    on_error: Callable[[Exception], None] = _noop


@dataclass
class PermissionRequest:
    call: ToolCall
    decision: PermissionDecision


@dataclass
class QuestionRequest:
    call: ToolCall
    question: str
    options: list[dict[str, Any]] = field(default_factory=list)


PendingInteraction = PermissionRequest | QuestionRequest


class AgentLoop:
    """Orchestrates model turns, tool dispatch and persistence for one session."""

    def __init__(
        self,
        client: ModelClient,
        context: AgentContext,
        options: AgentOptions,
        callbacks: AgentCallbacks | None = None,
    ):
        self.client = client
        self.context = context
        self.options = options
        self.callbacks = callbacks or AgentCallbacks()
        self.state: ConversationState | None = None
        self._steps: AsyncGenerator[PendingInteraction, Any] | None = None

        cfg = get_config()
        self.keep_recent = cfg.context.keep_recent
        self.budget = token_budget(options.model_id, cfg.context.budget_ratio)

    @property
    def waiting(self) -> bool:
        """True while a run is suspended on a pending interaction."""
        return self._steps is not None

    async def start(self, user_text: str, state: ConversationState | None = None) -> PendingInteraction | None:
        """Begin a run. Returns the first pending interaction, or None when the run finished."""
        if self._steps is not None:
            raise RuntimeError("A run is already waiting for an answer")
        self.state = state if state is not None else ConversationState()
        self._steps = self._run_steps(user_text, self.state)
        return await self._advance(None)

    async def resume(self, answer: Any) -> PendingInteraction | None:
        """Answer the pending interaction (bool for permissions, str for questions)."""
        if self._steps is None:
            raise RuntimeError("No run is waiting for an answer")
        return await self._advance(answer)

    async def run(self, user_text: str, state: ConversationState | None = None) -> ConversationState:
        """Drive a run to completion, answering interactions through the callbacks."""
        pending = await self.start(user_text, state)
        while pending is not None:
            try:
                answer = await self._answer(pending)
            except Exception as e:
                log.error("Interaction callback failed", tool=pending.call.name, error=repr(e))
                self.callbacks.on_error(InteractionError(pending.call.name, e))
                answer = self._fallback_answer(pending)
            except BaseException:
                await self._discard()
                raise
            pending = await self.resume(answer)
        assert self.state is not None
        return self.state

    async def _discard(self) -> None:
        steps, self._steps = self._steps, None
        if steps is not None:
            await steps.aclose()

    @staticmethod
    def _fallback_answer(pending: PendingInteraction) -> Any:
        return False if isinstance(pending, PermissionRequest) else ""

    async def _advance(self, value: Any) -> PendingInteraction | None:
        assert self._steps is not None
        try:
            return await self._steps.asend(value)
        except StopAsyncIteration:
            self._steps = None
            return None
        except BaseException:
            self._steps = None
            raise

    async def _answer(self, pending: PendingInteraction) -> Any:
        if isinstance(pending, PermissionRequest):
            if self.callbacks.on_ask_permission is None:
                return self._fallback_answer(pending)
            return bool(await self.callbacks.on_ask_permission(pending.call, pending.decision))
        if self.callbacks.on_ask_user is None:
            return self._fallback_answer(pending)
        return await self.callbacks.on_ask_user(pending.question, pending.options)

    def _aborted(self) -> bool:
        event = self.options.abort_event
        return event is not None and event.is_set()

    def _knowledge_context(self, user_text: str, state: ConversationState) -> str:
        latest = self.context.sessions.load_latest()
        root = self.context.project_root
        active: list[str] = []
        for path in sorted(state.files_modified):
            try:
                active.append(Path(path).relative_to(root).as_posix())
            except ValueError:
                active.append(path)
        return build_knowledge_context(
            root,
            self.context.memories,
            global_dir=self.context.global_dir,
            active_file_paths=active,
            requested_rules=find_rule_references(user_text),
            session_context=format_for_prompt(latest) if latest else "",
        )

    def _system_prompt(self, knowledge_context: str, state: ConversationState) -> str:
        plan_path = self.context.plans.path_for(state.plan_id) if state.plan_id else None
        return build_system_prompt(
            knowledge_context=knowledge_context,
            plan_mode=state.plan_mode,
            plan_path=plan_path,
            cwd=self.context.project_root,
        )

    async def _checkpoint(self, state: ConversationState) -> None:
        """Best-effort session save before compression."""
        summary = await generate_summary(
            state.messages,
            self.client,
            self.options.model_id,
            state.session_id,
            state.started_at,
            state.files_modified,
        )
        try:
            self.context.sessions.save(summary)
        except OSError as e:
            log.warning("Checkpoint save failed", session_id=state.session_id, error=str(e))

    async def _compress(self, state: ConversationState) -> None:
        await self._checkpoint(state)
        try:
            state.messages = await compress_messages(
                state.messages,
                self.client,
                self.options.model_id,
                keep_recent=self.keep_recent,
            )
        except Exception as e:
            log.warning("Context compression failed", error=str(e))
            self.callbacks.on_error(LLMError(f"Context compression failed: {e}"))
            return
        self.callbacks.on_context_compressed(COMPRESSED_NOTICE)

    async def _consume(self, response: StreamResponse) -> None:
        truncate = self.context.tools.truncate
        async for event in response.events:
            if isinstance(event, TextDelta):
                self.callbacks.on_text_delta(event.text)
            elif isinstance(event, ToolCallEvent):
                self.callbacks.on_tool_call(event.call)
            elif isinstance(event, ToolResultEvent):
                self.callbacks.on_tool_result(event.tool_call_id, truncate(event.text))

    def _report_model_error(self, exc: Exception) -> None:
        classified = classify_api_error(exc)
        log.error("Model call failed", kind=classified.kind.value, error=str(exc))
        if classified.kind is ErrorKind.ABORTED:
            self.callbacks.on_error(exc if isinstance(exc, AgentAbortedError) else AgentAbortedError())
            return
        self.callbacks.on_error(LLMAPIError(classified.message, status_code=getattr(exc, "status_code", None)))

    def _append_result(self, state: ConversationState, call: ToolCall, text: str) -> None:
        state.messages.append(tool_result_message(call.id, call.name, text))
        self.callbacks.on_tool_result(call.id, self.context.tools.truncate(text))

    def _handle_control(self, call: ToolCall, state: ConversationState) -> str:
        if call.name == "enter_plan_mode":
            return enter_plan_mode(state, self.context.plans)
        if call.name == "exit_plan_mode":
            return exit_plan_mode(state, self.context.plans)
        return f"Error: Unsupported control tool: {call.name}"

    async def _execute_gated(self, call: ToolCall, state: ConversationState) -> str:
        on_output = self.callbacks.on_shell_output if call.name == "shell" else None
        text = await self.context.tools.execute_to_text(
            call.name,
            call.input,
            abort_event=self.options.abort_event,
            on_output=on_output,
        )
        if call.name in FILE_WRITING_TOOLS and not text.startswith("Error:"):
            path = call.input.get("path")
            if path:
                state.files_modified.add(str(resolve_tool_path(str(path), self.context.project_root)))
        return self.context.tools.truncate(text)

    async def _run_steps(
        self, user_text: str, state: ConversationState
    ) -> AsyncGenerator[PendingInteraction, Any]:
        options = self.options
        tools = self.context.tools
        state.messages.append(user_message(user_text))
        knowledge_context = self._knowledge_context(user_text, state)

        while state.turn_count < options.max_turns:
            if self._aborted():
                log.info("Run aborted", session_id=state.session_id)
                self.callbacks.on_error(AgentAbortedError())
                break

            state.turn_count += 1

            if estimate_tokens(state.messages) > self.budget:
                await self._compress(state)

            system_prompt = self._system_prompt(knowledge_context, state)

            try:
                response = await self.client.stream(
                    options.model_id,
                    system_prompt,
                    state.messages,
                    tools=tools,
                    abort_event=options.abort_event,
                )
                await self._consume(response)
            except Exception as e:
                self._report_model_error(e)
                break

            state.messages.extend(response.messages)
            state.usage.add(response.usage, options.model_id)
            self.callbacks.on_usage_update(state.usage)

            if response.finish_reason != FINISH_TOOL_CALLS:
                break

            answered = {m.tool_call_id for m in response.messages if m.role == "tool"}
            for call in response.tool_calls:
                if call.id in answered:
                    continue

                tool = tools.find(call.name)
                if tool is None:
                    text = f"Error: Unknown tool: {call.name}"
                elif tool.kind is ToolKind.CONTROL:
                    text = self._handle_control(call, state)
                elif self._aborted() and tool.kind is not ToolKind.AUTO_EXECUTED:
                    text = ABORTED_RESULT
                elif tool.kind is ToolKind.INTERACTIVE:
                    answer = yield QuestionRequest(
                        call=call,
                        question=str(call.input.get("question", "")),
                        options=normalize_options(call.input.get("options")),
                    )
                    text = f"User answered: {answer}"
                elif tool.kind is ToolKind.PERMISSION_GATED:
                    approved = pre_approve(call, options.trust_mode)
                    if approved is None:
                        approved = bool((yield PermissionRequest(call, PermissionDecision.ASK)))
                    if approved:
                        text = await self._execute_gated(call, state)
                    elif classify(call.name, call.input) is PermissionDecision.DENY:
                        text = DENIED_DESTRUCTIVE
                    else:
                        text = DENIED_BY_USER
                else:
                    # Auto-executed tool the client left unanswered.
                    text = await tools.execute_to_text(
                        call.name, call.input, abort_event=options.abort_event
                    )

                self._append_result(state, call, text)
        else:
            error = MaxTurnsExceededError(options.max_turns)
            log.warning("Turn limit reached", max_turns=options.max_turns)
            self.callbacks.on_error(error)

    async def save_session(self, state: ConversationState | None = None) -> SessionSummary | None:
        """Leave plan mode, summarize and persist the session. Never raises."""
        state = state if state is not None else self.state
        if state is None or not state.messages:
            return None
        if state.plan_mode:
            exit_plan_mode(state, self.context.plans)
        try:
            summary = await generate_summary(
                state.messages,
                self.client,
                self.options.model_id,
                state.session_id,
                state.started_at,
                state.files_modified,
            )
            self.context.sessions.save(summary)
        except Exception as e:
            log.warning("Session save failed", session_id=state.session_id, error=str(e))
            return None
        return summary
