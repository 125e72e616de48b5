"""Model client: conversation types, stream events and the litellm-backed provider."""

import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, AsyncIterator

import litellm

from x_code.exceptions import AgentAbortedError, LLMAPIError
from x_code.logging import get_logger

if TYPE_CHECKING:
    from x_code.tools.registry import ToolRegistry

litellm.suppress_debug_info = True

log = get_logger(__name__)

FINISH_TOOL_CALLS = "tool-calls"


@dataclass
class ToolCall:
    """A tool call from the LLM."""

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)


@dataclass
class Message:
    """A message in the conversation."""

    role: str  # "user", "assistant", "tool"
    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: str | None = None
    tool_name: str | None = None


def user_message(content: str) -> Message:
    return Message(role="user", content=content)


def tool_result_message(tool_call_id: str, tool_name: str, text: str) -> Message:
    return Message(role="tool", content=text, tool_call_id=tool_call_id, tool_name=tool_name)


@dataclass
class Usage:
    """Token usage reported for one model call."""

    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class TextDelta:
    text: str


@dataclass
class ToolCallEvent:
    call: ToolCall


@dataclass
class ToolResultEvent:
    tool_call_id: str
    tool_name: str
    text: str


StreamEvent = TextDelta | ToolCallEvent | ToolResultEvent


async def _no_events() -> AsyncIterator[StreamEvent]:
    return
    yield


@dataclass
class StreamResponse:
    """Handle for one streamed model call.

    `messages`, `usage`, `finish_reason` and `tool_calls` are final only after
    `events` has been drained.
    """

    events: AsyncIterator[StreamEvent] = field(default_factory=_no_events)
    messages: list[Message] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    finish_reason: str = "stop"
    tool_calls: list[ToolCall] = field(default_factory=list)


def render_transcript(messages: list[Message]) -> str:
    """Flatten messages into plain text for non-streaming summary calls."""
    lines: list[str] = []
    for msg in messages:
        if msg.role == "tool":
            lines.append(f"[tool result: {msg.tool_name or msg.tool_call_id}]\n{msg.content}")
            continue
        if msg.content:
            lines.append(f"{msg.role}: {msg.content}")
        for call in msg.tool_calls:
            lines.append(f"[tool call: {call.name}] {json.dumps(call.input, ensure_ascii=False)}")
    return "\n\n".join(lines)


class ModelClient(ABC):
    """Abstract model client consumed by the agent loop."""

    @abstractmethod
    async def stream(
        self,
        model_id: str,
        system_prompt: str,
        messages: list[Message],
        tools: "ToolRegistry | None" = None,
        abort_event: asyncio.Event | None = None,
    ) -> StreamResponse:
        """Start a streamed completion.

        Auto-executed tools from `tools` are run by the client once the model
        finishes; their results appear as `ToolResultEvent`s and as tool
        messages in `StreamResponse.messages`.
        """
        pass

    @abstractmethod
    async def summarize(self, model_id: str, messages: list[Message], instruction: str) -> str:
        """Non-streaming completion used for compression and session summaries."""
        pass


# `provider:model` prefixes that litellm spells differently.
LITELLM_PROVIDER_NAMES: dict[str, str] = {
    "google": "gemini",
    "alibaba": "dashscope",
    "moonshotai": "moonshot",
    "custom": "openai",
}

FINISH_REASONS: dict[str, str] = {
    "tool_calls": FINISH_TOOL_CALLS,
    "function_call": FINISH_TOOL_CALLS,
    "content_filter": "content-filter",
}


def to_litellm_model(model_id: str) -> str:
    """Translate `anthropic:claude-sonnet-4-5` into litellm's `anthropic/claude-sonnet-4-5`."""
    if ":" not in model_id:
        return model_id
    provider, model = model_id.split(":", 1)
    provider = LITELLM_PROVIDER_NAMES.get(provider, provider)
    return f"{provider}/{model}"


class LiteLLMModelClient(ModelClient):
    """Model client backed by litellm's async completion API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        max_retries: int = 3,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_retries = max_retries

    def _convert_messages(self, system_prompt: str, messages: list[Message]) -> list[dict[str, Any]]:
        """Convert messages to OpenAI chat format."""
        result: list[dict[str, Any]] = []
        if system_prompt:
            result.append({"role": "system", "content": system_prompt})

        announced: set[str] = set()
        for msg in messages:
            if msg.role == "assistant":
                entry: dict[str, Any] = {"role": "assistant", "content": msg.content or None}
                if msg.tool_calls:
                    entry["tool_calls"] = [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {
                                "name": call.name,
                                "arguments": json.dumps(call.input, ensure_ascii=False),
                            },
                        }
                        for call in msg.tool_calls
                    ]
                    announced.update(call.id for call in msg.tool_calls)
                result.append(entry)
            elif msg.role == "tool":
                if msg.tool_call_id in announced:
                    result.append({
                        "role": "tool",
                        "tool_call_id": msg.tool_call_id,
                        "content": msg.content,
                    })
                else:
                    # Its tool call was folded into a compression summary.
                    result.append({
                        "role": "user",
                        "content": f"[Earlier {msg.tool_name or 'tool'} result]\n{msg.content}",
                    })
            else:
                result.append({"role": msg.role, "content": msg.content})
        return result

    def _base_kwargs(self, model_id: str) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": to_litellm_model(model_id),
            "num_retries": self.max_retries,
        }
        if self.temperature is not None:
            kwargs["temperature"] = self.temperature
        if self.max_tokens:
            kwargs["max_tokens"] = self.max_tokens
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.base_url:
            kwargs["api_base"] = self.base_url
        return kwargs

    async def stream(
        self,
        model_id: str,
        system_prompt: str,
        messages: list[Message],
        tools: "ToolRegistry | None" = None,
        abort_event: asyncio.Event | None = None,
    ) -> StreamResponse:
        kwargs = self._base_kwargs(model_id)
        kwargs["messages"] = self._convert_messages(system_prompt, messages)
        kwargs["stream"] = True
        kwargs["stream_options"] = {"include_usage": True}
        if tools is not None:
            definitions = tools.get_definitions()
            if definitions:
                kwargs["tools"] = [{"type": "function", "function": d} for d in definitions]
                kwargs["tool_choice"] = "auto"

        log.debug("Calling model", model=kwargs["model"], msg_count=len(kwargs["messages"]))
        try:
            raw_stream = await litellm.acompletion(**kwargs)
        except Exception as e:
            raise LLMAPIError(f"{type(e).__name__}: {e}", status_code=getattr(e, "status_code", None))

        response = StreamResponse()
        response.events = self._pump(raw_stream, response, tools, abort_event)
        return response

    async def _pump(
        self,
        raw_stream: Any,
        response: StreamResponse,
        tools: "ToolRegistry | None",
        abort_event: asyncio.Event | None,
    ) -> AsyncIterator[StreamEvent]:
        text_parts: list[str] = []
        pending: dict[int, dict[str, str]] = {}
        finish_reason = "stop"

        try:
            async for chunk in raw_stream:
                if abort_event is not None and abort_event.is_set():
                    raise AgentAbortedError()

                usage = getattr(chunk, "usage", None)
                if usage:
                    response.usage = Usage(
                        input_tokens=int(getattr(usage, "prompt_tokens", 0) or 0),
                        output_tokens=int(getattr(usage, "completion_tokens", 0) or 0),
                    )

                choices = getattr(chunk, "choices", None) or []
                if not choices:
                    continue
                choice = choices[0]
                delta = getattr(choice, "delta", None)

                content = getattr(delta, "content", None)
                if content:
                    text_parts.append(content)
                    yield TextDelta(content)

                for tc_delta in getattr(delta, "tool_calls", None) or []:
                    slot = pending.setdefault(int(tc_delta.index or 0), {"id": "", "name": "", "args": ""})
                    if tc_delta.id:
                        slot["id"] = tc_delta.id
                    function = getattr(tc_delta, "function", None)
                    if function is not None:
                        if function.name:
                            slot["name"] = function.name
                        if function.arguments:
                            slot["args"] += function.arguments

                if getattr(choice, "finish_reason", None):
                    finish_reason = choice.finish_reason
        except AgentAbortedError:
            raise
        except Exception as e:
            raise LLMAPIError(
                f"Stream interrupted: {type(e).__name__}: {e}",
                status_code=getattr(e, "status_code", None),
            )

        calls: list[ToolCall] = []
        for idx in sorted(pending):
            slot = pending[idx]
            try:
                arguments = json.loads(slot["args"]) if slot["args"] else {}
            except json.JSONDecodeError:
                arguments = {"_raw": slot["args"]}
            if not isinstance(arguments, dict):
                arguments = {"_raw": arguments}
            calls.append(ToolCall(id=slot["id"] or f"call_{idx}", name=slot["name"], input=arguments))

        response.messages.append(Message(role="assistant", content="".join(text_parts), tool_calls=calls))
        response.tool_calls = calls
        for call in calls:
            yield ToolCallEvent(call)

        if tools is not None:
            from x_code.tools.registry import ToolKind

            for call in calls:
                tool = tools.find(call.name)
                if tool is None or tool.kind is not ToolKind.AUTO_EXECUTED:
                    continue
                text = await tools.execute_to_text(call.name, call.input, abort_event=abort_event)
                response.messages.append(tool_result_message(call.id, call.name, text))
                yield ToolResultEvent(call.id, call.name, text)

        response.finish_reason = FINISH_TOOL_CALLS if calls else FINISH_REASONS.get(finish_reason, finish_reason)

    async def summarize(self, model_id: str, messages: list[Message], instruction: str) -> str:
        kwargs = self._base_kwargs(model_id)
        kwargs["messages"] = [
            {"role": "system", "content": instruction},
            {"role": "user", "content": render_transcript(messages) or "(empty conversation)"},
        ]
        try:
            response = await litellm.acompletion(**kwargs)
        except Exception as e:
            raise LLMAPIError(f"{type(e).__name__}: {e}", status_code=getattr(e, "status_code", None))
        return (response.choices[0].message.content or "").strip()


def create_model_client(
    api_key: str | None = None,
    base_url: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
    max_retries: int = 3,
) -> ModelClient:
    """Create the default model client."""
    return LiteLLMModelClient(
        api_key=api_key or None,
        base_url=base_url or None,
        temperature=temperature,
        max_tokens=max_tokens,
        max_retries=max_retries,
    )
