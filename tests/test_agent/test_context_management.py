import pytest

from x_code.context_window import (
    SUMMARY_PREFIX,
    compress_messages,
    context_window,
    estimate_tokens,
    token_budget,
)
from x_code.llm import Message, ModelClient, ToolCall


class _Summarizer(ModelClient):
    def __init__(self, summary: str = "earlier work", error: Exception | None = None):
        self.summary = summary
        self.error = error
        self.received: list[list[Message]] = []

    async def stream(self, model_id, system_prompt, messages, tools=None, abort_event=None):
        raise AssertionError("compression must not stream")

    async def summarize(self, model_id, messages, instruction):
        self.received.append(list(messages))
        if self.error is not None:
            raise self.error
        return self.summary


def _messages(count: int) -> list[Message]:
    return [Message(role="user" if i % 2 == 0 else "assistant", content=f"m{i}") for i in range(count)]


def test_token_budget_per_provider():
    assert token_budget("anthropic:claude-sonnet-4-5") == 160_000
    assert token_budget("google:gemini-2.5-pro") == 800_000
    assert token_budget("deepseek:deepseek-chat") == 51_200
    assert token_budget("unknown:model") == 102_400
    assert token_budget("openai:gpt-4.1", ratio=0.5) == 64_000
    assert context_window("no-provider-prefix") == 128_000


def test_estimate_tokens_rounds_up_and_counts_tool_calls():
    assert estimate_tokens([]) == 0
    assert estimate_tokens([Message(role="user", content="123456789")]) == 3

    call = ToolCall("c1", "grep", {"pattern": "x"})
    with_call = Message(role="assistant", content="", tool_calls=[call])
    assert estimate_tokens([with_call]) == -(-(len("grep") + len(str(call.input))) // 4)


@pytest.mark.asyncio
async def test_compress_is_noop_for_short_history():
    client = _Summarizer()
    messages = _messages(6)

    result = await compress_messages(messages, client, "anthropic:claude-sonnet-4-5", keep_recent=6)

    assert result is messages
    assert client.received == []


@pytest.mark.asyncio
async def test_compress_keeps_recent_tail_and_summarizes_the_rest():
    client = _Summarizer("did A then B")
    messages = _messages(10)

    result = await compress_messages(messages, client, "anthropic:claude-sonnet-4-5", keep_recent=6)

    assert len(result) == 7
    assert result[0].role == "user"
    assert result[0].content == SUMMARY_PREFIX + "did A then B"
    assert result[1:] == messages[4:]
    assert client.received == [messages[:4]]


@pytest.mark.asyncio
async def test_compress_propagates_summary_failure():
    client = _Summarizer(error=RuntimeError("model down"))

    with pytest.raises(RuntimeError, match="model down"):
        await compress_messages(_messages(8), client, "anthropic:claude-sonnet-4-5")
