import asyncio
from pathlib import Path
from types import SimpleNamespace

import litellm
import pytest

from x_code.exceptions import AgentAbortedError, LLMAPIError
from x_code.llm import (
    FINISH_TOOL_CALLS,
    LiteLLMModelClient,
    Message,
    TextDelta,
    ToolCall,
    ToolCallEvent,
    ToolResultEvent,
    create_model_client,
    render_transcript,
    to_litellm_model,
    tool_result_message,
)
from x_code.tools.read import ReadFileTool
from x_code.tools.registry import ToolRegistry
from x_code.tools.write import WriteFileTool


def _chunk(content=None, tool_calls=None, finish_reason=None, usage=None):
    choices = []
    if content is not None or tool_calls is not None or finish_reason is not None:
        delta = SimpleNamespace(content=content, tool_calls=tool_calls)
        choices = [SimpleNamespace(delta=delta, finish_reason=finish_reason)]
    return SimpleNamespace(choices=choices, usage=usage)


def _tool_delta(index, call_id=None, name=None, arguments=None):
    return SimpleNamespace(
        index=index,
        id=call_id,
        function=SimpleNamespace(name=name, arguments=arguments),
    )


class _FakeStream:
    def __init__(self, chunks):
        self._chunks = list(chunks)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self._chunks:
            yield chunk


def _patch_completion(monkeypatch, result):
    captured: dict = {}

    async def _fake_acompletion(**kwargs):
        captured.update(kwargs)
        if isinstance(result, Exception):
            raise result
        return result

    monkeypatch.setattr(litellm, "acompletion", _fake_acompletion)
    return captured


async def _drain(response):
    return [event async for event in response.events]


def test_to_litellm_model_maps_provider_prefixes():
    assert to_litellm_model("anthropic:claude-sonnet-4-5") == "anthropic/claude-sonnet-4-5"
    assert to_litellm_model("google:gemini-2.5-pro") == "gemini/gemini-2.5-pro"
    assert to_litellm_model("alibaba:qwen-max") == "dashscope/qwen-max"
    assert to_litellm_model("moonshotai:kimi-k2.5") == "moonshot/kimi-k2.5"
    assert to_litellm_model("gpt-4o") == "gpt-4o"


def test_create_model_client_normalizes_blank_settings():
    client = create_model_client(api_key="", base_url="", max_retries=5)

    assert isinstance(client, LiteLLMModelClient)
    assert client.api_key is None
    assert client.base_url is None
    assert client.max_retries == 5


def test_convert_messages_keeps_tool_pairs_and_folds_orphans():
    client = LiteLLMModelClient()
    messages = [
        tool_result_message("old", "read_file", "stale output"),
        Message(role="user", content="hi"),
        Message(role="assistant", content="", tool_calls=[ToolCall("c1", "glob", {"pattern": "*.py"})]),
        tool_result_message("c1", "glob", "a.py"),
    ]

    converted = client._convert_messages("system text", messages)

    assert converted[0] == {"role": "system", "content": "system text"}
    assert converted[1] == {"role": "user", "content": "[Earlier read_file result]\nstale output"}
    assert converted[3]["content"] is None
    assert converted[3]["tool_calls"][0]["function"] == {"name": "glob", "arguments": '{"pattern": "*.py"}'}
    assert converted[4] == {"role": "tool", "tool_call_id": "c1", "content": "a.py"}


def test_render_transcript_includes_calls_and_results():
    text = render_transcript([
        Message(role="user", content="list files"),
        Message(role="assistant", content="", tool_calls=[ToolCall("c1", "list_dir", {"path": "."})]),
        tool_result_message("c1", "list_dir", "a.py"),
    ])

    assert text == (
        "user: list files\n\n"
        '[tool call: list_dir] {"path": "."}\n\n'
        "[tool result: list_dir]\na.py"
    )


@pytest.mark.asyncio
async def test_stream_yields_text_and_usage(monkeypatch):
    captured = _patch_completion(monkeypatch, _FakeStream([
        _chunk(content="Hel"),
        _chunk(content="lo", finish_reason="stop"),
        _chunk(usage=SimpleNamespace(prompt_tokens=12, completion_tokens=3)),
    ]))
    client = LiteLLMModelClient(api_key="k", temperature=0.2)

    response = await client.stream("anthropic:claude-sonnet-4-5", "sys", [Message(role="user", content="hi")])
    events = await _drain(response)

    assert events == [TextDelta("Hel"), TextDelta("lo")]
    assert response.finish_reason == "stop"
    assert response.usage.input_tokens == 12
    assert response.usage.output_tokens == 3
    assert response.messages == [Message(role="assistant", content="Hello")]
    assert captured["model"] == "anthropic/claude-sonnet-4-5"
    assert captured["stream"] is True
    assert captured["api_key"] == "k"
    assert captured["temperature"] == 0.2
    assert "tools" not in captured


@pytest.mark.asyncio
async def test_stream_assembles_tool_calls_and_runs_auto_tools(monkeypatch, tmp_path: Path):
    (tmp_path / "a.txt").write_text("alpha", encoding="utf-8")
    _patch_completion(monkeypatch, _FakeStream([
        _chunk(tool_calls=[_tool_delta(0, "c1", "read_file", '{"pa')]),
        _chunk(tool_calls=[_tool_delta(0, arguments='th": "a.txt"}')]),
        _chunk(tool_calls=[_tool_delta(1, "c2", "write_file", '{"path": "b.txt", "content": "x"}')]),
        _chunk(finish_reason="tool_calls"),
    ]))
    registry = ToolRegistry()
    registry.register(ReadFileTool(tmp_path))
    registry.register(WriteFileTool(tmp_path))
    client = LiteLLMModelClient()

    response = await client.stream("openai:gpt-4.1", "", [Message(role="user", content="go")], tools=registry)
    events = await _drain(response)

    read_call = ToolCall("c1", "read_file", {"path": "a.txt"})
    write_call = ToolCall("c2", "write_file", {"path": "b.txt", "content": "x"})
    assert events == [
        ToolCallEvent(read_call),
        ToolCallEvent(write_call),
        ToolResultEvent("c1", "read_file", "1\talpha"),
    ]
    assert response.finish_reason == FINISH_TOOL_CALLS
    assert response.tool_calls == [read_call, write_call]
    assert [m.role for m in response.messages] == ["assistant", "tool"]
    assert not (tmp_path / "b.txt").exists()


@pytest.mark.asyncio
async def test_stream_keeps_unparseable_arguments(monkeypatch):
    _patch_completion(monkeypatch, _FakeStream([
        _chunk(tool_calls=[_tool_delta(0, "c1", "shell", "{not json")], finish_reason="tool_calls"),
    ]))

    response = await LiteLLMModelClient().stream("openai:gpt-4.1", "", [])
    await _drain(response)

    assert response.tool_calls[0].input == {"_raw": "{not json"}


@pytest.mark.asyncio
async def test_stream_stops_when_aborted(monkeypatch):
    abort_event = asyncio.Event()
    abort_event.set()
    _patch_completion(monkeypatch, _FakeStream([_chunk(content="never")]))

    response = await LiteLLMModelClient().stream("openai:gpt-4.1", "", [], abort_event=abort_event)

    with pytest.raises(AgentAbortedError):
        await _drain(response)


@pytest.mark.asyncio
async def test_stream_wraps_provider_errors(monkeypatch):
    error = RuntimeError("upstream exploded")
    error.status_code = 503
    _patch_completion(monkeypatch, error)

    with pytest.raises(LLMAPIError) as excinfo:
        await LiteLLMModelClient().stream("openai:gpt-4.1", "", [])

    assert excinfo.value.status_code == 503
    assert "upstream exploded" in str(excinfo.value)


@pytest.mark.asyncio
async def test_summarize_sends_instruction_and_transcript(monkeypatch):
    reply = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="  short summary "))])
    captured = _patch_completion(monkeypatch, reply)

    text = await LiteLLMModelClient().summarize(
        "deepseek:deepseek-chat", [Message(role="user", content="hello")], "Summarize."
    )

    assert text == "short summary"
    assert captured["messages"] == [
        {"role": "system", "content": "Summarize."},
        {"role": "user", "content": "user: hello"},
    ]
    assert "stream" not in captured
