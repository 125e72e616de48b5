import httpx
import pytest

from x_code.config import get_config, set_config
from x_code.tools.web_search import WebSearchTool


class _FakeResponse:
    def __init__(self, payload: dict, status_code: int = 200):
        self._payload = payload
        self.status_code = status_code
        self.text = str(payload)
        self.request = httpx.Request("GET", "https://api.search.brave.com/res/v1/web/search")

    def json(self) -> dict:
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise httpx.HTTPStatusError(
                message=f"status={self.status_code}",
                request=self.request,
                response=httpx.Response(self.status_code, request=self.request, text=self.text),
            )


class _FakeClient:
    def __init__(self, response: _FakeResponse):
        self._response = response
        self.calls: list[dict] = []

    async def get(self, url: str, **kwargs):
        self.calls.append({"url": url, **kwargs})
        return self._response


def _with_search_config(**overrides):
    old_cfg = get_config()
    cfg = old_cfg.model_copy(deep=True)
    for key, value in overrides.items():
        setattr(cfg.tools.web_search, key, value)
    set_config(cfg)
    return old_cfg


@pytest.mark.asyncio
async def test_web_search_formats_brave_results_and_uses_config_defaults(monkeypatch):
    old_cfg = _with_search_config(api_key="cfg-key", max_results=3, safesearch="strict")
    monkeypatch.delenv("BRAVE_API_KEY", raising=False)
    try:
        tool = WebSearchTool()
        tool.client = _FakeClient(
            _FakeResponse(
                {
                    "web": {
                        "results": [
                            {
                                "title": "Asyncio guide",
                                "url": "https://example.com/asyncio",
                                "description": "Event loops and tasks.",
                            },
                            {
                                "title": "Structlog docs",
                                "url": "https://example.com/structlog",
                                "description": "Structured logging for Python.",
                            },
                        ]
                    }
                }
            )
        )

        result = await tool.execute(query="python async logging")
    finally:
        set_config(old_cfg)

    assert result.success is True
    assert "[QUERY: python async logging]" in result.content
    assert "[RESULTS: 2]" in result.content
    assert "1. Asyncio guide" in result.content
    assert "URL: https://example.com/asyncio" in result.content
    assert "Snippet: Event loops and tasks." in result.content
    assert "2. Structlog docs" in result.content

    call = tool.client.calls[0]
    assert call["headers"]["X-Subscription-Token"] == "cfg-key"
    assert call["params"]["count"] == 3
    assert call["params"]["safesearch"] == "strict"


@pytest.mark.asyncio
async def test_web_search_falls_back_to_env_key_and_caps_count(monkeypatch):
    old_cfg = _with_search_config(api_key="")
    monkeypatch.setenv("BRAVE_API_KEY", "env-key")
    try:
        tool = WebSearchTool()
        tool.client = _FakeClient(_FakeResponse({"web": {"results": []}}))
        result = await tool.execute(query="anything", count=99)
    finally:
        set_config(old_cfg)

    assert "No results found." in result.content
    call = tool.client.calls[0]
    assert call["headers"]["X-Subscription-Token"] == "env-key"
    assert call["params"]["count"] == 20


@pytest.mark.asyncio
async def test_web_search_requires_api_key(monkeypatch):
    old_cfg = _with_search_config(api_key="")
    monkeypatch.delenv("BRAVE_API_KEY", raising=False)
    try:
        result = await WebSearchTool().execute(query="anything")
    finally:
        set_config(old_cfg)

    assert result.success is False
    assert "Missing Brave API key" in result.error


@pytest.mark.asyncio
async def test_web_search_http_status_error_is_reported(monkeypatch):
    old_cfg = _with_search_config(api_key="k")
    try:
        tool = WebSearchTool()
        tool.client = _FakeClient(_FakeResponse({"error": "quota"}, status_code=429))
        result = await tool.execute(query="anything")
    finally:
        set_config(old_cfg)

    assert result.success is False
    assert result.error.startswith("HTTP 429")
    assert "quota" in result.error


@pytest.mark.asyncio
async def test_web_search_rejects_blank_query():
    result = await WebSearchTool().execute(query="   ")

    assert result.success is False
    assert result.error == "Missing required query"
