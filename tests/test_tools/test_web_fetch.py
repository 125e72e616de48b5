import httpx
import pytest

from x_code.config import get_config, set_config
from x_code.tools.web_fetch import WebFetchTool, extract_readable_text


class _FakeResponse:
    def __init__(self, text: str, status_code: int = 200, content_type: str = "text/html", url: str = "https://example.com"):
        self.text = text
        self.status_code = status_code
        self.headers = {"content-type": content_type}
        self.url = url

    def raise_for_status(self) -> None:
        return None


class _FakeClient:
    def __init__(self, response: _FakeResponse | None = None, error: Exception | None = None):
        self._response = response
        self._error = error
        self.requested: list[str] = []

    async def get(self, url: str) -> _FakeResponse:
        self.requested.append(url)
        if self._error is not None:
            raise self._error
        return self._response


@pytest.mark.asyncio
async def test_web_fetch_extracts_readable_text():
    html = """
    <html>
      <head>
        <title>Example Page</title>
        <script>var should_not_show = true;</script>
      </head>
      <body>
        <h1>Hello World</h1>
        <p>This is readable text.</p>
      </body>
    </html>
    """
    tool = WebFetchTool()
    tool.client = _FakeClient(_FakeResponse(html))

    result = await tool.execute(url="https://example.com")

    assert result.success is True
    assert result.content.startswith("[URL: https://example.com]\n[Status: 200]\n\n")
    assert "Example Page" in result.content
    assert "Hello World" in result.content
    assert "This is readable text." in result.content
    assert "should_not_show" not in result.content
    assert "<html>" not in result.content


def test_extract_readable_text_preserves_links():
    html = """
    <html>
      <body>
        <p>Read <a href="/guide">the guide</a> for details.</p>
        <p>External <a href="https://docs.example.org/ref">reference</a>.</p>
      </body>
    </html>
    """

    text = extract_readable_text(html, base_url="https://example.com/start")

    assert "the guide (https://example.com/guide)" in text
    assert "reference (https://docs.example.org/ref)" in text


@pytest.mark.asyncio
async def test_web_fetch_returns_non_html_as_is():
    tool = WebFetchTool()
    tool.client = _FakeClient(_FakeResponse('{"ok": true}', content_type="application/json"))

    result = await tool.execute(url="https://api.example.com/status")

    assert result.content.endswith('{"ok": true}')


@pytest.mark.asyncio
async def test_web_fetch_truncates_to_max_chars():
    tool = WebFetchTool()
    tool.client = _FakeClient(_FakeResponse("x" * 500, content_type="text/plain"))

    result = await tool.execute(url="https://example.com/big", max_chars=100)

    body = result.content.split("\n\n", 1)[1]
    assert body == "x" * 100 + "\n... [truncated]"


@pytest.mark.asyncio
async def test_web_fetch_uses_configured_limit():
    old_cfg = get_config()
    cfg = old_cfg.model_copy(deep=True)
    cfg.tools.web_fetch.max_chars = 10
    set_config(cfg)
    try:
        tool = WebFetchTool()
        tool.client = _FakeClient(_FakeResponse("y" * 50, content_type="text/plain"))
        result = await tool.execute(url="https://example.com")
    finally:
        set_config(old_cfg)

    assert result.content.endswith("y" * 10 + "\n... [truncated]")


@pytest.mark.asyncio
async def test_web_fetch_http_error_becomes_failed_result():
    tool = WebFetchTool()
    tool.client = _FakeClient(error=httpx.ConnectError("connection refused"))

    result = await tool.execute(url="https://unreachable.example")

    assert result.success is False
    assert result.error == "HTTP error: connection refused"
