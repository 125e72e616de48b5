"""Web fetch tool for retrieving web page content."""

import re
from typing import Any
from urllib.parse import urljoin

from bs4 import BeautifulSoup
import httpx

from x_code import __version__
from x_code.config import get_config
from x_code.logging import get_logger
from x_code.tools.registry import Tool, ToolResult

log = get_logger(__name__)


def extract_readable_text(html: str, base_url: str | None = None) -> str:
    """Extract human-readable text from raw HTML."""
    soup = BeautifulSoup(html, "html.parser")

    for tag in soup(["script", "style", "noscript", "template", "svg", "canvas"]):
        tag.decompose()

    # Keep links so later turns can cite sources.
    for anchor in soup.find_all("a"):
        href = (anchor.get("href") or "").strip()
        if not href:
            continue
        label = anchor.get_text(" ", strip=True)
        absolute = urljoin(base_url, href) if base_url else href
        anchor.replace_with(f"{label} ({absolute})" if label else absolute)

    title = soup.title.string.strip() if soup.title and soup.title.string else ""

    lines = []
    for line in soup.get_text(separator="\n").splitlines():
        cleaned = re.sub(r"\s+", " ", line).strip()
        if cleaned:
            lines.append(cleaned)

    text = "\n".join(lines)
    if title and not text.startswith(title):
        return f"{title}\n\n{text}" if text else title
    return text


class WebFetchTool(Tool):
    """Fetch web page content."""

    name = "web_fetch"
    description = "Fetch a URL and extract its readable text content."
    parameters = {
        "type": "object",
        "properties": {
            "url": {
                "type": "string",
                "description": "URL to fetch",
            },
            "max_chars": {
                "type": "number",
                "description": "Maximum characters to return (default from config)",
            },
        },
        "required": ["url"],
    }

    def __init__(self, client: httpx.AsyncClient | None = None):
        cfg = get_config().tools.web_fetch
        self.timeout_seconds = float(cfg.timeout) + 5
        self.client = client or httpx.AsyncClient(
            timeout=float(cfg.timeout),
            follow_redirects=True,
            headers={"User-Agent": f"X-Code/{__version__} (Web Fetch Tool)"},
        )

    async def execute(self, url: str, max_chars: int | None = None, **kwargs: Any) -> ToolResult:
        """Fetch a web page; HTML is reduced to readable text, other content is returned as-is."""
        configured_max = int(get_config().tools.web_fetch.max_chars)
        limit = max(1, configured_max if max_chars is None else int(max_chars))

        try:
            log.info("Fetching URL", url=url)
            response = await self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            log.error("HTTP fetch failed", url=url, error=str(e))
            return ToolResult(success=False, error=f"HTTP error: {e}")

        content_type = response.headers.get("content-type", "")
        if "html" in content_type or response.text.lstrip()[:15].lower().startswith(("<!doctype", "<html")):
            content = extract_readable_text(response.text, base_url=str(response.url))
        else:
            content = response.text

        if len(content) > limit:
            content = content[:limit] + "\n... [truncated]"

        header = f"[URL: {url}]\n[Status: {response.status_code}]\n\n"
        return ToolResult(success=True, content=header + content)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
