"""Web search tool powered by Brave Search API."""

import os
import re
from typing import Any

import httpx

from x_code import __version__
from x_code.config import get_config
from x_code.logging import get_logger
from x_code.tools.registry import Tool, ToolResult

log = get_logger(__name__)


class WebSearchTool(Tool):
    """Search the web using Brave Search API."""

    name = "web_search"
    description = "Search the web for information. Returns ranked results with titles, links, and snippets."
    parameters = {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "Search query text",
            },
            "count": {
                "type": "number",
                "description": "Maximum results to return (default from config, max 20)",
            },
        },
        "required": ["query"],
    }

    def __init__(self, client: httpx.AsyncClient | None = None):
        self.client = client or httpx.AsyncClient(
            follow_redirects=True,
            headers={"User-Agent": f"X-Code/{__version__} (Web Search Tool)"},
        )

    @staticmethod
    def _clean_text(value: str, max_chars: int = 500) -> str:
        """Normalize whitespace and bound output size."""
        cleaned = re.sub(r"\s+", " ", (value or "")).strip()
        if len(cleaned) <= max_chars:
            return cleaned
        return cleaned[:max_chars].rstrip() + "... [truncated]"

    async def execute(self, query: str, count: int | None = None, **kwargs: Any) -> ToolResult:
        q = (query or "").strip()
        if not q:
            return ToolResult(success=False, error="Missing required query")

        search_cfg = get_config().tools.web_search
        if search_cfg.provider.strip().lower() != "brave":
            return ToolResult(success=False, error=f"Unsupported web_search provider: {search_cfg.provider}")

        api_key = search_cfg.api_key.strip() or os.environ.get("BRAVE_API_KEY", "").strip()
        if not api_key:
            return ToolResult(
                success=False,
                error=(
                    "Missing Brave API key. Set tools.web_search.api_key in config "
                    "or BRAVE_API_KEY environment variable."
                ),
            )

        effective_count = min(max(int(count or search_cfg.max_results), 1), 20)
        params: dict[str, Any] = {
            "q": q,
            "count": effective_count,
            "safesearch": search_cfg.safesearch,
        }
        headers = {"Accept": "application/json", "X-Subscription-Token": api_key}

        try:
            response = await self.client.get(
                search_cfg.base_url,
                params=params,
                headers=headers,
                timeout=float(search_cfg.timeout),
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            detail = f"HTTP {e.response.status_code}"
            body = (e.response.text or "").strip()
            if body:
                detail = f"{detail}: {self._clean_text(body, max_chars=300)}"
            log.error("Brave web search failed", query=q, error=detail)
            return ToolResult(success=False, error=detail)
        except (httpx.HTTPError, ValueError) as e:
            log.error("Web search failed", query=q, error=str(e))
            return ToolResult(success=False, error=str(e))

        web_block = payload.get("web", {}) if isinstance(payload, dict) else {}
        results = web_block.get("results", []) if isinstance(web_block, dict) else []
        if not isinstance(results, list):
            results = []

        lines = [f"[QUERY: {q}]", f"[RESULTS: {len(results)}]", ""]
        if not results:
            lines.append("No results found.")
        for idx, item in enumerate(results, start=1):
            if not isinstance(item, dict):
                continue
            title = self._clean_text(str(item.get("title") or "Untitled"), max_chars=180)
            link = str(item.get("url") or "").strip()
            desc = self._clean_text(str(item.get("description") or ""))
            lines.append(f"{idx}. {title}")
            lines.append(f"   URL: {link or '-'}")
            lines.append(f"   Snippet: {desc or '-'}")
            lines.append("")

        return ToolResult(success=True, content="\n".join(lines).strip())

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()
