"""Web search tool using DuckDuckGo."""

import asyncio
from typing import Any

from duckduckgo_search import DDGS

from chatgate.errors import ToolExecutionError
from chatgate.tools.registry import tool


@tool(description="Search the web and return titles, links and snippets")
async def search(query: str, max_results: int = 5) -> list[dict[str, Any]]:
    """Search the web.

    Args:
        query: The search query to look up
        max_results: Maximum number of results to return (default: 5, max: 10)
    """
    max_results = min(max(1, max_results), 10)

    # DDGS is synchronous; keep it off the event loop
    def _search() -> list[dict[str, Any]]:
        with DDGS() as ddgs:
            return list(ddgs.text(query, max_results=max_results))

    try:
        results = await asyncio.to_thread(_search)
    except Exception as e:
        raise ToolExecutionError(f"Web search failed: {e!s}") from e

    return [
        {
            "title": result.get("title", ""),
            "link": result.get("href", ""),
            "snippet": result.get("body", ""),
        }
        for result in results
    ]
