from __future__ import annotations

from typing import Any

from tavily import AsyncTavilyClient

from alf.config import settings


async def search(
    query: str,
    *,
    search_depth: str = "advanced",
    max_results: int = 10,
    topic: str = "general",
    time_range: str | None = None,
    include_domains: list[str] | None = None,
    exclude_domains: list[str] | None = None,
) -> dict[str, Any]:
    """Execute a Tavily web search and return the raw response payload."""
    if not settings.tavily_api_key:
        raise RuntimeError("TAVILY_API_KEY is not configured")

    client = AsyncTavilyClient(api_key=settings.tavily_api_key)

    kwargs: dict[str, Any] = {
        "query": query,
        "search_depth": search_depth,
        "max_results": min(max_results, 20),
        "topic": topic,
        "include_images": False,
    }
    if time_range:
        kwargs["time_range"] = time_range
    if include_domains:
        kwargs["include_domains"] = include_domains
    if exclude_domains:
        kwargs["exclude_domains"] = exclude_domains

    return await client.search(**kwargs)
