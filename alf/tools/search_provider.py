from __future__ import annotations

from typing import Any, Awaitable, Callable

from alf.config import settings
from alf.tools import tavily_search
from alf.tools.firecrawl import FirecrawlClient, get_firecrawl_client

SearchBackend = Callable[[str], Awaitable[Any]]

SUPPORTED_PROVIDERS = ("firecrawl", "tavily")


def firecrawl_backend(client: FirecrawlClient | None = None) -> SearchBackend:
    async def run(query: str) -> Any:
        active = client or get_firecrawl_client()
        response = await active.search(query)
        return response.raise_for_failure().data

    return run


def tavily_backend(max_results: int | None = None) -> SearchBackend:
    async def run(query: str) -> Any:
        return await tavily_search.search(
            query,
            search_depth="advanced",
            max_results=max_results or settings.search_max_candidates,
        )

    return run


def get_backend(provider: str | None = None) -> tuple[str, SearchBackend]:
    """Resolve a provider name to exactly one search backend."""
    name = (provider or settings.search_provider).lower().strip()
    if name == "firecrawl":
        return name, firecrawl_backend()
    if name == "tavily":
        return name, tavily_backend()
    raise ValueError(
        f"Unsupported SEARCH_PROVIDER: {provider or settings.search_provider} "
        f"(expected one of {', '.join(SUPPORTED_PROVIDERS)})"
    )
