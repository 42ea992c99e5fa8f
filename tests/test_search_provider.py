from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from alf.tools import search_provider
from alf.tools.firecrawl import FirecrawlError, FirecrawlResponse


def test_search_provider_resolves_configured_backend():
    with patch("alf.tools.search_provider.settings") as mock_settings:
        mock_settings.search_provider = "Tavily"
        name, backend = search_provider.get_backend()
    assert name == "tavily"
    assert callable(backend)


def test_search_provider_raises_when_provider_unsupported():
    with patch("alf.tools.search_provider.settings") as mock_settings:
        mock_settings.search_provider = "unknown-provider"
        with pytest.raises(ValueError, match="unknown-provider"):
            search_provider.get_backend()


@pytest.mark.asyncio
async def test_firecrawl_backend_returns_envelope_data():
    client = MagicMock()
    client.search = AsyncMock(return_value=FirecrawlResponse(success=True, data=[{"url": "https://a.example"}]))
    backend = search_provider.firecrawl_backend(client)
    assert await backend("rust") == [{"url": "https://a.example"}]
    client.search.assert_awaited_once_with("rust")


@pytest.mark.asyncio
async def test_firecrawl_backend_raises_on_failed_envelope():
    client = MagicMock()
    client.search = AsyncMock(return_value=FirecrawlResponse(success=False, error="HTTP 502 Bad Gateway"))
    with pytest.raises(FirecrawlError):
        await search_provider.firecrawl_backend(client)("rust")


@pytest.mark.asyncio
async def test_tavily_backend_passes_candidate_cap():
    with patch("alf.tools.search_provider.tavily_search.search", new=AsyncMock(return_value={"results": []})) as search:
        payload = await search_provider.tavily_backend(max_results=12)("rust")
    assert payload == {"results": []}
    assert search.await_args.kwargs["max_results"] == 12


@pytest.mark.asyncio
async def test_tavily_search_requires_api_key():
    from alf.tools import tavily_search

    with patch("alf.tools.tavily_search.settings") as mock_settings:
        mock_settings.tavily_api_key = ""
        with pytest.raises(RuntimeError, match="TAVILY_API_KEY"):
            await tavily_search.search("rust")
