"""Scrape stage: bounded concurrent fetch of full page text for selected URLs."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable

from alf.config import settings
from alf.models.research import SourceDocument
from alf.services.retry import RetryPolicy, retry_with_policy
from alf.tools import page_fetcher, web_utils
from alf.tools.firecrawl import FirecrawlClient, get_firecrawl_client

logger = logging.getLogger(__name__)

# Raw per-URL payload from a scrape backend: a string body or a dict of fields.
ScrapeBackend = Callable[[str], Awaitable[Any]]

TEXT_FIELDS = ("markdown", "content", "text", "article.content", "raw")


def firecrawl_scraper(client: FirecrawlClient | None = None) -> ScrapeBackend:
    async def run(url: str) -> Any:
        active = client or get_firecrawl_client()
        response = await active.scrape(url)
        return response.raise_for_failure().data

    return run


def http_scraper(timeout: float = 20.0) -> ScrapeBackend:
    async def run(url: str) -> Any:
        page = await page_fetcher.fetch_page(url, timeout=timeout)
        return {"text": page.text, "title": page.title, "metadata": {"url": page.final_url}}

    return run


def get_scraper(provider: str | None = None) -> ScrapeBackend:
    name = (provider or settings.scrape_provider).lower().strip()
    if name == "firecrawl":
        return firecrawl_scraper()
    if name == "http":
        return http_scraper()
    raise ValueError(f"Unsupported SCRAPE_PROVIDER: {provider or settings.scrape_provider}")


def _lookup(data: dict[str, Any], path: str) -> Any:
    node: Any = data
    for part in path.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(part)
    return node


def extract_text(data: Any) -> str:
    """Best-effort body text from whichever field a backend populated."""
    if isinstance(data, str):
        return data
    if isinstance(data, dict):
        for path in TEXT_FIELDS:
            value = _lookup(data, path)
            if isinstance(value, str) and value:
                return value
    return json.dumps(data, default=str)


def extract_title(data: Any, url: str) -> str:
    if isinstance(data, dict):
        for path in ("title", "metadata.title"):
            value = _lookup(data, path)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return url


def extract_date(data: Any) -> str | None:
    if isinstance(data, dict):
        for path in ("metadata.publishedDate", "metadata.published_date", "date"):
            value = _lookup(data, path)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


def to_document(url: str, data: Any, max_chars: int) -> SourceDocument:
    return SourceDocument(
        url=url,
        title=extract_title(data, url),
        text=web_utils.truncate(extract_text(data), max_chars),
        date=extract_date(data),
    )


class ScrapeStage:
    def __init__(
        self,
        backend: ScrapeBackend,
        *,
        max_parallel: int | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        self.backend = backend
        self.max_parallel = max(int(max_parallel or settings.scrape_max_parallel), 1)
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.failures: dict[str, str] = {}

    async def scrape_many(self, urls: list[str], max_chars: int) -> list[SourceDocument]:
        """Scrape every URL independently; failed URLs are omitted.

        Results keep the order of `urls`. Duplicate URLs are scraped once.
        """
        self.failures = {}
        unique_urls = list(dict.fromkeys(u for u in urls if u))
        semaphore = asyncio.Semaphore(self.max_parallel)

        async def run_one(url: str) -> SourceDocument:
            async with semaphore:
                data = await retry_with_policy(
                    lambda: self.backend(url),
                    self.retry_policy,
                    label=f"scrape[{url}]",
                )
            return to_document(url, data, max_chars)

        outcomes = await asyncio.gather(
            *(run_one(url) for url in unique_urls),
            return_exceptions=True,
        )

        documents: list[SourceDocument] = []
        for url, outcome in zip(unique_urls, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                self.failures[url] = str(outcome) or outcome.__class__.__name__
                logger.warning("Scrape failed for %s: %s", url, outcome)
                continue
            documents.append(outcome)
        return documents
