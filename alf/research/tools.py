"""Tool definitions exposing the research stages to a tool-calling agent."""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from alf.models.research import Candidate, to_dicts
from alf.research.rerank import RerankStage
from alf.research.scrape import ScrapeStage
from alf.research.search import SearchStage
from alf.tools import page_fetcher, web_utils
from alf.tools.firecrawl import FirecrawlClient
from alf.tools.public_sources import PublicSourcesClient
from alf.tools.registry import Tool, ToolRegistry


class SearchWebArgs(BaseModel):
    query: str = Field(min_length=1, description="The search query.")


class CandidateArgs(BaseModel):
    url: str
    title: str = ""
    snippet: str = ""


class RerankArgs(BaseModel):
    query: str
    candidates: list[CandidateArgs]
    top_n: int | None = Field(default=None, ge=1, le=20)


class ScrapeManyArgs(BaseModel):
    urls: list[str]
    max_chars: int | None = Field(default=None, ge=500, le=12000)


class GetPageArgs(BaseModel):
    url: str


class ExtractLinksArgs(BaseModel):
    html: str = Field(description="The raw HTML to scan.")


class FirecrawlSearchArgs(BaseModel):
    query: str = Field(min_length=1)
    filters: dict[str, Any] | None = None


class UrlArgs(BaseModel):
    url: str


class WikipediaSearchArgs(BaseModel):
    query: str = Field(min_length=1)
    limit: int = Field(default=5, ge=1, le=20)


class WikipediaSummaryArgs(BaseModel):
    title: str = Field(min_length=1)


class InstantAnswerArgs(BaseModel):
    query: str = Field(min_length=1)


class ArxivSearchArgs(BaseModel):
    query: str = Field(min_length=1, description='arXiv query, e.g. "ti:diffusion AND cat:cs.CL".')
    start: int = Field(default=0, ge=0)
    max_results: int = Field(default=10, ge=1, le=50)
    sort_by: Literal["relevance", "lastUpdatedDate", "submittedDate"] = "relevance"
    sort_order: Literal["ascending", "descending"] = "descending"


class FeedArgs(BaseModel):
    url: str
    max_items: int = Field(default=10, ge=1, le=50)

    @field_validator("url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        if not web_utils.is_valid_url(value):
            raise ValueError("url must be an absolute http(s) URL")
        return value


class LangSearchWebArgs(BaseModel):
    query: str = Field(min_length=1)
    freshness: Literal["noLimit", "pastDay", "pastWeek", "pastMonth"] = "noLimit"
    summary: bool = True
    count: int = Field(default=10, ge=1, le=50)


class LangSearchRerankArgs(BaseModel):
    query: str = Field(min_length=1)
    documents: list[str]
    model: str = "langsearch-reranker-v1"
    top_n: int = Field(default=2, ge=1, le=20)
    return_documents: bool = True


def research_tools(
    search: SearchStage,
    rerank: RerankStage,
    scrape: ScrapeStage,
    *,
    top_n: int = 8,
    max_chars: int = 4000,
) -> list[Tool]:
    async def search_web(args: SearchWebArgs) -> dict[str, Any]:
        candidates = await search.search(args.query)
        return {"results": to_dicts(candidates)}

    async def rerank_candidates(args: RerankArgs) -> dict[str, Any]:
        candidates = [Candidate(url=c.url, title=c.title, snippet=c.snippet) for c in args.candidates]
        ranked = await rerank.rerank(args.query, candidates, args.top_n or top_n)
        return {"ranked": to_dicts(ranked)}

    async def scrape_many(args: ScrapeManyArgs) -> dict[str, Any]:
        documents = await scrape.scrape_many(args.urls, args.max_chars or max_chars)
        return {"docs": to_dicts(documents)}

    return [
        Tool(
            name="search_web",
            description="Gather up to 30 candidate results for a query. Returns {results: [{url, title, snippet}]}.",
            input_model=SearchWebArgs,
            execute=search_web,
        ),
        Tool(
            name="rerank",
            description=f"Rerank candidate URLs for a query. Returns the top_n (default {top_n}) with scores and reasons.",
            input_model=RerankArgs,
            execute=rerank_candidates,
        ),
        Tool(
            name="scrape_many",
            description=f"Scrape multiple URLs. Returns {{docs: [{{url, title, text, date}}]}} with text truncated to max_chars (default {max_chars}).",
            input_model=ScrapeManyArgs,
            execute=scrape_many,
        ),
    ]


def page_tools(max_chars: int = 14000) -> list[Tool]:
    async def get_page(args: GetPageArgs) -> dict[str, Any]:
        page = await page_fetcher.fetch_page(args.url)
        return {"url": page.final_url, "title": page.title, "text": web_utils.truncate(page.text, max_chars)}

    async def extract_links(args: ExtractLinksArgs) -> dict[str, Any]:
        return {"links": page_fetcher.extract_links(args.html)}

    return [
        Tool(
            name="get_page",
            description="Fetch a URL and return extracted plain text.",
            input_model=GetPageArgs,
            execute=get_page,
        ),
        Tool(
            name="extract_links",
            description="Extract outbound links from raw HTML for follow-ups.",
            input_model=ExtractLinksArgs,
            execute=extract_links,
        ),
    ]


def firecrawl_tools(client: FirecrawlClient) -> list[Tool]:
    async def fc_search(args: FirecrawlSearchArgs) -> Any:
        return (await client.search(args.query, args.filters)).raise_for_failure().data

    async def fc_scrape(args: UrlArgs) -> Any:
        return (await client.scrape(args.url)).raise_for_failure().data

    async def fc_extract(args: UrlArgs) -> Any:
        return (await client.extract(args.url)).raise_for_failure().data

    return [
        Tool("firecrawl.search", "Search crawled/indexed content via Firecrawl.", FirecrawlSearchArgs, fc_search),
        Tool("firecrawl.scrape", "Scrape a single URL via Firecrawl.", UrlArgs, fc_scrape),
        Tool("firecrawl.extract", "Extract structured data from a URL via Firecrawl.", UrlArgs, fc_extract),
    ]


def public_source_tools(client: PublicSourcesClient) -> list[Tool]:
    async def wikipedia_search(args: WikipediaSearchArgs) -> Any:
        return await client.wikipedia_search(args.query, args.limit)

    async def wikipedia_summary(args: WikipediaSummaryArgs) -> Any:
        return await client.wikipedia_summary(args.title)

    async def ddg_instant(args: InstantAnswerArgs) -> Any:
        return await client.duckduckgo_instant(args.query)

    async def arxiv_search(args: ArxivSearchArgs) -> Any:
        return await client.arxiv_search(
            args.query,
            start=args.start,
            max_results=args.max_results,
            sort_by=args.sort_by,
            sort_order=args.sort_order,
        )

    async def rss_fetch(args: FeedArgs) -> Any:
        return await client.rss_fetch(args.url, args.max_items)

    tools = [
        Tool("wikipedia.search", "Full-text search on Wikipedia.", WikipediaSearchArgs, wikipedia_search),
        Tool("wikipedia.summary", "Concise summary of a Wikipedia page by title.", WikipediaSummaryArgs, wikipedia_summary),
        Tool("ddg.instant", "DuckDuckGo Instant Answer (definitions and snippets, not full search).", InstantAnswerArgs, ddg_instant),
        Tool("arxiv.search", "Search arXiv papers by title, author or category query.", ArxivSearchArgs, arxiv_search),
        Tool("rss.fetch", "Fetch an RSS or Atom feed and return its items.", FeedArgs, rss_fetch),
    ]

    if client.langsearch_api_key:
        async def langsearch_web(args: LangSearchWebArgs) -> Any:
            return await client.langsearch_web_search(
                args.query,
                freshness=args.freshness,
                summary=args.summary,
                count=args.count,
            )

        async def langsearch_rerank(args: LangSearchRerankArgs) -> Any:
            return await client.langsearch_rerank(
                args.query,
                args.documents,
                model=args.model,
                top_n=args.top_n,
                return_documents=args.return_documents,
            )

        tools.append(Tool("langsearch.web_search", "LangSearch web search.", LangSearchWebArgs, langsearch_web))
        tools.append(Tool("langsearch.rerank", "LangSearch semantic rerank of text documents.", LangSearchRerankArgs, langsearch_rerank))
    return tools


def build_registry(
    search: SearchStage,
    rerank: RerankStage,
    scrape: ScrapeStage,
    *,
    top_n: int = 8,
    max_chars: int = 4000,
    firecrawl: FirecrawlClient | None = None,
    public_sources: PublicSourcesClient | None = None,
    include_page_tools: bool = False,
) -> ToolRegistry:
    """Assemble the tool set for one request."""
    registry = ToolRegistry(research_tools(search, rerank, scrape, top_n=top_n, max_chars=max_chars))
    extra: list[Tool] = []
    if include_page_tools:
        extra += page_tools()
    if firecrawl is not None:
        extra += firecrawl_tools(firecrawl)
    if public_sources is not None:
        extra += public_source_tools(public_sources)
    for tool in extra:
        registry.register(tool)
    return registry
