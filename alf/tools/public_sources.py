"""Keyless public knowledge sources: Wikipedia, DuckDuckGo, arXiv and RSS/Atom.

LangSearch web search and rerank are included when an API key is configured.
Each method raises `PublicSourceError` on a non-2xx reply so the agent's tool
loop can report it back to the model.
"""
from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Any
from urllib.parse import quote

import httpx
from bs4 import BeautifulSoup

from alf.config import settings
from alf.tools import web_utils

WIKI_API = "https://en.wikipedia.org/w/api.php"
WIKI_SUMMARY = "https://en.wikipedia.org/api/rest_v1/page/summary"
WIKI_PAGE = "https://en.wikipedia.org/wiki"
DDG_API = "https://api.duckduckgo.com/"
ARXIV_API = "https://export.arxiv.org/api/query"
LANGSEARCH_API = "https://api.langsearch.com/v1"

USER_AGENT = "alf-research/0.1"


class PublicSourceError(RuntimeError):
    def __init__(self, source: str, status_code: int):
        super().__init__(f"{source} {status_code}")
        self.source = source
        self.status_code = status_code


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1].lower()


def _child_text(element: ET.Element, name: str) -> str | None:
    for child in element:
        if _local(child.tag) == name:
            return (child.text or "").strip()
    return None


def _strip_html(fragment: str) -> str:
    return BeautifulSoup(fragment or "", "html.parser").get_text()


def wiki_url(title: str) -> str:
    return f"{WIKI_PAGE}/{quote(title.replace(' ', '_'))}"


def parse_arxiv_feed(xml_text: str) -> list[dict[str, Any]]:
    root = ET.fromstring(xml_text)
    papers = []
    for entry in root:
        if _local(entry.tag) != "entry":
            continue
        pdf = None
        authors = []
        for child in entry:
            name = _local(child.tag)
            if name == "link" and (child.get("title") == "pdf" or child.get("href", "").endswith("pdf")):
                pdf = pdf or child.get("href")
            elif name == "author":
                author = _child_text(child, "name")
                if author:
                    authors.append(author)
        papers.append({
            "id": _child_text(entry, "id") or "",
            "title": web_utils.collapse_whitespace(_child_text(entry, "title") or ""),
            "summary": web_utils.collapse_whitespace(_child_text(entry, "summary") or ""),
            "published": _child_text(entry, "published"),
            "updated": _child_text(entry, "updated"),
            "pdf": pdf,
            "authors": authors,
        })
    return papers


def parse_feed(xml_text: str, max_items: int) -> list[dict[str, Any]]:
    """Items from an RSS 2.0 or Atom document, in document order."""
    root = ET.fromstring(xml_text)
    is_atom = _local(root.tag) == "feed"
    wanted = "entry" if is_atom else "item"
    items = []
    for element in root.iter():
        if _local(element.tag) != wanted:
            continue
        link = None
        for child in element:
            if _local(child.tag) == "link":
                link = (child.text or "").strip() or child.get("href")
                if link:
                    break
        title = _child_text(element, "title")
        items.append({
            "title": web_utils.collapse_whitespace(title) if title else None,
            "link": link,
            "summary": _child_text(element, "description") or _child_text(element, "summary"),
            "published": _child_text(element, "pubdate") or _child_text(element, "updated"),
        })
        if len(items) >= max_items:
            break
    return items


class PublicSourcesClient:
    def __init__(
        self,
        *,
        langsearch_api_key: str | None = None,
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        key = settings.langsearch_api_key if langsearch_api_key is None else langsearch_api_key
        self.langsearch_api_key = key.strip()
        self.timeout = timeout
        self._transport = transport

    async def _get(self, source: str, url: str, params: dict[str, Any] | None = None) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self._transport,
            headers={"User-Agent": USER_AGENT},
        ) as client:
            response = await client.get(url, params=params)
        if not response.is_success:
            raise PublicSourceError(source, response.status_code)
        return response

    async def wikipedia_search(self, query: str, limit: int = 5) -> list[dict[str, Any]]:
        response = await self._get("wikipedia search", WIKI_API, {
            "action": "query",
            "list": "search",
            "srsearch": query,
            "srlimit": limit,
            "utf8": "",
            "format": "json",
            "origin": "*",
        })
        hits = (response.json().get("query") or {}).get("search") or []
        return [
            {
                "title": hit.get("title", ""),
                "page_id": hit.get("pageid"),
                "snippet": _strip_html(hit.get("snippet", "")),
                "url": wiki_url(hit.get("title", "")),
            }
            for hit in hits
        ]

    async def wikipedia_summary(self, title: str) -> dict[str, Any]:
        response = await self._get("wikipedia summary", f"{WIKI_SUMMARY}/{quote(title, safe='')}")
        body = response.json()
        page_url = ((body.get("content_urls") or {}).get("desktop") or {}).get("page")
        return {
            "title": body.get("title"),
            "extract": body.get("extract"),
            "description": body.get("description"),
            "url": page_url or wiki_url(title),
        }

    async def duckduckgo_instant(self, query: str) -> dict[str, Any]:
        response = await self._get("ddg instant", DDG_API, {
            "q": query,
            "format": "json",
            "no_redirect": 1,
            "no_html": 1,
        })
        body = response.json()
        related = []
        for topic in (body.get("RelatedTopics") or [])[:10]:
            nested = topic.get("Topics") or [{}]
            related.append({
                "text": topic.get("Text") or topic.get("Name"),
                "url": topic.get("FirstURL") or nested[0].get("FirstURL"),
            })
        return {
            "heading": body.get("Heading"),
            "abstract": body.get("AbstractText"),
            "url": body.get("AbstractURL") or body.get("Redirect"),
            "related": related,
        }

    async def arxiv_search(
        self,
        query: str,
        *,
        start: int = 0,
        max_results: int = 10,
        sort_by: str = "relevance",
        sort_order: str = "descending",
    ) -> list[dict[str, Any]]:
        response = await self._get("arxiv", ARXIV_API, {
            "search_query": query,
            "start": start,
            "max_results": max_results,
            "sortBy": sort_by,
            "sortOrder": sort_order,
        })
        return parse_arxiv_feed(response.text)

    async def rss_fetch(self, url: str, max_items: int = 10) -> list[dict[str, Any]]:
        response = await self._get("rss", url)
        return parse_feed(response.text, max_items)

    async def _langsearch(self, path: str, payload: dict[str, Any]) -> Any:
        if not self.langsearch_api_key:
            raise RuntimeError("LANGSEARCH_API_KEY is not set")
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                f"{LANGSEARCH_API}{path}",
                json=payload,
                headers={"Authorization": f"Bearer {self.langsearch_api_key}"},
            )
        if not response.is_success:
            raise PublicSourceError(f"LangSearch {path}", response.status_code)
        return response.json()

    async def langsearch_web_search(
        self,
        query: str,
        *,
        freshness: str = "noLimit",
        summary: bool = True,
        count: int = 10,
    ) -> Any:
        return await self._langsearch("/web-search", {
            "query": query,
            "freshness": freshness,
            "summary": summary,
            "count": count,
        })

    async def langsearch_rerank(
        self,
        query: str,
        documents: list[str],
        *,
        model: str = "langsearch-reranker-v1",
        top_n: int = 2,
        return_documents: bool = True,
    ) -> Any:
        return await self._langsearch("/rerank", {
            "model": model,
            "query": query,
            "top_n": top_n,
            "return_documents": return_documents,
            "documents": documents,
        })
