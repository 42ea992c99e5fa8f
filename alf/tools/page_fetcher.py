"""Direct page fetch with HTML-to-text extraction (no crawl service involved)."""
from __future__ import annotations

from dataclasses import dataclass

import httpx
from bs4 import BeautifulSoup

from alf.tools import web_utils

USER_AGENT = "ALFResearchBot/1.0 (+https://example.local)"
MAX_LINKS = 25


@dataclass
class FetchedPage:
    url: str
    final_url: str
    title: str
    text: str
    html: str


def html_to_text(html: str) -> tuple[str, str]:
    """Return (title, text) with scripts, styles and markup removed."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    title = ""
    if soup.title and soup.title.string:
        title = web_utils.collapse_whitespace(soup.title.string)
    text = web_utils.collapse_whitespace(soup.get_text(" "))
    return title, text


def extract_links(html: str, limit: int = MAX_LINKS) -> list[str]:
    """Absolute outbound links in document order, deduplicated."""
    soup = BeautifulSoup(html, "html.parser")
    seen: dict[str, None] = {}
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not web_utils.is_valid_url(href):
            continue
        seen.setdefault(href, None)
        if len(seen) >= limit:
            break
    return list(seen)


async def fetch_page(url: str, *, timeout: float = 20.0) -> FetchedPage:
    if not web_utils.is_valid_url(url):
        raise ValueError(f"Not a fetchable URL: {url!r}")
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        response = await client.get(url, headers={"User-Agent": USER_AGENT})
        response.raise_for_status()
    html = response.text
    title, text = html_to_text(html)
    return FetchedPage(url=url, final_url=str(response.url), title=title, text=text, html=html)
