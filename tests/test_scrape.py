"""Tests for the concurrent scrape stage."""
import asyncio

import pytest

from alf.research.scrape import ScrapeStage, extract_date, extract_text, extract_title, get_scraper, to_document
from alf.services.retry import RetryPolicy
from alf.tools import web_utils

NO_RETRY = RetryPolicy(max_attempts=1, base_delay_ms=0)


class FakeScraper:
    def __init__(self, pages, delay=0.0):
        self.pages = pages
        self.delay = delay
        self.calls = []
        self.active = 0
        self.peak = 0

    async def __call__(self, url):
        self.calls.append(url)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delay)
            page = self.pages[url]
            if isinstance(page, Exception):
                raise page
            return page
        finally:
            self.active -= 1


def test_text_field_precedence():
    assert extract_text({"markdown": "md", "content": "c", "text": "t"}) == "md"
    assert extract_text({"content": "c", "text": "t"}) == "c"
    assert extract_text({"article": {"content": "a"}, "raw": "r"}) == "a"
    assert extract_text({"raw": "r"}) == "r"
    assert extract_text("plain body") == "plain body"


def test_text_falls_back_to_json_dump():
    assert extract_text({"html": "<p>x</p>"}) == '{"html": "<p>x</p>"}'


def test_title_and_date_lookup():
    data = {"metadata": {"title": "Meta title", "publishedDate": "2024-05-01"}}
    assert extract_title(data, "https://a.example") == "Meta title"
    assert extract_title({}, "https://a.example") == "https://a.example"
    assert extract_date(data) == "2024-05-01"
    assert extract_date({"date": "2023"}) == "2023"
    assert extract_date("text") is None


def test_document_text_is_truncated_and_idempotent():
    doc = to_document("https://a.example", {"markdown": "x" * 10_000}, 4000)
    assert len(doc.text) == 4000
    assert web_utils.truncate(doc.text, 4000) == doc.text


def test_unknown_scrape_provider():
    with pytest.raises(ValueError):
        get_scraper("carrier-pigeon")


@pytest.mark.asyncio
async def test_failed_urls_are_omitted_and_order_kept():
    pages = {
        "https://a.example": {"markdown": "A body", "title": "A"},
        "https://b.example": RuntimeError("403"),
        "https://c.example": "C body",
        "https://d.example": TimeoutError("slow"),
    }
    stage = ScrapeStage(FakeScraper(pages), retry_policy=NO_RETRY)
    docs = await stage.scrape_many(list(pages), 4000)
    assert [d.url for d in docs] == ["https://a.example", "https://c.example"]
    assert docs[0].title == "A"
    assert docs[1].title == "https://c.example"
    assert set(stage.failures) == {"https://b.example", "https://d.example"}


@pytest.mark.asyncio
async def test_all_failures_give_empty_list():
    pages = {"https://a.example": RuntimeError("x"), "https://b.example": RuntimeError("y")}
    stage = ScrapeStage(FakeScraper(pages), retry_policy=NO_RETRY)
    assert await stage.scrape_many(list(pages), 4000) == []


@pytest.mark.asyncio
async def test_concurrency_is_bounded():
    pages = {f"https://site{i}.example": f"body {i}" for i in range(10)}
    scraper = FakeScraper(pages, delay=0.01)
    stage = ScrapeStage(scraper, max_parallel=3, retry_policy=NO_RETRY)
    docs = await stage.scrape_many(list(pages), 100)
    assert len(docs) == 10
    assert scraper.peak <= 3


@pytest.mark.asyncio
async def test_duplicate_urls_scraped_once():
    scraper = FakeScraper({"https://a.example": "A"})
    stage = ScrapeStage(scraper, retry_policy=NO_RETRY)
    docs = await stage.scrape_many(["https://a.example", "https://a.example"], 100)
    assert len(docs) == 1
    assert scraper.calls == ["https://a.example"]


@pytest.mark.asyncio
async def test_transient_failure_is_retried():
    attempts = {"n": 0}

    async def scraper(url):
        attempts["n"] += 1
        if attempts["n"] == 1:
            raise ConnectionError("reset")
        return {"content": "ok"}

    stage = ScrapeStage(scraper, retry_policy=RetryPolicy(max_attempts=3, base_delay_ms=0))
    docs = await stage.scrape_many(["https://a.example"], 100)
    assert [d.text for d in docs] == ["ok"]
