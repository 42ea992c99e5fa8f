"""Thin Firecrawl passthrough routes.

Each route returns the `{success, data, error}` envelope as-is: 200 when the
upstream call succeeded, 502 when it did not, 400 for a bad request body.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from alf.api import deps
from alf.models.schemas import (
    MAX_CRAWL_RETRIES,
    MAX_POLL_MS,
    MIN_POLL_MS,
    CrawlWaitBody,
    ExtractBody,
    SearchBody,
    UrlBody,
)
from alf.services import logger as log_service
from alf.tools.firecrawl import FirecrawlResponse

router = APIRouter(prefix="/api/tools", tags=["tools"])


def _envelope(response: FirecrawlResponse) -> JSONResponse:
    return JSONResponse(response.to_dict(), status_code=200 if response.success else 502)


def _bad_request(field: str) -> JSONResponse:
    return JSONResponse({"success": False, "error": f"Missing or invalid '{field}'"}, status_code=400)


async def _parse(request: Request, model: type[BaseModel], field: str) -> BaseModel | JSONResponse:
    try:
        body: Any = await request.json()
    except (ValueError, UnicodeDecodeError):
        body = None
    if not isinstance(body, dict):
        return _bad_request(field)
    try:
        return model.model_validate(body)
    except ValidationError as e:
        bad = {str(err["loc"][0]) for err in e.errors() if err.get("loc")}
        if bad and field not in bad:
            return _bad_request(sorted(bad)[0])
        return _bad_request(field)


@router.get("/health")
async def firecrawl_health():
    return _envelope(await deps.get_firecrawl().health())


@router.post("/search")
async def search(request: Request):
    body = await _parse(request, SearchBody, "query")
    if isinstance(body, JSONResponse):
        return body
    return _envelope(await deps.get_firecrawl().search(body.query, body.filters))


@router.post("/scrape")
async def scrape(request: Request):
    body = await _parse(request, UrlBody, "url")
    if isinstance(body, JSONResponse):
        return body
    return _envelope(await deps.get_firecrawl().scrape(body.model_dump(exclude_none=True)))


@router.post("/extract")
async def extract(request: Request):
    """Structured extraction, degrading to a plain scrape when the upstream cannot process it."""
    body = await _parse(request, ExtractBody, "url")
    if isinstance(body, JSONResponse):
        return body
    firecrawl = deps.get_firecrawl()
    response = await firecrawl.extract(body.model_dump(by_alias=True, exclude_none=True))
    if not response.success and response.is_unprocessable:
        log_service.log_event(
            event_type="extract_fallback",
            message="Extract unprocessable, falling back to scrape",
            url=body.url,
            error=response.error,
        )
        response = await firecrawl.scrape(body.url)
    return _envelope(response)


@router.post("/crawl")
async def crawl(request: Request):
    body = await _parse(request, UrlBody, "url")
    if isinstance(body, JSONResponse):
        return body
    return _envelope(await deps.get_firecrawl().crawl(body.url))


@router.post("/crawl/wait")
async def crawl_and_wait(request: Request):
    """Start a crawl and poll it until it completes or retries run out."""
    body = await _parse(request, CrawlWaitBody, "url")
    if isinstance(body, JSONResponse):
        return body
    firecrawl = deps.get_firecrawl()
    started = await firecrawl.crawl(body.url)
    crawl_id = started.data.get("id") if isinstance(started.data, dict) else None
    if not started.success or not crawl_id:
        return JSONResponse(started.to_dict(), status_code=502)
    return _envelope(
        await firecrawl.wait_for_crawl(
            str(crawl_id),
            poll_ms=body.poll_ms,
            max_retries=body.max_retries,
        )
    )


@router.get("/crawl/status/{crawl_id}")
async def crawl_status(
    crawl_id: str,
    poll_ms: int = Query(default=1500, alias="pollMs", ge=MIN_POLL_MS, le=MAX_POLL_MS),
    max_retries: int = Query(default=0, alias="maxRetries", ge=0, le=MAX_CRAWL_RETRIES),
):
    """Crawl job status; with maxRetries > 0 this polls until `completed`."""
    return _envelope(
        await deps.get_firecrawl().wait_for_crawl(
            crawl_id,
            poll_ms=poll_ms,
            max_retries=max_retries,
        )
    )
