"""Lightweight Firecrawl API client.

Covers health, crawl, crawl status, search, scrape and extract. Every call
returns a `FirecrawlResponse` envelope; transport failures and non-2xx replies
are folded into `success=False` instead of raising.
"""
from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from alf.config import settings


class FirecrawlError(RuntimeError):
    """An unsuccessful Firecrawl envelope, raised so retry wrappers can act on it."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class FirecrawlResponse:
    success: bool
    data: Any = None
    error: str | None = None
    timestamp: str | None = None
    status_code: int | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            payload["data"] = self.data
        if self.error:
            payload["error"] = self.error
        if self.timestamp:
            payload["timestamp"] = self.timestamp
        return payload

    def raise_for_failure(self) -> "FirecrawlResponse":
        if not self.success:
            raise FirecrawlError(self.error or "firecrawl request failed", self.status_code)
        return self

    @property
    def is_unprocessable(self) -> bool:
        return self.status_code == 422 or "422" in (self.error or "")


class FirecrawlClient:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.firecrawl_base_url).rstrip("/")
        self.api_key = (settings.firecrawl_api_key if api_key is None else api_key).strip()
        self.timeout = settings.firecrawl_timeout_seconds if timeout is None else timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
    ) -> FirecrawlResponse:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.request(method, url, json=payload, headers=self._headers())
        except httpx.HTTPError as exc:
            return FirecrawlResponse(success=False, error=str(exc) or exc.__class__.__name__)

        body = self._parse_body(response)

        if not response.is_success:
            error = None
            data = None
            timestamp = None
            if isinstance(body, dict):
                error = body.get("error")
                data = body.get("data")
                timestamp = body.get("timestamp")
            return FirecrawlResponse(
                success=False,
                data=data,
                error=error or f"HTTP {response.status_code} {response.reason_phrase}".strip(),
                timestamp=timestamp,
                status_code=response.status_code,
            )

        if isinstance(body, dict) and "success" in body:
            return FirecrawlResponse(
                success=bool(body.get("success")),
                data=body.get("data"),
                error=body.get("error"),
                timestamp=body.get("timestamp"),
                status_code=response.status_code,
            )
        return FirecrawlResponse(success=True, data=body, status_code=response.status_code)

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        text = response.text
        if not text:
            return {}
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return {"success": response.is_success, "error": text}

    async def health(self) -> FirecrawlResponse:
        return await self._request("GET", "/health")

    async def crawl(self, url: str) -> FirecrawlResponse:
        return await self._request("POST", "/crawl", {"url": url})

    async def crawl_status(self, crawl_id: str) -> FirecrawlResponse:
        return await self._request("GET", f"/crawl/{quote(crawl_id, safe='')}")

    async def wait_for_crawl(
        self,
        crawl_id: str,
        *,
        poll_ms: int = 1500,
        max_retries: int = 60,
    ) -> FirecrawlResponse:
        """Poll a crawl job until it reports `completed` or retries run out."""
        status = await self.crawl_status(crawl_id)
        tries = 0
        while _crawl_state(status) != "completed" and tries < max_retries:
            await asyncio.sleep(poll_ms / 1000.0)
            status = await self.crawl_status(crawl_id)
            tries += 1
        return status

    async def search(self, query: str, filters: dict[str, Any] | None = None) -> FirecrawlResponse:
        payload: dict[str, Any] = {"query": query}
        if filters:
            payload["filters"] = filters
        return await self._request("POST", "/search", payload)

    async def scrape(self, target: str | dict[str, Any]) -> FirecrawlResponse:
        payload = {"url": target} if isinstance(target, str) else dict(target)
        return await self._request("POST", "/scrape", payload)

    async def extract(self, target: str | dict[str, Any]) -> FirecrawlResponse:
        payload = {"url": target} if isinstance(target, str) else dict(target)
        return await self._request("POST", "/extract", payload)


def _crawl_state(response: FirecrawlResponse) -> str | None:
    if isinstance(response.data, dict):
        state = response.data.get("status")
        return state if isinstance(state, str) else None
    return None


_client: FirecrawlClient | None = None


def get_firecrawl_client() -> FirecrawlClient:
    """Get or create the shared Firecrawl client."""
    global _client
    if _client is None:
        _client = FirecrawlClient()
    return _client
