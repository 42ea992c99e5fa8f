from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _require_text(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError("must be a non-empty string")
    return value.strip()


# Crawl polling bounds, shared by crawl/wait and crawl/status.
MIN_POLL_MS = 200
MAX_POLL_MS = 5000
MAX_CRAWL_RETRIES = 200


# --- Requests ---


class ResearchRequest(BaseModel):
    query: str
    preset: str | None = None

    @field_validator("query", mode="before")
    @classmethod
    def _query(cls, value: Any) -> str:
        return _require_text(value)


class UrlBody(BaseModel):
    model_config = ConfigDict(extra="allow")

    url: str

    @field_validator("url", mode="before")
    @classmethod
    def _url(cls, value: Any) -> str:
        return _require_text(value)


class SearchBody(BaseModel):
    query: str
    filters: dict[str, Any] | None = None

    @field_validator("query", mode="before")
    @classmethod
    def _query(cls, value: Any) -> str:
        return _require_text(value)


class ExtractBody(UrlBody):
    schema_: dict[str, Any] | None = Field(default=None, alias="schema")
    prompt: str | None = None


class CrawlWaitBody(UrlBody):
    poll_ms: int = Field(default=1500, alias="pollMs", ge=MIN_POLL_MS, le=MAX_POLL_MS)
    max_retries: int = Field(default=60, alias="maxRetries", ge=0, le=MAX_CRAWL_RETRIES)


# --- Responses ---


class PresetInfo(BaseModel):
    name: str
    mode: str
    description: str
    top_n: int
    max_chars: int
    step_budget: int


class PresetsResponse(BaseModel):
    default: str
    presets: list[PresetInfo]


class ResearchBriefResponse(BaseModel):
    query: str
    preset: str
    report: str
    sources: list[dict[str, Any]]
    error: str | None = None
    stats: dict[str, Any] = {}
