"""Search stage: one backend query normalized into deduplicated candidates."""
from __future__ import annotations

import logging
from typing import Any, Callable

from alf.config import settings
from alf.models.research import Candidate
from alf.services.retry import RetryPolicy, retry_with_policy
from alf.tools.search_provider import SearchBackend

logger = logging.getLogger(__name__)

DEFAULT_MAX_CANDIDATES = 30

URL_FIELDS = ("url", "link", "href", "metadata.url")
TITLE_FIELDS = ("title", "name", "metadata.title")
SNIPPET_FIELDS = ("snippet", "description", "summary", "content", "metadata.description")


def _items_from_list(payload: Any) -> list[Any] | None:
    return payload if isinstance(payload, list) else None


def _items_from_key(key: str) -> Callable[[Any], list[Any] | None]:
    def decode(payload: Any) -> list[Any] | None:
        if isinstance(payload, dict) and isinstance(payload.get(key), list):
            return payload[key]
        return None

    decode.__name__ = f"items_from_{key}"
    return decode


# Accepted wire shapes, tried in order. The first decoder that recognizes the
# payload wins; anything else decodes to an empty list.
PAYLOAD_DECODERS: tuple[tuple[str, Callable[[Any], list[Any] | None]], ...] = (
    ("array", _items_from_list),
    ("results", _items_from_key("results")),
    ("data", _items_from_key("data")),
)


def decode_payload(payload: Any) -> tuple[str, list[Any]]:
    """Return (shape_name, items) for a raw search payload."""
    # Firecrawl wraps results in a {success, data} envelope.
    if isinstance(payload, dict) and "success" in payload and "data" in payload:
        payload = payload["data"]
    for shape, decoder in PAYLOAD_DECODERS:
        items = decoder(payload)
        if items is not None:
            return shape, items
    return "empty", []


def _lookup(item: dict[str, Any], path: str) -> Any:
    node: Any = item
    for part in path.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(part)
    return node


def _first_text(item: dict[str, Any], paths: tuple[str, ...]) -> str:
    for path in paths:
        value = _lookup(item, path)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def normalize_item(item: Any) -> Candidate | None:
    if not isinstance(item, dict):
        return None
    url = _first_text(item, URL_FIELDS)
    if not url:
        return None
    return Candidate(
        url=url,
        title=_first_text(item, TITLE_FIELDS),
        snippet=_first_text(item, SNIPPET_FIELDS),
    )


def normalize_candidates(
    payload: Any,
    *,
    max_candidates: int = DEFAULT_MAX_CANDIDATES,
) -> list[Candidate]:
    """Decode, normalize, dedupe by exact URL (first wins) and cap."""
    _, items = decode_payload(payload)
    seen: set[str] = set()
    candidates: list[Candidate] = []
    for item in items:
        candidate = normalize_item(item)
        if candidate is None or candidate.url in seen:
            continue
        seen.add(candidate.url)
        candidates.append(candidate)
        if len(candidates) >= max_candidates:
            break
    return candidates


class SearchStage:
    def __init__(
        self,
        backend: SearchBackend,
        *,
        provider: str = "custom",
        max_candidates: int | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        self.backend = backend
        self.provider = provider
        self.max_candidates = max(
            int(max_candidates or settings.search_max_candidates or DEFAULT_MAX_CANDIDATES), 1
        )
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.last_error: str | None = None

    async def search(self, query: str) -> list[Candidate]:
        """Query the backend; a failure after retries yields an empty list."""
        self.last_error = None
        try:
            payload = await retry_with_policy(
                lambda: self.backend(query),
                self.retry_policy,
                label=f"search[{self.provider}]",
            )
        except Exception as exc:
            self.last_error = str(exc) or exc.__class__.__name__
            logger.warning("Search backend %s failed for %r: %s", self.provider, query, exc)
            return []
        return normalize_candidates(payload, max_candidates=self.max_candidates)
