"""Rerank stage: ask a model to order candidates, degrade to a baseline order."""
from __future__ import annotations

import json
import logging
import math
import time
from dataclasses import asdict
from typing import Any

from alf.llm_client import LLMClient
from alf.models.research import Candidate, RankedCandidate
from alf.services import logger as log_service
from alf.services.prompt_store import render_prompt

logger = logging.getLogger(__name__)

BASELINE_SCORE = 0.5
BASELINE_REASON = "baseline"


class RerankParseError(ValueError):
    """Model output did not match the `{ranked: [...]}` contract."""


def baseline(candidates: list[Candidate], top_n: int) -> list[RankedCandidate]:
    return [
        RankedCandidate(
            url=c.url,
            title=c.title,
            snippet=c.snippet,
            score=BASELINE_SCORE,
            reason=BASELINE_REASON,
        )
        for c in candidates[: max(top_n, 0)]
    ]


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        parts = text.split("```")
        if len(parts) >= 2:
            text = parts[1]
        if text.startswith("json"):
            text = text[4:]
    return text.strip()


def _coerce_score(value: Any) -> float:
    if isinstance(value, bool):
        return BASELINE_SCORE
    try:
        score = float(value)
    except (TypeError, ValueError):
        return BASELINE_SCORE
    return score if math.isfinite(score) else BASELINE_SCORE


def parse_ranked(
    raw_text: str,
    candidates: list[Candidate],
    top_n: int,
) -> list[RankedCandidate]:
    """Validate model output and map it onto RankedCandidate records.

    Order is taken as returned by the model; a repeated URL keeps its first entry.
    """
    try:
        payload = json.loads(_strip_code_fence(raw_text))
    except json.JSONDecodeError as exc:
        raise RerankParseError(f"invalid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise RerankParseError("expected a JSON object")
    ranked = payload.get("ranked")
    if not isinstance(ranked, list) or not ranked:
        raise RerankParseError("missing or empty 'ranked'")

    by_url = {c.url: c for c in candidates}
    results: list[RankedCandidate] = []
    seen: set[str] = set()
    for entry in ranked:
        if not isinstance(entry, dict):
            continue
        url = entry.get("url")
        if not isinstance(url, str) or not url.strip():
            continue
        url = url.strip()
        if url in seen:
            continue
        seen.add(url)
        source = by_url.get(url)
        reason = entry.get("reason")
        results.append(
            RankedCandidate(
                url=url,
                title=source.title if source else "",
                snippet=source.snippet if source else "",
                score=_coerce_score(entry.get("score")),
                reason=reason if isinstance(reason, str) else "",
            )
        )
        if len(results) >= top_n:
            break

    if not results:
        raise RerankParseError("no usable entries in 'ranked'")
    return results


class RerankStage:
    def __init__(self, llm: LLMClient, *, model: str):
        self.llm = llm
        self.model = model
        self.used_fallback = False

    def build_prompt(self, query: str, candidates: list[Candidate], top_n: int) -> str:
        return render_prompt(
            "rerank.prompt",
            query=query,
            candidates=json.dumps([asdict(c) for c in candidates], indent=2),
            top_n=top_n,
        )

    async def rerank(
        self,
        query: str,
        candidates: list[Candidate],
        top_n: int,
    ) -> list[RankedCandidate]:
        """Return at most `top_n` ranked candidates; never raises."""
        self.used_fallback = False
        if not candidates or top_n <= 0:
            return []

        t0 = time.monotonic()
        try:
            completion = await self.llm.create(
                model=self.model,
                messages=[{"role": "user", "content": self.build_prompt(query, candidates, top_n)}],
                temperature=0,
            )
            log_service.log_llm_call(
                model=self.model,
                caller="rerank",
                input_tokens=completion.usage.input_tokens,
                output_tokens=completion.usage.output_tokens,
                duration_ms=int((time.monotonic() - t0) * 1000),
            )
            return parse_ranked(completion.text, candidates, top_n)
        except Exception as exc:
            logger.warning("Rerank fell back to baseline order: %s", exc)
            self.used_fallback = True
            return baseline(candidates, top_n)
