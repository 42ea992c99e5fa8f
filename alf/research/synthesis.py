"""Synthesis stage: stream a cited research brief from the collected sources."""
from __future__ import annotations

import logging
import time
from typing import AsyncIterator

from alf.config import settings
from alf.llm_client import LLMClient, Usage
from alf.models.events import StreamEvent
from alf.models.research import SourceDocument
from alf.services import logger as log_service
from alf.services import streaming
from alf.services.prompt_store import render_prompt
from alf.tools import web_utils

logger = logging.getLogger(__name__)


def format_sources(sources: list[SourceDocument], char_budget: int) -> str:
    """Numbered source blocks; citation marker [n] refers to block n."""
    if not sources:
        return render_prompt("synthesis.no_sources")
    blocks = [
        render_prompt(
            "synthesis.source_block",
            index=index,
            title=doc.title or doc.url,
            url=doc.url,
            date=doc.date or "unknown",
            text=web_utils.truncate(doc.text, char_budget),
        )
        for index, doc in enumerate(sources, start=1)
    ]
    return "Sources:\n\n" + "\n\n---\n\n".join(blocks)


class SynthesisStage:
    def __init__(
        self,
        llm: LLMClient,
        *,
        model: str,
        source_char_budget: int | None = None,
        max_tokens: int | None = None,
    ):
        self.llm = llm
        self.model = model
        self.source_char_budget = max(
            int(source_char_budget or settings.synthesis_source_char_budget), 1
        )
        self.max_tokens = max_tokens or settings.synthesis_max_tokens
        self.last_usage = Usage()
        self.failed = False

    def build_messages(
        self,
        query: str,
        sources: list[SourceDocument],
        system_prompt: str,
    ) -> list[dict[str, str]]:
        user = render_prompt(
            "synthesis.user_prompt",
            query=query,
            sources=format_sources(sources, self.source_char_budget),
        )
        return self.llm.build_messages(system_prompt, user)

    async def synthesize(
        self,
        query: str,
        sources: list[SourceDocument],
        system_prompt: str,
    ) -> AsyncIterator[StreamEvent]:
        """Yield `text` events as deltas arrive; a failure ends with one `error` event."""
        self.last_usage = Usage()
        self.failed = False
        produced = 0
        t0 = time.monotonic()
        try:
            async with self.llm.stream(
                model=self.model,
                messages=self.build_messages(query, sources, system_prompt),
                max_tokens=self.max_tokens,
            ) as stream:
                async for delta in stream.text_stream:
                    produced += 1
                    yield streaming.text(delta)
                self.last_usage = stream.usage
        except Exception as exc:
            self.failed = True
            message = str(exc) or exc.__class__.__name__
            logger.error("Synthesis failed after %d chunks: %s", produced, message)
            log_service.log_llm_call(
                model=self.model,
                caller="synthesis",
                duration_ms=int((time.monotonic() - t0) * 1000),
                status="error",
                error=message,
            )
            yield streaming.error(f"Synthesis failed: {message}", stage="synthesis")
            return

        log_service.log_llm_call(
            model=self.model,
            caller="synthesis",
            input_tokens=self.last_usage.input_tokens,
            output_tokens=self.last_usage.output_tokens,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
