from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Any, AsyncGenerator

from alf.llm_client import LLMClient, client as llm_client
from alf.models.events import EventType, StreamEvent
from alf.models.research import ResearchPreset, ResearchResult, SourceDocument
from alf.research.agent import ResearchAgent
from alf.research.rerank import RerankStage
from alf.research.scrape import ScrapeStage, get_scraper
from alf.research.search import SearchStage
from alf.research.synthesis import SynthesisStage
from alf.research.tools import build_registry
from alf.services import logger as log_service
from alf.services import streaming
from alf.services.prompt_store import render_prompt
from alf.tools import search_provider
from alf.tools.firecrawl import FirecrawlClient
from alf.tools.public_sources import PublicSourcesClient
from alf.tools.registry import ToolRegistry


class PipelineState(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    RERANKING = "reranking"
    SCRAPING = "scraping"
    SYNTHESIZING = "synthesizing"
    DONE = "done"
    ERRORED = "errored"


# Allowed forward transitions. ERRORED is absorbing and only synthesis can
# reach it; the other stages degrade instead of failing the run.
TRANSITIONS: dict[PipelineState, frozenset[PipelineState]] = {
    PipelineState.IDLE: frozenset({PipelineState.SEARCHING}),
    PipelineState.SEARCHING: frozenset({PipelineState.RERANKING, PipelineState.SYNTHESIZING}),
    PipelineState.RERANKING: frozenset({PipelineState.SCRAPING}),
    PipelineState.SCRAPING: frozenset({PipelineState.SYNTHESIZING}),
    PipelineState.SYNTHESIZING: frozenset({PipelineState.DONE, PipelineState.ERRORED}),
    PipelineState.DONE: frozenset(),
    PipelineState.ERRORED: frozenset(),
}


class ResearchOrchestrator:
    """Runs one research request for a preset.

    Pipeline presets:
      1. Search the configured backend for candidates
      2. Rerank candidates with a model (baseline order on failure)
      3. Scrape the top URLs concurrently
      4. Stream a cited brief from the scraped sources

    Agent presets hand the same stages to a tool-calling agent instead.
    Every step yields StreamEvents; `done` or `error` is always last.
    """

    def __init__(
        self,
        preset: ResearchPreset,
        *,
        llm: LLMClient | None = None,
        search: SearchStage | None = None,
        rerank: RerankStage | None = None,
        scrape: ScrapeStage | None = None,
        synthesis: SynthesisStage | None = None,
        registry: ToolRegistry | None = None,
        firecrawl: FirecrawlClient | None = None,
        public_sources: PublicSourcesClient | None = None,
        request_id: str | None = None,
    ):
        self.preset = preset
        self.llm = llm or llm_client()
        self.request_id = request_id or uuid.uuid4().hex[:12]
        if search is None:
            provider, backend = search_provider.get_backend(preset.search_backend)
            search = SearchStage(backend, provider=provider)
        self.search_stage = search
        self.rerank_stage = rerank or RerankStage(self.llm, model=preset.rerank_model)
        self.scrape_stage = scrape or ScrapeStage(get_scraper())
        self.synthesis_stage = synthesis or SynthesisStage(self.llm, model=preset.synthesis_model)
        self._registry = registry
        self._firecrawl = firecrawl
        self._public_sources = public_sources
        self.state = PipelineState.IDLE

    def _transition(self, new_state: PipelineState, **data: Any) -> StreamEvent:
        if new_state not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid pipeline transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        log_service.log_research_step(self.request_id, new_state.value, "entered", data or None)
        return streaming.stage(new_state.value, **data)

    def system_prompt(self) -> str:
        return render_prompt(self.preset.system_prompt_key, top_n=self.preset.top_n)

    def registry(self) -> ToolRegistry:
        """Tool set for this request, built on first use."""
        if self._registry is None:
            self._registry = build_registry(
                self.search_stage,
                self.rerank_stage,
                self.scrape_stage,
                top_n=self.preset.top_n,
                max_chars=self.preset.max_chars,
                firecrawl=self._firecrawl,
                public_sources=self._public_sources,
                include_page_tools=self.preset.include_page_tools,
            )
        return self._registry

    async def research(self, query: str) -> AsyncGenerator[StreamEvent, None]:
        log_service.log_event(
            event_type="research_started",
            message="Research started",
            request_id=self.request_id,
            preset=self.preset.name,
            query=query[:100],
        )
        if self.preset.mode == "agent":
            async for event in self._research_agent(query):
                yield event
            return
        async for event in self._research_pipeline(query):
            yield event

    async def _research_pipeline(self, query: str) -> AsyncGenerator[StreamEvent, None]:
        started = time.monotonic()

        yield self._transition(PipelineState.SEARCHING)
        candidates = await self.search_stage.search(query)
        if self.search_stage.last_error:
            yield streaming.status(
                "search_failed",
                stage=PipelineState.SEARCHING.value,
                error=self.search_stage.last_error,
            )

        sources: list[SourceDocument] = []
        if candidates:
            yield self._transition(PipelineState.RERANKING, candidates=len(candidates))
            ranked = await self.rerank_stage.rerank(query, candidates, self.preset.top_n)

            yield self._transition(
                PipelineState.SCRAPING,
                urls=len(ranked),
                rerank_fallback=self.rerank_stage.used_fallback,
            )
            sources = await self.scrape_stage.scrape_many(
                [r.url for r in ranked],
                self.preset.max_chars,
            )

        yield self._transition(PipelineState.SYNTHESIZING, sources=len(sources))
        async for event in self.synthesis_stage.synthesize(query, sources, self.system_prompt()):
            if event.event == EventType.ERROR:
                self._transition(PipelineState.ERRORED)
                yield event
                return
            yield event

        self._transition(PipelineState.DONE)
        yield streaming.done(
            candidates=len(candidates),
            sources=len(sources),
            source_list=[{"index": i, "url": s.url, "title": s.title} for i, s in enumerate(sources, 1)],
            tokens_used=self.synthesis_stage.last_usage.total,
            runtime_ms=int((time.monotonic() - started) * 1000),
        )

    async def _research_agent(self, query: str) -> AsyncGenerator[StreamEvent, None]:
        started = time.monotonic()
        registry = self.registry()
        log_service.log_research_step(self.request_id, "agent", "tools", {"tools": registry.names()})
        agent = ResearchAgent(
            self.llm,
            registry,
            model=self.preset.synthesis_model,
            system_prompt=self.system_prompt(),
            step_budget=self.preset.step_budget,
        )
        try:
            async for event in agent.run(query):
                yield event
        except Exception as exc:
            log_service.log_event(
                event_type="agent_error",
                message="Research agent failed",
                request_id=self.request_id,
                error=str(exc),
            )
            yield streaming.error(f"Research agent failed: {exc}", stage="agent")
            return

        yield streaming.done(
            steps=agent.steps_taken,
            tokens_used=agent.usage.total,
            runtime_ms=int((time.monotonic() - started) * 1000),
        )

    async def collect(self, query: str) -> ResearchResult:
        """Buffer the whole run for callers that do not stream."""
        result = ResearchResult(query=query)
        parts: list[str] = []
        async for event in self.research(query):
            if event.event == EventType.TEXT:
                parts.append(event.data.get("delta", ""))
            elif event.event == EventType.ERROR:
                result.error = event.data.get("message", "Research failed")
            elif event.event == EventType.DONE:
                result.stats = {k: v for k, v in event.data.items() if k != "source_list"}
                result.sources = list(event.data.get("source_list", []))
        result.report = "".join(parts)
        return result


