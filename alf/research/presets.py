from __future__ import annotations

from alf.config import settings
from alf.models.research import ResearchPreset

DEFAULT_PRESET = "deep"

MIN_STEP_BUDGET = 3
MAX_STEP_BUDGET = 12


def _clamp_steps(value: int) -> int:
    return min(max(int(value), MIN_STEP_BUDGET), MAX_STEP_BUDGET)


def build_presets() -> dict[str, ResearchPreset]:
    """Research variants, built once from process settings."""
    presets = [
        ResearchPreset(
            name="deep",
            mode="pipeline",
            search_backend=settings.search_provider,
            rerank_model=settings.rerank_model,
            synthesis_model=settings.research_model,
            top_n=settings.rerank_top_n,
            max_chars=settings.scrape_max_chars,
            step_budget=_clamp_steps(settings.agent_step_budget),
            description="Search, rerank, scrape and synthesize a cited brief.",
        ),
        ResearchPreset(
            name="quick",
            mode="pipeline",
            search_backend=settings.search_provider,
            rerank_model=settings.rerank_model,
            synthesis_model=settings.research_model,
            top_n=4,
            max_chars=2000,
            step_budget=MIN_STEP_BUDGET,
            description="Fewer, shorter sources for a fast answer.",
        ),
        ResearchPreset(
            name="careful",
            mode="pipeline",
            search_backend=settings.search_provider,
            rerank_model=settings.rerank_model,
            synthesis_model=settings.research_model,
            top_n=6,
            max_chars=12000,
            step_budget=8,
            system_prompt_key="synthesis.careful_system_prompt",
            description="Longer source excerpts and a stricter, primary-source prompt.",
        ),
        ResearchPreset(
            name="agent",
            mode="agent",
            search_backend=settings.search_provider,
            rerank_model=settings.rerank_model,
            synthesis_model=settings.research_model,
            top_n=settings.rerank_top_n,
            max_chars=settings.scrape_max_chars,
            step_budget=_clamp_steps(settings.agent_step_budget),
            system_prompt_key="agent.system_prompt",
            description="Tool-calling agent that decides its own search/rerank/scrape steps.",
        ),
        ResearchPreset(
            name="agent-extended",
            mode="agent",
            search_backend=settings.search_provider,
            rerank_model=settings.rerank_model,
            synthesis_model=settings.research_model,
            top_n=settings.rerank_top_n,
            max_chars=settings.scrape_max_chars,
            step_budget=MAX_STEP_BUDGET,
            include_page_tools=True,
            system_prompt_key="agent.system_prompt",
            description="Agent with a larger step budget and direct page-fetch tools.",
        ),
    ]
    return {preset.name: preset for preset in presets}


PRESETS = build_presets()


def get_preset(name: str | None) -> ResearchPreset:
    key = (name or DEFAULT_PRESET).strip().lower()
    if key not in PRESETS:
        raise KeyError(key)
    return PRESETS[key]
