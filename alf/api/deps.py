from __future__ import annotations

from alf.config import settings
from alf.models.research import ResearchPreset
from alf.research.orchestrator import ResearchOrchestrator
from alf.research.presets import DEFAULT_PRESET, PRESETS
from alf.tools.firecrawl import FirecrawlClient, get_firecrawl_client
from alf.tools.public_sources import PublicSourcesClient


def get_available_presets() -> list[dict[str, object]]:
    """Return the research presets a client can pick from."""
    return [
        {
            "name": preset.name,
            "mode": preset.mode,
            "description": preset.description,
            "top_n": preset.top_n,
            "max_chars": preset.max_chars,
            "step_budget": preset.step_budget,
        }
        for preset in PRESETS.values()
    ]


def default_preset_name() -> str:
    return DEFAULT_PRESET


def get_orchestrator(preset: ResearchPreset) -> ResearchOrchestrator:
    public_sources = PublicSourcesClient() if settings.public_tools_enabled else None
    return ResearchOrchestrator(preset, firecrawl=get_firecrawl_client(), public_sources=public_sources)


def get_firecrawl() -> FirecrawlClient:
    return get_firecrawl_client()
