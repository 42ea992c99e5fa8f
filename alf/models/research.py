from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

ResearchMode = Literal["pipeline", "agent"]


@dataclass(slots=True)
class Candidate:
    url: str
    title: str = ""
    snippet: str = ""


@dataclass(slots=True)
class RankedCandidate:
    url: str
    title: str = ""
    snippet: str = ""
    score: float = 0.5
    reason: str = ""


@dataclass(slots=True)
class SourceDocument:
    url: str
    title: str
    text: str
    date: str | None = None


@dataclass(frozen=True, slots=True)
class ResearchPreset:
    """Configuration variant for one research flavour."""

    name: str
    mode: ResearchMode = "pipeline"
    search_backend: str = "firecrawl"
    rerank_model: str = "gpt-4o-mini"
    synthesis_model: str = "gpt-4o-mini"
    top_n: int = 8
    max_chars: int = 4000
    step_budget: int = 8
    system_prompt_key: str = "synthesis.system_prompt"
    include_page_tools: bool = False
    description: str = ""


@dataclass(slots=True)
class ResearchResult:
    query: str
    report: str = ""
    sources: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None
    stats: dict[str, Any] = field(default_factory=dict)


def to_dicts(items: list[Any]) -> list[dict[str, Any]]:
    """Convert dataclass records to JSON-serializable dicts."""
    return [asdict(item) for item in items]
