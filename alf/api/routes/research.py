from __future__ import annotations

import asyncio
import json as _json
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError
from sse_starlette.sse import EventSourceResponse

from alf.api import deps
from alf.config import settings
from alf.models.research import ResearchPreset, ResearchResult
from alf.models.schemas import PresetInfo, PresetsResponse, ResearchBriefResponse, ResearchRequest
from alf.research.presets import get_preset
from alf.services import logger as log_service
from alf.services.relay import DEADLINE_MESSAGE, StreamRelay

router = APIRouter(prefix="/api/research", tags=["research"])

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except (ValueError, UnicodeDecodeError):
        return None


async def _parse_research_request(request: Request) -> tuple[ResearchRequest, ResearchPreset] | JSONResponse:
    """Validate the body before anything upstream is touched."""
    body = await _read_json(request)
    try:
        parsed = ResearchRequest.model_validate(body if isinstance(body, dict) else {})
    except ValidationError as exc:
        errors = exc.errors()
        field = errors[0]["loc"][0] if errors and errors[0]["loc"] else "query"
        return JSONResponse({"error": f"Missing or invalid '{field}'"}, status_code=400)
    try:
        preset = get_preset(parsed.preset)
    except KeyError:
        return JSONResponse({"error": f"Unknown preset '{parsed.preset}'"}, status_code=400)
    return parsed, preset


def _relay_for(parsed: ResearchRequest, preset: ResearchPreset) -> StreamRelay:
    orchestrator = deps.get_orchestrator(preset)

    def _closed() -> None:
        log_service.log_research_step(orchestrator.request_id, "stream", "closed")

    return StreamRelay(
        orchestrator.research(parsed.query),
        deadline_seconds=settings.research_deadline_seconds,
        on_close=_closed,
    )


@router.post("")
async def research(request: Request):
    """SSE stream of status, text, tool, error and done events."""
    parsed = await _parse_research_request(request)
    if isinstance(parsed, JSONResponse):
        return parsed
    relay = _relay_for(*parsed)
    return EventSourceResponse(relay.sse_messages(), sep="\n", headers=NO_CACHE_HEADERS)


@router.post("/stream")
async def research_text(request: Request):
    """Plain-text stream of the brief as it is written."""
    parsed = await _parse_research_request(request)
    if isinstance(parsed, JSONResponse):
        return parsed
    relay = _relay_for(*parsed)
    return StreamingResponse(
        relay.text_chunks(),
        media_type="text/plain; charset=utf-8",
        headers=NO_CACHE_HEADERS,
    )


@router.post("/brief", response_model=ResearchBriefResponse)
async def research_brief(request: Request):
    """Run the whole request and return the finished brief as JSON."""
    parsed = await _parse_research_request(request)
    if isinstance(parsed, JSONResponse):
        return parsed
    query, preset = parsed[0].query, parsed[1]
    orchestrator = deps.get_orchestrator(preset)
    try:
        result = await asyncio.wait_for(
            orchestrator.collect(query),
            timeout=settings.research_deadline_seconds,
        )
    except asyncio.TimeoutError:
        result = ResearchResult(query=query, error=DEADLINE_MESSAGE)
    log_service.log_event(
        event_type="research_brief",
        message="Research brief completed",
        request_id=orchestrator.request_id,
        preset=preset.name,
        error=result.error,
        report_chars=len(result.report),
    )
    return ResearchBriefResponse(
        query=result.query,
        preset=preset.name,
        report=result.report,
        sources=result.sources,
        error=result.error,
        stats=_json.loads(_json.dumps(result.stats, default=str)),
    )


@router.get("/presets", response_model=PresetsResponse)
async def list_presets():
    """List available research presets."""
    presets = deps.get_available_presets()
    return PresetsResponse(
        default=deps.default_preset_name(),
        presets=[PresetInfo(**p) for p in presets],
    )
