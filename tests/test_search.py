"""Tests for search payload normalization and the search stage."""
import pytest

from alf.research.search import SearchStage, decode_payload, normalize_candidates
from alf.services.retry import RetryPolicy

NO_WAIT = RetryPolicy(max_attempts=2, base_delay_ms=0)


def test_decodes_bare_array():
    shape, items = decode_payload([{"url": "https://a.example"}])
    assert shape == "array"
    assert len(items) == 1


def test_decodes_results_and_data_keys():
    assert decode_payload({"results": [{"url": "x"}]})[0] == "results"
    assert decode_payload({"data": [{"url": "x"}]})[0] == "data"


def test_unwraps_firecrawl_envelope():
    shape, items = decode_payload({"success": True, "data": {"results": [{"url": "x"}]}})
    assert shape == "results"
    assert items == [{"url": "x"}]


def test_unknown_shape_is_empty():
    assert decode_payload({"hits": []}) == ("empty", [])
    assert decode_payload(None) == ("empty", [])
    assert decode_payload("text") == ("empty", [])


def test_normalizes_alternate_field_names():
    payload = {
        "results": [
            {"link": "https://a.example", "name": "A", "description": "about a"},
            {"metadata": {"url": "https://b.example", "title": "B"}, "content": "about b"},
        ]
    }
    candidates = normalize_candidates(payload)
    assert [c.url for c in candidates] == ["https://a.example", "https://b.example"]
    assert candidates[0].title == "A"
    assert candidates[0].snippet == "about a"
    assert candidates[1].title == "B"
    assert candidates[1].snippet == "about b"


def test_drops_items_without_url_and_dedupes_first_wins():
    payload = [
        {"url": "https://a.example", "title": "first"},
        {"title": "no url"},
        {"url": "   "},
        "not a dict",
        {"url": "https://a.example", "title": "second"},
        {"url": "https://b.example"},
    ]
    candidates = normalize_candidates(payload)
    assert [c.url for c in candidates] == ["https://a.example", "https://b.example"]
    assert candidates[0].title == "first"
    assert all(c.url for c in candidates)


def test_caps_candidate_count():
    payload = [{"url": f"https://site{i}.example"} for i in range(50)]
    assert len(normalize_candidates(payload)) == 30
    assert len(normalize_candidates(payload, max_candidates=5)) == 5


@pytest.mark.asyncio
async def test_stage_returns_candidates():
    async def backend(query):
        assert query == "llm agents"
        return {"results": [{"url": "https://a.example", "title": "A"}]}

    stage = SearchStage(backend, provider="fake", retry_policy=NO_WAIT)
    candidates = await stage.search("llm agents")
    assert [c.url for c in candidates] == ["https://a.example"]
    assert stage.last_error is None


@pytest.mark.asyncio
async def test_stage_failure_yields_empty_list():
    calls = []

    async def backend(query):
        calls.append(query)
        raise ConnectionError("search down")

    stage = SearchStage(backend, provider="fake", retry_policy=NO_WAIT)
    assert await stage.search("q") == []
    assert stage.last_error == "search down"
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_stage_recovers_on_retry():
    attempts = {"n": 0}

    async def backend(query):
        attempts["n"] += 1
        if attempts["n"] == 1:
            raise TimeoutError("slow")
        return [{"url": "https://ok.example"}]

    stage = SearchStage(backend, retry_policy=NO_WAIT)
    candidates = await stage.search("q")
    assert [c.url for c in candidates] == ["https://ok.example"]
    assert stage.last_error is None
