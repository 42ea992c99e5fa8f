from __future__ import annotations

from alf.config import Settings


def test_settings_defaults(monkeypatch):
    for name in ("SEARCH_PROVIDER", "RERANK_TOP_N", "SCRAPE_MAX_CHARS", "RETRY_MAX_ATTEMPTS"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings(_env_file=None)
    assert settings.search_provider == "firecrawl"
    assert settings.rerank_top_n == 8
    assert settings.scrape_max_chars == 4000
    assert settings.retry_max_attempts == 3
    assert settings.retry_base_delay_ms == 400


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("SEARCH_PROVIDER", "tavily")
    monkeypatch.setenv("RESEARCH_DEADLINE_SECONDS", "42")
    settings = Settings(_env_file=None)
    assert settings.search_provider == "tavily"
    assert settings.research_deadline_seconds == 42.0


def test_cors_origin_list_splits_and_strips():
    settings = Settings(_env_file=None, cors_origins="http://a.test, http://b.test")
    assert settings.cors_origin_list == ["http://a.test", "http://b.test"]
