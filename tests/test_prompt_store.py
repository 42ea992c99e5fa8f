from __future__ import annotations

import json

import pytest

from alf.research.presets import PRESETS
from alf.services.prompt_store import PromptCatalog, default_catalog, render_prompt


def test_render_prompt_substitutes_template_values():
    prompt = render_prompt("rerank.prompt", query="solid-state batteries", candidates="[]", top_n=5)
    assert "Query: solid-state batteries" in prompt
    assert "at most 5 entries" in prompt


def test_list_entries_are_joined_with_newlines():
    prompt = render_prompt("synthesis.system_prompt")
    assert "\n" in prompt
    assert "[1]" in prompt


def test_render_prompt_raises_for_unknown_key():
    with pytest.raises(KeyError, match="Prompt key not found"):
        render_prompt("missing.prompt.key")


def test_render_prompt_reports_missing_values():
    with pytest.raises(KeyError, match="top_n"):
        render_prompt("agent.system_prompt")


def test_packaged_catalog_is_loaded_once():
    assert default_catalog() is default_catalog()


def test_every_preset_prompt_is_packaged():
    for preset in PRESETS.values():
        assert render_prompt(preset.system_prompt_key, top_n=preset.top_n)
    assert render_prompt("agent.final_turn_prompt")


def test_catalog_from_json():
    catalog = PromptCatalog.from_json(json.dumps({"greeting": {"short": "hello $name", "long": ["hello", "$name"]}}))
    assert catalog.render("greeting.short", name="ada") == "hello ada"
    assert catalog.render("greeting.long", name="ada") == "hello\nada"


def test_catalog_rejects_bad_shapes():
    with pytest.raises(ValueError):
        PromptCatalog.from_json("[]")
    catalog = PromptCatalog({"count": 3, "group": {"a": "x"}})
    with pytest.raises(TypeError):
        catalog.render("count")
    with pytest.raises(TypeError):
        catalog.render("group")
