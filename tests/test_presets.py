"""Tests for research presets."""
import pytest

from alf.research.presets import DEFAULT_PRESET, MAX_STEP_BUDGET, MIN_STEP_BUDGET, PRESETS, get_preset


def test_default_preset_exists():
    assert get_preset(None).name == DEFAULT_PRESET
    assert get_preset("  QUICK ").name == "quick"


def test_unknown_preset_raises():
    with pytest.raises(KeyError):
        get_preset("turbo")


def test_step_budgets_within_bounds():
    for preset in PRESETS.values():
        assert MIN_STEP_BUDGET <= preset.step_budget <= MAX_STEP_BUDGET


def test_agent_presets_use_agent_prompt():
    assert get_preset("agent").mode == "agent"
    assert get_preset("agent-extended").include_page_tools is True
    assert get_preset("careful").system_prompt_key == "synthesis.careful_system_prompt"
