"""Tests for Handlebars prompt rendering and the prompt builders."""

import pytest

from dungeon_chat.prompts import (
    PromptError,
    build_character_details_prompt,
    build_dm_system_prompt,
    build_summary_prompt,
    render_prompt,
)


# ── render_prompt ────────────────────────────────────────────


def test_render_simple_variable():
    assert render_prompt("Hello {{name}}!", {"name": "World"}) == "Hello World!"


def test_render_each_loop():
    assert render_prompt("{{#each items}}{{this}} {{/each}}", {"items": ["a", "b"]}) == "a b "


def test_render_missing_variable():
    assert render_prompt("Hello {{name}}!", {}) == "Hello !"


def test_render_invalid_template():
    with pytest.raises(PromptError):
        render_prompt("{{> missing_partial}}", {})


# ── Dungeon Master ───────────────────────────────────────────


def test_dm_prompt_includes_context_unescaped():
    prompt = build_dm_system_prompt(
        "Borin the Fighter (HP 12, inventory: Axe & shield)",
        "The party reached the vault.",
        '[{"name": "Borin", "class": "Fighter", "hp": 12}]',
    )
    assert "Party roster: Borin the Fighter (HP 12, inventory: Axe & shield)." in prompt
    assert "Campaign summary so far: The party reached the vault." in prompt
    assert 'The Party: [{"name": "Borin", "class": "Fighter", "hp": 12}]' in prompt
    assert "[DAMAGE: <player name>, <amount>]" in prompt


# ── Chronicler ───────────────────────────────────────────────


def test_summary_prompt_without_previous_summary():
    prompt = build_summary_prompt("", ["System Event: The mists lift.", "Astra: I look around."])
    assert prompt == (
        "Previous summary: None\n"
        "Recent log:\n"
        "System Event: The mists lift.\n"
        "Astra: I look around."
    )


def test_summary_prompt_with_previous_summary():
    prompt = build_summary_prompt("They met at the inn.", ["Borin: Onward!"])
    assert prompt.startswith("Previous summary: They met at the inn.\nRecent log:\n")
    assert prompt.endswith("Borin: Onward!")


# ── Character details ────────────────────────────────────────


def test_character_details_prompt():
    assert build_character_details_prompt("Wizard", "Elf") == "Class: Wizard. Race: Elf."
