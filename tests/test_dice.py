"""Tests for /roll command parsing."""

import random

import pytest

from dungeon_chat.dice import format_roll, parse_roll_command, roll_result
from dungeon_chat.errors import ValidationError


def test_plain_text_is_not_a_roll():
    assert parse_roll_command("I search the room") is None
    assert parse_roll_command("rolling along /roll d20") is None


def test_roll_d20():
    sides, result = parse_roll_command("/roll d20", random.Random(42))
    assert sides == 20
    assert 1 <= result <= 20


def test_roll_is_case_insensitive_and_trimmed():
    sides, _ = parse_roll_command("  /ROLL D20  ")
    assert sides == 20


def test_roll_results_stay_in_range():
    rng = random.Random(0)
    results = {parse_roll_command("/roll d20", rng)[1] for _ in range(500)}
    assert results <= set(range(1, 21))
    assert {1, 20} <= results


@pytest.mark.parametrize("text", ["/roll", "/roll 20", "/rolld20", "/roll d20 twice"])
def test_bad_syntax(text):
    with pytest.raises(ValidationError, match="Use /roll d20 to roll a twenty-sided die."):
        parse_roll_command(text)


def test_zero_sided_die():
    with pytest.raises(ValidationError, match="Invalid die size."):
        parse_roll_command("/roll d0")


def test_only_d20_supported():
    with pytest.raises(ValidationError, match="Only d20 rolls are supported right now."):
        parse_roll_command("/roll d6")


def test_format_and_read_back():
    body = format_roll(20, 17)
    assert body == "rolled d20: 17"
    assert roll_result(body) == 17


def test_roll_result_ignores_chat():
    assert roll_result("I rolled out of bed") is None
