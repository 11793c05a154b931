"""Tests for sending messages, windowed reads and the summary threshold."""

import pytest

from dungeon_chat import messages, rooms
from dungeon_chat.errors import NotFoundError, ValidationError


@pytest.fixture
def code() -> str:
    return rooms.create_room("Astra").code


def test_needs_summary_only_on_unsummarised_multiples_of_20():
    assert messages.needs_summary(20, 0)
    assert messages.needs_summary(40, 20)
    assert not messages.needs_summary(19, 0)
    assert not messages.needs_summary(21, 0)
    assert not messages.needs_summary(20, 20)
    assert not messages.needs_summary(0, 0)


def test_send_appends_and_counts(code):
    result = messages.send(code, "Astra", "  I search the room  ")
    assert result.message_count == 2
    assert result.needs_summary is False
    assert result.stale is False
    assert result.message.body == "I search the room"
    assert result.message.kind == "chat"
    assert messages.list_messages(code)[-1].body == "I search the room"


def test_send_blank_body_is_noop(code):
    result = messages.send(code, "Astra", "   ")
    assert result.message is None
    assert result.message_count == 1
    assert len(messages.list_messages(code)) == 1


def test_send_unknown_room():
    with pytest.raises(NotFoundError):
        messages.send("ZZZZZZ", "Astra", "hello")


def test_send_unknown_kind(code):
    with pytest.raises(ValidationError):
        messages.send(code, "Astra", "hello", kind="whisper")


def test_send_system_message(code):
    result = messages.send(code, "Astra", "rolled d20: 17", kind="system")
    assert result.message.kind == "system"


def test_needs_summary_fires_at_20_and_40(code):
    results = [messages.send(code, "Astra", f"line {i}") for i in range(39)]
    flagged = [r.message_count for r in results if r.needs_summary]
    assert flagged == [20, 40]


def test_needs_summary_respects_summary_count(code):
    for i in range(18):
        messages.send(code, "Astra", f"line {i}")
    rooms.update_summary(code, "So far.", 20)
    assert messages.send(code, "Astra", "twentieth").needs_summary is False


def test_list_recent_limit_oldest_first(code):
    for i in range(5):
        messages.send(code, "Astra", f"line {i}")
    recent = messages.list_recent_limit(code, 3)
    assert [m.body for m in recent] == ["line 2", "line 3", "line 4"]


def test_list_recent_limit_larger_than_log(code):
    assert len(messages.list_recent_limit(code, 50)) == 1


def test_list_recent_limit_zero(code):
    assert messages.list_recent_limit(code, 0) == []


def test_list_recent_defaults_to_ten(code):
    for i in range(15):
        messages.send(code, "Astra", f"line {i}")
    recent = messages.list_recent(code)
    assert len(recent) == 10
    assert recent[-1].body == "line 14"


def test_fenced_send_rejected_after_newer_turn(code):
    stale = rooms.begin_dm_turn(code)
    rooms.begin_dm_turn(code)
    result = messages.send(code, "Dungeon Master", "Old narration.", dm_generation=stale)
    assert result.stale is True
    assert result.message is None
    assert rooms.get_room(code).message_count == 1


def test_fenced_send_accepted_for_current_turn(code):
    generation = rooms.begin_dm_turn(code)
    result = messages.send(code, "Dungeon Master", "Fresh narration.", dm_generation=generation)
    assert result.stale is False
    assert result.message.player_name == "Dungeon Master"
