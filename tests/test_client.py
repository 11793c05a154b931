"""TableClient against the real app over httpx.ASGITransport."""

import random
from pathlib import Path

import httpx
import pytest

from dungeon_chat import messages, rooms
from dungeon_chat.app import create_app
from dungeon_chat.client import ApiError, TableClient
from dungeon_chat.errors import AuthorizationError, ValidationError
from dungeon_chat.llm import LLMError

TEST_DATA_DIR = Path("data-tests")


@pytest.fixture
def app(llm):
    return create_app(data_dir=TEST_DATA_DIR, llm=llm)


@pytest.fixture
async def make_client(app):
    clients: list[TableClient] = []

    def factory(user_id: str | None = None, rng: random.Random | None = None) -> TableClient:
        client = TableClient(
            "http://testserver",
            user_id=user_id,
            transport=httpx.ASGITransport(app=app),
            rng=rng,
        )
        clients.append(client)
        return client

    yield factory
    for client in clients:
        await client.aclose()


async def test_create_room_takes_leader_seat(make_client):
    astra = make_client("user-astra")
    code = await astra.create_room("Astra")

    assert astra.room_code == code
    assert astra.participant_id
    room = await astra.room()
    assert room.leader_name == "Astra"
    assert [p.player_name for p in await astra.participants()] == ["Astra"]


async def test_join_unknown_room(make_client):
    borin = make_client()
    with pytest.raises(ApiError) as excinfo:
        await borin.join_room("ZZZZZZ", "Borin")
    assert excinfo.value.status_code == 404
    assert str(excinfo.value) == "Room not found."


async def test_join_blank_code(make_client):
    with pytest.raises(ValidationError, match="Enter a room code."):
        await make_client().join_room("  ", "Borin")


async def test_submit_requires_seat(make_client):
    with pytest.raises(ValidationError, match="Join a room first."):
        await make_client().submit("hello")


async def test_submit_chat_triggers_dm(make_client, llm):
    astra = make_client()
    code = await astra.create_room("Astra")
    llm.chunks = ["The vale ", "is silent."]

    outcome = await astra.submit("I look around")

    assert outcome.sent.message.body == "I look around"
    assert outcome.narration == "The vale is silent."
    assert outcome.summarized is False
    log = messages.list_messages(code)
    assert [m.player_name for m in log[-2:]] == ["Astra", "Dungeon Master"]


async def test_submit_blank_sends_nothing(make_client, llm):
    astra = make_client()
    code = await astra.create_room("Astra")
    outcome = await astra.submit("   ")
    assert outcome.sent is None
    assert rooms.get_room(code).message_count == 2
    assert llm.calls == []


async def test_submit_roll(make_client):
    astra = make_client(rng=random.Random(5))
    code = await astra.create_room("Astra")
    await astra.set_turn_mode(True)

    outcome = await astra.submit("/roll d20")

    message = outcome.sent.message
    assert message.kind == "system"
    assert message.body.startswith("rolled d20: ")
    rolls = await astra.rolls()
    assert len(rolls) == 1
    assert rolls[0][0] == "Astra"
    assert 1 <= rolls[0][1] <= 20
    assert rooms.get_room(code).message_count == 3


async def test_bad_roll_sends_nothing(make_client):
    astra = make_client()
    code = await astra.create_room("Astra")
    with pytest.raises(ValidationError, match="Only d20 rolls are supported right now."):
        await astra.submit("/roll d6")
    assert rooms.get_room(code).message_count == 2


async def test_turn_mode_defers_dm_to_leader(make_client, llm):
    astra = make_client()
    code = await astra.create_room("Astra")
    borin = make_client()
    await borin.join_room(code, "Borin")
    await astra.set_turn_mode(True)

    outcome = await borin.submit("I sneak ahead")
    assert outcome.narration is None
    assert llm.calls == []

    with pytest.raises(AuthorizationError):
        await borin.end_turn()

    narration = await astra.end_turn()
    assert narration == "The door creaks open."
    assert messages.list_messages(code)[-1].player_name == "Dungeon Master"


async def test_end_turn_requires_turn_mode(make_client):
    astra = make_client()
    await astra.create_room("Astra")
    with pytest.raises(ValidationError, match="Turn Mode is off."):
        await astra.end_turn()


async def test_dm_not_asked_while_busy(make_client, llm):
    astra = make_client()
    code = await astra.create_room("Astra")
    rooms.begin_dm_turn(code)

    outcome = await astra.submit("Hello?")
    assert outcome.sent is not None
    assert outcome.narration is None
    assert llm.calls == []


async def test_dungeon_master_session_never_triggers_dm(make_client, llm):
    astra = make_client()
    code = await astra.create_room("Astra")
    dm = make_client()
    await dm.join_room(code, "Dungeon Master")

    outcome = await dm.submit("The wind howls.")
    assert outcome.narration is None
    assert llm.calls == []


async def test_summary_triggered_on_threshold(make_client, llm):
    astra = make_client()
    code = await astra.create_room("Astra")
    await astra.set_turn_mode(True)
    for i in range(17):
        messages.send(code, "Astra", f"line {i}")
    llm.replies = ["The party waits at the gate."]

    outcome = await astra.submit("We wait.")

    assert outcome.sent.message_count == 20
    assert outcome.sent.needs_summary is True
    assert outcome.summarized is True
    assert rooms.get_room(code).summary == "The party waits at the gate."


async def test_stream_dm_reports_missing_config(make_client, app):
    astra = make_client()
    await astra.create_room("Astra")
    app.state.llm = None
    with pytest.raises(ApiError) as excinfo:
        async for _ in astra.stream_dm():
            pass
    assert excinfo.value.status_code == 500


async def test_leave_twice(make_client):
    astra = make_client()
    code = await astra.create_room("Astra")
    await astra.leave()
    await astra.leave()
    assert rooms.list_participants(code) == []
    assert messages.list_messages(code)[-1].body == "Astra left the room."


async def test_save_character_and_party(make_client):
    borin = make_client("user-borin")
    astra = make_client("user-astra")
    code = await astra.create_room("Astra")
    await borin.join_room(code, "Borin")

    sheet = await borin.save_character({
        "ruleset": "legacy", "playerName": "Borin", "className": "Fighter",
        "hp": 12, "inventory": "Axe, rope",
    })
    assert sheet.user_id == "user-borin"
    assert [s.player_name for s in await astra.party()] == ["Borin"]


async def test_summary_still_triggered_when_dm_fails(make_client, llm):
    astra = make_client()
    code = await astra.create_room("Astra")
    for i in range(17):
        messages.send(code, "Astra", f"line {i}")

    async def silent_stream(stage, system, chat):
        raise LLMError("backend down")
        yield

    llm.stream = silent_stream
    llm.replies = ["The party waits in the dark."]

    outcome = await astra.submit("We wait.")

    assert outcome.sent.message_count == 20
    assert outcome.narration is None
    assert outcome.dm_error == "DM request failed: backend down"
    assert outcome.summarized is True
    assert llm.stages() == ["summary"]
    room = rooms.get_room(code)
    assert room.summary == "The party waits in the dark."
    assert room.summary_count == 20
    assert room.dm_active is False


async def test_narration_hides_damage_directives(make_client, llm):
    borin = make_client("user-borin")
    code = await borin.create_room("Borin")
    await borin.save_character({
        "ruleset": "legacy", "playerName": "Borin", "className": "Fighter", "hp": 12,
    })
    llm.chunks = ["A dart whistles past. ", "[DAMAGE: Borin, 3]", " You hear laughter."]

    outcome = await borin.submit("I step forward")

    assert outcome.narration == "A dart whistles past. You hear laughter."
    assert outcome.dm_error is None
    assert [s.hp for s in await borin.party()] == [9]
    assert "[DAMAGE: Borin, 3]" in messages.list_messages(code)[-1].body


async def test_stream_dm_passes_raw_text(make_client, llm):
    astra = make_client()
    await astra.create_room("Astra")
    llm.chunks = ["Ouch. ", "[DAMAGE: Astra, 1]"]
    chunks = [c async for c in astra.stream_dm()]
    assert "".join(chunks) == "Ouch. [DAMAGE: Astra, 1]"
