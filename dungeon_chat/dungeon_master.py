"""Dungeon Master responder: streams AI narration into a room.

Turn flow:
  1. prepare(): validate the request, read the last 10 messages, the party
     roster and the room; build the system prompt (persona template with the
     party and campaign summaries) and the role-tagged transcript.
  2. stream(): begin_dm_turn() marks the room busy and hands out a
     generation number. A background task streams tokens from the LLM into a
     queue; the caller receives each token as it arrives.
  3. When the model finishes, non-blank text is appended to the log as
     "Dungeon Master" (fenced by the generation), damage directives in it are
     applied to the party, and the chronicler runs if the send crossed a
     summary threshold.
  4. end_dm_turn() always runs afterwards, on success or failure, so a room
     is never left locked. Errors reach the caller only after that.

The background task keeps going if the caller stops reading (client
disconnect); there is no server-side cancellation.

Transcript mapping: sender "Dungeon Master" → assistant role, everything else
→ user role as "{sender}: {body}", with system-kind entries (joins, rolls)
labelled "System Event".
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from dungeon_chat import characters, messages, rooms
from dungeon_chat.errors import NotFoundError, ValidationError
from dungeon_chat.llm import LLM, ChatMessage
from dungeon_chat.models import Identity, LegacySheet, Message, Room, SendResult
from dungeon_chat.prompts import build_dm_system_prompt
from dungeon_chat.summarizer import summarize_room, transcript_line

logger = logging.getLogger(__name__)

DM_SENDER = "Dungeon Master"
DM_IDENTITY = Identity(subject="dungeon-master")
NO_PARTY = "No character sheets yet"
NO_SUMMARY = "No campaign summary yet"

_DONE = object()

# strong references so running turns are not garbage-collected mid-stream
_background: set[asyncio.Task] = set()


@dataclass
class DMTurn:
    room_code: str
    player_name: str
    system: str
    messages: list[ChatMessage] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Prompt context
# ---------------------------------------------------------------------------

def _inventory(sheet: characters.Sheet) -> str:
    if isinstance(sheet, LegacySheet):
        return sheet.inventory
    return ", ".join(item.name for item in sheet.equipment if item.name)


def party_summary(sheets: list[characters.Sheet]) -> str:
    if not sheets:
        return NO_PARTY
    return "; ".join(
        f"{s.player_name} the {s.class_name} (HP {s.hp}, inventory: {_inventory(s) or 'empty'})"
        for s in sheets
    )


def party_json(sheets: list[characters.Sheet]) -> str:
    return json.dumps([{"name": s.player_name, "class": s.class_name, "hp": s.hp} for s in sheets])


def campaign_summary(room: Room) -> str:
    return room.summary.strip() or NO_SUMMARY


def to_chat_messages(history: list[Message]) -> list[ChatMessage]:
    return [
        {
            "role": "assistant" if m.player_name == DM_SENDER else "user",
            "content": transcript_line(m),
        }
        for m in history
    ]


# ---------------------------------------------------------------------------
# Responder
# ---------------------------------------------------------------------------

class DungeonMaster:
    """Generates DM narration for a room with the injected LLM."""

    def __init__(self, llm: LLM) -> None:
        self._llm = llm

    def prepare(self, room_code: str, player_name: str, prompt: str | None = None) -> DMTurn:
        """Validate the request and build everything the model needs."""
        room_code = (room_code or "").strip()
        player_name = (player_name or "").strip()
        if not room_code or not player_name:
            raise ValidationError("Missing roomCode or playerName")

        room = rooms.get_room(room_code)
        if room is None:
            raise NotFoundError("Room not found.")
        history = messages.list_recent(room.code)
        party = characters.list_party(room.code)

        system = build_dm_system_prompt(party_summary(party), campaign_summary(room), party_json(party))
        chat = to_chat_messages(history)
        if prompt and prompt.strip():
            chat.append({"role": "user", "content": prompt.strip()})

        return DMTurn(room_code=room.code, player_name=player_name, system=system, messages=chat)

    async def stream(self, turn: DMTurn) -> AsyncIterator[str]:
        """Yield narration tokens as the model produces them."""
        generation = rooms.begin_dm_turn(turn.room_code)
        logger.info("room %s: DM turn %d for %s", turn.room_code, generation, turn.player_name)

        queue: asyncio.Queue = asyncio.Queue()
        task = asyncio.create_task(self._generate(turn, generation, queue))
        _background.add(task)
        task.add_done_callback(_background.discard)

        while True:
            item = await queue.get()
            if item is _DONE:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    async def respond(self, room_code: str, player_name: str, prompt: str | None = None) -> AsyncIterator[str]:
        turn = self.prepare(room_code, player_name, prompt)
        async for token in self.stream(turn):
            yield token

    async def _generate(self, turn: DMTurn, generation: int, queue: asyncio.Queue) -> None:
        error: Exception | None = None
        try:
            parts: list[str] = []
            async for token in self._llm.stream("dungeon_master", turn.system, turn.messages):
                parts.append(token)
                queue.put_nowait(token)
            await self._finish(turn, generation, "".join(parts))
        except Exception as e:
            logger.warning("room %s: DM turn %d failed: %s", turn.room_code, generation, e)
            error = e
        finally:
            rooms.end_dm_turn(turn.room_code, generation)
            if error is not None:
                queue.put_nowait(error)
            queue.put_nowait(_DONE)

    async def _finish(self, turn: DMTurn, generation: int, text: str) -> SendResult | None:
        """Store the narration, apply its damage tags, summarise if due."""
        if not text.strip():
            logger.info("room %s: DM turn %d produced no text", turn.room_code, generation)
            return None

        result = messages.send(turn.room_code, DM_SENDER, text, dm_generation=generation)
        if result.message is None:
            return result

        for tag in characters.parse_damage_tags(result.message.body):
            try:
                characters.apply_damage_by_name(DM_IDENTITY, turn.room_code, tag.target, tag.amount)
            except NotFoundError:
                logger.warning("room %s: damage tag names unknown player %r", turn.room_code, tag.target)

        if result.needs_summary:
            await summarize_room(turn.room_code, self._llm)
        return result
