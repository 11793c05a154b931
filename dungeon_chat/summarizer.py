"""Running campaign summary, regenerated every 20 messages.

summarize_room() is the authoritative idempotence guard: it re-reads the room
and does nothing unless message_count >= 20 and message_count > summary_count,
whatever the caller's needs_summary hint said. The count observed at the
start is what gets written back, so messages arriving mid-call push the room
past the next threshold instead of being silently marked as summarised.

Concurrent calls for one room collapse: while a chronicler call is
outstanding in this process, further calls return None without asking the
model again.

LLM errors propagate. The room is only patched after a non-empty completion.
"""

import logging

from dungeon_chat import messages, rooms
from dungeon_chat.llm import LLM
from dungeon_chat.models import Message
from dungeon_chat.prompts import SUMMARY_SYSTEM, build_summary_prompt

logger = logging.getLogger(__name__)

SUMMARY_WINDOW = 20
SYSTEM_EVENT_PREFIX = "System Event"

# rooms with a chronicler call outstanding in this process
_in_flight: set[str] = set()


def transcript_line(message: Message) -> str:
    prefix = SYSTEM_EVENT_PREFIX if message.kind == "system" else message.player_name
    return f"{prefix}: {message.body}"


async def summarize_room(room_code: str, llm: LLM) -> str | None:
    """Regenerate the room summary if a threshold is pending. Returns the new summary."""
    room = rooms.get_room(room_code)
    if room is None:
        return None
    if room.message_count < messages.SUMMARY_INTERVAL or room.message_count <= room.summary_count:
        return None

    if room.code in _in_flight:
        logger.debug("room %s: summary already in progress", room.code)
        return None

    observed_count = room.message_count
    history = messages.list_recent_limit(room.code, SUMMARY_WINDOW)
    prompt = build_summary_prompt(room.summary, [transcript_line(m) for m in history])

    _in_flight.add(room.code)
    try:
        text = await llm.complete("summary", SUMMARY_SYSTEM, [{"role": "user", "content": prompt}])
    finally:
        _in_flight.discard(room.code)
    summary = text.strip()
    if not summary:
        logger.warning("room %s: chronicler returned nothing, summary unchanged", room.code)
        return None

    rooms.update_summary(room.code, summary, observed_count)
    logger.info("room %s: summary regenerated at message %d", room.code, observed_count)
    return summary
