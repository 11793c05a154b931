"""Message log: sending, windowed reads and the summarisation threshold."""

import logging

from dungeon_chat import storage
from dungeon_chat.errors import NotFoundError, ValidationError
from dungeon_chat.models import Message, SendResult
from dungeon_chat.rooms import normalize_code

logger = logging.getLogger(__name__)

SUMMARY_INTERVAL = 20
RECENT_LIMIT = 10
MESSAGE_KINDS = ("chat", "system")


def needs_summary(message_count: int, summary_count: int) -> bool:
    """True when the count sits on a multiple of 20 not yet summarised."""
    return message_count % SUMMARY_INTERVAL == 0 and message_count > summary_count


def send(
    room_code: str,
    player_name: str,
    body: str,
    kind: str = "chat",
    dm_generation: int | None = None,
) -> SendResult:
    """Append a message to the room log.

    Blank bodies are dropped without touching the log. With `dm_generation`
    set, the write only happens if no newer DM turn has begun since.
    """
    if kind not in MESSAGE_KINDS:
        raise ValidationError(f"Unknown message kind {kind!r}.")
    code = normalize_code(room_code)

    with storage.transaction(code):
        room = storage.get_room(code)
        if room is None:
            raise NotFoundError("Room not found.")

        body = body.strip()
        if not body:
            return SendResult(message_count=room.message_count)

        if dm_generation is not None and dm_generation != room.dm_generation:
            logger.warning(
                "room %s: dropping stale DM narration (generation %d, current %d)",
                code, dm_generation, room.dm_generation,
            )
            return SendResult(message_count=room.message_count, stale=True)

        message = storage.insert_message(room, player_name.strip(), body, kind)

    return SendResult(
        message_count=room.message_count,
        needs_summary=needs_summary(room.message_count, room.summary_count),
        message=message,
    )


def list_messages(room_code: str) -> list[Message]:
    return storage.get_messages(normalize_code(room_code))


def list_recent_limit(room_code: str, limit: int) -> list[Message]:
    """The last `limit` messages, oldest first."""
    if limit <= 0:
        return []
    newest_first = list(reversed(list_messages(room_code)))
    tail = newest_first[:limit]
    tail.reverse()
    return tail


def list_recent(room_code: str) -> list[Message]:
    return list_recent_limit(room_code, RECENT_LIMIT)
