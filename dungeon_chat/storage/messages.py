"""Message log storage (append-only list per room)."""

from pathlib import Path

from dungeon_chat.models import Message, MessageKind, Room

from .core import new_id, now_ms, read_json, room_dir, write_json
from .rooms import save_room


def _messages_path(code: str) -> Path:
    return room_dir(code) / "messages.json"


def get_messages(code: str) -> list[Message]:
    """Load a room's messages ordered by (created_at, seq). Returns [] if none."""
    data = read_json(_messages_path(code), default=[])
    messages = [Message.model_validate(m) for m in data]
    messages.sort(key=lambda m: (m.created_at, m.seq))
    return messages


def insert_message(room: Room, player_name: str, body: str, kind: MessageKind) -> Message:
    """Append a message and bump the room's counter in the same write cycle.

    Call inside storage.transaction(room.code); `room` must be freshly read
    there, since its message_count is incremented and saved.
    """
    room.message_count += 1
    message = Message(
        id=new_id(),
        room_code=room.code,
        player_name=player_name,
        kind=kind,
        body=body,
        created_at=now_ms(),
        seq=room.message_count,
    )
    path = _messages_path(room.code)
    existing = read_json(path, default=[])
    existing.append(message.model_dump())
    write_json(path, existing)
    save_room(room)
    return message
