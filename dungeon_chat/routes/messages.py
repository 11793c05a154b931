"""Message log endpoints."""

from fastapi import APIRouter

from dungeon_chat import messages, rooms

from .models import SendMessage

router = APIRouter()


@router.get("/rooms/{code}/messages")
async def list_messages(code: str, recent: int | None = None):
    """Message history, oldest first. `recent=N` returns only the last N."""
    rooms.require_room(code)
    if recent is not None:
        return messages.list_recent_limit(code, recent)
    return messages.list_messages(code)


@router.post("/rooms/{code}/messages")
async def send_message(code: str, body: SendMessage):
    """Append a chat or system message. Reports whether a summary is due."""
    return messages.send(code, body.player_name, body.body, body.kind)
