"""FastAPI API endpoints under /api.

Endpoint groups: health, rooms (create/join/leave/turn mode/start),
messages, players (character sheets), and the AI endpoints (dm, summary,
character-details). Everything room-scoped is nested under
/api/rooms/{code}/. Request and response JSON uses camelCase keys.

Errors from game operations (dungeon_chat.errors) are rendered as plain
text with their status code by the handler registered in app.py.
"""

from fastapi import APIRouter

from .ai import router as ai_router
from .health import router as health_router
from .messages import router as messages_router
from .players import router as players_router
from .rooms import router as rooms_router

router = APIRouter()
router.include_router(health_router)
router.include_router(rooms_router)
router.include_router(messages_router)
router.include_router(players_router)
router.include_router(ai_router)
