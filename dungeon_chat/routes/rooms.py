"""Room lifecycle endpoints: create, join, leave, leader settings."""

from fastapi import APIRouter, Response

from dungeon_chat import rooms

from .models import CreateRoom, JoinRoom, LeaderAction, TurnModeBody

router = APIRouter()


@router.post("/rooms", status_code=201)
async def create_room(body: CreateRoom):
    """Create a room in the lobby with a fresh 6-character code."""
    return rooms.create_room(body.leader_name)


@router.get("/rooms/{code}")
async def get_room(code: str):
    """Get a room by code (case-insensitive)."""
    return rooms.require_room(code)


@router.post("/rooms/{code}/join", status_code=201)
async def join_room(code: str, body: JoinRoom):
    """Join a room. At most 4 participants at a time."""
    participant = rooms.join_room(code, body.player_name)
    return {"participantId": participant.id, "roomCode": participant.room_code}


@router.get("/rooms/{code}/participants")
async def list_participants(code: str):
    """Participants currently present in a room."""
    rooms.require_room(code)
    return rooms.list_participants(code)


@router.delete("/participants/{participant_id}", status_code=204)
async def leave_room(participant_id: str):
    """Leave a room. Repeated calls are harmless."""
    rooms.leave_room(participant_id)
    return Response(status_code=204)


@router.put("/rooms/{code}/turn-mode")
async def set_turn_mode(code: str, body: TurnModeBody):
    """Leader toggles Turn Mode."""
    return rooms.set_turn_mode(code, body.leader_name, body.enabled)


@router.post("/rooms/{code}/start")
async def start_adventure(code: str, body: LeaderAction):
    """Leader moves the room from lobby to playing."""
    return rooms.start_adventure(code, body.leader_name)
