"""Character sheet endpoints. Writes need an X-User-Id identity."""

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError

from dungeon_chat import characters
from dungeon_chat.models import Identity, draft_adapter

from .deps import get_identity
from .models import DamageBody

router = APIRouter()


def _draft(code: str, payload: dict[str, Any]) -> characters.Draft:
    """Validate a sheet body; the room code always comes from the URL."""
    try:
        return draft_adapter.validate_python({**payload, "roomCode": code})
    except PydanticValidationError as e:
        raise RequestValidationError(e.errors(include_url=False)) from e


@router.get("/rooms/{code}/players")
async def list_players(code: str, identity: Identity | None = Depends(get_identity)):
    """Every sheet in the room (signed-in callers only)."""
    return characters.list_by_room(identity, code)


@router.get("/rooms/{code}/party")
async def list_party(code: str):
    """Public party roster."""
    return characters.list_party(code)


@router.get("/rooms/{code}/players/me")
async def get_my_character(code: str, identity: Identity | None = Depends(get_identity)):
    """The caller's sheet in this room, or null."""
    return characters.get_my_character(identity, code)


@router.post("/rooms/{code}/players", status_code=201)
async def create_character(
    code: str,
    payload: dict[str, Any] = Body(...),
    identity: Identity | None = Depends(get_identity),
):
    """Create the caller's sheet. 409 if one exists already."""
    return characters.create_character(identity, _draft(code, payload))


@router.put("/rooms/{code}/players")
async def upsert_character(
    code: str,
    payload: dict[str, Any] = Body(...),
    identity: Identity | None = Depends(get_identity),
):
    """Create or replace the caller's sheet."""
    return characters.upsert_character(identity, _draft(code, payload))


@router.post("/rooms/{code}/players/damage")
async def apply_damage(
    code: str, body: DamageBody, identity: Identity | None = Depends(get_identity)
):
    """Reduce a player's hp by name, never below 0."""
    return characters.apply_damage_by_name(identity, code, body.player_name, body.amount)


@router.get("/players/mine")
async def list_mine(identity: Identity | None = Depends(get_identity)):
    """Every sheet the caller owns, across rooms."""
    return characters.list_mine(identity)
