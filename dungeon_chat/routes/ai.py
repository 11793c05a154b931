"""AI endpoints: Dungeon Master stream, summary trigger, character details."""

import logging

from fastapi import APIRouter, Request, Response
from fastapi.responses import PlainTextResponse, StreamingResponse

from dungeon_chat.character_details import DetailsParseError, generate_character_details
from dungeon_chat.dungeon_master import DungeonMaster
from dungeon_chat.errors import ValidationError
from dungeon_chat.llm import LLMError
from dungeon_chat.summarizer import summarize_room

from .deps import require_llm
from .models import CharacterDetailsBody, DMBody, SummaryBody

logger = logging.getLogger(__name__)

router = APIRouter()

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


@router.post("/dm")
async def dungeon_master(body: DMBody, request: Request):
    """Stream the DM's reply as plain text. The reply is stored when complete."""
    if not body.room_code or not body.player_name:
        raise ValidationError("Missing roomCode or playerName")
    dm = DungeonMaster(require_llm(request))
    turn = dm.prepare(body.room_code, body.player_name, body.prompt)
    tokens = dm.stream(turn)

    # Wait for the first token so a dead backend still gets a proper status.
    try:
        first = await anext(tokens)
    except StopAsyncIteration:
        first = ""
    except LLMError as e:
        return PlainTextResponse(f"DM request failed: {e}", status_code=502)

    async def body_stream():
        if first:
            yield first
        try:
            async for token in tokens:
                yield token
        except LLMError as e:
            # headers are gone already; the reader just sees the text end
            logger.warning("room %s: DM stream cut short: %s", turn.room_code, e)

    return StreamingResponse(
        body_stream(), media_type="text/plain; charset=utf-8", headers=STREAM_HEADERS
    )


@router.post("/summary", status_code=204)
async def summary(body: SummaryBody, request: Request):
    """Regenerate the room summary if a threshold is pending. Always 204."""
    if not body.room_code:
        raise ValidationError("Missing roomCode")
    await summarize_room(body.room_code, require_llm(request))
    return Response(status_code=204)


@router.post("/character-details")
async def character_details(body: CharacterDetailsBody, request: Request):
    """Suggested backstory, 2 skills and 3 equipment items for a class/race."""
    if not body.class_name or not body.race:
        raise ValidationError("Missing class or race")
    try:
        return await generate_character_details(require_llm(request), body.class_name, body.race)
    except DetailsParseError as e:
        return PlainTextResponse(str(e), status_code=500)
