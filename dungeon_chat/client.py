"""Table client: one player's session against the HTTP API.

Mirrors what the browser does at the table:

    async with TableClient("http://localhost:13013", user_id="u-1") as table:
        await table.create_room("Astra")          # creates and joins
        outcome = await table.submit("I open the door")
        print(outcome.narration)

After every successful send the client asks the Dungeon Master to respond,
unless Turn Mode is on (then only the leader's end_turn() does), the DM is
already busy, or this session *is* the Dungeon Master. A DM failure is
recorded on the outcome instead of raised, since the message itself went
through. When the server says a summary threshold was crossed the client pokes
/summary either way.

Narration handed back by submit(), end_turn() and trigger_dm() has its damage
directives stripped; the server has already applied them.
"""

from __future__ import annotations

import logging
import random
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import httpx

from dungeon_chat.characters import strip_damage_tags
from dungeon_chat.dice import format_roll, parse_roll_command, roll_result
from dungeon_chat.dungeon_master import DM_SENDER
from dungeon_chat.errors import AuthorizationError, GameError, ValidationError
from dungeon_chat.models import Message, Participant, Room, SendResult, sheet_adapter

logger = logging.getLogger(__name__)


class ApiError(GameError):
    """The server rejected a request. The message is the server's own text."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class TurnOutcome:
    sent: SendResult | None = None
    narration: str | None = None  # None when the DM was not asked
    dm_error: str | None = None
    summarized: bool = False


class TableClient:
    def __init__(
        self,
        base_url: str = "http://localhost:13013",
        *,
        user_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 120.0,
        rng: random.Random | None = None,
    ) -> None:
        headers = {"X-User-Id": user_id} if user_id else {}
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/api",
            transport=transport,
            headers=headers,
            timeout=timeout,
        )
        self._rng = rng
        self.room_code: str | None = None
        self.player_name: str | None = None
        self.participant_id: str | None = None

    async def __aenter__(self) -> TableClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        resp = await self._http.request(method, path, **kwargs)
        if resp.is_error:
            raise ApiError(resp.status_code, resp.text or resp.reason_phrase)
        return resp

    def _require_seat(self) -> str:
        if not self.room_code or not self.player_name:
            raise ValidationError("Join a room first.")
        return self.room_code

    # ── Rooms ──────────────────────────────────────────────────

    async def create_room(self, leader_name: str) -> str:
        """Create a room and take the leader's seat in it. Returns the code."""
        resp = await self._request("POST", "/rooms", json={"leaderName": leader_name})
        room = Room.model_validate(resp.json())
        await self.join_room(room.code, leader_name)
        return room.code

    async def join_room(self, code: str, player_name: str) -> str:
        if not code.strip():
            raise ValidationError("Enter a room code.")
        resp = await self._request("POST", f"/rooms/{code.strip()}/join", json={"playerName": player_name})
        joined = resp.json()
        self.room_code = joined["roomCode"]
        self.participant_id = joined["participantId"]
        self.player_name = player_name.strip()
        logger.info("joined room %s as %s", self.room_code, self.player_name)
        return self.room_code

    async def leave(self) -> None:
        """Give up the seat. Safe to call twice."""
        if self.participant_id is None:
            return
        await self._request("DELETE", f"/participants/{self.participant_id}")
        self.participant_id = None
        self.room_code = None

    async def room(self) -> Room:
        resp = await self._request("GET", f"/rooms/{self._require_seat()}")
        return Room.model_validate(resp.json())

    async def participants(self) -> list[Participant]:
        resp = await self._request("GET", f"/rooms/{self._require_seat()}/participants")
        return [Participant.model_validate(p) for p in resp.json()]

    async def set_turn_mode(self, enabled: bool) -> Room:
        resp = await self._request(
            "PUT",
            f"/rooms/{self._require_seat()}/turn-mode",
            json={"leaderName": self.player_name, "enabled": enabled},
        )
        return Room.model_validate(resp.json())

    async def start_adventure(self) -> Room:
        resp = await self._request(
            "POST", f"/rooms/{self._require_seat()}/start", json={"leaderName": self.player_name}
        )
        return Room.model_validate(resp.json())

    # ── Messages ───────────────────────────────────────────────

    async def messages(self, recent: int | None = None) -> list[Message]:
        params = {"recent": recent} if recent is not None else None
        resp = await self._request("GET", f"/rooms/{self._require_seat()}/messages", params=params)
        return [Message.model_validate(m) for m in resp.json()]

    async def rolls(self) -> list[tuple[str, int]]:
        """(player, result) for every die roll in the log, oldest first."""
        found = []
        for message in await self.messages():
            if message.kind != "system":
                continue
            result = roll_result(message.body)
            if result is not None:
                found.append((message.player_name, result))
        return found

    async def submit(self, text: str) -> TurnOutcome:
        """Send chat text or a /roll command, then run the follow-up triggers.

        Bad roll syntax raises ValidationError before anything is sent.
        """
        code = self._require_seat()
        roll = parse_roll_command(text, self._rng)
        if roll is not None:
            body, kind = format_roll(*roll), "system"
        else:
            body, kind = text, "chat"
        if not body.strip():
            return TurnOutcome()

        resp = await self._request(
            "POST",
            f"/rooms/{code}/messages",
            json={"playerName": self.player_name, "body": body, "kind": kind},
        )
        outcome = TurnOutcome(sent=SendResult.model_validate(resp.json()))

        room = await self.room()
        if not room.turn_mode:
            try:
                outcome.narration = await self.trigger_dm(room=room)
            except (ApiError, httpx.TransportError) as e:
                logger.warning("room %s: the Dungeon Master is silent: %s", code, e)
                outcome.dm_error = str(e) or "The Dungeon Master is silent."
        if outcome.sent.needs_summary:
            outcome.summarized = await self.trigger_summary()
        return outcome

    # ── Dungeon Master ─────────────────────────────────────────

    async def end_turn(self) -> str | None:
        """Leader only, Turn Mode only: hand the table to the DM."""
        room = await self.room()
        if room.leader_name != self.player_name:
            raise AuthorizationError("Only the party leader can end the turn.")
        if not room.turn_mode:
            raise ValidationError("Turn Mode is off.")
        return await self.trigger_dm(room=room)

    async def trigger_dm(self, prompt: str | None = None, room: Room | None = None) -> str | None:
        """Collect a full DM reply as prose. None when the DM was not asked."""
        if self.player_name == DM_SENDER:
            return None
        room = room or await self.room()
        if room.dm_active:
            logger.info("room %s: DM already responding, not asking again", room.code)
            return None
        text = "".join([chunk async for chunk in self.stream_dm(prompt)])
        return strip_damage_tags(text)

    async def stream_dm(self, prompt: str | None = None) -> AsyncIterator[str]:
        """Yield the DM's raw narration as it arrives. A dropped connection ends it.

        Chunks are passed through untouched, damage directives included.
        """
        payload: dict[str, Any] = {"roomCode": self._require_seat(), "playerName": self.player_name}
        if prompt:
            payload["prompt"] = prompt
        try:
            async with self._http.stream("POST", "/dm", json=payload) as resp:
                if resp.is_error:
                    await resp.aread()
                    raise ApiError(resp.status_code, resp.text or "Failed to reach the Dungeon Master.")
                async for chunk in resp.aiter_text():
                    if chunk:
                        yield chunk
        except httpx.TransportError as e:
            logger.warning("DM stream ended early: %s", e)

    async def trigger_summary(self) -> bool:
        try:
            await self._request("POST", "/summary", json={"roomCode": self._require_seat()})
        except (ApiError, httpx.TransportError) as e:
            logger.warning("summary request failed: %s", e)
            return False
        return True

    # ── Character sheets ───────────────────────────────────────

    async def save_character(self, sheet: dict[str, Any]):
        """Create or replace this user's sheet in the current room."""
        resp = await self._request("PUT", f"/rooms/{self._require_seat()}/players", json=sheet)
        return sheet_adapter.validate_python(resp.json())

    async def party(self):
        resp = await self._request("GET", f"/rooms/{self._require_seat()}/party")
        return [sheet_adapter.validate_python(s) for s in resp.json()]
