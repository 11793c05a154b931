"""Pydantic request bodies for API endpoints. JSON keys are camelCase."""

from dungeon_chat.models import CamelModel


class CreateRoom(CamelModel):
    leader_name: str


class JoinRoom(CamelModel):
    player_name: str


class LeaderAction(CamelModel):
    leader_name: str


class TurnModeBody(CamelModel):
    leader_name: str
    enabled: bool


class SendMessage(CamelModel):
    player_name: str
    body: str
    kind: str = "chat"


class DamageBody(CamelModel):
    player_name: str
    amount: float


class DMBody(CamelModel):
    room_code: str | None = None
    player_name: str | None = None
    prompt: str | None = None


class SummaryBody(CamelModel):
    room_code: str | None = None


class CharacterDetailsBody(CamelModel):
    class_name: str | None = None
    race: str | None = None
