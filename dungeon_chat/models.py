"""Core domain models.

Rooms, participants, character sheets and messages are stored as JSON
documents and exchanged over the API as camelCase JSON. Pydantic handles
validation and serialisation at every data boundary.
"""

from __future__ import annotations

import math
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
)
from pydantic.alias_generators import to_camel

RoomStatus = Literal["lobby", "playing"]
MessageKind = Literal["chat", "system"]


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input, dumps camelCase over the API."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _floor_number(value: Any) -> Any:
    """Floor fractional numbers so int fields accept 7.9 as 7."""
    if isinstance(value, float) and math.isfinite(value):
        return math.floor(value)
    return value


FlooredInt = Annotated[int, BeforeValidator(_floor_number)]


class Identity(BaseModel):
    """An authenticated caller. `subject` is the stable user id."""

    subject: str


class Room(CamelModel):
    """A campaign session identified by a short code."""

    code: str
    leader_name: str
    status: RoomStatus = "lobby"
    turn_mode: bool = False
    dm_active: bool = False
    dm_generation: int = 0  # fencing token, bumped on every DM turn
    message_count: int = 0
    summary: str = ""
    summary_count: int = 0
    created_at: float = 0


class Participant(CamelModel):
    """Ephemeral presence record; distinct from a character sheet."""

    id: str
    room_code: str
    player_name: str
    joined_at: float


class Message(CamelModel):
    """A single entry in a room's append-only message log."""

    id: str
    room_code: str
    player_name: str  # player, or "System" | "World" | "Dungeon Master"
    kind: MessageKind = "chat"
    body: str
    created_at: float
    seq: int  # room message_count right after insert; tie-breaks created_at


class SendResult(CamelModel):
    message_count: int
    needs_summary: bool = False
    message: Message | None = None
    stale: bool = False  # fenced DM send rejected because a newer turn began


# ---------------------------------------------------------------------------
# Character sheets
# ---------------------------------------------------------------------------

class EquipmentItem(CamelModel):
    name: str
    type: str = ""
    quantity: FlooredInt = 1


class _SheetFields(CamelModel):
    room_code: str = ""  # routes fill it from the URL
    player_name: str  # display name shown at the table
    class_name: str = ""
    hp: FlooredInt = 0


class PointBuyDraft(_SheetFields):
    """Full six-ability sheet validated against the point-buy budget."""

    ruleset: Literal["point_buy"] = "point_buy"
    character_name: str = ""
    gender: str = ""
    race: str = ""
    stats: dict[str, int] = Field(default_factory=dict)
    status: str = ""
    skills: list[str] = Field(default_factory=list)
    backstory: str = ""
    equipment: list[EquipmentItem] = Field(default_factory=list)


class LegacyDraft(_SheetFields):
    """Early three-stat sheet with a free-text inventory."""

    ruleset: Literal["legacy"] = "legacy"
    strength: int = 10
    dexterity: int = 10
    intelligence: int = 10
    inventory: str = ""


class _Stored(CamelModel):
    id: str
    user_id: str
    updated_at: float


class PointBuySheet(PointBuyDraft, _Stored):
    pass


class LegacySheet(LegacyDraft, _Stored):
    pass


def _ruleset(value: Any) -> str:
    """Sheets without a ruleset tag are point-buy sheets."""
    if isinstance(value, dict):
        return value.get("ruleset", "point_buy")
    return getattr(value, "ruleset", "point_buy")


SheetDraft = Annotated[
    Union[Annotated[PointBuyDraft, Tag("point_buy")], Annotated[LegacyDraft, Tag("legacy")]],
    Discriminator(_ruleset),
]
CharacterSheet = Annotated[
    Union[Annotated[PointBuySheet, Tag("point_buy")], Annotated[LegacySheet, Tag("legacy")]],
    Discriminator(_ruleset),
]

sheet_adapter: TypeAdapter[PointBuySheet | LegacySheet] = TypeAdapter(CharacterSheet)
draft_adapter: TypeAdapter[PointBuyDraft | LegacyDraft] = TypeAdapter(SheetDraft)


class CharacterDetails(CamelModel):
    """AI-suggested backstory, skills and starting equipment."""

    backstory: str = ""
    skills: list[str] = Field(default_factory=list)
    equipment: list[EquipmentItem] = Field(default_factory=list)
