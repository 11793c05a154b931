"""Character sheets: point-buy validation, normalisation, damage.

Point-buy (ruleset "point_buy"):
  score  8  9 10 11 12 13 14 15
  cost   0  1  2  3  4  5  7  9
  Every one of str/dex/con/int/wis/cha must be in [8, 15] and the total cost
  must not exceed 27. Anything outside the table costs infinity.

Legacy sheets (ruleset "legacy") carry strength/dexterity/intelligence and a
free-text inventory; they skip point-buy and only need a display name.

Normalisation on every write: class defaults to "Adventurer"; hp floored and
clamped >= 0; skills trimmed, blanks dropped; equipment trimmed, quantity
floored and clamped >= 1.

Damage directives: the DM writes `[DAMAGE: Borin, 4]` into its narration.
parse_damage_tags() extracts them, strip_damage_tags() removes them for
display. They are applied server-side, once, when the narration is stored.
"""

import logging
import math
import random
import re
from dataclasses import dataclass

from dungeon_chat import storage
from dungeon_chat.errors import (
    AuthenticationError,
    DuplicateError,
    NotFoundError,
    StatBudgetError,
    ValidationError,
)
from dungeon_chat.models import (
    EquipmentItem,
    Identity,
    LegacyDraft,
    LegacySheet,
    PointBuyDraft,
    PointBuySheet,
)
from dungeon_chat.rooms import normalize_code

logger = logging.getLogger(__name__)

Sheet = PointBuySheet | LegacySheet
Draft = PointBuyDraft | LegacyDraft

STAT_KEYS = ("str", "dex", "con", "int", "wis", "cha")
POINT_BUY_COST = {8: 0, 9: 1, 10: 2, 11: 3, 12: 4, 13: 5, 14: 7, 15: 9}
POINT_BUY_BUDGET = 27
DEFAULT_CLASS = "Adventurer"

CHARACTER_CLASSES = ["Fighter", "Wizard", "Rogue", "Cleric", "Ranger", "Bard", "Paladin", "Druid"]

INVENTORY_SETS = [
    "Torch, rope, rations",
    "Herbal kit, compass, bedroll",
    "Throwing knives, lockpicks, smoke bomb",
    "Spellbook, ink, crystal focus",
    "Shield, whetstone, traveler's cloak",
    "Map case, chalk, grappling hook",
]

DAMAGE_TAG = re.compile(r"\[DAMAGE:\s*([^,\]]+?)\s*,\s*(\d+)\s*\]", re.IGNORECASE)


@dataclass
class DamageTag:
    target: str
    amount: int


# ── Point-buy ────────────────────────────────────────────────


def stat_cost(score: float) -> float:
    if not isinstance(score, int) or isinstance(score, bool):
        return math.inf
    return POINT_BUY_COST.get(score, math.inf)


def validate_point_buy(stats: dict[str, int]) -> tuple[float, bool]:
    """Return (total cost, every score in range). Missing stats count as invalid."""
    scores = [stats.get(key) for key in STAT_KEYS]
    total = sum(stat_cost(s) if s is not None else math.inf for s in scores)
    all_valid = all(isinstance(s, int) and 8 <= s <= 15 for s in scores)
    return total, all_valid


def point_buy_ok(stats: dict[str, int]) -> bool:
    total, all_valid = validate_point_buy(stats)
    return all_valid and total <= POINT_BUY_BUDGET


# ── Validation & normalisation ───────────────────────────────


def _require_identity(identity: Identity | None) -> Identity:
    if identity is None or not identity.subject:
        raise AuthenticationError("Not authenticated.")
    return identity


def _normalize(draft: Draft) -> Draft:
    """Validate a draft and return a cleaned copy. Raises on rule violations."""
    player_name = draft.player_name.strip()
    if not player_name:
        raise ValidationError("Player name is required.")

    updates: dict = {
        "room_code": normalize_code(draft.room_code),
        "player_name": player_name,
        "class_name": draft.class_name.strip() or DEFAULT_CLASS,
        "hp": max(0, math.floor(draft.hp)),
    }

    if isinstance(draft, PointBuyDraft):
        character_name = draft.character_name.strip()
        gender = draft.gender.strip()
        if not character_name:
            raise ValidationError("Character name is required.")
        if not gender:
            raise ValidationError("Gender is required.")
        if not point_buy_ok(draft.stats):
            raise StatBudgetError("Stats do not match the point buy rules.")
        updates.update(
            character_name=character_name,
            gender=gender,
            race=draft.race.strip(),
            stats={key: draft.stats[key] for key in STAT_KEYS},
            skills=[s.strip() for s in draft.skills if s.strip()],
            backstory=draft.backstory.strip(),
            equipment=[
                EquipmentItem(
                    name=item.name.strip(),
                    type=item.type.strip(),
                    quantity=max(1, math.floor(item.quantity)),
                )
                for item in draft.equipment
            ],
        )
    else:
        for field in ("strength", "dexterity", "intelligence"):
            updates[field] = max(0, getattr(draft, field))
        updates["inventory"] = draft.inventory.strip()

    return draft.model_copy(update=updates)


def _to_sheet(draft: Draft, sheet_id: str, user_id: str) -> Sheet:
    fields = {**draft.model_dump(), "id": sheet_id, "user_id": user_id, "updated_at": storage.now_ms()}
    if isinstance(draft, PointBuyDraft):
        return PointBuySheet.model_validate(fields)
    return LegacySheet.model_validate(fields)


def _find_by_user(code: str, user_id: str) -> Sheet | None:
    for sheet in storage.get_players(code):
        if sheet.user_id == user_id:
            return sheet
    return None


def _require_room(code: str) -> None:
    if not storage.room_exists(code):
        raise NotFoundError("Room not found.")


# ── Mutations ────────────────────────────────────────────────


def create_character(identity: Identity | None, draft: Draft) -> Sheet:
    """Create the caller's sheet for a room. Fails if they already have one."""
    identity = _require_identity(identity)
    draft = _normalize(draft)
    code = draft.room_code
    with storage.transaction(code):
        _require_room(code)
        if _find_by_user(code, identity.subject) is not None:
            raise DuplicateError("Character already exists.")
        sheet = _to_sheet(draft, storage.new_id(), identity.subject)
        storage.save_player(sheet)
    logger.info("room %s: sheet created for %s (%s)", code, sheet.player_name, sheet.ruleset)
    return sheet


def upsert_character(identity: Identity | None, draft: Draft) -> Sheet:
    """Create or replace the caller's sheet for a room, keeping its id."""
    identity = _require_identity(identity)
    draft = _normalize(draft)
    code = draft.room_code
    with storage.transaction(code):
        _require_room(code)
        existing = _find_by_user(code, identity.subject)
        sheet_id = existing.id if existing else storage.new_id()
        sheet = _to_sheet(draft, sheet_id, identity.subject)
        storage.save_player(sheet)
    return sheet


def apply_damage_by_name(
    identity: Identity | None, room_code: str, player_name: str, amount: float
) -> Sheet | None:
    """Subtract `amount` hp from the named sheet, never below 0.

    Returns None (and writes nothing) when the floored amount is 0.
    """
    _require_identity(identity)
    amount = max(0, math.floor(amount))
    if not amount:
        return None

    code = normalize_code(room_code)
    with storage.transaction(code):
        sheet = get_by_room_and_name(code, player_name)
        if sheet is None:
            raise NotFoundError("Player not found.")
        sheet = sheet.model_copy(update={
            "hp": max(0, sheet.hp - amount),
            "updated_at": storage.now_ms(),
        })
        storage.save_player(sheet)
    logger.info("room %s: %s takes %d damage (hp %d)", code, sheet.player_name, amount, sheet.hp)
    return sheet


# ── Queries ──────────────────────────────────────────────────


def list_party(room_code: str) -> list[Sheet]:
    """Every sheet in a room. Public: the DM and spectators read this."""
    return storage.get_players(normalize_code(room_code))


def list_by_room(identity: Identity | None, room_code: str) -> list[Sheet]:
    _require_identity(identity)
    return list_party(room_code)


def list_mine(identity: Identity | None) -> list[Sheet]:
    identity = _require_identity(identity)
    return storage.get_players_by_user(identity.subject)


def get_by_room_and_user(room_code: str, user_id: str) -> Sheet | None:
    return _find_by_user(normalize_code(room_code), user_id)


def get_my_character(identity: Identity | None, room_code: str) -> Sheet | None:
    """The caller's sheet, or None when signed out or not yet created."""
    if identity is None:
        return None
    return get_by_room_and_user(room_code, identity.subject)


def get_by_room_and_name(room_code: str, player_name: str) -> Sheet | None:
    """Match on display name, ignoring case and surrounding whitespace."""
    wanted = player_name.strip().casefold()
    for sheet in list_party(room_code):
        if sheet.player_name.casefold() == wanted:
            return sheet
    return None


# ── Damage directives ────────────────────────────────────────


def parse_damage_tags(text: str) -> list[DamageTag]:
    return [DamageTag(target=m.group(1).strip(), amount=int(m.group(2))) for m in DAMAGE_TAG.finditer(text)]


def strip_damage_tags(text: str) -> str:
    """Remove damage directives so only prose is shown."""
    cleaned = DAMAGE_TAG.sub("", text)
    return re.sub(r"[ \t]{2,}", " ", cleaned).strip()


# ── Random legacy character ──────────────────────────────────


def generate_legacy_character(rng: random.Random | None = None) -> dict:
    """Random class, hp 8-16 and an inventory set for quick-start sheets."""
    rng = rng or random
    return {
        "class_name": rng.choice(CHARACTER_CLASSES),
        "hp": rng.randint(8, 16),
        "inventory": rng.choice(INVENTORY_SETS),
    }
