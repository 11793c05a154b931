"""Room lifecycle: code allocation, join/leave, leader settings, DM busy flag.

Lifecycle:
  create_room   → status "lobby", prolog message from "World", message_count 1
  join_room     → participant + "{name} joined the room." (max 4 present)
  leave_room    → idempotent; "{name} left the room."
  start_adventure (leader) → "lobby" → "playing", never back

Every mutation re-reads the room inside storage.transaction(code) instead of
trusting a copy fetched earlier, so concurrent joins and sends each see and
bump a consistent message_count.

DM busy flag: begin_dm_turn() sets dm_active and returns a new generation
number; end_dm_turn() clears the flag only while that generation is still
current. A DM turn that was overtaken by a newer one can neither append its
narration (see messages.send) nor unlock the room under the newer turn.
"""

import logging
import random

from dungeon_chat import storage
from dungeon_chat.errors import (
    AllocationError,
    AuthorizationError,
    CapacityError,
    NotFoundError,
    ValidationError,
)
from dungeon_chat.models import Participant, Room

logger = logging.getLogger(__name__)

CODE_LENGTH = 6
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # no I, O, 0, 1
CODE_ATTEMPTS = 5
MAX_PARTICIPANTS = 4

WORLD_SENDER = "World"
SYSTEM_SENDER = "System"

PROLOGS = [
    "The mists lift to reveal a forgotten vale of basalt spires and emberlit ruins.",
    "A silver storm hangs over the coast, and every wave whispers a name.",
    "Deep beneath the trade roads, a vault of singing stone wakes from its long sleep.",
    "The kingdom's last lighthouse burns green tonight, calling travelers toward the shoals.",
    "A city of brass gears turns for the first time in a century, and the streets hum.",
]

THREATS = [
    "A pact-bound warband marches under a broken banner.",
    "Something ancient stirs beneath the catacombs, rattling the saints' bones.",
    "A jealous archmage has sealed the sun in a mirrored sky.",
    "The forest has begun to move, one rooted step at a time.",
    "A masked tribunal searches for a stolen relic that can rewrite fate.",
]

HOOKS = [
    "A courier collapses at your feet with a map burned into their palm.",
    "The innkeeper offers you free rooms if you investigate the lights in the marsh.",
    "A child's song names each of you and the road you must walk.",
    "An old rival arrives with a sealed letter from the crown.",
    "A caravan master begs for protection on a cursed crossing.",
]


def normalize_code(code: str) -> str:
    return code.strip().upper()


def generate_room_code(rng: random.Random | None = None) -> str:
    rng = rng or random
    return "".join(rng.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def generate_prolog(rng: random.Random | None = None) -> str:
    """One opening paragraph: setting, threat, hook."""
    rng = rng or random
    return f"{rng.choice(PROLOGS)} {rng.choice(THREATS)} {rng.choice(HOOKS)}"


# ── Queries ──────────────────────────────────────────────────


def get_room(code: str) -> Room | None:
    return storage.get_room(normalize_code(code))


def require_room(code: str) -> Room:
    room = get_room(code)
    if room is None:
        raise NotFoundError("Room not found.")
    return room


def list_participants(code: str) -> list[Participant]:
    return storage.get_participants(normalize_code(code))


# ── Creation & presence ──────────────────────────────────────


def create_room(leader_name: str) -> Room:
    """Allocate a fresh code, create the room in the lobby and post the prolog."""
    leader_name = leader_name.strip()
    if not leader_name:
        raise ValidationError("Leader name is required.")

    for _ in range(CODE_ATTEMPTS):
        code = generate_room_code()
        with storage.transaction(code, create=True):
            if storage.room_exists(code):
                logger.debug("room code collision on %s", code)
                continue
            room = Room(code=code, leader_name=leader_name, created_at=storage.now_ms())
            storage.save_room(room)
            storage.insert_message(room, WORLD_SENDER, generate_prolog(), "system")
            logger.info("room %s created by %s", code, leader_name)
            return room

    raise AllocationError("Unable to allocate a room code. Try again.")


def join_room(code: str, player_name: str) -> Participant:
    code = normalize_code(code)
    player_name = player_name.strip()
    with storage.transaction(code):
        room = storage.get_room(code)
        if room is None:
            raise NotFoundError("Room not found.")
        participants = storage.get_participants(code)
        if len(participants) >= MAX_PARTICIPANTS:
            raise CapacityError("Room is full.")
        if not player_name:
            raise ValidationError("Player name is required.")

        participant = Participant(
            id=storage.new_id(),
            room_code=code,
            player_name=player_name,
            joined_at=storage.now_ms(),
        )
        participants.append(participant)
        storage.save_participants(code, participants)
        storage.insert_message(room, SYSTEM_SENDER, f"{player_name} joined the room.", "system")

    logger.info("%s joined room %s (%d present)", player_name, code, len(participants))
    return participant


def leave_room(participant_id: str) -> None:
    """Remove a participant. Unknown or already-removed ids are ignored."""
    participant = storage.find_participant(participant_id)
    if participant is None:
        return

    code = participant.room_code
    with storage.transaction(code):
        participants = storage.get_participants(code)
        remaining = [p for p in participants if p.id != participant_id]
        if len(remaining) == len(participants):
            return  # lost a race with another cleanup call
        storage.save_participants(code, remaining)

        room = storage.get_room(code)
        if room is None:
            return
        storage.insert_message(
            room, SYSTEM_SENDER, f"{participant.player_name} left the room.", "system"
        )

    logger.info("%s left room %s", participant.player_name, code)


# ── Leader actions ───────────────────────────────────────────


def _require_leader(room: Room, leader_name: str, action: str) -> None:
    if room.leader_name != leader_name:
        raise AuthorizationError(f"Only the party leader can {action}.")


def set_turn_mode(code: str, leader_name: str, enabled: bool) -> Room:
    code = normalize_code(code)
    with storage.transaction(code):
        room = require_room(code)
        _require_leader(room, leader_name, "change Turn Mode")
        room.turn_mode = enabled
        storage.save_room(room)
    return room


def start_adventure(code: str, leader_name: str) -> Room:
    """Move the room from lobby to playing. Calling it again changes nothing."""
    code = normalize_code(code)
    with storage.transaction(code):
        room = require_room(code)
        _require_leader(room, leader_name, "start the adventure")
        if room.status == "playing":
            return room
        room.status = "playing"
        storage.save_room(room)
    logger.info("room %s: adventure started", code)
    return room


def update_summary(code: str, summary: str, summary_count: int) -> Room:
    code = normalize_code(code)
    with storage.transaction(code):
        room = require_room(code)
        if summary_count < room.summary_count:
            logger.warning(
                "room %s: ignoring summary for count %d, already at %d",
                code, summary_count, room.summary_count,
            )
            return room
        room.summary = summary
        room.summary_count = summary_count
        storage.save_room(room)
    return room


# ── DM busy flag ─────────────────────────────────────────────


def set_dm_active(code: str, active: bool) -> Room:
    code = normalize_code(code)
    with storage.transaction(code):
        room = require_room(code)
        room.dm_active = active
        storage.save_room(room)
    return room


def begin_dm_turn(code: str) -> int:
    """Mark the DM as thinking and return this turn's generation number."""
    code = normalize_code(code)
    with storage.transaction(code):
        room = require_room(code)
        if room.dm_active:
            logger.warning("room %s: DM turn overlaps generation %d", code, room.dm_generation)
        room.dm_active = True
        room.dm_generation += 1
        storage.save_room(room)
        return room.dm_generation


def end_dm_turn(code: str, generation: int) -> bool:
    """Clear the busy flag if `generation` still owns it. Returns True if cleared."""
    code = normalize_code(code)
    with storage.transaction(code):
        room = storage.get_room(code)
        if room is None or room.dm_generation != generation:
            return False
        room.dm_active = False
        storage.save_room(room)
        return True
