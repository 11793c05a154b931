"""Participant (presence) storage per room."""

from pathlib import Path

from dungeon_chat.models import Participant

from .core import read_json, room_dir, rooms_dir, write_json


def _participants_path(code: str) -> Path:
    return room_dir(code) / "participants.json"


def get_participants(code: str) -> list[Participant]:
    """Load participants for a room, oldest first. Returns [] if none."""
    data = read_json(_participants_path(code), default=[])
    return [Participant.model_validate(p) for p in data]


def save_participants(code: str, participants: list[Participant]) -> None:
    write_json(_participants_path(code), [p.model_dump() for p in participants])


def find_participant(participant_id: str) -> Participant | None:
    """Look a participant up by id across every room."""
    for path in rooms_dir().glob("*/participants.json"):
        for data in read_json(path, default=[]):
            if data.get("id") == participant_id:
                return Participant.model_validate(data)
    return None
