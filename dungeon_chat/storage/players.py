"""Character sheet storage. One players.json list per room."""

from pathlib import Path

from dungeon_chat.models import LegacySheet, PointBuySheet, sheet_adapter

from .core import read_json, room_dir, rooms_dir, write_json

Sheet = PointBuySheet | LegacySheet


def _players_path(code: str) -> Path:
    return room_dir(code) / "players.json"


def get_players(code: str) -> list[Sheet]:
    """Load character sheets for a room. Returns [] if missing."""
    data = read_json(_players_path(code), default=[])
    return [sheet_adapter.validate_python(s) for s in data]


def save_player(sheet: Sheet) -> None:
    """Upsert a sheet by id."""
    sheets = get_players(sheet.room_code)
    for i, existing in enumerate(sheets):
        if existing.id == sheet.id:
            sheets[i] = sheet
            break
    else:
        sheets.append(sheet)
    write_json(_players_path(sheet.room_code), [s.model_dump() for s in sheets])


def get_players_by_user(user_id: str) -> list[Sheet]:
    """Every sheet owned by `user_id`, across rooms."""
    results = []
    for path in sorted(rooms_dir().glob("*/players.json")):
        for data in read_json(path, default=[]):
            if data.get("user_id") == user_id:
                results.append(sheet_adapter.validate_python(data))
    return results
