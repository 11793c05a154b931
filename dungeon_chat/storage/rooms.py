"""Room document storage."""

from dungeon_chat.models import Room

from .core import read_json, room_dir, room_path, rooms_dir, write_json


def room_exists(code: str) -> bool:
    return room_path(code).is_file()


def get_room(code: str) -> Room | None:
    data = read_json(room_path(code))
    if data is None:
        return None
    return Room.model_validate(data)


def save_room(room: Room) -> None:
    """Write the room document, creating its child directory on first save."""
    room_dir(room.code).mkdir(exist_ok=True)
    write_json(room_path(room.code), room.model_dump())


def list_room_codes() -> list[str]:
    return sorted(path.stem for path in rooms_dir().glob("*.json"))
