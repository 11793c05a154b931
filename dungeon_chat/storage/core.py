"""Storage initialization, path helpers, JSON I/O and per-room transactions."""

import json
import threading
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from dungeon_chat.errors import NotFoundError

_data_dir: Path | None = None

_locks: dict[str, threading.RLock] = {}
_locks_guard = threading.Lock()


def init_storage(data_dir: Path) -> None:
    global _data_dir
    _data_dir = data_dir
    _data_dir.mkdir(parents=True, exist_ok=True)
    rooms_dir().mkdir(exist_ok=True)


def data_dir() -> Path:
    assert _data_dir is not None, "Call init_storage() before using storage"
    return _data_dir


def rooms_dir() -> Path:
    return data_dir() / "rooms"


def room_dir(code: str) -> Path:
    return rooms_dir() / code


def room_path(code: str) -> Path:
    return rooms_dir() / f"{code}.json"


def read_json(path: Path, default: Any = None) -> Any:
    """Load a JSON document, or return `default` when the file is missing."""
    if not path.is_file():
        return default
    return json.loads(path.read_text())


def write_json(path: Path, data: Any) -> None:
    """Write via a temp file + rename so readers never see half a document."""
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, indent=2))
    tmp.replace(path)


@contextmanager
def transaction(code: str, *, create: bool = False) -> Iterator[None]:
    """Serialize read-modify-write cycles on one room's documents.

    Re-entrant, so helpers that open a transaction can be called from inside
    another one for the same room.

    Locks are only handed out for rooms that exist on disk, or with
    `create=True` for a code about to be claimed. Unknown codes raise
    NotFoundError without leaving a lock behind. The lock is registered
    before the room document is first written, so a room visible on disk
    always has its lock.
    """
    with _locks_guard:
        lock = _locks.get(code)
        if lock is None:
            if not create and not room_path(code).is_file():
                raise NotFoundError("Room not found.")
            lock = _locks[code] = threading.RLock()
    with lock:
        yield


def now_ms() -> float:
    return time.time() * 1000


def new_id() -> str:
    return uuid.uuid4().hex
