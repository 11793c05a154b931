"""File-based JSON document store, one directory tree per room.

Data layout:
  data/
    rooms/
      <CODE>.json          Room document (leader, status, counters, summary)
      <CODE>/              Room-scoped collections:
        participants.json  Present participants (max 4)
        players.json       Character sheets, one per (room, user)
        messages.json      Append-only message log

Every room-scoped access path starts from the room code, so the directory is
the index. Mutations run inside transaction(code): a per-room re-entrant
lock that makes read-modify-write of the room document atomic in-process.
Writes go through a temp file + rename.
"""

# Re-export all public symbols so `from dungeon_chat import storage` is enough.

from .core import (  # noqa: F401
    data_dir,
    init_storage,
    new_id,
    now_ms,
    room_dir,
    rooms_dir,
    transaction,
)

from .rooms import (  # noqa: F401
    get_room,
    list_room_codes,
    room_exists,
    save_room,
)

from .participants import (  # noqa: F401
    find_participant,
    get_participants,
    save_participants,
)

from .players import (  # noqa: F401
    get_players,
    get_players_by_user,
    save_player,
)

from .messages import (  # noqa: F401
    get_messages,
    insert_message,
)
