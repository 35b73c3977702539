import copy
from collections.abc import Sequence
from typing import Any

from sqlalchemy.orm.attributes import flag_modified

from app.core.db import SessionFactory, get_session
from app.models.player import Player


class PlayerNotReadyError(Exception):
    def __init__(self, player_id: int) -> None:
        super().__init__(f"Player {player_id} record is not ready")
        self.player_id = player_id


def set_nested(data: dict[str, Any], path: Sequence[str], value: Any) -> dict[str, Any]:
    """Return a copy of ``data`` with ``value`` written at ``path``.

    Intermediate keys that are missing or hold a non-mapping are replaced by
    empty mappings so readers never hit a half-built path.
    """
    if not path:
        raise ValueError("Key path must not be empty")

    updated = copy.deepcopy(data)
    current = updated
    for key in path[:-1]:
        child = current.get(key)
        if not isinstance(child, dict):
            child = {}
            current[key] = child
        current = child
    current[path[-1]] = value
    return updated


class DatabasePlayerRecordStore:
    def __init__(self, session_factory: SessionFactory = get_session) -> None:
        self._session_factory = session_factory

    async def is_ready(self, player_id: int) -> bool:
        player = await self.get_record(player_id)
        return bool(player and player.is_ready)

    async def get_record(self, player_id: int) -> Player | None:
        async with self._session_factory() as session:
            return await session.get(Player, player_id)

    async def set_key(self, player_id: int, path: Sequence[str], value: Any) -> None:
        async with self._session_factory() as session:
            player = await session.get(Player, player_id)
            if not player or not player.is_ready:
                raise PlayerNotReadyError(player_id)

            player.data = set_nested(player.data or {}, path, value)
            flag_modified(player, "data")
            session.add(player)
            await session.commit()
