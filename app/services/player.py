from typing import Annotated, Any

from fastapi import Depends
from loguru import logger
from pydantic import ValidationError
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.db import get_db
from app.models.player import Player
from app.schemas.player import ItemInstance, PlayerCreate, PlayerItems, PlayerUpdate


class PlayerService:
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db)]) -> None:
        self.db = db

    async def get_player(self, player_id: int) -> Player | None:
        return await self.db.get(Player, player_id)

    async def create_player(self, data: PlayerCreate) -> Player | None:
        """Returns None when a player with the same id already exists."""
        if await self.get_player(data.id):
            return None

        player = Player.model_validate(data.model_dump())
        self.db.add(player)
        await self.db.commit()
        await self.db.refresh(player)
        logger.info(f"Created player {player.id}")
        return player

    async def update_player(self, player_id: int, data: PlayerUpdate) -> Player | None:
        player = await self.get_player(player_id)
        if not player:
            return None

        player.sqlmodel_update(data.model_dump(exclude_unset=True))
        self.db.add(player)
        await self.db.commit()
        await self.db.refresh(player)
        return player

    @staticmethod
    def get_items(player: Player) -> PlayerItems:
        """Owned counts and awarded instances, skipping entries that do not parse."""
        data: dict[str, Any] = player.data or {}

        raw_owned = data.get("items")
        owned = {
            name: count
            for name, count in (raw_owned.items() if isinstance(raw_owned, dict) else [])
            if isinstance(count, int) and not isinstance(count, bool)
        }

        instances: dict[str, ItemInstance] = {}
        raw_instances = data.get("item_instances")
        for instance_id, raw in (raw_instances.items() if isinstance(raw_instances, dict) else []):
            try:
                instances[instance_id] = ItemInstance.model_validate(raw)
            except ValidationError:
                logger.warning(f"Skipping malformed item instance {instance_id} of {player.id}")
        return PlayerItems(owned=owned, instances=instances)
