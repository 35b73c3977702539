from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import col, select

from app.core.db import SessionFactory, get_session
from app.models.item_count import ItemCount
from app.models.item_discovery import ItemDiscovery


class DatabaseDiscoveryIndex:
    def __init__(self, session_factory: SessionFactory = get_session) -> None:
        self._session_factory = session_factory

    async def mark_discovered(self, player_id: int, crate_type: str, item_name: str) -> None:
        async with self._session_factory() as session:
            result = await session.exec(
                select(ItemDiscovery).where(
                    ItemDiscovery.player_id == player_id,
                    ItemDiscovery.crate_type == crate_type,
                    ItemDiscovery.item_name == item_name,
                )
            )
            if result.first():
                return

            session.add(
                ItemDiscovery(player_id=player_id, crate_type=crate_type, item_name=item_name)
            )
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()


class DatabaseGlobalCounter:
    def __init__(self, session_factory: SessionFactory = get_session) -> None:
        self._session_factory = session_factory

    async def increment(self, item_name: str, delta: int) -> None:
        async with self._session_factory() as session:
            result = await session.execute(
                update(ItemCount)
                .where(col(ItemCount.item_name) == item_name)
                .values(count=col(ItemCount.count) + delta)
            )
            if result.rowcount == 0:
                session.add(ItemCount(item_name=item_name, count=delta))
            await session.commit()
