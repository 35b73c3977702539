from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import col, select

from app.core.db import SessionFactory, get_session
from app.models.roll_pity import RollPity
from app.models.roll_record import RollRecord
from app.schemas.pity import PitySnapshot
from app.utils.misc import get_utc_now


class DatabaseProgressionStore:
    def __init__(self, session_factory: SessionFactory = get_session) -> None:
        self._session_factory = session_factory

    @staticmethod
    def _where(player_id: int, crate_type: str) -> tuple:
        return (col(RollPity.player_id) == player_id, col(RollPity.crate_type) == crate_type)

    async def ensure_record(self, player_id: int, crate_type: str) -> None:
        async with self._session_factory() as session:
            result = await session.exec(select(RollPity).where(*self._where(player_id, crate_type)))
            if result.first():
                return

            session.add(RollPity(player_id=player_id, crate_type=crate_type, counters={}))
            try:
                await session.commit()
            except IntegrityError:
                # Created by a concurrent roll on another node
                await session.rollback()

    async def read_snapshot(self, player_id: int, crate_type: str) -> PitySnapshot:
        async with self._session_factory() as session:
            result = await session.exec(select(RollPity).where(*self._where(player_id, crate_type)))
            pity = result.first()

        if not pity:
            return PitySnapshot()
        counters = {int(rank): int(count) for rank, count in (pity.counters or {}).items()}
        return PitySnapshot(counters=counters, version=pity.version)

    async def record_roll(self, player_id: int, crate_type: str, won_rank: int) -> None:
        async with self._session_factory() as session:
            session.add(RollRecord(player_id=player_id, crate_type=crate_type, won_rank=won_rank))
            await session.commit()

    async def commit(self, player_id: int, crate_type: str, snapshot: PitySnapshot) -> bool:
        counters = {str(rank): count for rank, count in snapshot.counters.items()}
        async with self._session_factory() as session:
            result = await session.execute(
                update(RollPity)
                .where(
                    *self._where(player_id, crate_type),
                    col(RollPity.version) == snapshot.version,
                )
                .values(counters=counters, version=snapshot.version + 1, updated_at=get_utc_now())
            )
            await session.commit()
        return result.rowcount == 1
