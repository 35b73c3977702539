from collections.abc import Mapping
from datetime import timedelta
from typing import Any

from loguru import logger
from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import col, select

from app.core.db import SessionFactory, get_session
from app.models.active_roll import ActiveRoll
from app.models.roll_token import RollToken
from app.utils.misc import get_utc_now


class DatabaseTokenService:
    """Single-use admission tokens keyed by (player, request id)."""

    def __init__(self, session_factory: SessionFactory = get_session) -> None:
        self._session_factory = session_factory

    async def issue(
        self, player_id: int, request_id: str, meta: Mapping[str, Any], *, ttl_seconds: int
    ) -> RollToken:
        token = RollToken(
            player_id=player_id,
            request_id=request_id,
            meta=dict(meta),
            expires_at=get_utc_now() + timedelta(seconds=ttl_seconds),
        )
        async with self._session_factory() as session:
            session.add(token)
            await session.commit()
            await session.refresh(token)
        logger.debug(f"Issued roll token for player {player_id}: {request_id}")
        return token

    async def consume(self, player_id: int, request_id: str) -> Mapping[str, Any] | None:
        where = (
            col(RollToken.player_id) == player_id,
            col(RollToken.request_id) == request_id,
        )
        async with self._session_factory() as session:
            # The conditional update is the gate: only one caller can flip `used`
            result = await session.execute(
                update(RollToken)
                .where(
                    *where,
                    col(RollToken.used) == False,  # noqa: E712
                    col(RollToken.expires_at) > get_utc_now(),
                )
                .values(used=True, updated_at=get_utc_now())
            )
            await session.commit()
            if result.rowcount != 1:
                return None

            token = (await session.exec(select(RollToken).where(*where))).first()
        return dict(token.meta or {}) if token else {}


class DatabaseActiveRollLimiter:
    """At most one in-flight roll per player, shared by every node.

    A slot is leased for ``lease_seconds``. A slot whose lease ran out (its
    node died before releasing it) is taken over by the next roll.
    """

    def __init__(
        self, session_factory: SessionFactory = get_session, *, lease_seconds: float = 60.0
    ) -> None:
        self._session_factory = session_factory
        self._lease = timedelta(seconds=lease_seconds)

    async def start(self, player_id: int, request_id: str) -> bool:
        now = get_utc_now()
        async with self._session_factory() as session:
            session.add(
                ActiveRoll(player_id=player_id, request_id=request_id, expires_at=now + self._lease)
            )
            try:
                await session.commit()
                return True
            except IntegrityError:
                await session.rollback()

            result = await session.execute(
                update(ActiveRoll)
                .where(col(ActiveRoll.player_id) == player_id, col(ActiveRoll.expires_at) <= now)
                .values(request_id=request_id, expires_at=now + self._lease, updated_at=now)
            )
            await session.commit()

        if result.rowcount != 1:
            return False
        logger.warning(f"Took over a stale roll slot of player {player_id} for {request_id}")
        return True

    async def finish(self, player_id: int, request_id: str) -> None:
        async with self._session_factory() as session:
            await session.execute(
                delete(ActiveRoll).where(
                    col(ActiveRoll.player_id) == player_id,
                    col(ActiveRoll.request_id) == request_id,
                )
            )
            await session.commit()
