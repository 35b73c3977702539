import asyncio
from collections import defaultdict
from datetime import timedelta
from typing import Any

from loguru import logger
from sqlalchemy import delete
from sqlmodel import col, func, select

from app.core.db import SessionFactory, get_session
from app.models.topic_message import TopicMessage
from app.repositories.protocols import TopicHandler
from app.utils.misc import get_utc_now


async def _deliver(handlers: list[TopicHandler], topic: str, payload: dict[str, Any]) -> None:
    for handler in handlers:
        try:
            await handler(payload)
        except Exception:
            logger.exception(f"Subscriber of {topic} failed")


class LocalTopic:
    """In-process pub/sub, for single-node deployments and tests."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[TopicHandler]] = defaultdict(list)

    async def publish(self, topic: str, payload: dict[str, Any]) -> None:
        await _deliver(list(self._handlers[topic]), topic, dict(payload))

    async def subscribe(self, topic: str, handler: TopicHandler) -> None:
        self._handlers[topic].append(handler)


class DatabaseTopic:
    """Pub/sub over the ``topic_messages`` table.

    Every node polls for rows newer than the last one it saw. Subscribers only
    receive messages published after the node started listening.
    """

    def __init__(
        self,
        session_factory: SessionFactory = get_session,
        *,
        poll_interval: float = 1.0,
        retention_seconds: int = 60 * 60,
    ) -> None:
        self._session_factory = session_factory
        self._poll_interval = poll_interval
        self._retention = timedelta(seconds=retention_seconds)
        self._handlers: dict[str, list[TopicHandler]] = defaultdict(list)
        self._cursor: int | None = None

    async def publish(self, topic: str, payload: dict[str, Any]) -> None:
        async with self._session_factory() as session:
            session.add(TopicMessage(topic=topic, payload=payload))
            await session.commit()

    async def subscribe(self, topic: str, handler: TopicHandler) -> None:
        self._handlers[topic].append(handler)

    async def poll_once(self) -> int:
        """Deliver messages published since the previous poll, returns how many.

        Delivery is best-effort: a row whose transaction commits after a higher
        id was already read falls behind the cursor and is never delivered.
        """
        async with self._session_factory() as session:
            if self._cursor is None:
                latest = await session.exec(select(func.max(TopicMessage.id)))
                self._cursor = latest.one() or 0
                return 0

            topics = [topic for topic, handlers in self._handlers.items() if handlers]
            if not topics:
                return 0

            result = await session.exec(
                select(TopicMessage)
                .where(col(TopicMessage.id) > self._cursor, col(TopicMessage.topic).in_(topics))
                .order_by(col(TopicMessage.id))
            )
            messages = result.all()

        for message in messages:
            self._cursor = message.id
            await _deliver(list(self._handlers[message.topic]), message.topic, message.payload)
        return len(messages)

    async def prune(self) -> None:
        async with self._session_factory() as session:
            await session.execute(
                delete(TopicMessage).where(
                    col(TopicMessage.created_at) < get_utc_now() - self._retention
                )
            )
            await session.commit()

    async def run(self) -> None:
        polls = 0
        while True:
            try:
                await self.poll_once()
                polls += 1
                if polls % 600 == 0:
                    await self.prune()
            except Exception:
                logger.exception("Polling topic messages failed")
            await asyncio.sleep(self._poll_interval)
