import time
from datetime import timedelta
from typing import Any

from sqlmodel import col, select

from app.core.db import SessionFactory, get_session
from app.models.shared_value import SharedValue
from app.utils.misc import get_utc_now


class DatabaseSharedStore:
    def __init__(self, session_factory: SessionFactory = get_session) -> None:
        self._session_factory = session_factory

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        expires_at = get_utc_now() + timedelta(seconds=ttl_seconds)
        async with self._session_factory() as session:
            existing = await session.get(SharedValue, key)
            if existing:
                existing.value = value
                existing.expires_at = expires_at
                session.add(existing)
            else:
                session.add(SharedValue(key=key, value=value, expires_at=expires_at))
            await session.commit()

    async def get(self, key: str) -> dict[str, Any] | None:
        async with self._session_factory() as session:
            result = await session.exec(
                select(SharedValue).where(
                    col(SharedValue.key) == key, col(SharedValue.expires_at) > get_utc_now()
                )
            )
            row = result.first()
        return dict(row.value) if row else None


class MemorySharedStore:
    """Single-node stand-in for the shared store."""

    def __init__(self) -> None:
        self._values: dict[str, tuple[dict[str, Any], float]] = {}

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        self._values[key] = (dict(value), time.monotonic() + ttl_seconds)

    async def get(self, key: str) -> dict[str, Any] | None:
        entry = self._values.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if time.monotonic() >= expires_at:
            del self._values[key]
            return None
        return dict(value)
