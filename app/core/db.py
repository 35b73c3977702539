from collections.abc import AsyncGenerator, Callable

from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import settings

engine = create_async_engine(settings.db_url)

type SessionFactory = Callable[[], AsyncSession]


def get_session() -> AsyncSession:
    """New session, for request handlers and for process-wide collaborators alike."""
    return AsyncSession(engine, autoflush=False, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession]:
    async with get_session() as session:
        yield session
