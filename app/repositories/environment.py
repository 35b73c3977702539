from app.core.db import SessionFactory, get_session
from app.models.environment import Environment


class NullEnvironmentLuck:
    """Used when the deployment has no environment luck system."""

    async def get_luck_multiplier(self, environment_id: str) -> float:  # noqa: ARG002
        return 1.0


class DatabaseEnvironmentLuck:
    def __init__(self, session_factory: SessionFactory = get_session) -> None:
        self._session_factory = session_factory

    async def get_luck_multiplier(self, environment_id: str) -> float:
        async with self._session_factory() as session:
            environment = await session.get(Environment, environment_id)
        if environment is None:
            raise LookupError(f"Unknown environment {environment_id!r}")
        return environment.luck_multiplier
