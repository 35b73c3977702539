import time
from collections.abc import Awaitable, Callable, Hashable

from loguru import logger


class Unavailable:
    """Marker returned when a collaborator lookup failed or is not supported."""

    _instance: "Unavailable | None" = None

    def __new__(cls) -> "Unavailable":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNAVAILABLE"


UNAVAILABLE = Unavailable()

type Lookup[T] = T | Unavailable


async def guarded[T](call: Callable[[], Awaitable[T]], *, what: str) -> Lookup[T]:
    """Await a collaborator call, turning any failure into ``UNAVAILABLE``.

    The failure is logged so a degraded collaborator stays visible even though
    the caller substitutes a default and carries on.
    """
    try:
        return await call()
    except Exception as e:  # noqa: BLE001
        logger.warning(f"{what} unavailable: {e!r}")
        return UNAVAILABLE


class ExpiringCache[K: Hashable, V]:
    """Process-wide lookup cache cleared wholesale once its window expires.

    ``ttl=None`` keeps entries for the lifetime of the process.
    """

    def __init__(self, ttl: float | None, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._values: dict[K, V] = {}
        self._window_start = clock()

    def _roll_window(self) -> None:
        if self.ttl is None:
            return
        now = self._clock()
        if now - self._window_start > self.ttl:
            self._values.clear()
            self._window_start = now

    def get(self, key: K) -> V | None:
        self._roll_window()
        return self._values.get(key)

    def set(self, key: K, value: V) -> None:
        self._roll_window()
        self._values[key] = value

    def clear(self) -> None:
        self._values.clear()
        self._window_start = self._clock()

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, key: object) -> bool:
        self._roll_window()
        return key in self._values
