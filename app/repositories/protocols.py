from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from app.models.player import Player
from app.schemas.pity import PitySnapshot
from app.schemas.rare_event import RareEvent
from app.schemas.roll import ItemEntry

type TopicHandler = Callable[[dict[str, Any]], Awaitable[None]]


class CatalogProvider(Protocol):
    """Read-only item dictionary. Every call may fail; callers substitute defaults."""

    async def raw_items(self) -> Mapping[str, Mapping[str, Any]]: ...

    async def get_rarity_rank(self, rarity: str) -> int: ...

    async def get_base_weight(self, name: str) -> float: ...

    async def get_stat_ranges(self, name: str) -> Mapping[str, Sequence[float]] | None: ...

    async def get_odds_denominator(self, name: str) -> int: ...


@runtime_checkable
class ItemLister(Protocol):
    """Optional bulk listing capability of a catalog provider."""

    async def list_items(self) -> Sequence[ItemEntry]: ...


class CrateProvider(Protocol):
    async def get_luck_multiplier(self, crate_type: str) -> float: ...

    async def get_rank_weight_multiplier(self, crate_type: str, rank: int) -> float: ...


class EnvironmentLuckProvider(Protocol):
    async def get_luck_multiplier(self, environment_id: str) -> float: ...


class ProgressionStore(Protocol):
    """Per-(player, crate type) pity counters with atomic compare-and-set commits."""

    async def ensure_record(self, player_id: int, crate_type: str) -> None: ...

    async def read_snapshot(self, player_id: int, crate_type: str) -> PitySnapshot: ...

    async def record_roll(self, player_id: int, crate_type: str, won_rank: int) -> None: ...

    async def commit(self, player_id: int, crate_type: str, snapshot: PitySnapshot) -> bool:
        """Store ``snapshot`` if the record is still at ``snapshot.version``."""
        ...


class PlayerRecordStore(Protocol):
    async def is_ready(self, player_id: int) -> bool: ...

    async def get_record(self, player_id: int) -> Player | None: ...

    async def set_key(self, player_id: int, path: Sequence[str], value: Any) -> None:
        """Write ``value`` at a nested key path, creating intermediate mappings."""
        ...


class TokenService(Protocol):
    async def consume(self, player_id: int, request_id: str) -> Mapping[str, Any] | None:
        """Destructively read a token; ``None`` when missing, used or expired."""
        ...


class ActiveRollLimiter(Protocol):
    async def start(self, player_id: int, request_id: str) -> bool: ...

    async def finish(self, player_id: int, request_id: str) -> None:
        """Release the player's slot. Safe to call when no slot is held."""
        ...


class DiscoveryIndex(Protocol):
    async def mark_discovered(self, player_id: int, crate_type: str, item_name: str) -> None: ...


class GlobalCounter(Protocol):
    async def increment(self, item_name: str, delta: int) -> None: ...


class SharedStore(Protocol):
    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None: ...

    async def get(self, key: str) -> dict[str, Any] | None: ...


class Topic(Protocol):
    async def publish(self, topic: str, payload: dict[str, Any]) -> None: ...

    async def subscribe(self, topic: str, handler: TopicHandler) -> None: ...


class ShowcasePresenter(Protocol):
    async def show(self, event: RareEvent) -> None: ...


class ChatBroadcaster(Protocol):
    async def announce(self, event: RareEvent) -> None: ...
