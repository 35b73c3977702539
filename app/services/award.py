import math
import random
import uuid

from loguru import logger

from app.repositories.protocols import DiscoveryIndex, GlobalCounter, PlayerRecordStore
from app.schemas.roll import ItemEntry
from app.services.catalog_cache import CatalogCache
from app.services.jobs import BackgroundJobs
from app.utils.cache import Unavailable, guarded
from app.utils.misc import get_unix_timestamp


def round_stat(value: float) -> float:
    return math.floor(value * 100 + 0.5) / 100


class AwardService:
    """Persist a won item as a new instance on the player's record."""

    def __init__(
        self,
        players: PlayerRecordStore,
        catalog: CatalogCache,
        discovery: DiscoveryIndex,
        counter: GlobalCounter,
        jobs: BackgroundJobs,
        rng: random.Random | None = None,
    ) -> None:
        self._players = players
        self._catalog = catalog
        self._discovery = discovery
        self._counter = counter
        self._jobs = jobs
        self._rng = rng or random.SystemRandom()

    async def roll_stats(self, item_name: str) -> dict[str, float]:
        ranges = await self._catalog.get_stat_ranges(item_name)
        return {
            stat: round_stat(self._rng.uniform(bounds.low, bounds.high))
            for stat, bounds in ranges.items()
        }

    async def _owned_count(self, player_id: int, item_name: str) -> int:
        player = await guarded(lambda: self._players.get_record(player_id), what="Player record")
        if isinstance(player, Unavailable) or player is None:
            return 0

        owned = (player.data or {}).get("items")
        if not isinstance(owned, dict):
            return 0
        count = owned.get(item_name)
        return count if isinstance(count, int) and not isinstance(count, bool) else 0

    async def award(
        self, player_id: int, entry: ItemEntry, crate_type: str, environment_id: str | None
    ) -> str:
        """Store a new instance of ``entry`` and return its instance id.

        Record writes propagate their errors; the global counter and the
        discovery index are best-effort. The instance is written before the
        owned count, so a failed count write never leaves a count without an
        instance.
        """
        instance_id = str(uuid.uuid4())
        if environment_id in ("", "None"):
            environment_id = None
        stats = await self.roll_stats(entry.name)

        await self._players.set_key(
            player_id,
            ("item_instances", instance_id),
            {
                "name": entry.name,
                "display_name": entry.display_name,
                "rarity": entry.rarity,
                "obtained_at": get_unix_timestamp(),
                "favourited": False,
                "environment_id": environment_id,
                "stats": stats,
            },
        )
        owned = await self._owned_count(player_id, entry.name)
        await self._players.set_key(player_id, ("items", entry.name), owned + 1)

        self._jobs.spawn(self._counter.increment(entry.name, 1), name="item_count.increment")
        await guarded(
            lambda: self._discovery.mark_discovered(player_id, crate_type, entry.name),
            what="Discovery index",
        )

        logger.info(f"Player {player_id} was awarded {entry.name} ({instance_id})")
        return instance_id
