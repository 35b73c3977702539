import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from loguru import logger

from app.repositories.protocols import (
    CatalogProvider,
    CrateProvider,
    EnvironmentLuckProvider,
    ItemLister,
)
from app.schemas.catalog import CatalogItem, CrateModifiers, StatRange
from app.schemas.roll import ItemEntry
from app.utils.cache import ExpiringCache, Unavailable, guarded

DEFAULT_RARITY = "Common"
DEFAULT_STAT_RANGES: dict[str, StatRange] = {
    "coins": StatRange(low=1.00, high=1.10),
    "gems": StatRange(low=1.00, high=1.06),
    "luck": StatRange(low=1.00, high=1.02),
}
_STAT_ALIASES = {"cash": "coins"}


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _is_positive_number(value: Any) -> bool:
    return _is_number(value) and value > 0


class CatalogCache:
    """Process-wide memo of catalog lookups so a roll never waits on the catalog.

    - the item pool is built once and kept until ``invalidate``
    - rarity ranks are kept for the lifetime of the process
    - base weights, crate modifiers and environment luck expire wholesale
    """

    def __init__(
        self,
        catalog: CatalogProvider,
        crates: CrateProvider,
        environments: EnvironmentLuckProvider,
        *,
        weight_ttl: float = 60.0,
        environment_ttl: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._catalog = catalog
        self._crates = crates
        self._environments = environments
        self._pool: list[ItemEntry] | None = None
        self._ranks: ExpiringCache[str, int] = ExpiringCache(None, clock)
        self._weights: ExpiringCache[str, float] = ExpiringCache(weight_ttl, clock)
        self._crate_luck: ExpiringCache[str, float] = ExpiringCache(weight_ttl, clock)
        self._crate_rank: ExpiringCache[tuple[str, int], float] = ExpiringCache(weight_ttl, clock)
        self._environment_luck: ExpiringCache[str, float] = ExpiringCache(environment_ttl, clock)

    def invalidate(self) -> None:
        self._pool = None
        self._ranks.clear()
        self._weights.clear()
        self._crate_luck.clear()
        self._crate_rank.clear()
        self._environment_luck.clear()

    async def get_pool(self) -> list[ItemEntry]:
        if self._pool is not None:
            return self._pool

        entries = await self._load_entries()
        if entries is None:
            return []

        rarities = {entry.rarity for entry in entries}
        ranks = {rarity: await self.get_rarity_rank(rarity) for rarity in rarities}
        entries.sort(key=lambda entry: (-ranks[entry.rarity], entry.name))
        self._pool = entries
        logger.info(f"Loaded {len(entries)} catalog entries")
        return entries

    async def _load_entries(self) -> list[ItemEntry] | None:
        if isinstance(self._catalog, ItemLister):
            listed = await guarded(self._catalog.list_items, what="Catalog listing")
            if not isinstance(listed, Unavailable):
                return list(listed)

        raw = await guarded(self._catalog.raw_items, what="Raw catalog")
        if isinstance(raw, Unavailable):
            return None
        return self._entries_from_raw(raw)

    @staticmethod
    def _entries_from_raw(raw: Mapping[str, Any]) -> list[ItemEntry]:
        entries = []
        for name, info in raw.items():
            if not isinstance(name, str) or not name or not isinstance(info, Mapping):
                continue
            entries.append(
                ItemEntry(
                    name=name,
                    display_name=_text(info.get("display_name")) or name,
                    rarity=_text(info.get("rarity")) or DEFAULT_RARITY,
                )
            )
        return entries

    async def get_rarity_rank(self, rarity: str) -> int:
        cached = self._ranks.get(rarity)
        if cached is not None:
            return cached

        rank = 1
        value = await guarded(
            lambda: self._catalog.get_rarity_rank(rarity), what=f"Rarity rank of {rarity!r}"
        )
        if isinstance(value, int | float) and not isinstance(value, bool):
            rank = int(value)

        self._ranks.set(rarity, rank)
        return rank

    async def get_item_ranks(self, entries: Iterable[ItemEntry]) -> dict[str, int]:
        return {entry.name: await self.get_rarity_rank(entry.rarity) for entry in entries}

    async def get_base_weight(self, name: str) -> float:
        cached = self._weights.get(name)
        if cached is not None:
            return cached

        weight = 0.0
        value = await guarded(
            lambda: self._catalog.get_base_weight(name), what=f"Base weight of {name!r}"
        )
        if _is_positive_number(value):
            weight = float(value)

        self._weights.set(name, weight)
        return weight

    async def get_base_weights(self, entries: Iterable[ItemEntry]) -> dict[str, float]:
        return {entry.name: await self.get_base_weight(entry.name) for entry in entries}

    async def get_catalog_items(self) -> list[CatalogItem]:
        pool = await self.get_pool()
        ranks = await self.get_item_ranks(pool)
        weights = await self.get_base_weights(pool)
        return [
            CatalogItem(entry=entry, rank=ranks[entry.name], base_weight=weights[entry.name])
            for entry in pool
        ]

    async def get_crate_modifiers(self, crate_type: str, ranks: Iterable[int]) -> CrateModifiers:
        luck = self._crate_luck.get(crate_type)
        if luck is None:
            value = await guarded(
                lambda: self._crates.get_luck_multiplier(crate_type),
                what=f"Crate luck of {crate_type!r}",
            )
            luck = float(value) if _is_positive_number(value) else 1.0
            self._crate_luck.set(crate_type, luck)

        multipliers: dict[int, float] = {}
        for rank in set(ranks):
            key = (crate_type, rank)
            multiplier = self._crate_rank.get(key)
            if multiplier is None:
                value = await guarded(
                    lambda rank=rank: self._crates.get_rank_weight_multiplier(crate_type, rank),
                    what=f"Crate rank multiplier of {crate_type!r}",
                )
                # 0 is a valid multiplier, the composer floors the weight
                multiplier = float(value) if _is_number(value) and value >= 0 else 1.0
                self._crate_rank.set(key, multiplier)
            multipliers[rank] = multiplier

        return CrateModifiers(luck_multiplier=luck, rank_weight_multipliers=multipliers)

    async def get_environment_luck(self, environment_id: str | None) -> float:
        if not environment_id or environment_id == "None":
            return 1.0

        cached = self._environment_luck.get(environment_id)
        if cached is not None:
            return cached

        value = await guarded(
            lambda: self._environments.get_luck_multiplier(environment_id),
            what=f"Environment luck of {environment_id!r}",
        )
        luck = float(value) if _is_positive_number(value) else 1.0
        self._environment_luck.set(environment_id, luck)
        return luck

    async def get_odds_denominator(self, name: str) -> int:
        value = await guarded(
            lambda: self._catalog.get_odds_denominator(name), what=f"Odds of {name!r}"
        )
        return int(value) if _is_positive_number(value) else 0

    async def get_stat_ranges(self, name: str) -> dict[str, StatRange]:
        value = await guarded(
            lambda: self._catalog.get_stat_ranges(name), what=f"Stat ranges of {name!r}"
        )
        ranges = dict(DEFAULT_STAT_RANGES)
        if isinstance(value, Unavailable) or not isinstance(value, Mapping):
            return ranges

        for stat, bounds in value.items():
            if not isinstance(stat, str):
                continue
            stat_name = _STAT_ALIASES.get(stat.lower(), stat.lower())
            if stat_name in ranges and _valid_bounds(bounds):
                ranges[stat_name] = StatRange(low=float(bounds[0]), high=float(bounds[1]))
        return ranges


def _valid_bounds(bounds: Any) -> bool:
    return (
        isinstance(bounds, Sequence)
        and len(bounds) == 2
        and all(isinstance(b, int | float) and not isinstance(b, bool) for b in bounds)
    )
