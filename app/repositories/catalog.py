from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from sqlmodel import select

from app.core.db import SessionFactory, get_session
from app.models.crate import Crate
from app.models.item import Item
from app.models.rarity import Rarity
from app.schemas.roll import ItemEntry


class DatabaseCatalogProvider:
    """Item dictionary backed by the ``items``, ``rarities`` and ``crates`` tables."""

    def __init__(self, session_factory: SessionFactory = get_session) -> None:
        self._session_factory = session_factory

    async def _get_item(self, name: str) -> Item:
        async with self._session_factory() as session:
            item = await session.get(Item, name)
        if item is None:
            raise LookupError(f"Unknown item {name!r}")
        return item

    async def list_items(self) -> Sequence[ItemEntry]:
        async with self._session_factory() as session:
            result = await session.exec(select(Item))
            items = result.all()

        return [
            ItemEntry(
                name=item.name,
                display_name=item.display_name or item.name,
                rarity=item.rarity or "Common",
            )
            for item in items
        ]

    async def raw_items(self) -> Mapping[str, Mapping[str, Any]]:
        async with self._session_factory() as session:
            result = await session.exec(select(Item))
            items = result.all()

        return {
            item.name: {"display_name": item.display_name, "rarity": item.rarity}
            for item in items
        }

    async def get_rarity_rank(self, rarity: str) -> int:
        async with self._session_factory() as session:
            row = await session.get(Rarity, rarity)
        if row is None:
            raise LookupError(f"Unknown rarity {rarity!r}")
        return row.rank

    async def get_base_weight(self, name: str) -> float:
        item = await self._get_item(name)
        return item.weight

    async def get_stat_ranges(self, name: str) -> Mapping[str, Sequence[float]] | None:
        item = await self._get_item(name)
        return item.stat_ranges

    async def get_odds_denominator(self, name: str) -> int:
        item = await self._get_item(name)
        return item.odds_denominator or 0


class DatabaseCrateProvider:
    def __init__(self, session_factory: SessionFactory = get_session) -> None:
        self._session_factory = session_factory

    async def _get_crate(self, crate_type: str) -> Crate | None:
        async with self._session_factory() as session:
            return await session.get(Crate, crate_type)

    async def get_luck_multiplier(self, crate_type: str) -> float:
        crate = await self._get_crate(crate_type)
        return crate.luck_multiplier if crate else 1.0

    async def get_rank_weight_multiplier(self, crate_type: str, rank: int) -> float:
        crate = await self._get_crate(crate_type)
        if crate is None:
            return 1.0
        return float(crate.rank_weight_multipliers.get(str(rank), 1.0))


class StaticCatalogProvider:
    """Item dictionary loaded from a JSON document.

    Only exposes the raw name -> metadata mapping (no bulk listing), so the
    catalog cache derives entries itself. Document shape::

        {
            "rarities": {"Common": 1, "Mythic": 10},
            "items": {"Slime": {"display_name": "Slime", "rarity": "Common", "weight": 10}},
            "crates": {"Golden": {"luck_multiplier": 2, "rank_weight_multipliers": {"10": 3}}}
        }
    """

    def __init__(self, document: Mapping[str, Any]) -> None:
        self._rarities: Mapping[str, int] = document.get("rarities", {})
        self._items: Mapping[str, Mapping[str, Any]] = document.get("items", {})
        self._crates: Mapping[str, Mapping[str, Any]] = document.get("crates", {})

    @classmethod
    def from_file(cls, path: str | Path) -> StaticCatalogProvider:
        return cls(json.loads(Path(path).read_text(encoding="utf-8")))

    def _item(self, name: str) -> Mapping[str, Any]:
        try:
            return self._items[name]
        except KeyError:
            raise LookupError(f"Unknown item {name!r}") from None

    async def raw_items(self) -> Mapping[str, Mapping[str, Any]]:
        return self._items

    async def get_rarity_rank(self, rarity: str) -> int:
        try:
            return int(self._rarities[rarity])
        except KeyError:
            raise LookupError(f"Unknown rarity {rarity!r}") from None

    async def get_base_weight(self, name: str) -> float:
        return float(self._item(name).get("weight", 0))

    async def get_stat_ranges(self, name: str) -> Mapping[str, Sequence[float]] | None:
        return self._item(name).get("stat_ranges")

    async def get_odds_denominator(self, name: str) -> int:
        return int(self._item(name).get("odds_denominator") or 0)

    async def get_luck_multiplier(self, crate_type: str) -> float:
        return float(self._crates.get(crate_type, {}).get("luck_multiplier", 1.0))

    async def get_rank_weight_multiplier(self, crate_type: str, rank: int) -> float:
        multipliers = self._crates.get(crate_type, {}).get("rank_weight_multipliers", {})
        return float(multipliers.get(str(rank), 1.0))
