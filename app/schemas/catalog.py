from pydantic import BaseModel

from app.schemas.roll import ItemEntry


class CrateModifiers(BaseModel):
    """Crate-specific luck and per-rank weight multipliers."""

    luck_multiplier: float = 1.0
    rank_weight_multipliers: dict[int, float] = {}

    def rank_multiplier(self, rank: int) -> float:
        return self.rank_weight_multipliers.get(rank, 1.0)


class StatRange(BaseModel):
    low: float
    high: float


class CatalogItem(BaseModel):
    """Catalog entry with its resolved rank and current base weight."""

    entry: ItemEntry
    rank: int
    base_weight: float
