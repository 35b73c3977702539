import math
from dataclasses import dataclass
from typing import Any

from app.core.config import Config
from app.schemas.catalog import CrateModifiers


@dataclass(frozen=True, slots=True)
class WeightTuning:
    luck_exponent_per_rank: float = 0.35
    boost_min: float = 0.90
    boost_max: float = 7.50
    weight_min: float = 1e-12

    @classmethod
    def from_config(cls, config: Config) -> "WeightTuning":
        return cls(
            luck_exponent_per_rank=config.luck_exponent_per_rank,
            boost_min=config.luck_boost_min,
            boost_max=config.luck_boost_max,
            weight_min=config.weight_min,
        )


DEFAULT_TUNING = WeightTuning()


def clamp(n: float, low: float, high: float) -> float:
    if n < low:
        return low
    if n > high:
        return high
    return n


def clamp_luck(value: Any) -> float:
    """Sanitize a luck multiplier: anything non-numeric, NaN or non-positive becomes 1."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 1.0
    if math.isnan(value) or value <= 0:
        return 1.0
    return float(value)


def compose_weight(
    base_weight: float,
    rarity_rank: int,
    crate: CrateModifiers,
    effective_luck: float,
    pity_multiplier: float,
    tuning: WeightTuning = DEFAULT_TUNING,
) -> float:
    """Final draw weight of one item.

    Luck is boosted exponentially with rarity rank: rank 1 items get no boost,
    and the boost is clamped so stacked luck cannot blow up the tail. Crate
    luck only ever helps, never drags luck below the unboosted baseline.
    """
    if base_weight <= 0:
        return 0.0

    crate_luck = crate.luck_multiplier
    luck = max(1.0, clamp_luck(effective_luck) * max(1.0, crate_luck))

    power = max(0, rarity_rank - 1) * tuning.luck_exponent_per_rank
    luck_boost = 1.0
    if power > 0:
        luck_boost = clamp(luck**power, tuning.boost_min, tuning.boost_max)

    weight = base_weight * crate.rank_multiplier(rarity_rank) * luck_boost * pity_multiplier
    return max(weight, tuning.weight_min)
