import bisect
import random
from collections.abc import Callable, Mapping, Sequence

from app.schemas.roll import ItemEntry

_default_rng = random.SystemRandom()


class WeightedTable[T]:
    """Cumulative weight table for repeated inverse-CDF draws over one pool."""

    def __init__(self, pool: Sequence[T], weights: Sequence[float]) -> None:
        if len(pool) != len(weights):
            raise ValueError("pool and weights must have the same length")

        self.pool = pool
        self.cumulative: list[float] = []
        total = 0.0
        for weight in weights:
            total += weight
            self.cumulative.append(total)
        self.total = total

    def pick(self, rng: random.Random | None = None) -> T | None:
        rng = rng or _default_rng
        n = len(self.pool)
        if n == 0:
            return None

        # Every weight floored to zero: fall back to a uniform draw
        if self.total <= 0:
            return self.pool[rng.randrange(n)]

        r = rng.random() * self.total
        index = bisect.bisect_left(self.cumulative, r)
        # Float rounding can leave the running sum marginally short of r
        return self.pool[min(index, n - 1)]


def draw[T](
    pool: Sequence[T], weight: Callable[[T], float], rng: random.Random | None = None
) -> T | None:
    """Pick one member of ``pool`` with probability proportional to ``weight``."""
    return WeightedTable(pool, [weight(entry) for entry in pool]).pick(rng)


def filler_table(
    pool: Sequence[ItemEntry], base_weights: Mapping[str, float]
) -> WeightedTable[ItemEntry]:
    """Table for cosmetic slots: base weights only, no luck, crate or pity."""
    return WeightedTable(pool, [base_weights.get(entry.name, 0.0) for entry in pool])


def filler_draw(
    pool: Sequence[ItemEntry], base_weights: Mapping[str, float], rng: random.Random | None = None
) -> ItemEntry | None:
    return filler_table(pool, base_weights).pick(rng)
