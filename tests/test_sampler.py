"""
Tests for the weighted sampler: inverse-CDF coverage, degenerate pools and
filler draws.
"""

import random
from collections import Counter

import pytest

from app.schemas.roll import ItemEntry
from app.services.sampler import WeightedTable, draw, filler_draw


class SequenceRandom(random.Random):
    """Returns a fixed sequence from ``random()``."""

    def __init__(self, values):
        super().__init__(0)
        self._values = iter(values)

    def random(self):
        return next(self._values)


def expected_index(u, weights):
    total = sum(weights)
    cumulative = 0.0
    for index, weight in enumerate(weights):
        cumulative += weight
        if u * total <= cumulative:
            return index
    return len(weights) - 1


class TestCoverage:
    def test_each_index_owns_its_cumulative_range(self):
        weights = [1.0, 2.0, 1.0]
        steps = [k / 1000 for k in range(1000)]
        table = WeightedTable(["a", "b", "c"], weights)
        rng = SequenceRandom(steps)

        picks = [table.pick(rng) for _ in steps]

        assert picks == [["a", "b", "c"][expected_index(u, weights)] for u in steps]
        assert Counter(picks) == {"a": 251, "b": 500, "c": 249}

    def test_boundaries(self):
        table = WeightedTable(["a", "b", "c"], [1.0, 2.0, 1.0])
        rng = SequenceRandom([0.0, 0.25, 0.2501, 0.75, 0.7501, 0.999999])
        assert [table.pick(rng) for _ in range(6)] == ["a", "a", "b", "b", "c", "c"]

    def test_float_shortfall_returns_last(self):
        table = WeightedTable(["a", "b"], [0.1, 0.2])
        table.total = 0.31  # running sum marginally short of the draw
        assert table.pick(SequenceRandom([0.9999])) == "b"

    def test_zero_weight_member_never_drawn(self):
        rng = random.Random(3)
        weights = {"a": 1, "b": 0, "c": 1}
        picks = Counter(draw(["a", "b", "c"], weights.get, rng) for _ in range(2000))
        assert picks["b"] == 0


class TestDegenerate:
    def test_empty_pool(self):
        assert draw([], lambda _: 1.0) is None
        assert WeightedTable([], []).pick() is None

    def test_all_zero_weights_fall_back_to_uniform(self):
        rng = random.Random(7)
        pool = ["a", "b", "c", "d"]
        picks = Counter(draw(pool, lambda _: 0.0, rng) for _ in range(4000))
        assert set(picks) == set(pool)
        for name in pool:
            assert 800 < picks[name] < 1200

    def test_mismatched_lengths(self):
        with pytest.raises(ValueError):
            WeightedTable(["a"], [1.0, 2.0])


class TestFiller:
    def test_filler_uses_base_weights_only(self):
        pool = [
            ItemEntry(name="A", display_name="A", rarity="Common"),
            ItemEntry(name="B", display_name="B", rarity="Mythic"),
        ]
        rng = random.Random(11)
        picks = Counter(filler_draw(pool, {"A": 9.0, "B": 1.0}, rng).name for _ in range(10000))
        assert 0.88 < picks["A"] / 10000 < 0.92

    def test_missing_base_weight_counts_as_zero(self):
        pool = [
            ItemEntry(name="A", display_name="A", rarity="Common"),
            ItemEntry(name="B", display_name="B", rarity="Common"),
        ]
        rng = random.Random(5)
        picks = {filler_draw(pool, {"A": 1.0}, rng).name for _ in range(500)}
        assert picks == {"A"}
