"""
Shared pytest fixtures for the roll engine test suite.

Provides in-memory stand-ins for every collaborator protocol so the services
can be exercised without a database, plus a fully wired ``RollHarness``.
"""

import asyncio
import os
import random
from collections import Counter, defaultdict
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

os.environ.setdefault("DB_URL", "sqlite+aiosqlite://")
os.environ.setdefault("PUBSUB_BACKEND", "local")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest  # noqa: E402

from app.core.config import PityRule  # noqa: E402
from app.models.player import Player  # noqa: E402
from app.repositories.players import PlayerNotReadyError, set_nested  # noqa: E402
from app.repositories.shared_store import MemorySharedStore  # noqa: E402
from app.repositories.topic import LocalTopic  # noqa: E402
from app.schemas.pity import PitySnapshot  # noqa: E402
from app.schemas.rare_event import RareEvent  # noqa: E402
from app.schemas.roll import ItemEntry  # noqa: E402
from app.services.award import AwardService  # noqa: E402
from app.services.catalog_cache import CatalogCache  # noqa: E402
from app.services.jobs import BackgroundJobs  # noqa: E402
from app.services.pity import PityService  # noqa: E402
from app.services.rare_event import AnnouncementFeed, RareEventService  # noqa: E402
from app.services.result_pool import ResultBufferPool  # noqa: E402
from app.services.roll import RollService  # noqa: E402
from app.utils.misc import get_utc_now  # noqa: E402

TEST_RULES = [
    PityRule(rank=3, soft_start=10, soft_step=0.10, soft_cap=3.0, hard_at=30),
    PityRule(rank=5, soft_start=50, soft_step=0.05, soft_cap=4.0, hard_at=100),
    PityRule(rank=10, soft_start=1000, soft_step=0.005, soft_cap=5.0),
]


# =============================================================================
# Collaborator fakes
# =============================================================================


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCatalog:
    """Raw-mapping catalog without bulk listing."""

    def __init__(
        self,
        items: Mapping[str, Mapping[str, Any]],
        rarities: Mapping[str, int],
        *,
        failing: Sequence[str] = (),
    ) -> None:
        self.items = {name: dict(info) for name, info in items.items()}
        self.rarities = dict(rarities)
        self.failing = set(failing)
        self.calls: Counter[str] = Counter()

    def _call(self, method: str) -> None:
        self.calls[method] += 1
        if method in self.failing:
            raise RuntimeError(f"{method} is down")

    async def raw_items(self) -> Mapping[str, Mapping[str, Any]]:
        self._call("raw_items")
        return self.items

    async def get_rarity_rank(self, rarity: str) -> int:
        self._call("get_rarity_rank")
        return self.rarities[rarity]

    async def get_base_weight(self, name: str) -> float:
        self._call("get_base_weight")
        return self.items[name].get("weight", 0)

    async def get_stat_ranges(self, name: str) -> Mapping[str, Sequence[float]] | None:
        self._call("get_stat_ranges")
        return self.items[name].get("stat_ranges")

    async def get_odds_denominator(self, name: str) -> int:
        self._call("get_odds_denominator")
        return self.items[name].get("odds_denominator", 0)


class ListingCatalog(FakeCatalog):
    async def list_items(self) -> Sequence[ItemEntry]:
        self._call("list_items")
        return [
            ItemEntry(name=name, display_name=info.get("display_name", name), rarity=info["rarity"])
            for name, info in self.items.items()
        ]


class FakeCrates:
    def __init__(
        self,
        luck: Mapping[str, float] | None = None,
        rank_multipliers: Mapping[tuple[str, int], float] | None = None,
    ) -> None:
        self.luck = dict(luck or {})
        self.rank_multipliers = dict(rank_multipliers or {})

    async def get_luck_multiplier(self, crate_type: str) -> float:
        return self.luck.get(crate_type, 1.0)

    async def get_rank_weight_multiplier(self, crate_type: str, rank: int) -> float:
        return self.rank_multipliers.get((crate_type, rank), 1.0)


class FakeEnvironments:
    def __init__(self, luck: Mapping[str, float] | None = None) -> None:
        self.luck = dict(luck or {})
        self.calls = 0

    async def get_luck_multiplier(self, environment_id: str) -> float:
        self.calls += 1
        return self.luck[environment_id]


class MemoryProgressionStore:
    def __init__(self) -> None:
        self.records: dict[tuple[int, str], PitySnapshot] = {}
        self.rolls: list[tuple[int, str, int]] = []
        self.commits: list[tuple[int, str, PitySnapshot]] = []
        self.reject_commits = False

    async def ensure_record(self, player_id: int, crate_type: str) -> None:
        self.records.setdefault((player_id, crate_type), PitySnapshot())

    async def read_snapshot(self, player_id: int, crate_type: str) -> PitySnapshot:
        return self.records.get((player_id, crate_type), PitySnapshot())

    async def record_roll(self, player_id: int, crate_type: str, won_rank: int) -> None:
        self.rolls.append((player_id, crate_type, won_rank))

    async def commit(self, player_id: int, crate_type: str, snapshot: PitySnapshot) -> bool:
        current = self.records.get((player_id, crate_type), PitySnapshot())
        if self.reject_commits or current.version != snapshot.version:
            return False
        self.records[(player_id, crate_type)] = PitySnapshot(
            snapshot.counters, version=snapshot.version + 1
        )
        self.commits.append((player_id, crate_type, snapshot))
        return True


class MemoryPlayers:
    def __init__(self) -> None:
        self.players: dict[int, Player] = {}

    def add(self, player_id: int, name: str = "tester", *, age_hours: float = 1000.0) -> Player:
        created_at = get_utc_now() - timedelta(hours=age_hours)
        player = Player(id=player_id, name=name, created_at=created_at)
        self.players[player_id] = player
        return player

    async def is_ready(self, player_id: int) -> bool:
        player = self.players.get(player_id)
        return bool(player and player.is_ready)

    async def get_record(self, player_id: int) -> Player | None:
        return self.players.get(player_id)

    async def set_key(self, player_id: int, path: Sequence[str], value: Any) -> None:
        player = self.players.get(player_id)
        if not player or not player.is_ready:
            raise PlayerNotReadyError(player_id)
        player.data = set_nested(player.data or {}, path, value)


class MemoryTokens:
    def __init__(self) -> None:
        self.tokens: dict[tuple[int, str], dict[str, Any]] = {}
        self.consumed: list[tuple[int, str]] = []

    def issue(self, player_id: int, request_id: str, **meta: Any) -> None:
        self.tokens[(player_id, request_id)] = meta

    async def consume(self, player_id: int, request_id: str) -> Mapping[str, Any] | None:
        await asyncio.sleep(0)
        meta = self.tokens.pop((player_id, request_id), None)
        if meta is not None:
            self.consumed.append((player_id, request_id))
        return meta


class MemoryLimiter:
    def __init__(self) -> None:
        self.active: dict[int, str] = {}
        self.finished: list[tuple[int, str]] = []

    async def start(self, player_id: int, request_id: str) -> bool:
        if player_id in self.active:
            return False
        self.active[player_id] = request_id
        return True

    async def finish(self, player_id: int, request_id: str) -> None:
        self.finished.append((player_id, request_id))
        if self.active.get(player_id) == request_id:
            del self.active[player_id]


class MemoryDiscovery:
    def __init__(self) -> None:
        self.discovered: set[tuple[int, str, str]] = set()

    async def mark_discovered(self, player_id: int, crate_type: str, item_name: str) -> None:
        self.discovered.add((player_id, crate_type, item_name))


class MemoryCounter:
    def __init__(self) -> None:
        self.counts: Counter[str] = Counter()

    async def increment(self, item_name: str, delta: int) -> None:
        self.counts[item_name] += delta


class RecordingShowcase:
    def __init__(self) -> None:
        self.shown: list[RareEvent] = []

    async def show(self, event: RareEvent) -> None:
        self.shown.append(event)


class RecordingChat:
    def __init__(self) -> None:
        self.announced: list[RareEvent] = []

    async def announce(self, event: RareEvent) -> None:
        self.announced.append(event)


# =============================================================================
# Catalog fixtures
# =============================================================================

RARITIES = {"Common": 1, "Rare": 3, "Epic": 5, "Mythic": 10}

ITEMS: dict[str, dict[str, Any]] = {
    "Slime": {"display_name": "Slime", "rarity": "Common", "weight": 100},
    "Goblin": {"display_name": "Goblin", "rarity": "Common", "weight": 80},
    "Knight": {"display_name": "Knight", "rarity": "Rare", "weight": 10},
    "Dragon": {"display_name": "Dragon", "rarity": "Epic", "weight": 1, "odds_denominator": 250},
    "Phoenix": {
        "display_name": "Golden Phoenix",
        "rarity": "Mythic",
        "weight": 0.01,
        "odds_denominator": 1_500_000,
        "stat_ranges": {"Coins": [2.0, 2.0], "Gems": [1.5, 1.5], "Luck": [1.1, 1.1]},
    },
}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def catalog_provider() -> FakeCatalog:
    return FakeCatalog(ITEMS, RARITIES)


# =============================================================================
# Roll harness
# =============================================================================


@dataclass
class RollHarness:
    service: RollService
    catalog_provider: FakeCatalog
    progression: MemoryProgressionStore
    players: MemoryPlayers
    tokens: MemoryTokens
    limiter: MemoryLimiter
    discovery: MemoryDiscovery
    counter: MemoryCounter
    topic: LocalTopic
    store: MemorySharedStore
    showcase: RecordingShowcase
    feed: AnnouncementFeed
    rare_events: RareEventService
    buffers: ResultBufferPool
    jobs: BackgroundJobs
    awards: AwardService


def build_harness(
    catalog_provider: FakeCatalog | None = None,
    *,
    release_mode: str = "immediate",
    release_after: float = 0,
    result_return_delay: float = 0,
    seed: int = 1234,
    rules: Sequence[PityRule] = TEST_RULES,
) -> RollHarness:
    catalog_provider = catalog_provider or FakeCatalog(ITEMS, RARITIES)
    jobs = BackgroundJobs()
    rng = random.Random(seed)

    catalog = CatalogCache(catalog_provider, FakeCrates(), FakeEnvironments({"Storm": 2.0}))
    progression = MemoryProgressionStore()
    players = MemoryPlayers()
    pity = PityService(progression, players, rules)
    tokens = MemoryTokens()
    limiter = MemoryLimiter()
    discovery = MemoryDiscovery()
    counter = MemoryCounter()
    awards = AwardService(players, catalog, discovery, counter, jobs, rng)

    topic = LocalTopic()
    store = MemorySharedStore()
    showcase = RecordingShowcase()
    feed = AnnouncementFeed(10)
    rare_events = RareEventService(topic, store, showcase, feed, jobs)
    buffers = ResultBufferPool(50, 45, 4)

    service = RollService(
        catalog=catalog,
        pity=pity,
        tokens=tokens,
        limiter=limiter,
        players=players,
        awards=awards,
        rare_events=rare_events,
        buffers=buffers,
        jobs=jobs,
        result_return_delay=result_return_delay,
        release_mode=release_mode,  # type: ignore[arg-type]
        release_after=release_after,
        rng=rng,
    )
    return RollHarness(
        service=service,
        catalog_provider=catalog_provider,
        progression=progression,
        players=players,
        tokens=tokens,
        limiter=limiter,
        discovery=discovery,
        counter=counter,
        topic=topic,
        store=store,
        showcase=showcase,
        feed=feed,
        rare_events=rare_events,
        buffers=buffers,
        jobs=jobs,
        awards=awards,
    )


@pytest.fixture
def harness() -> RollHarness:
    harness = build_harness()
    harness.players.add(1, "alice")
    return harness


def counts_by_name(entries: Sequence[ItemEntry]) -> dict[str, int]:
    counts: dict[str, int] = defaultdict(int)
    for entry in entries:
        counts[entry.name] += 1
    return dict(counts)
