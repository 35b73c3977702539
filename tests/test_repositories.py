"""
Tests for the database-backed collaborators, run against in-memory SQLite.
"""

from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.models.active_roll import ActiveRoll
from app.models.crate import Crate
from app.models.environment import Environment
from app.models.item import Item
from app.models.item_count import ItemCount
from app.models.item_discovery import ItemDiscovery
from app.models.player import Player
from app.models.rarity import Rarity
from app.models.roll_pity import RollPity
from app.models.roll_record import RollRecord
from app.models.roll_token import RollToken
from app.models.shared_value import SharedValue
from app.models.topic_message import TopicMessage
from app.repositories.catalog import DatabaseCatalogProvider, DatabaseCrateProvider
from app.repositories.counters import DatabaseDiscoveryIndex, DatabaseGlobalCounter
from app.repositories.environment import DatabaseEnvironmentLuck, NullEnvironmentLuck
from app.repositories.players import DatabasePlayerRecordStore, PlayerNotReadyError
from app.repositories.progression import DatabaseProgressionStore
from app.repositories.shared_store import DatabaseSharedStore
from app.repositories.tokens import DatabaseActiveRollLimiter, DatabaseTokenService
from app.repositories.topic import DatabaseTopic
from app.schemas.pity import PitySnapshot
from app.utils.misc import get_utc_now

TABLES = [
    model.__table__  # type: ignore[attr-defined]
    for model in (
        Player,
        Rarity,
        Item,
        Crate,
        Environment,
        RollPity,
        RollRecord,
        RollToken,
        ActiveRoll,
        ItemDiscovery,
        ItemCount,
        SharedValue,
        TopicMessage,
    )
]


@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(
            lambda sync_conn: SQLModel.metadata.create_all(sync_conn, tables=TABLES)
        )

    def factory() -> AsyncSession:
        return AsyncSession(engine, expire_on_commit=False)

    async with factory() as session:
        session.add(Player(id=1, name="alice"))
        session.add(Player(id=2, name="bob", is_ready=False))
        await session.commit()

    yield factory
    await engine.dispose()


# =============================================================================
# Tokens and the active roll limiter
# =============================================================================


class TestTokens:
    async def test_consume_once(self, session_factory):
        tokens = DatabaseTokenService(session_factory)
        await tokens.issue(1, "req-1", {"crate_type": "Golden"}, ttl_seconds=60)

        assert await tokens.consume(1, "req-1") == {"crate_type": "Golden"}
        assert await tokens.consume(1, "req-1") is None

    async def test_unknown_token(self, session_factory):
        assert await DatabaseTokenService(session_factory).consume(1, "nope") is None

    async def test_expired_token(self, session_factory):
        tokens = DatabaseTokenService(session_factory)
        await tokens.issue(1, "req-1", {}, ttl_seconds=-1)
        assert await tokens.consume(1, "req-1") is None

    async def test_token_bound_to_player(self, session_factory):
        tokens = DatabaseTokenService(session_factory)
        await tokens.issue(1, "req-1", {}, ttl_seconds=60)
        assert await tokens.consume(2, "req-1") is None
        assert await tokens.consume(1, "req-1") == {}


class TestLimiter:
    async def test_one_active_roll_per_player(self, session_factory):
        limiter = DatabaseActiveRollLimiter(session_factory)
        assert await limiter.start(1, "req-1")
        assert not await limiter.start(1, "req-2")
        assert await limiter.start(2, "req-1")

        await limiter.finish(1, "req-1")
        assert await limiter.start(1, "req-2")

    async def test_finish_without_slot(self, session_factory):
        limiter = DatabaseActiveRollLimiter(session_factory)
        await limiter.finish(1, "req-1")
        await limiter.finish(1, "req-1")
        assert await limiter.start(1, "req-1")

    async def test_finish_other_request_keeps_slot(self, session_factory):
        limiter = DatabaseActiveRollLimiter(session_factory)
        await limiter.start(1, "req-1")
        await limiter.finish(1, "stale")
        assert not await limiter.start(1, "req-2")

    async def test_live_slot_survives_restart(self, session_factory):
        assert await DatabaseActiveRollLimiter(session_factory).start(1, "req-1")
        assert not await DatabaseActiveRollLimiter(session_factory).start(1, "req-2")

    async def test_expired_slot_is_taken_over(self, session_factory):
        assert await DatabaseActiveRollLimiter(session_factory).start(1, "req-1")
        async with session_factory() as session:
            slot = await session.get(ActiveRoll, 1)
            slot.expires_at = get_utc_now() - timedelta(seconds=1)
            session.add(slot)
            await session.commit()

        limiter = DatabaseActiveRollLimiter(session_factory)
        assert await limiter.start(1, "req-2")
        assert not await limiter.start(1, "req-3")

        # The crashed roll's release must not free the new slot
        await limiter.finish(1, "req-1")
        assert not await limiter.start(1, "req-3")
        await limiter.finish(1, "req-2")
        assert await limiter.start(1, "req-3")

    async def test_zero_lease_never_blocks(self, session_factory):
        limiter = DatabaseActiveRollLimiter(session_factory, lease_seconds=0)
        assert await limiter.start(1, "req-1")
        assert await limiter.start(1, "req-2")


# =============================================================================
# Progression store
# =============================================================================


class TestProgression:
    async def test_compare_and_set(self, session_factory):
        store = DatabaseProgressionStore(session_factory)
        await store.ensure_record(1, "Default")
        await store.ensure_record(1, "Default")

        snapshot = await store.read_snapshot(1, "Default")
        assert snapshot == PitySnapshot()

        assert await store.commit(1, "Default", PitySnapshot({3: 1, 10: 4}, version=0))
        assert not await store.commit(1, "Default", PitySnapshot({3: 9}, version=0))

        after = await store.read_snapshot(1, "Default")
        assert after.as_dict() == {3: 1, 10: 4}
        assert after.version == 1

    async def test_commit_without_record(self, session_factory):
        store = DatabaseProgressionStore(session_factory)
        assert not await store.commit(1, "Golden", PitySnapshot({3: 1}))

    async def test_records_are_per_crate(self, session_factory):
        store = DatabaseProgressionStore(session_factory)
        await store.ensure_record(1, "Default")
        await store.ensure_record(1, "Golden")
        await store.commit(1, "Golden", PitySnapshot({5: 2}))
        assert (await store.read_snapshot(1, "Default")).as_dict() == {}

    async def test_record_roll(self, session_factory):
        await DatabaseProgressionStore(session_factory).record_roll(1, "Default", 5)
        async with session_factory() as session:
            record = await session.get(RollRecord, 1)
        assert record.won_rank == 5


# =============================================================================
# Player records
# =============================================================================


class TestPlayerRecords:
    async def test_readiness(self, session_factory):
        players = DatabasePlayerRecordStore(session_factory)
        assert await players.is_ready(1)
        assert not await players.is_ready(2)
        assert not await players.is_ready(3)

    async def test_set_nested_key(self, session_factory):
        players = DatabasePlayerRecordStore(session_factory)
        await players.set_key(1, ("items", "Slime"), 1)
        await players.set_key(1, ("item_instances", "abc", "stats"), {"coins": 1.05})

        player = await players.get_record(1)
        assert player.data == {
            "items": {"Slime": 1},
            "item_instances": {"abc": {"stats": {"coins": 1.05}}},
        }

    async def test_not_ready_rejects_writes(self, session_factory):
        players = DatabasePlayerRecordStore(session_factory)
        with pytest.raises(PlayerNotReadyError):
            await players.set_key(2, ("items", "Slime"), 1)


# =============================================================================
# Catalog
# =============================================================================


class TestCatalog:
    @pytest.fixture
    async def seeded(self, session_factory):
        async with session_factory() as session:
            session.add(Rarity(id="Common", rank=1))
            session.add(Rarity(id="Mythic", rank=10))
            session.add(Item(name="Slime", rarity="Common", weight=10))
            session.add(
                Item(
                    name="Phoenix",
                    display_name="Golden Phoenix",
                    rarity="Mythic",
                    weight=0.01,
                    odds_denominator=1000,
                    stat_ranges={"coins": [1.5, 2.0]},
                )
            )
            session.add(
                Crate(type="Golden", luck_multiplier=2.0, rank_weight_multipliers={"10": 3})
            )
            session.add(Environment(id="Storm", luck_multiplier=1.5))
            await session.commit()
        return session_factory

    async def test_items(self, seeded):
        catalog = DatabaseCatalogProvider(seeded)
        entries = {entry.name: entry for entry in await catalog.list_items()}
        assert entries["Slime"].display_name == "Slime"
        assert entries["Phoenix"].display_name == "Golden Phoenix"

        raw = await catalog.raw_items()
        assert raw["Phoenix"]["rarity"] == "Mythic"

        assert await catalog.get_rarity_rank("Mythic") == 10
        assert await catalog.get_base_weight("Slime") == 10
        assert await catalog.get_odds_denominator("Phoenix") == 1000
        assert await catalog.get_odds_denominator("Slime") == 0
        assert await catalog.get_stat_ranges("Phoenix") == {"coins": [1.5, 2.0]}

    async def test_missing_lookups_raise(self, seeded):
        catalog = DatabaseCatalogProvider(seeded)
        with pytest.raises(LookupError):
            await catalog.get_rarity_rank("Legendary")
        with pytest.raises(LookupError):
            await catalog.get_base_weight("Ghost")

    async def test_crates(self, seeded):
        crates = DatabaseCrateProvider(seeded)
        assert await crates.get_luck_multiplier("Golden") == 2.0
        assert await crates.get_rank_weight_multiplier("Golden", 10) == 3.0
        assert await crates.get_rank_weight_multiplier("Golden", 1) == 1.0
        assert await crates.get_luck_multiplier("Unknown") == 1.0

    async def test_environments(self, seeded):
        assert await DatabaseEnvironmentLuck(seeded).get_luck_multiplier("Storm") == 1.5
        with pytest.raises(LookupError):
            await DatabaseEnvironmentLuck(seeded).get_luck_multiplier("Fog")
        assert await NullEnvironmentLuck().get_luck_multiplier("Fog") == 1.0


# =============================================================================
# Counters, shared store and topic
# =============================================================================


class TestCounters:
    async def test_global_counter(self, session_factory):
        counter = DatabaseGlobalCounter(session_factory)
        await counter.increment("Slime", 1)
        await counter.increment("Slime", 2)
        async with session_factory() as session:
            row = await session.get(ItemCount, "Slime")
        assert row.count == 3

    async def test_discovery_is_idempotent(self, session_factory):
        discovery = DatabaseDiscoveryIndex(session_factory)
        await discovery.mark_discovered(1, "Default", "Slime")
        await discovery.mark_discovered(1, "Default", "Slime")
        await discovery.mark_discovered(1, "Golden", "Slime")
        async with session_factory() as session:
            rows = (await session.exec(select(ItemDiscovery))).all()
        assert len(rows) == 2


class TestSharedStore:
    async def test_set_get_and_overwrite(self, session_factory):
        store = DatabaseSharedStore(session_factory)
        assert await store.get("latest") is None
        await store.set("latest", {"event_id": "a"}, 60)
        await store.set("latest", {"event_id": "b"}, 60)
        assert await store.get("latest") == {"event_id": "b"}

    async def test_expired_value(self, session_factory):
        store = DatabaseSharedStore(session_factory)
        await store.set("latest", {"event_id": "a"}, -1)
        assert await store.get("latest") is None


class TestDatabaseTopic:
    async def test_delivers_only_new_messages(self, session_factory):
        publisher = DatabaseTopic(session_factory)
        await publisher.publish("lucky", {"event_id": "before"})

        received = []

        async def handler(payload):
            received.append(payload["event_id"])

        listener = DatabaseTopic(session_factory)
        await listener.subscribe("lucky", handler)
        assert await listener.poll_once() == 0

        await publisher.publish("lucky", {"event_id": "after"})
        await publisher.publish("other", {"event_id": "ignored"})
        assert await listener.poll_once() == 1
        assert received == ["after"]
        assert await listener.poll_once() == 0

    async def test_failing_handler_does_not_stop_delivery(self, session_factory):
        topic = DatabaseTopic(session_factory)
        received = []

        async def broken(_payload):
            raise RuntimeError("handler down")

        async def handler(payload):
            received.append(payload)

        await topic.subscribe("lucky", broken)
        await topic.subscribe("lucky", handler)
        await topic.poll_once()
        await topic.publish("lucky", {"n": 1})
        await topic.poll_once()
        assert received == [{"n": 1}]

    async def test_prune(self, session_factory):
        topic = DatabaseTopic(session_factory, retention_seconds=60)
        async with session_factory() as session:
            session.add(
                TopicMessage(
                    topic="lucky", payload={}, created_at=get_utc_now() - timedelta(hours=2)
                )
            )
            session.add(TopicMessage(topic="lucky", payload={}))
            await session.commit()

        await topic.prune()
        async with session_factory() as session:
            rows = (await session.exec(select(TopicMessage))).all()
        assert len(rows) == 1
