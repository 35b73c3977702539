from dataclasses import dataclass

from app.core.config import Config, settings
from app.repositories.catalog import (
    DatabaseCatalogProvider,
    DatabaseCrateProvider,
    StaticCatalogProvider,
)
from app.repositories.counters import DatabaseDiscoveryIndex, DatabaseGlobalCounter
from app.repositories.environment import DatabaseEnvironmentLuck, NullEnvironmentLuck
from app.repositories.players import DatabasePlayerRecordStore
from app.repositories.progression import DatabaseProgressionStore
from app.repositories.protocols import (
    CatalogProvider,
    CrateProvider,
    EnvironmentLuckProvider,
    SharedStore,
    Topic,
)
from app.repositories.shared_store import DatabaseSharedStore, MemorySharedStore
from app.repositories.tokens import DatabaseActiveRollLimiter, DatabaseTokenService
from app.repositories.topic import DatabaseTopic, LocalTopic
from app.services.award import AwardService
from app.services.catalog_cache import CatalogCache
from app.services.jobs import BackgroundJobs
from app.services.pity import PityService
from app.services.rare_event import AnnouncementFeed, RareEventService, ShowcaseBoard
from app.services.result_pool import ResultBufferPool
from app.services.roll import RollService
from app.services.weights import WeightTuning


@dataclass
class Runtime:
    """Process-wide services shared by every request."""

    jobs: BackgroundJobs
    catalog: CatalogCache
    tokens: DatabaseTokenService
    topic: Topic
    showcase: ShowcaseBoard
    feed: AnnouncementFeed
    rare_events: RareEventService
    rolls: RollService


def build_runtime(config: Config) -> Runtime:
    jobs = BackgroundJobs()

    catalog_provider: CatalogProvider
    crate_provider: CrateProvider
    if config.catalog_file:
        static = StaticCatalogProvider.from_file(config.catalog_file)
        catalog_provider, crate_provider = static, static
    else:
        catalog_provider, crate_provider = DatabaseCatalogProvider(), DatabaseCrateProvider()

    environments: EnvironmentLuckProvider = (
        DatabaseEnvironmentLuck() if config.environment_luck_enabled else NullEnvironmentLuck()
    )

    topic: Topic
    store: SharedStore
    if config.pubsub_backend == "database":
        topic = DatabaseTopic(poll_interval=config.pubsub_poll_interval_seconds)
        store = DatabaseSharedStore()
    else:
        topic, store = LocalTopic(), MemorySharedStore()

    catalog = CatalogCache(
        catalog_provider,
        crate_provider,
        environments,
        weight_ttl=config.weight_cache_ttl_seconds,
        environment_ttl=config.environment_cache_ttl_seconds,
    )
    players = DatabasePlayerRecordStore()
    pity = PityService(
        DatabaseProgressionStore(),
        players,
        config.pity_rules,
        new_player_boost_hours=config.new_player_boost_hours,
        new_player_luck_boost=config.new_player_luck_boost,
    )

    showcase = ShowcaseBoard()
    feed = AnnouncementFeed(config.rare_event_feed_size)
    rare_events = RareEventService(
        topic,
        store,
        showcase,
        feed,
        jobs,
        topic_name=config.rare_event_topic,
        latest_key=config.rare_event_latest_key,
        latest_ttl_seconds=config.rare_event_latest_ttl_seconds,
        max_per_second=config.rare_event_max_per_second,
        seen_limit=config.rare_event_seen_limit,
    )

    tokens = DatabaseTokenService()
    rolls = RollService(
        catalog=catalog,
        pity=pity,
        tokens=tokens,
        limiter=DatabaseActiveRollLimiter(lease_seconds=config.active_roll_lease_seconds),
        players=players,
        awards=AwardService(
            players, catalog, DatabaseDiscoveryIndex(), DatabaseGlobalCounter(), jobs
        ),
        rare_events=rare_events,
        buffers=ResultBufferPool(config.slot_count, config.winner_index, config.result_pool_size),
        jobs=jobs,
        tuning=WeightTuning.from_config(config),
        rare_event_min_rank=config.rare_event_min_rank,
        result_return_delay=config.result_return_delay_seconds,
        release_mode=config.release_mode,
        release_after=config.release_after_seconds,
    )

    return Runtime(
        jobs=jobs,
        catalog=catalog,
        tokens=tokens,
        topic=topic,
        showcase=showcase,
        feed=feed,
        rare_events=rare_events,
        rolls=rolls,
    )


runtime = build_runtime(settings)


def get_runtime() -> Runtime:
    return runtime


def get_roll_service() -> RollService:
    return runtime.rolls


def get_catalog() -> CatalogCache:
    return runtime.catalog