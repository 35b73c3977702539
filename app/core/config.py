from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class PityRule(BaseModel):
    """Dry-streak rule for one rarity rank bucket."""

    rank: int
    soft_start: int
    """Rolls without a hit before the soft pity multiplier starts growing"""
    soft_step: float
    """Multiplier added per roll past soft_start"""
    soft_cap: float
    hard_at: int | None = None
    """Rolls without a hit after which the winner is forced to this rank or above"""


def _default_pity_rules() -> list[PityRule]:
    return [
        PityRule(rank=3, soft_start=10, soft_step=0.10, soft_cap=3.0, hard_at=30),
        PityRule(rank=5, soft_start=50, soft_step=0.05, soft_cap=4.0, hard_at=100),
        PityRule(rank=8, soft_start=300, soft_step=0.01, soft_cap=5.0),
        PityRule(rank=10, soft_start=1000, soft_step=0.005, soft_cap=5.0),
    ]


class Config(BaseSettings):
    db_url: str
    env: Literal["prod", "dev"] = "prod"

    # JWT & token settings
    # IMPORTANT: set in environment for production
    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"
    access_token_ttl_seconds: int = 15 * 60  # 15 minutes
    roll_token_ttl_seconds: int = 5 * 60

    # Result strip
    slot_count: int = 50
    winner_index: int = 45
    result_pool_size: int = 10
    result_return_delay_seconds: float = 5.0

    # Active slot release
    release_mode: Literal["immediate", "delay"] = "delay"
    release_after_seconds: float = 7.0
    active_roll_lease_seconds: float = 60.0
    """How long an unreleased slot blocks the player; keep it above release_after_seconds"""

    # Weighting
    luck_exponent_per_rank: float = 0.35
    luck_boost_min: float = 0.90
    luck_boost_max: float = 7.50
    weight_min: float = 1e-12
    weight_cache_ttl_seconds: float = 60.0
    environment_cache_ttl_seconds: float = 30.0

    # Pity & luck boosts
    pity_rules: list[PityRule] = Field(default_factory=_default_pity_rules)
    new_player_boost_hours: float = 72.0
    new_player_luck_boost: float = 1.25

    # Rare events
    rare_event_min_rank: int = 10
    rare_event_topic: str = "MostRecentLuckyPull_v1"
    rare_event_latest_key: str = "MostRecentLuckyPull_Latest_v1"
    rare_event_latest_ttl_seconds: int = 24 * 60 * 60
    rare_event_max_per_second: int = 2
    rare_event_seen_limit: int = 1000
    rare_event_sweep_interval_seconds: float = 300.0
    rare_event_feed_size: int = 50

    # Cross-node transport
    pubsub_backend: Literal["local", "database"] = "database"
    pubsub_poll_interval_seconds: float = 1.0
    environment_luck_enabled: bool = True
    catalog_file: str | None = None
    """JSON catalog document to serve instead of the database tables"""

    @property
    def is_dev(self) -> bool:
        return self.env == "dev"


load_dotenv()
settings = Config()  # pyright: ignore[reportCallIssue]
