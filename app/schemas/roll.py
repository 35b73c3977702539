import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ItemEntry(BaseModel):
    """A rollable catalog item."""

    model_config = ConfigDict(frozen=True)

    name: str
    display_name: str
    rarity: str


class TokenMetadata(BaseModel):
    """Roll parameters carried by a consumed admission token.

    Token metadata is written by whatever issued the token, so every field
    degrades to its default instead of rejecting the roll.
    """

    environment_id: str | None = None
    luck_multiplier: float = 1.0
    crate_type: str = "Default"
    guaranteed_item: str | None = None

    @field_validator("environment_id", "guaranteed_item", mode="before")
    @classmethod
    def _optional_name(cls, value: Any) -> str | None:
        if isinstance(value, str) and value:
            return value
        return None

    @field_validator("luck_multiplier", mode="before")
    @classmethod
    def _luck(cls, value: Any) -> float:
        try:
            luck = float(value)
        except (TypeError, ValueError):
            return 1.0
        return luck if math.isfinite(luck) else 1.0

    @field_validator("crate_type", mode="before")
    @classmethod
    def _crate_type(cls, value: Any) -> str:
        if isinstance(value, str) and value:
            return value
        return "Default"


class RollRequest(BaseModel):
    request_id: str = Field(description="Client-generated id the admission token was issued for")


class RollResponse(BaseModel):
    success: bool = True
    request_id: str
    results: list[ItemEntry]
    winner_index: int
    won_item: ItemEntry
    awarded_instance_id: str
    environment_id: str | None
    luck_multiplier: float
    crate_type: str
    new_pity_snapshot: dict[int, int]


class PityResponse(BaseModel):
    crate_type: str
    counters: dict[int, int]
    hard_min_rank: int


class RollTokenCreate(BaseModel):
    """Issue an admission token for a player (admin only)."""

    player_id: int
    request_id: str = Field(min_length=1, max_length=64)
    crate_type: str = "Default"
    environment_id: str | None = None
    luck_multiplier: float = Field(default=1.0, gt=0)
    guaranteed_item: str | None = None
