from pydantic import BaseModel, ConfigDict, Field


class RareEvent(BaseModel):
    """Payload persisted as the latest rare event and broadcast to every node."""

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(min_length=1)
    item_name: str = Field(min_length=1)
    display_name: str | None = None
    rarity: str | None = None
    puller_name: str | None = None
    odds_denominator: int = 0
    timestamp: int


class Announcement(BaseModel):
    event_id: str
    message: str
    rarity: str
