from pydantic import BaseModel


class PlayerCreate(BaseModel):
    id: int
    name: str | None = None
    is_admin: bool = False
    is_ready: bool = True


class PlayerUpdate(BaseModel):
    name: str | None = None
    is_admin: bool | None = None
    is_ready: bool | None = None


class ItemInstance(BaseModel):
    """One awarded copy of an item, as stored on the player record."""

    name: str
    display_name: str
    rarity: str
    obtained_at: int
    favourited: bool = False
    environment_id: str | None = None
    stats: dict[str, float] = {}


class PlayerItems(BaseModel):
    owned: dict[str, int]
    """Item name -> number of copies ever awarded"""
    instances: dict[str, ItemInstance]
    """Instance id -> instance"""
