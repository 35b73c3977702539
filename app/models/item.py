import sqlmodel

from ._base import BaseModel


class Item(BaseModel, table=True):
    __tablename__: str = "items"

    name: str = sqlmodel.Field(primary_key=True, max_length=100)
    display_name: str | None = sqlmodel.Field(default=None, max_length=100)
    rarity: str | None = sqlmodel.Field(default=None, max_length=50, index=True)
    weight: float = sqlmodel.Field(default=0.0, ge=0.0)
    odds_denominator: int | None = sqlmodel.Field(default=None, ge=0)
    """Shown as "1 in N" when the item is announced"""
    stat_ranges: dict[str, list[float]] | None = sqlmodel.Field(
        default=None, sa_column=sqlmodel.Column(sqlmodel.JSON)
    )
    """Per-stat [low, high] multiplier range rolled when the item is awarded"""
