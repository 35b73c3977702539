import sqlmodel

from ._base import BaseModel


class Rarity(BaseModel, table=True):
    __tablename__: str = "rarities"

    id: str = sqlmodel.Field(primary_key=True, max_length=50)
    rank: int = sqlmodel.Field(ge=1, index=True)
    """Higher is rarer"""
    color: str | None = sqlmodel.Field(default=None, max_length=7)
