import sqlmodel

from ._base import BaseModel


class ItemCount(BaseModel, table=True):
    """How many instances of an item exist across all players."""

    __tablename__: str = "item_counts"

    item_name: str = sqlmodel.Field(primary_key=True, max_length=100)
    count: int = sqlmodel.Field(default=0, ge=0, sa_type=sqlmodel.BigInteger)
