import sqlmodel

from ._base import BaseModel


class ItemDiscovery(BaseModel, table=True):
    __tablename__: str = "item_discoveries"
    __table_args__ = (
        sqlmodel.UniqueConstraint(
            "player_id", "crate_type", "item_name", name="uq_item_discovery"
        ),
    )

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    player_id: int = sqlmodel.Field(
        foreign_key="players.id", index=True, sa_type=sqlmodel.BigInteger
    )
    crate_type: str = sqlmodel.Field(max_length=50)
    item_name: str = sqlmodel.Field(max_length=100)
