import sqlmodel

from ._base import BaseModel


class RollPity(BaseModel, table=True):
    """Dry-streak counters of a player for one crate type."""

    __tablename__: str = "roll_pity"
    __table_args__ = (
        sqlmodel.UniqueConstraint("player_id", "crate_type", name="uq_roll_pity_player_crate"),
    )

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    player_id: int = sqlmodel.Field(
        foreign_key="players.id", index=True, sa_type=sqlmodel.BigInteger
    )
    crate_type: str = sqlmodel.Field(max_length=50, index=True)
    counters: dict[str, int] = sqlmodel.Field(
        default_factory=dict, sa_column=sqlmodel.Column(sqlmodel.JSON)
    )
    """Rarity rank bucket (as string key) -> rolls since the last hit at or above it"""
    version: int = sqlmodel.Field(default=0, ge=0)
    """Bumped on every commit; commits are compare-and-set on this column"""
