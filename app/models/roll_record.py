import sqlmodel

from ._base import BaseModel


class RollRecord(BaseModel, table=True):
    """Log each resolved roll made by a player."""

    __tablename__: str = "roll_records"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    player_id: int = sqlmodel.Field(
        foreign_key="players.id", index=True, sa_type=sqlmodel.BigInteger
    )
    crate_type: str = sqlmodel.Field(max_length=50, index=True)
    won_rank: int
