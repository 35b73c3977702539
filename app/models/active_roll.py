from datetime import datetime

import sqlmodel

from ._base import BaseModel


class ActiveRoll(BaseModel, table=True):
    """The one in-flight roll a player is allowed to have."""

    __tablename__: str = "active_rolls"

    player_id: int = sqlmodel.Field(
        primary_key=True,
        foreign_key="players.id",
        sa_type=sqlmodel.BigInteger,
        sa_column_kwargs={"autoincrement": False},
    )
    request_id: str = sqlmodel.Field(max_length=64)
    expires_at: datetime = sqlmodel.Field(index=True, sa_type=sqlmodel.DateTime(timezone=True))
    """Slots past this point are stale and may be taken over by a new roll"""
