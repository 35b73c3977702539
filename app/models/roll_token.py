from __future__ import annotations

from datetime import datetime
from typing import Any

import sqlmodel

from ._base import BaseModel


class RollToken(BaseModel, table=True):
    """Single-use admission token for one roll."""

    __tablename__: str = "roll_tokens"
    __table_args__ = (
        sqlmodel.UniqueConstraint("player_id", "request_id", name="uq_roll_token_request"),
    )

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    player_id: int = sqlmodel.Field(
        foreign_key="players.id", index=True, sa_type=sqlmodel.BigInteger
    )
    request_id: str = sqlmodel.Field(max_length=64, index=True)
    meta: dict[str, Any] = sqlmodel.Field(
        default_factory=dict, sa_column=sqlmodel.Column(sqlmodel.JSON)
    )
    expires_at: datetime = sqlmodel.Field(index=True, sa_type=sqlmodel.DateTime(timezone=True))
    used: bool = sqlmodel.Field(default=False, index=True)
