from typing import Any

import sqlmodel
from pydantic import field_serializer

from ._base import BaseModel


class Player(BaseModel, table=True):
    __tablename__: str = "players"

    id: int = sqlmodel.Field(
        primary_key=True,
        index=True,
        sa_type=sqlmodel.BigInteger,
        sa_column_kwargs={"autoincrement": False},
    )
    name: str | None = sqlmodel.Field(default=None, nullable=True)
    is_admin: bool = False
    is_ready: bool = sqlmodel.Field(default=True)
    """False while the player's record is still being loaded or migrated"""
    data: dict[str, Any] = sqlmodel.Field(
        default_factory=dict, sa_column=sqlmodel.Column(sqlmodel.JSON)
    )
    """Owned item counts and awarded item instances"""

    @field_serializer("id")
    def serialize_id(self, value: int) -> str:
        """Serialize ID as string for JavaScript compatibility with large IDs."""
        return str(value)
