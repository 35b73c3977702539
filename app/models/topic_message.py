from typing import Any

import sqlmodel

from ._base import BaseModel


class TopicMessage(BaseModel, table=True):
    """Cross-node message polled by every subscribed node."""

    __tablename__: str = "topic_messages"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    topic: str = sqlmodel.Field(max_length=100, index=True)
    payload: dict[str, Any] = sqlmodel.Field(sa_column=sqlmodel.Column(sqlmodel.JSON))
