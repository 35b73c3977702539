from datetime import datetime
from typing import Any

import sqlmodel

from ._base import BaseModel


class SharedValue(BaseModel, table=True):
    """Expiring key-value entry visible to every node."""

    __tablename__: str = "shared_values"

    key: str = sqlmodel.Field(primary_key=True, max_length=100)
    value: dict[str, Any] = sqlmodel.Field(sa_column=sqlmodel.Column(sqlmodel.JSON))
    expires_at: datetime = sqlmodel.Field(index=True, sa_type=sqlmodel.DateTime(timezone=True))
