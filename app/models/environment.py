import sqlmodel

from ._base import BaseModel


class Environment(BaseModel, table=True):
    __tablename__: str = "environments"

    id: str = sqlmodel.Field(primary_key=True, max_length=50)
    luck_multiplier: float = sqlmodel.Field(default=1.0)
