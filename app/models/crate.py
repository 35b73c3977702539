import sqlmodel

from ._base import BaseModel


class Crate(BaseModel, table=True):
    __tablename__: str = "crates"

    type: str = sqlmodel.Field(primary_key=True, max_length=50)
    luck_multiplier: float = sqlmodel.Field(default=1.0)
    rank_weight_multipliers: dict[str, float] = sqlmodel.Field(
        default_factory=dict, sa_column=sqlmodel.Column(sqlmodel.JSON)
    )
    """Rarity rank (as string key) -> weight multiplier"""
