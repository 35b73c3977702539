from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType


@dataclass(frozen=True, slots=True)
class PitySnapshot:
    """Read-only view of a player's dry-streak counters for one crate type.

    ``version`` is the progression store version the counters were read at;
    a commit only lands if the store is still at that version.
    """

    counters: Mapping[int, int] = field(default_factory=dict)
    version: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "counters", MappingProxyType(dict(self.counters)))

    def get(self, rank: int) -> int:
        return self.counters.get(rank, 0)

    def as_dict(self) -> dict[int, int]:
        return dict(self.counters)
