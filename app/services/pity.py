from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta

from app.core.config import PityRule
from app.repositories.protocols import PlayerRecordStore, ProgressionStore
from app.schemas.pity import PitySnapshot
from app.utils.cache import Unavailable, guarded
from app.utils.misc import get_utc_now


class PityConflictError(Exception):
    """A pity commit lost a compare-and-set race against another commit."""

    def __init__(self, player_id: int, crate_type: str, version: int) -> None:
        super().__init__(
            f"Pity record of player {player_id} ({crate_type}) moved past version {version}"
        )
        self.player_id = player_id
        self.crate_type = crate_type
        self.version = version


class PityService:
    """Dry-streak progression: soft pity multipliers, hard pity floors, and commits."""

    def __init__(
        self,
        store: ProgressionStore,
        players: PlayerRecordStore,
        rules: Sequence[PityRule],
        *,
        new_player_boost_hours: float = 0.0,
        new_player_luck_boost: float = 1.0,
        clock: Callable[[], datetime] = get_utc_now,
    ) -> None:
        self._store = store
        self._players = players
        self._rules = sorted(rules, key=lambda rule: rule.rank)
        self._new_player_window = timedelta(hours=new_player_boost_hours)
        self._new_player_boost = new_player_luck_boost
        self._clock = clock

    @property
    def tracked_ranks(self) -> list[int]:
        return [rule.rank for rule in self._rules]

    def _bucket_for(self, rank: int) -> PityRule | None:
        """Highest tracked bucket an item of ``rank`` counts as a hit for."""
        bucket = None
        for rule in self._rules:
            if rule.rank <= rank:
                bucket = rule
        return bucket

    def get_soft_pity_multiplier(self, rank: int, snapshot: PitySnapshot) -> float:
        rule = self._bucket_for(rank)
        if rule is None:
            return 1.0

        overdue = snapshot.get(rule.rank) - rule.soft_start
        if overdue <= 0:
            return 1.0
        return max(1.0, min(rule.soft_cap, 1.0 + overdue * rule.soft_step))

    def get_hard_min_order(self, snapshot: PitySnapshot) -> int:
        """Rarity floor the winner must meet, or 0 when no hard pity is active."""
        floor = 0
        for rule in self._rules:
            if rule.hard_at is not None and snapshot.get(rule.rank) >= rule.hard_at:
                floor = max(floor, rule.rank)
        return floor

    def compute_new_pity(self, old: PitySnapshot, won_rank: int) -> PitySnapshot:
        ranks = set(self.tracked_ranks) | set(old.counters)
        counters = {rank: 0 if rank <= won_rank else old.get(rank) + 1 for rank in sorted(ranks)}
        return PitySnapshot(counters=counters, version=old.version)

    async def ensure_record(self, player_id: int, crate_type: str) -> None:
        await guarded(
            lambda: self._store.ensure_record(player_id, crate_type), what="Pity record setup"
        )

    async def snapshot(self, player_id: int, crate_type: str) -> PitySnapshot:
        snapshot = await guarded(
            lambda: self._store.read_snapshot(player_id, crate_type), what="Pity snapshot"
        )
        return PitySnapshot() if isinstance(snapshot, Unavailable) else snapshot

    async def record_roll(self, player_id: int, crate_type: str, won_rank: int) -> None:
        await guarded(
            lambda: self._store.record_roll(player_id, crate_type, won_rank), what="Roll record"
        )

    async def commit_pity(self, player_id: int, crate_type: str, new: PitySnapshot) -> None:
        """Persist ``new`` on top of the version it was computed from."""
        if not await self._store.commit(player_id, crate_type, new):
            raise PityConflictError(player_id, crate_type, new.version)

    async def apply_effective_luck(self, player_id: int, base_luck: float) -> float:
        """Apply standing luck boosts. The only place such boosts may be applied."""
        if self._new_player_boost == 1.0 or self._new_player_window <= timedelta(0):
            return base_luck

        player = await guarded(lambda: self._players.get_record(player_id), what="Player record")
        if isinstance(player, Unavailable) or player is None:
            return base_luck

        created_at = player.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)
        if self._clock() - created_at <= self._new_player_window:
            return base_luck * self._new_player_boost
        return base_luck
