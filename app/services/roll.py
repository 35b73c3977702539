import asyncio
import random
import re
from collections.abc import Mapping, Sequence
from typing import Any, Literal

from loguru import logger

from app.repositories.protocols import ActiveRollLimiter, PlayerRecordStore, TokenService
from app.schemas.catalog import CrateModifiers
from app.schemas.pity import PitySnapshot
from app.schemas.roll import ItemEntry, PityResponse, RollResponse, TokenMetadata
from app.services.award import AwardService
from app.services.catalog_cache import CatalogCache
from app.services.jobs import BackgroundJobs
from app.services.pity import PityService
from app.services.rare_event import RareEventService
from app.services.result_pool import ResultBufferPool, ResultSet
from app.services.sampler import draw, filler_table
from app.services.weights import DEFAULT_TUNING, WeightTuning, clamp_luck, compose_weight
from app.utils.cache import Unavailable, guarded

REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def is_valid_request(player_id: Any, request_id: Any) -> bool:
    if isinstance(player_id, bool) or not isinstance(player_id, int) or player_id <= 0:
        return False
    return isinstance(request_id, str) and REQUEST_ID_PATTERN.match(request_id) is not None


def select_winner(
    pool: Sequence[ItemEntry],
    ranks: Mapping[str, int],
    base_weights: Mapping[str, float],
    crate: CrateModifiers,
    luck: float,
    snapshot: PitySnapshot,
    pity: PityService,
    guaranteed: str | None = None,
    *,
    tuning: WeightTuning = DEFAULT_TUNING,
    rng: random.Random | None = None,
) -> ItemEntry | None:
    """Pick the authoritative winner.

    The hard pity floor narrows the eligible pool (unless nothing meets it),
    a guaranteed item found in the eligible pool wins outright, and otherwise
    the winner is a weighted draw with luck, crate and soft pity applied.
    """
    if not pool:
        return None

    floor = pity.get_hard_min_order(snapshot)
    eligible = list(pool)
    if floor > 0:
        eligible = [entry for entry in pool if ranks.get(entry.name, 1) >= floor] or eligible

    if guaranteed:
        for entry in eligible:
            if entry.name == guaranteed:
                return entry

    def weight(entry: ItemEntry) -> float:
        rank = ranks.get(entry.name, 1)
        return compose_weight(
            base_weights.get(entry.name, 0.0),
            rank,
            crate,
            luck,
            pity.get_soft_pity_multiplier(rank, snapshot),
            tuning,
        )

    return draw(eligible, weight, rng) or eligible[0]


class RollService:
    """Token-gated roll handler.

    A request is dropped silently (``None``) when it is malformed, the player
    is not ready, another roll of the player is in flight or no token exists.
    Once a token is consumed the roll runs to completion even if the caller
    goes away, and cleanup runs on every exit path.
    """

    def __init__(
        self,
        *,
        catalog: CatalogCache,
        pity: PityService,
        tokens: TokenService,
        limiter: ActiveRollLimiter,
        players: PlayerRecordStore,
        awards: AwardService,
        rare_events: RareEventService,
        buffers: ResultBufferPool,
        jobs: BackgroundJobs,
        tuning: WeightTuning = DEFAULT_TUNING,
        rare_event_min_rank: int = 10,
        result_return_delay: float = 5.0,
        release_mode: Literal["immediate", "delay"] = "delay",
        release_after: float = 7.0,
        rng: random.Random | None = None,
    ) -> None:
        self.catalog = catalog
        self.pity = pity
        self._tokens = tokens
        self._limiter = limiter
        self._players = players
        self._awards = awards
        self._rare_events = rare_events
        self.buffers = buffers
        self._jobs = jobs
        self._tuning = tuning
        self._rare_event_min_rank = rare_event_min_rank
        self._result_return_delay = result_return_delay
        self._release_mode = release_mode
        self._release_after = release_after
        self._rng = rng or random.SystemRandom()

    async def roll(
        self, player_id: int, player_name: str, request_id: str
    ) -> RollResponse | None:
        if not is_valid_request(player_id, request_id):
            logger.debug(f"Dropping malformed roll request {request_id!r} of player {player_id!r}")
            return None

        if not await guarded(lambda: self._players.is_ready(player_id), what="Player readiness"):
            logger.debug(f"Dropping roll {request_id} of player {player_id}: record not ready")
            return None

        started = await guarded(
            lambda: self._limiter.start(player_id, request_id), what="Active roll limiter"
        )
        if not started:
            logger.debug(f"Dropping roll {request_id} of player {player_id}: roll in flight")
            return None

        meta = await guarded(
            lambda: self._tokens.consume(player_id, request_id), what="Roll token consume"
        )
        if isinstance(meta, Unavailable) or meta is None:
            logger.debug(f"Dropping roll {request_id} of player {player_id}: no token")
            await self._release(player_id, request_id, immediate=True)
            return None

        task = self._jobs.spawn(
            self._run(player_id, player_name, request_id, meta), name=f"roll.{player_id}"
        )
        return await asyncio.shield(task)

    async def _run(
        self, player_id: int, player_name: str, request_id: str, meta: Mapping[str, Any]
    ) -> RollResponse | None:
        buffer: ResultSet | None = None
        try:
            token = TokenMetadata.model_validate(dict(meta))
            buffer = self.buffers.acquire()
            return await self._resolve(player_id, player_name, request_id, token, buffer)
        except Exception:
            logger.exception(f"Roll {request_id} of player {player_id} failed")
            return None
        finally:
            await self._cleanup(player_id, request_id, buffer)

    async def _resolve(
        self,
        player_id: int,
        player_name: str,
        request_id: str,
        token: TokenMetadata,
        buffer: ResultSet,
    ) -> RollResponse | None:
        crate_type = token.crate_type
        await self.pity.ensure_record(player_id, crate_type)
        snapshot = await self.pity.snapshot(player_id, crate_type)

        won = await self.fill_results(buffer, player_id, token, snapshot)
        if won is None:
            logger.warning(f"Roll {request_id} of player {player_id} resolved nothing: empty pool")
            return None

        instance_id = await self._awards.award(player_id, won, crate_type, token.environment_id)

        won_rank = await self.catalog.get_rarity_rank(won.rarity)
        await self.pity.record_roll(player_id, crate_type, won_rank)
        new_pity = self.pity.compute_new_pity(snapshot, won_rank)
        await self.pity.commit_pity(player_id, crate_type, new_pity)

        if won_rank >= self._rare_event_min_rank:
            odds = await self.catalog.get_odds_denominator(won.name)
            await self._rare_events.trigger(player_name, won, odds)

        return RollResponse(
            request_id=request_id,
            results=buffer.entries(),
            winner_index=buffer.winner_index,
            won_item=won,
            awarded_instance_id=instance_id,
            environment_id=token.environment_id,
            luck_multiplier=token.luck_multiplier,
            crate_type=crate_type,
            new_pity_snapshot=new_pity.as_dict(),
        )

    async def fill_results(
        self, buffer: ResultSet, player_id: int, token: TokenMetadata, snapshot: PitySnapshot
    ) -> ItemEntry | None:
        """Place the winner and the filler entries, returns the winner."""
        pool = await self.catalog.get_pool()
        if not pool:
            return None

        ranks = await self.catalog.get_item_ranks(pool)
        base_weights = await self.catalog.get_base_weights(pool)
        crate = await self.catalog.get_crate_modifiers(token.crate_type, ranks.values())
        environment_luck = await self.catalog.get_environment_luck(token.environment_id)

        base_luck = clamp_luck(token.luck_multiplier * environment_luck)
        luck = clamp_luck(await self.pity.apply_effective_luck(player_id, base_luck))

        won = select_winner(
            pool,
            ranks,
            base_weights,
            crate,
            luck,
            snapshot,
            self.pity,
            token.guaranteed_item,
            tuning=self._tuning,
            rng=self._rng,
        )
        if won is None:
            return None
        buffer.place_winner(won)

        fillers = filler_table(pool, base_weights)
        for index in range(buffer.slot_count):
            if index != buffer.winner_index:
                buffer.place_filler(index, fillers.pick(self._rng) or pool[0])
        return won

    async def _release(self, player_id: int, request_id: str, *, immediate: bool) -> None:
        if immediate:
            await guarded(
                lambda: self._limiter.finish(player_id, request_id), what="Active roll release"
            )
            return

        self._jobs.delay(
            self._release_after,
            lambda: self._limiter.finish(player_id, request_id),
            name="active_roll.finish",
        )

    async def _cleanup(self, player_id: int, request_id: str, buffer: ResultSet | None) -> None:
        if buffer is not None:
            self._jobs.delay(
                self._result_return_delay,
                lambda: self.buffers.release(buffer),
                name="result_buffer.release",
            )
        await self._release(player_id, request_id, immediate=self._release_mode == "immediate")

    async def get_pity(self, player_id: int, crate_type: str) -> PityResponse:
        snapshot = await self.pity.snapshot(player_id, crate_type)
        return PityResponse(
            crate_type=crate_type,
            counters=snapshot.as_dict(),
            hard_min_rank=self.pity.get_hard_min_order(snapshot),
        )
