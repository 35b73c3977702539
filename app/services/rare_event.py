import asyncio
import time
import uuid
from collections import deque
from collections.abc import Callable
from typing import Any

from loguru import logger
from pydantic import ValidationError

from app.repositories.protocols import ChatBroadcaster, SharedStore, ShowcasePresenter, Topic
from app.schemas.rare_event import Announcement, RareEvent
from app.schemas.roll import ItemEntry
from app.services.jobs import BackgroundJobs
from app.utils.cache import guarded
from app.utils.misc import get_unix_timestamp

_UNITS = ((1e15, "Q"), (1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K"))


def short_int(n: float) -> str:
    """Abbreviate a large count for chat, e.g. 1500000 -> 1.5M."""
    n = int(n)
    if n < 1000:
        return str(n)

    for size, suffix in _UNITS:
        if n >= size:
            value = n / size
            if value < 10:
                return f"{value:.1f}".replace(".0", "") + suffix
            return f"{int(value + 0.5)}{suffix}"
    return str(n)


def format_announcement(event: RareEvent) -> str:
    puller = event.puller_name or "Someone"
    item = event.display_name or event.item_name
    odds = f" (1 in {short_int(event.odds_denominator)})" if event.odds_denominator > 0 else ""
    return f"LUCKY PULL! {puller} pulled {item}{odds}"


class ShowcaseBoard:
    """Keeps the rare event currently on display."""

    def __init__(self) -> None:
        self.current: RareEvent | None = None

    async def show(self, event: RareEvent) -> None:
        self.current = event


class AnnouncementFeed:
    """Bounded feed of chat announcements, newest last."""

    def __init__(self, size: int = 50) -> None:
        self._items: deque[Announcement] = deque(maxlen=size)

    async def announce(self, event: RareEvent) -> None:
        announcement = Announcement(
            event_id=event.event_id,
            message=format_announcement(event),
            rarity=event.rarity or "Common",
        )
        self._items.append(announcement)
        logger.info(announcement.message)

    def items(self) -> list[Announcement]:
        return list(self._items)


class RareEventService:
    """Cross-node rare event broadcast with per-node dedup and a publish throttle.

    Every node keeps a set of event ids it already handled. The set is cleared
    wholesale by ``sweep`` once it grows past ``seen_limit``; event ids are
    random UUIDs, so a duplicate arriving right after a sweep is the only way
    an event is shown twice.
    """

    def __init__(
        self,
        topic: Topic,
        store: SharedStore,
        showcase: ShowcasePresenter,
        chat: ChatBroadcaster,
        jobs: BackgroundJobs,
        *,
        topic_name: str = "MostRecentLuckyPull_v1",
        latest_key: str = "MostRecentLuckyPull_Latest_v1",
        latest_ttl_seconds: int = 24 * 60 * 60,
        max_per_second: int = 2,
        seen_limit: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._topic = topic
        self._store = store
        self._showcase = showcase
        self._chat = chat
        self._jobs = jobs
        self.topic_name = topic_name
        self.latest_key = latest_key
        self.latest_ttl_seconds = latest_ttl_seconds
        self.max_per_second = max_per_second
        self.seen_limit = seen_limit
        self._clock = clock

        self._seen: set[str] = set()
        self._window_start = float("-inf")
        self._window_count = 0

    @staticmethod
    def new_event_id() -> str:
        return uuid.uuid4().hex

    def mark_seen(self, event_id: str) -> None:
        self._seen.add(event_id)

    def has_seen(self, event_id: str) -> bool:
        return event_id in self._seen

    @property
    def seen_count(self) -> int:
        return len(self._seen)

    def sweep(self) -> bool:
        if len(self._seen) <= self.seen_limit:
            return False
        logger.debug(f"Clearing {len(self._seen)} seen rare event ids")
        self._seen.clear()
        return True

    def _acquire_slot(self) -> bool:
        now = self._clock()
        if now - self._window_start >= 1.0:
            self._window_start = now
            self._window_count = 0
        if self._window_count >= self.max_per_second:
            return False
        self._window_count += 1
        return True

    def build_event(
        self, event_id: str, puller_name: str, item: ItemEntry, odds_denominator: int
    ) -> RareEvent:
        return RareEvent(
            event_id=event_id,
            item_name=item.name,
            display_name=item.display_name or item.name,
            rarity=item.rarity,
            puller_name=puller_name,
            odds_denominator=max(0, odds_denominator),
            timestamp=get_unix_timestamp(),
        )

    def publish(self, event: RareEvent) -> bool:
        """Persist ``event`` as the latest one and broadcast it to every node.

        Both writes run as background jobs. Returns False when the event was
        dropped by the throttle.
        """
        if not self._acquire_slot():
            logger.debug(f"Rare event {event.event_id} dropped by throttle")
            return False

        payload = event.model_dump()
        self._jobs.spawn(
            self._store.set(self.latest_key, payload, self.latest_ttl_seconds),
            name="rare_event.persist_latest",
        )
        self._jobs.spawn(
            self._topic.publish(self.topic_name, payload), name="rare_event.publish"
        )
        return True

    async def _present(self, event: RareEvent, *, silent: bool) -> None:
        await guarded(lambda: self._showcase.show(event), what="Rare event showcase")
        if not silent:
            await guarded(lambda: self._chat.announce(event), what="Rare event announcement")

    async def trigger(
        self, puller_name: str, item: ItemEntry, odds_denominator: int
    ) -> RareEvent:
        """Announce a rare roll made on this node, then broadcast it."""
        event = self.build_event(self.new_event_id(), puller_name, item, odds_denominator)
        # Our own broadcast comes back through the topic
        self.mark_seen(event.event_id)

        await self._present(event, silent=False)
        self.publish(event)
        return event

    async def on_receive(self, payload: Any, *, silent: bool = False) -> bool:
        """Handle a broadcast event. Returns True when it was presented."""
        try:
            event = RareEvent.model_validate(payload)
        except ValidationError:
            logger.debug(f"Ignoring malformed rare event payload: {payload!r}")
            return False

        if self.has_seen(event.event_id):
            return False
        self.mark_seen(event.event_id)

        await self._present(event, silent=silent)
        return True

    async def replay_latest(self) -> bool:
        """Show the fleet's latest rare event without announcing it again."""
        payload = await guarded(lambda: self._store.get(self.latest_key), what="Latest rare event")
        if not payload:
            return False
        return await self.on_receive(payload, silent=True)

    async def _on_message(self, payload: dict[str, Any]) -> None:
        await self.on_receive(payload)

    async def start(self) -> None:
        await self._topic.subscribe(self.topic_name, self._on_message)

    async def run_sweeper(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.sweep()
