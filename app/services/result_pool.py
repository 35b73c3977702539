import threading
import weakref
from dataclasses import dataclass

from app.schemas.roll import ItemEntry


@dataclass(frozen=True, slots=True)
class ResultSlot:
    entry: ItemEntry
    is_winner: bool = False


class ResultSet:
    """Fixed-size strip of result slots with exactly one authoritative winner slot."""

    def __init__(self, slot_count: int, winner_index: int) -> None:
        if not 0 <= winner_index < slot_count:
            raise ValueError(f"winner_index {winner_index} outside 0..{slot_count - 1}")
        self.slot_count = slot_count
        self.winner_index = winner_index
        self._slots: list[ResultSlot | None] = [None] * slot_count

    def clear(self) -> None:
        for index in range(self.slot_count):
            self._slots[index] = None

    def place_winner(self, entry: ItemEntry) -> None:
        self._slots[self.winner_index] = ResultSlot(entry, is_winner=True)

    def place_filler(self, index: int, entry: ItemEntry) -> None:
        if index == self.winner_index:
            raise ValueError("The winner slot cannot hold a filler entry")
        self._slots[index] = ResultSlot(entry)

    @property
    def winner(self) -> ItemEntry | None:
        slot = self._slots[self.winner_index]
        return slot.entry if slot else None

    @property
    def is_complete(self) -> bool:
        return all(slot is not None for slot in self._slots)

    def entries(self) -> list[ItemEntry]:
        return [slot.entry for slot in self._slots if slot is not None]

    def __getitem__(self, index: int) -> ResultSlot | None:
        return self._slots[index]

    def __len__(self) -> int:
        return self.slot_count


class ResultBufferPool:
    """Bounded free list of result strips reused across rolls.

    A buffer is only handed out again after its holder released it.
    """

    def __init__(self, slot_count: int, winner_index: int, capacity: int) -> None:
        self.slot_count = slot_count
        self.winner_index = winner_index
        self.capacity = capacity
        self._free: list[ResultSet] = []
        self._leased: weakref.WeakSet[ResultSet] = weakref.WeakSet()
        self._lock = threading.Lock()
        self.created = 0

    def acquire(self) -> ResultSet:
        with self._lock:
            if self._free:
                buffer = self._free.pop()
            else:
                buffer = ResultSet(self.slot_count, self.winner_index)
                self.created += 1
            self._leased.add(buffer)

        buffer.clear()
        return buffer

    def release(self, buffer: ResultSet) -> bool:
        """Return a leased buffer. Returns False for buffers this pool did not lease out."""
        with self._lock:
            if buffer not in self._leased:
                return False
            self._leased.discard(buffer)
            if len(self._free) < self.capacity:
                self._free.append(buffer)
        return True

    @property
    def available(self) -> int:
        return len(self._free)

    @property
    def leased(self) -> int:
        return len(self._leased)
