"""
Process-lifetime, memory-resident cache slots.
Every entry carries its value and the time it was fetched; a read is a hit
only while `now - fetched_at < ttl`.
"""
import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

T = TypeVar("T")

Clock = Callable[[], float]


@dataclass
class CachedValue(Generic[T]):
    value: T
    fetched_at: float

    def is_fresh(self, now: float, ttl: float) -> bool:
        return now - self.fetched_at < ttl


class TimedSlot(Generic[T]):
    """A single cached value refreshed by `loader` once it is older than `ttl`."""

    def __init__(self, name: str, ttl: float, clock: Clock = time.monotonic):
        self.name = name
        self.ttl = ttl
        self.clock = clock
        self._entry: Optional[CachedValue[T]] = None
        self._lock = asyncio.Lock()

    def peek(self) -> Optional[T]:
        """Fresh value or None, without refreshing."""
        entry = self._entry
        if entry and entry.is_fresh(self.clock(), self.ttl):
            return entry.value
        return None

    async def get_or_refresh(self, loader: Callable[[], Awaitable[T]]) -> tuple[T, bool]:
        """
        Returns (value, from_cache). Concurrent callers on a stale slot wait
        for one loader call instead of each issuing their own.
        """
        value = self.peek()
        if value is not None:
            return value, True

        async with self._lock:
            value = self.peek()
            if value is not None:
                return value, True
            value = await loader()
            self._entry = CachedValue(value=value, fetched_at=self.clock())
            return value, False

