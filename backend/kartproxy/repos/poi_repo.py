import asyncio
import time
import logging
from typing import Dict, List, Optional, Tuple

from kartproxy.models.poi_model import Poi
from kartproxy.repos.memory_cache import CachedValue, Clock
from kartproxy.core.logger import logs

PoiKey = Tuple[str, str]


class PoiRepository:
    """
    In-memory POI cache keyed by the literal (category, bbox) pair.
    Eviction is a staleness sweep that runs after an insert pushes the
    entry count past `max_entries`; it is not a hard capacity bound.
    """
    def __init__(self, ttl: float, max_entries: int, clock: Clock = time.monotonic):
        self.ttl = ttl
        self.max_entries = max_entries
        self.clock = clock
        self._entries: Dict[PoiKey, CachedValue[List[Poi]]] = {}
        self._key_locks: Dict[PoiKey, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def lock_for(self, category: str, bbox: str) -> asyncio.Lock:
        """Per-key lock so concurrent misses on one key fetch once."""
        key = (category, bbox)
        lock = self._key_locks.get(key)
        if lock is None:
            lock = self._key_locks[key] = asyncio.Lock()
        return lock

    def get_cached_pois(self, category: str, bbox: str) -> Optional[List[Poi]]:
        """Returns the cached items if they are younger than the TTL."""
        entry = self._entries.get((category, bbox))
        if entry and entry.is_fresh(self.clock(), self.ttl):
            return entry.value
        return None

    def cache_pois(self, category: str, bbox: str, items: List[Poi]):
        self._entries[(category, bbox)] = CachedValue(value=items, fetched_at=self.clock())
        if len(self._entries) > self.max_entries:
            self.sweep()

    def sweep(self) -> int:
        """Evicts every stale entry; returns how many were dropped."""
        now = self.clock()
        stale = [key for key, entry in self._entries.items() if not entry.is_fresh(now, self.ttl)]
        for key in stale:
            del self._entries[key]
        for key in [k for k, lock in self._key_locks.items() if k not in self._entries and not lock.locked()]:
            del self._key_locks[key]
        if stale:
            logs.log(logging.INFO, f"POI cache sweep evicted {len(stale)} stale entries, {len(self._entries)} left")
        return len(stale)
