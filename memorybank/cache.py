"""In-process analysis cache with TTL expiry and capacity-based eviction."""

from __future__ import annotations

import asyncio
import hashlib
import itertools
import logging
import math
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .config import DEFAULT_CACHE_CAPACITY, DEFAULT_CACHE_TTL, DEFAULT_SWEEP_INTERVAL
from .errors import CacheExpiredError, CacheNotFoundError
from .models import AnalysisSnapshot

logger = logging.getLogger(__name__)

EVICTION_FRACTION = 0.25


@dataclass
class CacheEntry:
    snapshot: AnalysisSnapshot
    timestamp: float
    expires: float
    sequence: int


@dataclass
class CacheStats:
    total: int
    valid: int
    expired: int
    oldest: Optional[float]
    newest: Optional[float]


def generate_analysis_id(root_path: str, now: float) -> str:
    """Opaque key: root hash + millisecond time + random suffix.

    Uniqueness is probabilistic; collisions are not detected.
    """
    digest = hashlib.sha256(root_path.encode("utf-8")).hexdigest()[:8]
    return f"analysis_{digest}_{int(now * 1000)}_{uuid.uuid4().hex[:9]}"


class AnalysisCache:
    """Keyed store for :class:`AnalysisSnapshot` objects between phases.

    Reads never refresh an entry's TTL. Expiry is enforced lazily on access
    and by an optional background sweep task (see :meth:`start_sweeper`).
    Mutations never await, so they are atomic with respect to the event loop.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_CACHE_TTL,
        capacity: int = DEFAULT_CACHE_CAPACITY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.ttl = ttl
        self.capacity = capacity
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._counter = itertools.count()
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    async def store(self, snapshot: AnalysisSnapshot) -> str:
        if len(self._entries) >= self.capacity:
            self._evict_oldest()

        now = self._clock()
        key = generate_analysis_id(snapshot.root_path, now)
        self._entries[key] = CacheEntry(
            snapshot=snapshot,
            timestamp=now,
            expires=now + self.ttl,
            sequence=next(self._counter),
        )
        logger.debug("Stored analysis %s (expires in %ss)", key, self.ttl)
        self.cleanup_expired()
        return key

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def restore(self, key: str, snapshot: AnalysisSnapshot, timestamp: float, expires: float) -> None:
        """Re-insert a persisted entry under its original key and expiry."""
        if key not in self._entries and len(self._entries) >= self.capacity:
            self._evict_oldest()
        self._entries[key] = CacheEntry(
            snapshot=snapshot,
            timestamp=timestamp,
            expires=expires,
            sequence=next(self._counter),
        )

    async def retrieve(self, key: str) -> AnalysisSnapshot:
        entry = self._entries.get(key)
        if entry is None:
            raise CacheNotFoundError(key)
        if entry.expires < self._clock():
            del self._entries[key]
            raise CacheExpiredError(key)
        return entry.snapshot

    async def exists(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        if entry.expires < self._clock():
            del self._entries[key]
            return False
        return True

    async def extend(self, key: str, duration: Optional[float] = None) -> bool:
        """Push a live entry's expiry to ``now + duration`` (default: the TTL)."""
        if not await self.exists(key):
            return False
        self._entries[key].expires = self._clock() + (self.ttl if duration is None else duration)
        return True

    async def clear(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear_all(self) -> None:
        self._entries.clear()

    def time_remaining(self, key: str) -> float:
        entry = self._entries.get(key)
        if entry is None:
            return 0.0
        return max(0.0, entry.expires - self._clock())

    def cleanup_expired(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expires < now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Removed %d expired analyses", len(expired))
        return len(expired)

    def stats(self) -> CacheStats:
        now = self._clock()
        stamps = [e.timestamp for e in self._entries.values()]
        expired = sum(1 for e in self._entries.values() if e.expires < now)
        return CacheStats(
            total=len(self._entries),
            valid=len(self._entries) - expired,
            expired=expired,
            oldest=min(stamps) if stamps else None,
            newest=max(stamps) if stamps else None,
        )

    def _evict_oldest(self) -> None:
        count = math.ceil(len(self._entries) * EVICTION_FRACTION)
        oldest = sorted(self._entries.items(), key=lambda item: item[1].sequence)[:count]
        for key, _ in oldest:
            del self._entries[key]
        logger.debug("Evicted %d oldest analyses (capacity %d)", count, self.capacity)

    # ------------------------------------------------------------------
    # Background sweep
    # ------------------------------------------------------------------

    def start_sweeper(self, interval: float = DEFAULT_SWEEP_INTERVAL) -> asyncio.Task:
        """Start the periodic expiry sweep on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever(interval))
        return self._sweeper

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    @property
    def sweeping(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    async def _sweep_forever(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.cleanup_expired()


def format_time_remaining(seconds: float) -> str:
    if seconds <= 0:
        return "expired"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs}s remaining"
