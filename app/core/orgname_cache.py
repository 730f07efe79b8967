"""
Process-local cache for orgname availability checks.

Interactive availability probes fire on every keystroke, so existence
answers are kept for a short TTL. The cache is advisory: the write that
claims an orgname is always arbitrated by the unique index in the store.
Each process owns one instance; there is no cross-instance invalidation.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from typing import Callable, NamedTuple

from app.core.metrics import orgname_cache_operations_total

logger = logging.getLogger(__name__)


class CacheEntry(NamedTuple):
    exists: bool
    recorded_at: float


class OrgnameCache:
    """
    Bounded orgname -> (exists, recorded_at) mapping with TTL.

    - get(): None when the name is unknown or the entry has expired
      (expired entries are evicted on read)
    - set(): at capacity the oldest-inserted entry is evicted first
    - a background sweep removes expired entries every ``sweep_interval``
      seconds independent of reads
    """

    def __init__(
        self,
        ttl_seconds: float = 60.0,
        max_size: int = 10_000,
        sweep_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._sweeper: asyncio.Task | None = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, orgname: str) -> bool:
        return orgname in self._entries

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.recorded_at > self.ttl_seconds

    def get(self, orgname: str) -> bool | None:
        """Return the cached existence flag, or None if unknown or stale."""
        entry = self._entries.get(orgname)
        if entry is None:
            orgname_cache_operations_total.labels(operation="get", result="miss").inc()
            return None

        if self._expired(entry, self._clock()):
            del self._entries[orgname]
            orgname_cache_operations_total.labels(operation="get", result="expired").inc()
            return None

        orgname_cache_operations_total.labels(operation="get", result="hit").inc()
        return entry.exists

    def set(self, orgname: str, exists: bool) -> None:
        """Record whether ``orgname`` exists; overwrites any previous entry."""
        if orgname in self._entries:
            # Re-insert so the entry counts as the newest
            del self._entries[orgname]
        elif len(self._entries) >= self.max_size:
            self._entries.popitem(last=False)
            orgname_cache_operations_total.labels(operation="set", result="evicted").inc()

        self._entries[orgname] = CacheEntry(exists=exists, recorded_at=self._clock())
        orgname_cache_operations_total.labels(operation="set", result="stored").inc()

    def invalidate(self, orgname: str) -> None:
        """Drop the entry for ``orgname`` if present."""
        self._entries.pop(orgname, None)
        orgname_cache_operations_total.labels(operation="invalidate", result="ok").inc()

    def clear(self) -> None:
        self._entries.clear()

    def sweep(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        now = self._clock()
        expired = [name for name, entry in self._entries.items() if self._expired(entry, now)]
        for name in expired:
            del self._entries[name]

        if expired:
            logger.debug(f"Orgname cache sweep removed {len(expired)} entries")
        return len(expired)

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep()

    def start(self) -> None:
        """Start the background sweep task on the running loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(
                self._sweep_forever(), name="orgname-cache-sweep"
            )
            logger.info("Orgname cache sweeper started")

    async def close(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        if self._sweeper is None:
            return

        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
        logger.info("Orgname cache sweeper stopped")

    @property
    def running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()
