"""
In-process TTL cache for arXiv search results.

Keys are canonical query signatures (see SearchQuery.cache_key), so identical
searches from chat users and from the subscription worker hit the same entry.
The cache only saves latency and API quota; callers never depend on it.
"""
import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
from paperwatch.models.items import Paper
from paperwatch.services.logger import logger

DEFAULT_CACHE_TTL = 3600.0

@dataclass
class CacheEntry:
    key: str
    value: List[Paper]
    expires_at: float

class ResultCache:
    def __init__(self, ttl: float = DEFAULT_CACHE_TTL, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[List[Paper]]:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            self.misses += 1
            logger.debug(f"Cache expired: {key}")
            return None
        self.hits += 1
        logger.debug(f"Cache hit: {key} ({len(entry.value)} papers)")
        return list(entry.value)

    def set(self, key: str, papers: List[Paper], ttl: Optional[float] = None):
        ttl = self.ttl if ttl is None else ttl
        self._entries[key] = CacheEntry(key=key, value=list(papers), expires_at=self._clock() + ttl)
        logger.debug(f"Cache set: {key} ({len(papers)} papers, ttl={ttl}s)")

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        logger.info(f"Cache cleared ({count} entries)")
        return count

    def sweep(self) -> int:
        """Drop every expired entry. Returns how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def stats(self) -> Dict[str, float]:
        return {"entries": len(self._entries), "hits": self.hits, "misses": self.misses, "ttl": self.ttl}

    def __len__(self) -> int:
        return len(self._entries)

class CacheMaintenance:
    """Periodic sweep of expired cache entries, started and stopped explicitly."""

    def __init__(self, cache: ResultCache, interval: float = 300.0):
        self.cache = cache
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="cache-maintenance")
        logger.info(f"Cache maintenance started (every {self.interval}s)")

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Cache maintenance stopped")

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            removed = self.cache.sweep()
            if removed:
                logger.debug(f"Cache sweep removed {removed} expired entries")
