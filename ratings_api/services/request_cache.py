"""Process-local request cache for resolved ratings.

Absorbs bursts of identical lookups (every provider card on a page asks for its
rating). Entries live for a fixed TTL:
- get() ignores and drops expired entries
- sweep() purges everything expired; run_cache_sweeper() calls it on a timer

Each resolver owns its own cache. Nothing is persisted; a restart starts cold.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Any

from ratings_api.services.records import utcnow

logger = logging.getLogger("uvicorn.error")

DEFAULT_TTL_SECONDS = 300  # 5 minutes
DEFAULT_SWEEP_INTERVAL_SECONDS = 600  # 10 minutes


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    inserted_at: datetime


class RequestCache:
    """TTL cache keyed by canonical provider key.

    Single dict operations only, so a concurrent sweep never exposes a partial entry.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock or utcnow
        self._entries: dict[str, CacheEntry] = {}

    def _is_expired(self, entry: CacheEntry, now: datetime) -> bool:
        return (now - entry.inserted_at).total_seconds() >= self.ttl_seconds

    def get(self, key: str) -> Any | None:
        """Get a live entry value, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._is_expired(entry, self._clock()):
            self._entries.pop(key, None)
            return None
        return entry.value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = CacheEntry(value=value, inserted_at=self._clock())

    def invalidate(self, key: str) -> bool:
        """Drop an entry. Returns True if one was present."""
        return self._entries.pop(key, None) is not None

    def sweep(self) -> int:
        """Remove all expired entries. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in list(self._entries.items()) if self._is_expired(entry, now)]
        for key in expired:
            self._entries.pop(key, None)
        return len(expired)


async def run_cache_sweeper(
    caches: Iterable[RequestCache],
    interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    max_runs: int | None = None,
) -> None:
    """Periodically purge expired entries from every cache.

    Runs until cancelled (or max_runs sweeps, for tests).
    """
    caches = list(caches)
    runs = 0
    while max_runs is None or runs < max_runs:
        await sleep(interval_seconds)
        removed = sum(cache.sweep() for cache in caches)
        runs += 1
        if removed:
            logger.info(f"Rating cache sweep removed {removed} expired entries")
