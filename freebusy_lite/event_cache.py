"""Time-based cache of extracted calendar events.

The cache holds one snapshot: the last successfully extracted event records
and the moment they were fetched. A request that finds the snapshot older than
the TTL refreshes it inline. Failed refreshes propagate and leave the previous
snapshot (and its timestamp) in place, so the next request retries at once.

There is no single-flight protection: concurrent requests that both find the
snapshot stale each run a refresh and the last one to finish wins.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Optional

from .lite_event_extractor import ExtractionResult, extract_events
from .lite_models import CalendarCollection, EventRecord

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 300

Fetcher = Callable[[], Awaitable[Iterable[CalendarCollection]]]
Extractor = Callable[[Iterable[CalendarCollection]], ExtractionResult]


@dataclass(frozen=True)
class CacheSnapshot:
    """Immutable (entries, fetched_at) pair; replaced wholesale on refresh."""

    entries: tuple[EventRecord, ...] = ()
    fetched_at: Optional[float] = None


@dataclass(frozen=True)
class CacheStatus:
    """Read-only view of the cache for health reporting."""

    event_count: int
    age_seconds: Optional[float]


class RawEventCache:
    """TTL cache of EventRecords with lazy inline refresh."""

    def __init__(
        self,
        fetcher: Fetcher,
        extractor: Extractor = extract_events,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an empty, never-fetched cache.

        Args:
            fetcher: Coroutine function returning the account's collections
            extractor: Turns collections into records plus per-object errors
            ttl_seconds: Maximum snapshot age before a refresh is required
            clock: Monotonic time source (seconds)
        """
        self._fetcher = fetcher
        self._extractor = extractor
        self._ttl = ttl_seconds
        self._clock = clock
        self._snapshot = CacheSnapshot()
        # Guards reads and swaps of the snapshot; never held across an await.
        self._lock = threading.Lock()

    def _current(self) -> CacheSnapshot:
        with self._lock:
            return self._snapshot

    def _replace(self, snapshot: CacheSnapshot) -> None:
        with self._lock:
            self._snapshot = snapshot

    def is_stale(self) -> bool:
        """True when the snapshot was never fetched or is at least TTL old."""
        fetched_at = self._current().fetched_at
        return fetched_at is None or self._clock() - fetched_at >= self._ttl

    async def get_events(self) -> tuple[EventRecord, ...]:
        """Return cached events, refreshing first when the snapshot is stale.

        Raises:
            Exception: Whatever the fetcher raises; the cache is left unchanged
        """
        if self.is_stale():
            return await self.refresh()
        return self._current().entries

    async def refresh(self) -> tuple[EventRecord, ...]:
        """Fetch, extract and atomically replace the snapshot.

        Per-object extraction errors are logged and skipped.
        """
        logger.debug("Refreshing event cache")
        started = self._clock()

        collections = await self._fetcher()
        result = self._extractor(collections)

        for error in result.errors:
            logger.warning(
                "Failed to parse calendar object %s in %r: %s",
                error.href,
                error.calendar_name,
                error.message,
            )

        entries = tuple(result.events)
        self._replace(CacheSnapshot(entries=entries, fetched_at=self._clock()))
        logger.info(
            "Event cache refreshed: %d events, %d objects skipped (%.0fms)",
            len(entries),
            len(result.errors),
            (self._clock() - started) * 1000,
        )
        return entries

    def status(self) -> CacheStatus:
        """Return the event count and snapshot age (None if never fetched)."""
        snapshot = self._current()
        age = None if snapshot.fetched_at is None else self._clock() - snapshot.fetched_at
        return CacheStatus(event_count=len(snapshot.entries), age_seconds=age)
