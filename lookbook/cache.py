"""In-process cache of rendered listing/detail payloads, keyed by route path.

Entries expire after ``CACHE_TTL_SECONDS``; the revalidation endpoint drops
them early when content changes upstream. At most ``CACHE_MAX_ENTRIES`` are
kept: entries are ordered by store time, so expired ones sit at the front
and are swept on write, and the oldest is evicted past the bound.
"""
from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from .config import settings

logger = logging.getLogger(__name__)

LISTING_PATHS = ("/people", "/projects")
# Payloads derived from the listings
DERIVED_PATHS = ("/taxonomy",)


@dataclass
class _Entry:
    payload: Any
    stored_at: float


class PageCache:
    """Path-keyed payload cache with time-based, size-based and explicit invalidation."""

    def __init__(
        self,
        ttl_seconds: int | None = None,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int | None = None,
    ) -> None:
        self.ttl_seconds = settings.cache.ttl_seconds if ttl_seconds is None else ttl_seconds
        self.max_entries = settings.cache.max_entries if max_entries is None else max_entries
        self._clock = clock
        self._entries: OrderedDict[str, _Entry] = OrderedDict()

    def _expired(self, entry: _Entry, now: float) -> bool:
        return now - entry.stored_at >= self.ttl_seconds

    def get(self, path: str) -> Any | None:
        entry = self._entries.get(path)
        if entry is None:
            return None
        if self._expired(entry, self._clock()):
            del self._entries[path]
            return None
        return entry.payload

    def set(self, path: str, payload: Any) -> None:
        now = self._clock()
        self._entries.pop(path, None)
        self._entries[path] = _Entry(payload=payload, stored_at=now)

        while self._entries:
            oldest = next(iter(self._entries.values()))
            if not self._expired(oldest, now):
                break
            self._entries.popitem(last=False)

        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted {evicted} (cache full)")

    async def get_or_render(self, path: str, render: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached payload for ``path`` or render and store it."""
        cached = self.get(path)
        if cached is not None:
            return cached
        payload = await render()
        self.set(path, payload)
        return payload

    def invalidate(self, path: str) -> None:
        """Drop ``path`` and every cached variant of it (query strings)."""
        stale = [key for key in self._entries if key == path or key.startswith(path + "?")]
        for key in stale:
            del self._entries[key]
        logger.debug(f"Invalidated {path} ({len(stale)} entries)")

    def __contains__(self, path: str) -> bool:
        return self.get(path) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()


page_cache = PageCache()


def get_page_cache() -> PageCache:
    return page_cache
