"""
In-process cache of completed searches, keyed by username

Entries expire after a fixed TTL. When the cache is full the oldest entry
is evicted.
"""
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence, Tuple
import logging
import time

from .schemas import GoogleSearchResponse, SearchResult

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 5 * 60
MAX_CACHE_ENTRIES = 50


@dataclass(frozen=True)
class CachedSearch:
    """Results of one finished search"""
    results: Tuple[SearchResult, ...]
    google_response: GoogleSearchResponse
    timestamp: float


def cache_key(username: str) -> str:
    return username.strip().lower()


class SearchCache:
    """Bounded TTL cache of search results"""

    def __init__(
        self,
        ttl: float = CACHE_TTL_SECONDS,
        max_entries: int = MAX_CACHE_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.max_entries = max_entries
        self.clock = clock
        self._entries: "OrderedDict[str, CachedSearch]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def _is_expired(self, entry: CachedSearch, now: float) -> bool:
        return now - entry.timestamp > self.ttl

    def _evict(self, now: float):
        expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
        for key in expired:
            del self._entries[key]

        while len(self._entries) > self.max_entries:
            key, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted cached search for {key}")

    def get(self, username: str) -> Optional[CachedSearch]:
        """Cached search for the username, None when missing or expired"""
        self._evict(self.clock())
        return self._entries.get(cache_key(username))

    def set(
        self,
        username: str,
        results: Sequence[SearchResult],
        google_response: Optional[GoogleSearchResponse] = None,
    ) -> CachedSearch:
        """Store a finished search, replacing any earlier one for the username"""
        now = self.clock()
        key = cache_key(username)
        entry = CachedSearch(
            results=tuple(results),
            google_response=google_response or GoogleSearchResponse(),
            timestamp=now,
        )
        self._entries.pop(key, None)
        self._entries[key] = entry
        self._evict(now)
        return entry

    def invalidate(self, username: str):
        self._entries.pop(cache_key(username), None)

    def clear(self):
        self._entries.clear()

    def stats(self) -> Dict[str, int]:
        """Number of live entries and the number of results they hold"""
        self._evict(self.clock())
        return {
            "count": len(self._entries),
            "results": sum(len(entry.results) for entry in self._entries.values()),
        }
