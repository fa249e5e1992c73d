# sourcing/storage/response_cache.py

"""In-memory, time-boxed memoisation of external catalog calls."""

import json
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

logger = logging.getLogger("sourcing.cache")

T = TypeVar("T")

DEFAULT_TTL: float = 15 * 60


@dataclass
class CacheEntry(Generic[T]):
    """A cached payload with its capture time and lifetime."""

    data: T
    timestamp: float
    ttl: float


def make_cache_key(prefix: str, **args: Any) -> str:
    """Build a deterministic key from the full argument record.

    Identical argument sets (including ``None`` filters) always
    produce the same key; any differing argument changes it.
    """
    payload = json.dumps(
        args, sort_keys=True, default=str, separators=(",", ":")
    )
    return f"{prefix}:{payload}"


class ResponseCache:
    """Key/value cache whose entries expire lazily on read.

    There is no background sweep: an expired entry is deleted the
    first time a lookup finds it.  One instance is constructed at
    start-up and shared by reference with every catalog client.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._entries: dict[str, CacheEntry[Any]] = {}
        self._clock = clock
        self._lock = threading.Lock()

    def get_cached(self, key: str) -> Any | None:
        """Return the cached payload, or ``None`` on miss/expiry."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.timestamp > entry.ttl:
                del self._entries[key]
                logger.debug("Evicted expired cache entry %s", key)
                return None
            return entry.data

    def set_cache(
        self, key: str, value: Any, ttl: float = DEFAULT_TTL,
    ) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds."""
        with self._lock:
            self._entries[key] = CacheEntry(
                data=value, timestamp=self._clock(), ttl=ttl,
            )
        logger.debug("Cached %s (ttl=%.0fs)", key, ttl)

    def clear_cache(self) -> int:
        """Purge all entries.

        Returns the number of entries that were removed.
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("Cache manually purged (%d entries removed)", count)
        return count

    def get_cache_stats(self) -> dict[str, Any]:
        """Return the current entry count and keys."""
        with self._lock:
            keys = list(self._entries)
        return {"size": len(keys), "keys": keys}
