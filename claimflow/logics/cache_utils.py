"""
In-memory session store for processing runs.

Thread-safe TTL cache with least-recently-used eviction. Reading an entry
refreshes its timestamp, so a run stays alive while the user keeps working on it.
"""

import time
import logging
from threading import Lock
from typing import Dict, List, Optional, Any

logger = logging.getLogger(__name__)


class TTLCache:
    """Thread-safe in-memory TTL cache with LRU eviction and sliding expiry."""

    def __init__(self, max_size: int, ttl_seconds: int):
        """
        Args:
            max_size: Maximum number of entries to store
            ttl_seconds: Idle time in seconds after which an entry expires
        """
        if max_size < 1:
            raise ValueError(f"max_size must be positive: {max_size}")
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive: {ttl_seconds}")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self.cache: Dict[str, tuple] = {}  # key -> (value, last_access)
        self.lock = Lock()

    def _expired(self, last_access: float, now: float) -> bool:
        return now - last_access > self.ttl_seconds

    def _evict_expired(self, now: float) -> None:
        expired = [k for k, (_, ts) in self.cache.items() if self._expired(ts, now)]
        for k in expired:
            del self.cache[k]
            logger.debug(f"[Cache] Evicted expired key: {k}")

    def get(self, key: str) -> Optional[Any]:
        """
        Get a value and refresh its idle timer.

        Returns:
            Cached value or None if not found/expired
        """
        with self.lock:
            entry = self.cache.get(key)
            if entry is None:
                return None
            value, last_access = entry
            now = time.time()
            if self._expired(last_access, now):
                del self.cache[key]
                logger.debug(f"[Cache] Key expired: {key}")
                return None
            self.cache[key] = (value, now)
            return value

    def set(self, key: str, value: Any) -> None:
        """Store a value, evicting expired entries and then the least recently used one."""
        with self.lock:
            now = time.time()
            self._evict_expired(now)
            if len(self.cache) >= self.max_size and key not in self.cache:
                oldest_key = min(self.cache.keys(), key=lambda k: self.cache[k][1])
                del self.cache[oldest_key]
                logger.info(f"[Cache] Evicted least recently used key: {oldest_key}")
            self.cache[key] = (value, now)
            logger.debug(f"[Cache] Set: {key}")

    def delete(self, key: str) -> bool:
        with self.lock:
            if key in self.cache:
                del self.cache[key]
                logger.debug(f"[Cache] Deleted key: {key}")
                return True
            return False

    def clear(self) -> None:
        with self.lock:
            self.cache.clear()
            logger.info("[Cache] Cleared all entries")

    def keys(self) -> List[str]:
        """Keys of entries that have not expired."""
        with self.lock:
            now = time.time()
            return [k for k, (_, ts) in self.cache.items() if not self._expired(ts, now)]

    def size(self) -> int:
        with self.lock:
            return len(self.cache)
