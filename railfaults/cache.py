"""TTL cache for the chiefdom directory the dashboards poll.

Routes run on a thread pool and ``cachetools`` containers are not thread-safe,
so every access goes through a lock.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Generic, List, Optional, TypeVar

from cachetools import TTLCache

from .config import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

CHIEFDOM_DIRECTORY_KEY = "chiefdom-directory"


class LockedTTLCache(Generic[T]):
    def __init__(self, ttl: int, maxsize: int = 256) -> None:
        self._cache: TTLCache[str, T] = TTLCache(maxsize=maxsize, ttl=ttl)
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            return self._cache.get(key)

    def set(self, key: str, value: T) -> None:
        with self._lock:
            self._cache[key] = value

    def get_or_load(self, key: str, loader: Callable[[], T]) -> T:
        """Return the cached value, calling ``loader`` outside the lock on a miss."""

        value = self.get(key)
        if value is not None:
            return value
        logger.debug("Cache miss for %s", key)
        value = loader()
        self.set(key, value)
        return value

    def pop(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()


directory_cache: LockedTTLCache[List[dict[str, Any]]] = LockedTTLCache(ttl=get_settings().directory_cache_ttl)


def invalidate_directory() -> None:
    """Drop cached chiefdom listings after any organisation or user write."""

    directory_cache.pop(CHIEFDOM_DIRECTORY_KEY)
