"""
In-memory LRU + TTL cache of signed URLs, keyed by S3 key.

Entries must expire well before the URLs they hold do, so settings require
URL_CACHE_TTL_SECONDS < SIGNED_URL_TTL_SECONDS.
"""

import time
from collections import OrderedDict
from threading import Lock
from typing import Callable, Optional, Tuple

from fastapi import Depends

from cyclofit.shared.config.settings import Settings, get_settings


class SignedUrlCache:

    def __init__(self, max_size: int = 20, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[str, float]]" = OrderedDict()
        self._lock = Lock()

    def get(self, key: str) -> Optional[str]:
        """Return the cached URL for key, or None when absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            url, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return url

    def set(self, key: str, url: str) -> None:
        with self._lock:
            self._entries[key] = (url, self._clock() + self.ttl_seconds)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


_url_cache: Optional[SignedUrlCache] = None
_url_cache_lock = Lock()


def get_url_cache(settings: Settings = Depends(get_settings)) -> SignedUrlCache:
    """FastAPI dependency: the process-wide signed URL cache."""
    global _url_cache
    with _url_cache_lock:
        if _url_cache is None:
            _url_cache = SignedUrlCache(settings.URL_CACHE_MAX_SIZE, settings.URL_CACHE_TTL_SECONDS)
        return _url_cache
