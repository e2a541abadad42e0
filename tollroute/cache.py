import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from tollroute.config import settings
from tollroute.logging_setup import LOGGER_NAME
from tollroute.models import GeoPoint

logger = logging.getLogger(LOGGER_NAME)


def build_cache_key(
    origin: GeoPoint,
    destination: GeoPoint,
    vehicle_class: str,
    direction: Optional[str] = None,
) -> str:
    key = (
        f"route_{origin.latitude:.5f}_{origin.longitude:.5f}"
        f"_{destination.latitude:.5f}_{destination.longitude:.5f}_{vehicle_class}"
    )
    if direction:
        key = f"{key}_{direction}"
    return key


class ResultCache:
    """Process-local TTL cache. Values are stored whole and must be immutable."""

    def __init__(self, ttl_seconds: int = 3600, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[Any]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            expires_at, value = entry
            if expires_at <= now:
                self._entries.pop(key, None)
                self._misses += 1
                return None
            self._hits += 1
            return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        expires_at = self._clock() + ttl
        with self._lock:
            self._entries[key] = (expires_at, value)

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
        if removed:
            logger.info("route_cache_cleared", extra={"evicted_entries": removed})
        return removed

    def cleanup_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
            for key in expired:
                self._entries.pop(key, None)
        return len(expired)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "ttl_seconds": self.ttl_seconds,
            }


result_cache = ResultCache(ttl_seconds=settings.cache_ttl_seconds)
