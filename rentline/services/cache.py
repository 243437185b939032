# rentline/services/cache.py
from __future__ import annotations

import threading
import time
from typing import Any, Callable, Optional

Clock = Callable[[], float]


class TTLCache:
    """
    get_or_fetch(key, ttl, fetch) cache with an injectable clock.

    Entries are stamped with the time they were fetched; a read at or past
    stamp + ttl refetches. Fetch errors propagate and nothing is stored.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock: Clock = clock or time.monotonic
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[float, float, Any]] = {}

    def get(self, key: str) -> Any:
        now = self._clock()
        with self._lock:
            hit = self._entries.get(key)
            if hit is None:
                return None
            stored_at, ttl, value = hit
            if now - stored_at >= ttl:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: float) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        with self._lock:
            self._entries[key] = (self._clock(), float(ttl), value)

    def get_or_fetch(self, key: str, ttl: float, fetch: Callable[[], Any]) -> Any:
        now = self._clock()
        with self._lock:
            hit = self._entries.get(key)
            if hit is not None and now - hit[0] < hit[1]:
                return hit[2]

        # fetch outside the lock; concurrent misses may both fetch, last one wins
        value = fetch()
        self.set(key, value, ttl)
        return value

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [k for k in self._entries if k.startswith(prefix)]
            for k in doomed:
                del self._entries[k]
            return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


def dashboard_key(user_id: str) -> str:
    # per-user prefix; the full key appends the client day and zone
    return f"dashboard:{user_id}:"


DASHBOARD_CACHE = TTLCache()
