# storefront/utils/cache.py
from __future__ import annotations
import time
from typing import Any, Callable


class TTLCache:
    """Process-local key -> value store with a fixed time-to-live.

    Entries expire lazily: `get` drops and ignores anything older than `ttl`.
    There is no locking; two concurrent misses simply compute the same entry
    twice and the last `set` wins.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = float(ttl_seconds)
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    def get(self, key: str):
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self._clock() - stored_at >= self.ttl:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: str, value) -> None:
        self._entries[key] = (value, self._clock())

    def cleanup(self) -> int:
        now = self._clock()
        stale = [k for k, (_, ts) in self._entries.items() if now - ts >= self.ttl]
        for k in stale:
            del self._entries[k]
        return len(stale)

    def __len__(self):
        return len(self._entries)
