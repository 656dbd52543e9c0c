"""In-process cache — the default backend.

Entries live for the lifetime of the process, which matches a long-running
webhook worker. A lock guards the dict because several review triggers may
read and write it from different threads.
"""

from __future__ import annotations

import copy
import threading
import time

from prsage_store.base import BaseCache, Clock


class MemoryCache(BaseCache):
    def __init__(self, ttl_seconds: float, clock: Clock = time.time):
        super().__init__(ttl_seconds, clock)
        self._entries: dict[str, tuple[float, dict]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> dict | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, payload = entry
            if self._is_expired(stored_at):
                del self._entries[key]
                return None
            # Callers get their own copy; the cached payload never changes.
            return copy.deepcopy(payload)

    def put(self, key: str, payload: dict) -> None:
        # Keys carry the commit SHA, so stale entries are rarely read again;
        # every write drops them.
        with self._lock:
            self._purge_locked()
            self._entries[key] = (self._clock(), copy.deepcopy(payload))

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge_locked()

    def _purge_locked(self) -> int:
        expired = [k for k, (stored_at, _) in self._entries.items() if self._is_expired(stored_at)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
