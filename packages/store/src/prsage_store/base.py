"""Abstract cache interface for assembled PR contexts.

Any backend (in-process memory, SQLite, something shared) implements this
interface. prsage_core depends on BaseCache, not on a concrete backend, so
backends are swappable without touching the assembler.

Values are plain JSON-compatible dicts; the store layer has no knowledge of
prsage_core's data model.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Callable

Clock = Callable[[], float]


class BaseCache(ABC):
    """Key/value cache whose entries expire ``ttl_seconds`` after being written.

    ``clock`` returns the current time in seconds and is injected so tests
    can move time without sleeping.
    """

    def __init__(self, ttl_seconds: float, clock: Clock = time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    @abstractmethod
    def get(self, key: str) -> dict | None:
        """Return the cached payload, or None if absent or expired. Never raises on a miss."""

    @abstractmethod
    def put(self, key: str, payload: dict) -> None:
        """Store a payload, replacing any previous entry for the key.

        Backends drop other expired entries on write, so a cache keyed by
        commit SHA stays bounded without a separate sweeper.
        """

    @abstractmethod
    def purge_expired(self) -> int:
        """Drop expired entries and return how many were removed."""

    def _is_expired(self, stored_at: float) -> bool:
        return self._clock() - stored_at > self.ttl_seconds

    def close(self) -> None:
        """Release any resources held by the cache (connections, file handles).

        Subclasses that need cleanup should override this.
        Default is a no-op so callers can always call close() safely.
        """


def context_cache_key(owner: str, repo: str, pull_number: int, commit_sha: str) -> str:
    return f"{owner}/{repo}#{pull_number}@{commit_sha}"
