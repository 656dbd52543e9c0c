"""No-op cache — used when caching is disabled (`cache: none`).

Using a NoOpCache rather than None lets the assembler always call
cache.get()/cache.put() without conditional checks.
"""

from __future__ import annotations

from prsage_store.base import BaseCache


class NoOpCache(BaseCache):
    """Never stores anything, so every assembly is fresh."""

    def __init__(self):
        super().__init__(ttl_seconds=0)

    def get(self, key: str) -> dict | None:
        return None

    def put(self, key: str, payload: dict) -> None:
        pass  # intentional no-op

    def purge_expired(self) -> int:
        return 0
