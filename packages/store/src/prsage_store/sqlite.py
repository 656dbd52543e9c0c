"""SQLiteCache — file-backed cache shared between CLI runs and CI jobs.

A CLI process exits after one review, so the in-memory cache never gets a
second hit there. Writing contexts to a SQLite file lets `prsage review` and
a later `prsage recommend` on the same commit reuse one assembly.

Schema:
  pr_context_cache — one row per cache key; the payload is stored as JSON.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time

from prsage_store.base import BaseCache, Clock

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS pr_context_cache (
    cache_key   TEXT PRIMARY KEY,
    stored_at   REAL NOT NULL,
    payload     TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_pr_context_stored_at ON pr_context_cache (stored_at);
"""


class SQLiteCache(BaseCache):
    """Stores PR contexts in a local SQLite database file.

    The database file path defaults to `.prsage.db` in the current working
    directory. Configure via .prsage.yml: `cache: sqlite`, `cache_path: ...`.
    """

    def __init__(self, ttl_seconds: float, db_path: str = ".prsage.db", clock: Clock = time.time):
        super().__init__(ttl_seconds, clock)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()
        self._lock = threading.Lock()

    def get(self, key: str) -> dict | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT stored_at, payload FROM pr_context_cache WHERE cache_key=?",
                (key,),
            ).fetchone()
        if row is None or self._is_expired(row["stored_at"]):
            return None
        try:
            return json.loads(row["payload"])
        except json.JSONDecodeError:
            logger.warning("Discarding unreadable cache entry %s", key)
            return None

    def put(self, key: str, payload: dict) -> None:
        now = self._clock()
        with self._lock:
            self._conn.execute("DELETE FROM pr_context_cache WHERE stored_at < ?", (now - self.ttl_seconds,))
            self._conn.execute(
                "INSERT OR REPLACE INTO pr_context_cache (cache_key, stored_at, payload) VALUES (?, ?, ?)",
                (key, now, json.dumps(payload)),
            )
            self._conn.commit()

    def purge_expired(self) -> int:
        cutoff = self._clock() - self.ttl_seconds
        with self._lock:
            cursor = self._conn.execute("DELETE FROM pr_context_cache WHERE stored_at < ?", (cutoff,))
            self._conn.commit()
        return cursor.rowcount

    def close(self) -> None:
        self._conn.close()
