"""Tests for prsage-store cache implementations."""

from __future__ import annotations

import pytest

from prsage_store.base import context_cache_key
from prsage_store.memory import MemoryCache
from prsage_store.noop import NoOpCache
from prsage_store.sqlite import SQLiteCache

PAYLOAD = {"owner": "acme", "files": [{"filename": "a.py", "diff_text": "+x"}], "warnings": []}


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture(params=["memory", "sqlite"])
def make_cache(request, tmp_path):
    """Build either real backend with a controllable clock."""
    created = []

    def _make(ttl_seconds=60, clock=None):
        clock = clock or FakeClock()
        if request.param == "memory":
            cache = MemoryCache(ttl_seconds=ttl_seconds, clock=clock)
        else:
            cache = SQLiteCache(ttl_seconds=ttl_seconds, db_path=str(tmp_path / "cache.db"), clock=clock)
        created.append(cache)
        return cache

    yield _make
    for cache in created:
        cache.close()


# ---------------------------------------------------------------------------
# Shared behaviour — every backend
# ---------------------------------------------------------------------------


class TestCacheContract:
    def test_miss_returns_none(self, make_cache):
        assert make_cache().get("missing") is None

    def test_put_then_get(self, make_cache):
        cache = make_cache()
        cache.put("k", PAYLOAD)
        assert cache.get("k") == PAYLOAD

    def test_put_replaces(self, make_cache):
        cache = make_cache()
        cache.put("k", PAYLOAD)
        cache.put("k", {"replaced": True})
        assert cache.get("k") == {"replaced": True}

    def test_entry_valid_until_ttl(self, make_cache):
        clock = FakeClock()
        cache = make_cache(ttl_seconds=60, clock=clock)
        cache.put("k", PAYLOAD)
        clock.now += 60
        assert cache.get("k") == PAYLOAD

    def test_entry_expires_after_ttl(self, make_cache):
        clock = FakeClock()
        cache = make_cache(ttl_seconds=60, clock=clock)
        cache.put("k", PAYLOAD)
        clock.now += 61
        assert cache.get("k") is None

    def test_purge_expired(self, make_cache):
        clock = FakeClock()
        cache = make_cache(ttl_seconds=60, clock=clock)
        cache.put("old", PAYLOAD)
        clock.now += 45
        cache.put("new", PAYLOAD)
        clock.now += 30
        assert cache.purge_expired() == 1
        assert cache.get("new") == PAYLOAD

    def test_put_drops_other_expired_entries(self, make_cache):
        clock = FakeClock()
        cache = make_cache(ttl_seconds=60, clock=clock)
        cache.put("acme/widgets#1@old", PAYLOAD)
        clock.now += 61
        cache.put("acme/widgets#1@new", PAYLOAD)
        assert cache.purge_expired() == 0
        assert cache.get("acme/widgets#1@new") == PAYLOAD

    def test_returned_payload_is_a_copy(self, make_cache):
        cache = make_cache()
        cache.put("k", PAYLOAD)
        cache.get("k")["files"].append({"filename": "evil.py"})
        assert cache.get("k") == PAYLOAD


# ---------------------------------------------------------------------------
# Backend-specific
# ---------------------------------------------------------------------------


class TestMemoryCache:
    def test_len_counts_entries(self):
        cache = MemoryCache(ttl_seconds=60)
        cache.put("a", {})
        cache.put("b", {})
        assert len(cache) == 2

    def test_does_not_grow_with_stale_commits(self):
        clock = FakeClock()
        cache = MemoryCache(ttl_seconds=60, clock=clock)
        for i in range(100):
            cache.put(context_cache_key("acme", "widgets", 7, f"sha{i}"), PAYLOAD)
            clock.now += 1000
        assert len(cache) == 1

    def test_expired_entry_dropped_on_read(self):
        clock = FakeClock()
        cache = MemoryCache(ttl_seconds=10, clock=clock)
        cache.put("a", {})
        clock.now += 11
        cache.get("a")
        assert len(cache) == 0


class TestSQLiteCache:
    def test_persists_across_instances(self, tmp_path):
        db = str(tmp_path / "shared.db")
        clock = FakeClock()
        first = SQLiteCache(ttl_seconds=60, db_path=db, clock=clock)
        first.put("k", PAYLOAD)
        first.close()

        second = SQLiteCache(ttl_seconds=60, db_path=db, clock=clock)
        try:
            assert second.get("k") == PAYLOAD
        finally:
            second.close()

    def test_unreadable_payload_treated_as_miss(self, tmp_path):
        cache = SQLiteCache(ttl_seconds=60, db_path=str(tmp_path / "c.db"), clock=FakeClock())
        cache._conn.execute(
            "INSERT INTO pr_context_cache (cache_key, stored_at, payload) VALUES (?, ?, ?)", ("bad", 1_000.0, "{nope")
        )
        try:
            assert cache.get("bad") is None
        finally:
            cache.close()


class TestNoOpCache:
    def test_never_stores(self):
        cache = NoOpCache()
        cache.put("k", PAYLOAD)
        assert cache.get("k") is None
        assert cache.purge_expired() == 0

    def test_close_is_safe(self):
        NoOpCache().close()


def test_context_cache_key_includes_commit():
    assert context_cache_key("acme", "widgets", 7, "abc") == "acme/widgets#7@abc"
    assert context_cache_key("acme", "widgets", 7, "abc") != context_cache_key("acme", "widgets", 7, "def")
