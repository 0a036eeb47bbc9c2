"""
Unit tests for the registry TTL cache.
"""

import threading

import pytest

from registry_client.caching.ttl_cache import TTLCache
from registry_client.models import Endpoint, QueryKey
from registry_client.tests.conftest import FakeClock


class TestTTLCache:
    """Test cases for TTLCache."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def cache(self, clock):
        return TTLCache(max_entries=3, default_ttl=300.0, clock=clock)

    def test_get_returns_value_until_ttl_elapses(self, cache, clock):
        key = QueryKey.build(Endpoint.CRATE, "serde")
        cache.put(key, "value", ttl=10.0)

        clock.advance(10.0)
        assert cache.get(key) == "value"

        clock.advance(0.001)
        assert cache.get(key) is None

    def test_expiry_does_not_depend_on_reads(self, cache, clock):
        key = QueryKey.build(Endpoint.CRATE, "serde")
        cache.put(key, "value", ttl=5.0)
        clock.advance(6.0)

        assert cache.get(key) is None
        assert len(cache) == 0
        assert cache.stats()["expirations"] == 1

    def test_default_ttl_applies(self, cache, clock):
        key = QueryKey.build(Endpoint.CRATE, "tokio")
        cache.put(key, "value")

        clock.advance(299.0)
        assert cache.get(key) == "value"
        clock.advance(2.0)
        assert cache.get(key) is None

    def test_miss_for_unknown_key(self, cache):
        assert cache.get(QueryKey.build(Endpoint.CRATE, "missing")) is None
        assert cache.stats()["misses"] == 1

    def test_fifo_eviction_at_capacity(self, cache):
        keys = [QueryKey.build(Endpoint.CRATE, name) for name in ("a", "b", "c", "d")]
        for i, key in enumerate(keys):
            cache.put(key, i)

        assert len(cache) == 3
        assert cache.get(keys[0]) is None
        assert [cache.get(k) for k in keys[1:]] == [1, 2, 3]
        assert cache.stats()["evictions"] == 1

    def test_expired_entries_are_dropped_before_live_ones(self, cache, clock):
        old = QueryKey.build(Endpoint.CRATE, "old")
        cache.put(old, "old", ttl=1.0)
        live = [QueryKey.build(Endpoint.CRATE, name) for name in ("b", "c")]
        for key in live:
            cache.put(key, key.name)
        clock.advance(2.0)

        cache.put(QueryKey.build(Endpoint.CRATE, "d"), "d")

        assert [cache.get(k) for k in live] == ["b", "c"]
        assert cache.stats()["evictions"] == 0

    def test_reinsert_counts_as_newest(self, cache):
        a, b, c, d = (QueryKey.build(Endpoint.CRATE, n) for n in "abcd")
        cache.put(a, 1)
        cache.put(b, 2)
        cache.put(c, 3)
        cache.put(a, 10)
        cache.put(d, 4)

        assert cache.get(b) is None
        assert cache.get(a) == 10

    def test_stale_write_does_not_replace_fresher_entry(self, cache, clock):
        key = QueryKey.build(Endpoint.CRATE, "serde")
        slow_started = clock()
        clock.advance(1.0)
        fast_started = clock()

        assert cache.put(key, "fresh", fetched_at=fast_started) is True
        assert cache.put(key, "stale", fetched_at=slow_started) is False
        assert cache.get(key) == "fresh"
        assert cache.stats()["stale_writes"] == 1

    def test_equal_fetch_time_is_last_writer_wins(self, cache, clock):
        key = QueryKey.build(Endpoint.CRATE, "serde")
        started = clock()
        cache.put(key, "first", fetched_at=started)
        cache.put(key, "second", fetched_at=started)

        assert cache.get(key) == "second"

    def test_invalidate_and_clear(self, cache):
        key = QueryKey.build(Endpoint.CRATE, "serde")
        cache.put(key, "value")

        assert cache.invalidate(key) is True
        assert cache.invalidate(key) is False
        assert cache.get(key) is None

        cache.put(key, "value")
        cache.clear()
        assert len(cache) == 0

    def test_purge_expired(self, cache, clock):
        cache.put(QueryKey.build(Endpoint.CRATE, "a"), 1, ttl=1.0)
        cache.put(QueryKey.build(Endpoint.CRATE, "b"), 2, ttl=100.0)
        clock.advance(5.0)

        assert cache.purge_expired() == 1
        assert len(cache) == 1

    def test_query_key_identity(self):
        assert QueryKey.build(Endpoint.CRATE, "serde") == QueryKey.build(Endpoint.CRATE, "serde")
        assert QueryKey.build(Endpoint.CRATE, "serde") != QueryKey.build(Endpoint.CRATE, "Serde")
        assert QueryKey.build(Endpoint.DEPENDENCIES, "serde", "1.0.0") != QueryKey.build(Endpoint.DEPENDENCIES, "serde")
        assert (QueryKey.build(Endpoint.SEARCH, "http", params={"q": "http", "per_page": 10})
                == QueryKey.build(Endpoint.SEARCH, "http", params={"per_page": "10", "q": "http"}))

    def test_concurrent_writers(self):
        cache = TTLCache(max_entries=50, default_ttl=60.0)

        def writer(offset):
            for i in range(200):
                cache.put(QueryKey.build(Endpoint.CRATE, f"crate-{offset}-{i}"), i)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(cache) == 50

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            TTLCache(max_entries=0)
