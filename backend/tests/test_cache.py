"""Tests for services/cache.py - Search result cache."""
from unittest.mock import patch, MagicMock

import pytest


class TestSearchCache:
    """Test the SearchCache class with the in-memory store."""

    def test_is_connected_false_without_redis(self):
        """is_connected should be False when Redis is not used."""
        from medsearch.services.cache import SearchCache

        cache = SearchCache(use_redis=False)
        assert cache.is_connected is False

    def test_get_nonexistent_returns_none(self):
        """get() on a missing entry should return None."""
        from medsearch.services.cache import SearchCache

        cache = SearchCache(use_redis=False)

        assert cache.get("PubMed", "nothing cached", 10) is None

    def test_set_and_get(self, make_raw):
        """Stored records should come back for the same source, query and limit."""
        from medsearch.services.cache import SearchCache

        cache = SearchCache(use_redis=False)
        records = [make_raw(), make_raw(doi="10.1000/other")]

        assert cache.set("PubMed", "metformin", 10, records) is True
        retrieved = cache.get("PubMed", "metformin", 10)

        assert retrieved == records
        assert cache.get("PubMed", "metformin", 20) is None
        assert cache.get("CrossRef", "metformin", 10) is None

    def test_entries_expire(self, make_raw):
        """Entries older than the TTL should be dropped on read."""
        from medsearch.services.cache import SearchCache

        cache = SearchCache(use_redis=False, ttl_seconds=60)
        with patch("medsearch.services.cache.time.monotonic", return_value=1000.0):
            cache.set("PubMed", "metformin", 10, [make_raw()])
        with patch("medsearch.services.cache.time.monotonic", return_value=1061.0):
            assert cache.get("PubMed", "metformin", 10) is None
        assert len(cache) == 0

    def test_bounded_size_evicts_oldest(self, make_raw):
        """The in-memory store should evict least recently used entries."""
        from medsearch.services.cache import SearchCache

        cache = SearchCache(use_redis=False, max_entries=2)
        cache.set("PubMed", "a", 10, [make_raw()])
        cache.set("PubMed", "b", 10, [make_raw()])
        cache.get("PubMed", "a", 10)
        cache.set("PubMed", "c", 10, [make_raw()])

        assert len(cache) == 2
        assert cache.get("PubMed", "b", 10) is None
        assert cache.get("PubMed", "a", 10) is not None

    def test_clear(self, make_raw):
        """clear() should remove every entry and report how many."""
        from medsearch.services.cache import SearchCache

        cache = SearchCache(use_redis=False)
        cache.set("PubMed", "a", 10, [make_raw()])
        cache.set("PubMed", "b", 10, [make_raw()])

        assert cache.clear() == 2
        assert len(cache) == 0

    def test_cache_key_is_stable(self):
        """Keys should be deterministic and differ per call shape."""
        from medsearch.services.cache import cache_key

        assert cache_key("PubMed", "q", 10) == cache_key("PubMed", "q", 10)
        assert cache_key("PubMed", "q", 10) != cache_key("PubMed", "q", 11)
        assert cache_key("PubMed", "q", 10).startswith("search:")

    def test_from_settings(self):
        """from_settings should carry host, TTL and size limits."""
        from medsearch.core.config import Settings
        from medsearch.services.cache import SearchCache

        settings = Settings(use_redis_cache=False, search_cache_ttl_minutes=5, search_cache_max_entries=7)
        cache = SearchCache.from_settings(settings)

        assert cache.ttl_seconds == 300
        assert cache.max_entries == 7
        assert cache.is_connected is False


class TestCacheRedis:
    """Test Redis usage and fallback behavior."""

    def test_cache_uses_memory_fallback(self, make_raw):
        """When Redis is unavailable, the in-memory store should be used."""
        import redis
        from medsearch.services.cache import SearchCache

        with patch("medsearch.services.cache.redis.Redis") as mock_redis:
            mock_redis.return_value.ping.side_effect = redis.ConnectionError("Connection refused")

            cache = SearchCache()

        assert cache.is_connected is False
        cache.set("PubMed", "metformin", 10, [make_raw()])
        assert cache.get("PubMed", "metformin", 10) is not None

    def test_connected_cache_writes_with_ttl(self, make_raw):
        """A connected cache should write through setex with the TTL."""
        from medsearch.services.cache import SearchCache

        with patch("medsearch.services.cache.redis.Redis") as mock_redis:
            client = MagicMock()
            mock_redis.return_value = client

            cache = SearchCache(ttl_seconds=120)
            cache.set("PubMed", "metformin", 10, [make_raw()])

        assert cache.is_connected is True
        key, ttl, _ = client.setex.call_args[0]
        assert key.startswith("search:")
        assert ttl == 120

    def test_redis_errors_are_misses(self):
        """A failing Redis read should be reported as a miss."""
        import redis
        from medsearch.services.cache import SearchCache

        with patch("medsearch.services.cache.redis.Redis") as mock_redis:
            client = MagicMock()
            client.get.side_effect = redis.ConnectionError("gone")
            mock_redis.return_value = client

            cache = SearchCache()

        assert cache.get("PubMed", "metformin", 10) is None
