"""Unit tests for cache utilities."""
import time

from railfaults.cache import CHIEFDOM_DIRECTORY_KEY, LockedTTLCache, directory_cache, invalidate_directory


class TestLockedTTLCache:
    """Test the TTL cache implementation."""

    def test_cache_set_and_get(self):
        cache = LockedTTLCache[str](ttl=60)

        cache.set("key1", "value1")
        assert cache.get("key1") == "value1"

    def test_cache_get_nonexistent_key(self):
        assert LockedTTLCache[str](ttl=60).get("nonexistent") is None

    def test_cache_ttl_expiration(self):
        """Test that values expire after TTL."""
        cache = LockedTTLCache[str](ttl=1)

        cache.set("key1", "value1")
        assert cache.get("key1") == "value1"

        time.sleep(1.1)

        assert cache.get("key1") is None

    def test_cache_pop_nonexistent(self):
        # Should not raise exception
        LockedTTLCache[str](ttl=60).pop("nonexistent")

    def test_cache_clear(self):
        cache = LockedTTLCache[str](ttl=60)
        cache.set("key1", "value1")
        cache.set("key2", "value2")

        cache.clear()

        assert cache.get("key1") is None
        assert cache.get("key2") is None

    def test_maxsize_evicts_entries(self):
        cache = LockedTTLCache[int](ttl=60, maxsize=2)
        for index in range(3):
            cache.set(f"k{index}", index)

        assert sum(cache.get(f"k{index}") is not None for index in range(3)) == 2

    def test_get_or_load_calls_loader_once(self):
        cache = LockedTTLCache[list](ttl=60)
        calls = []

        def loader():
            calls.append(1)
            return []

        assert cache.get_or_load("k", loader) == []
        assert cache.get_or_load("k", loader) == []
        assert len(calls) == 1


def test_invalidate_directory_drops_only_the_directory():
    directory_cache.set(CHIEFDOM_DIRECTORY_KEY, [{"id": 1, "name": "Kars"}])
    directory_cache.set("other", [])

    invalidate_directory()

    assert directory_cache.get(CHIEFDOM_DIRECTORY_KEY) is None
    assert directory_cache.get("other") == []
