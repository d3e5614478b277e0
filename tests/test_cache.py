"""Tests for the content-addressed descriptor cache."""

import pytest

from art_similarity.cache import DescriptorCache


class TestDescriptorCache:
    """Tests for LRU behaviour and keying."""

    def test_key_depends_on_content_and_parameters(self):
        key = DescriptorCache.make_key(b"abc", 8, 256, 8)
        assert key == DescriptorCache.make_key(b"abc", 8, 256, 8)
        assert key != DescriptorCache.make_key(b"abd", 8, 256, 8)
        assert key != DescriptorCache.make_key(b"abc", 4, 256, 8)

    def test_get_or_compute_calls_once(self):
        cache = DescriptorCache()
        calls = []

        def compute():
            calls.append(1)
            return [[(48, 1024)]]

        key = cache.make_key(b"img", 1, 256, 8)
        assert cache.get_or_compute(key, compute) == [[(48, 1024)]]
        assert cache.get_or_compute(key, compute) == [[(48, 1024)]]
        assert len(calls) == 1
        assert cache.stats()["hits"] == 1

    def test_evicts_least_recently_used(self):
        cache = DescriptorCache(max_entries=2)
        keys = [cache.make_key(bytes([i]), 8, 256, 8) for i in range(3)]
        cache.put(keys[0], [[]])
        cache.put(keys[1], [[]])
        cache.get(keys[0])
        cache.put(keys[2], [[]])
        assert keys[0] in cache
        assert keys[1] not in cache
        assert keys[2] in cache

    def test_compute_error_not_cached(self):
        cache = DescriptorCache()
        key = cache.make_key(b"x", 8, 256, 8)

        def fail():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            cache.get_or_compute(key, fail)
        assert key not in cache

    def test_clear(self):
        cache = DescriptorCache()
        cache.put(cache.make_key(b"x", 8, 256, 8), [[]])
        cache.clear()
        assert len(cache) == 0
        assert cache.stats() == {"hits": 0, "misses": 0, "size": 0,
                                 "max_entries": cache.max_entries}

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            DescriptorCache(max_entries=0)
