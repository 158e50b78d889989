"""Unit tests for cache store implementations."""

from unittest.mock import MagicMock

import orjson
import pytest
import redis

from content_search.adapters.cache_store import InMemoryCacheStore, RedisCacheStore, cache_errors
from content_search.domain.errors import CacheUnavailableError, SearchError


class FakeMonotonic:
    def __init__(self):
        self.value = 1000.0

    def __call__(self):
        return self.value


@pytest.mark.unit
class TestInMemoryCacheStore:
    def test_get_missing_returns_default(self):
        store = InMemoryCacheStore()
        assert store.get("missing") is None
        assert store.get("missing", default=[]) == []

    def test_set_get_has_forget(self):
        store = InMemoryCacheStore()
        store.set("k", {"a": 1})

        assert store.has("k")
        assert store.get("k") == {"a": 1}
        assert store.forget("k") is True
        assert store.forget("k") is False
        assert not store.has("k")

    def test_values_are_isolated_from_callers(self):
        store = InMemoryCacheStore()
        value = {"documents": [1, 2]}
        store.set("k", value)
        value["documents"].append(3)

        cached = store.get("k")
        cached["documents"].append(4)

        assert store.get("k") == {"documents": [1, 2]}

    def test_ttl_expiry(self):
        clock = FakeMonotonic()
        store = InMemoryCacheStore(clock=clock)
        store.set("short", "v", ttl=10)
        store.set("forever", "v")

        clock.value += 9.5
        assert store.has("short")

        clock.value += 1
        assert not store.has("short")
        assert store.get("short") is None
        assert store.keys() == ["forever"]

    def test_flush_drops_everything(self):
        store = InMemoryCacheStore()
        store.set("a", 1)
        store.set("b", 2)
        store.flush()
        assert store.keys() == []


@pytest.mark.unit
class TestRedisCacheStore:
    @pytest.fixture
    def client(self):
        return MagicMock(spec=redis.Redis)

    def test_get_deserializes_with_orjson(self, client):
        client.get.return_value = orjson.dumps({"version": "abc"})
        store = RedisCacheStore(client, namespace="test_search")

        assert store.get("test_search:index:post") == {"version": "abc"}
        client.get.assert_called_once_with("test_search:index:post")

    def test_get_missing_returns_default(self, client):
        client.get.return_value = None
        assert RedisCacheStore(client, "ns").get("k", default="fallback") == "fallback"

    def test_set_passes_ttl_as_expiry(self, client):
        store = RedisCacheStore(client, "ns")
        store.set("k", [1, 2], ttl=60)
        client.set.assert_called_once_with("k", orjson.dumps([1, 2]), ex=60)

    def test_has_and_forget(self, client):
        client.exists.return_value = 1
        client.delete.return_value = 0
        store = RedisCacheStore(client, "ns")

        assert store.has("k") is True
        assert store.forget("k") is False

    def test_flush_deletes_namespace_keys_only(self, client):
        client.scan_iter.return_value = iter([b"ns:a", b"ns:b"])
        RedisCacheStore(client, "ns").flush()

        client.scan_iter.assert_called_once_with(match="ns:*")
        client.delete.assert_called_once_with(b"ns:a", b"ns:b")

    @pytest.mark.parametrize("method, args", [("get", ("k",)), ("set", ("k", 1)), ("has", ("k",)), ("forget", ("k",))])
    def test_redis_errors_become_cache_unavailable(self, client, method, args):
        for name in ("get", "set", "exists", "delete"):
            getattr(client, name).side_effect = redis.ConnectionError("connection refused")
        store = RedisCacheStore(client, "ns")

        with pytest.raises(CacheUnavailableError) as exc_info:
            getattr(store, method)(*args)

        assert exc_info.value.operation == method
        assert exc_info.value.collaborator == "cache"
        assert isinstance(exc_info.value.__cause__, redis.ConnectionError)


@pytest.mark.unit
class TestCacheErrors:
    def test_wraps_unexpected_exceptions(self):
        with pytest.raises(CacheUnavailableError, match="get failed for key"):
            with cache_errors("get", "key"):
                raise OSError("disk gone")

    def test_search_errors_pass_through(self):
        with pytest.raises(SearchError) as exc_info:
            with cache_errors("get", "key"):
                raise SearchError("already translated")
        assert type(exc_info.value) is SearchError
