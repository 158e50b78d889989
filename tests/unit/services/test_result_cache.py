"""Unit tests for namespaced derived caches."""

from unittest.mock import MagicMock

import pytest

from content_search.adapters.cache_store import InMemoryCacheStore
from content_search.config import Settings
from content_search.domain.model import DocumentType
from content_search.services.result_cache import ResultCache, options_key


@pytest.fixture
def result_cache(settings, cache_store):
    return ResultCache(settings, cache_store)


@pytest.mark.unit
class TestRemember:
    def test_builds_once(self, result_cache):
        builder = MagicMock(return_value={"items": [1, 2]})

        first = result_cache.remember("home", "latest", 60, builder)
        second = result_cache.remember("home", "latest", 60, builder)

        assert first == second == {"items": [1, 2]}
        builder.assert_called_once()

    def test_keys_are_prefixed_and_registered(self, result_cache, cache_store, settings):
        result_cache.remember("home", "latest", 60, lambda: [1])

        assert cache_store.has("test_search:home:latest")
        assert cache_store.get(settings.registry_key("home")) == ["test_search:home:latest"]

    def test_invalidate_namespace_forgets_members_and_registry(self, result_cache, cache_store, settings):
        result_cache.remember("category:3", "a", 60, lambda: 1)
        result_cache.remember("category:3", "b", 60, lambda: 2)
        result_cache.remember("category:4", "a", 60, lambda: 3)

        assert result_cache.invalidate_namespace("category:3") == 2

        assert not cache_store.has("test_search:category:3:a")
        assert not cache_store.has(settings.registry_key("category:3"))
        assert cache_store.has("test_search:category:4:a")

    def test_invalidate_unknown_namespace_is_harmless(self, result_cache):
        assert result_cache.invalidate_namespace("tag:404") == 0


@pytest.mark.unit
class TestSearchResults:
    def test_round_trip_with_matching_version(self, result_cache):
        result_cache.put_results(DocumentType.POST, "Python", {"page": 1}, "v1", {"total": 3})
        assert result_cache.get_results(DocumentType.POST, "python", {"page": 1}, "v1") == {"total": 3}

    def test_stale_version_is_ignored(self, result_cache):
        result_cache.put_results(DocumentType.POST, "python", {"page": 1}, "v1", {"total": 3})
        assert result_cache.get_results(DocumentType.POST, "python", {"page": 1}, "v2") is None

    def test_options_are_part_of_the_key(self, result_cache):
        result_cache.put_results(DocumentType.POST, "python", {"page": 1}, "v1", {"total": 3})
        assert result_cache.get_results(DocumentType.POST, "python", {"page": 2}, "v1") is None

    def test_disabled_results_cache(self, cache_store):
        cache = ResultCache(Settings(results_cache_enabled=False), cache_store)
        cache.put_results(DocumentType.POST, "python", {}, "v1", {"total": 3})

        assert cache.get_results(DocumentType.POST, "python", {}, "v1") is None
        assert cache_store.keys() == []

    def test_options_key_is_order_independent(self):
        assert options_key("Python  Tips", {"a": 1, "b": 2}) == options_key("python tips", {"b": 2, "a": 1})


@pytest.mark.unit
class TestPageCaches:
    def test_category_page_keyed_by_filters(self, result_cache):
        builder = MagicMock(side_effect=[["page-1"], ["page-2"]])

        assert result_cache.remember_category_page(3, {"page": 1}, builder) == ["page-1"]
        assert result_cache.remember_category_page(3, {"page": 2}, builder) == ["page-2"]
        assert result_cache.remember_category_page(3, {"page": 1}, builder) == ["page-1"]
        assert builder.call_count == 2

    def test_tag_post_and_home_caches(self, result_cache, cache_store):
        result_cache.remember_tag_page(1, {}, lambda: ["t"])
        result_cache.remember_post_view(7, lambda: {"title": "x"})
        result_cache.remember_homepage("featured", lambda: [1, 2])

        keys = cache_store.keys()
        assert "test_search:post:7:view" in keys
        assert "test_search:home:featured" in keys
        assert any(key.startswith("test_search:tag:1:") for key in keys)

    def test_suggestions_round_trip(self, result_cache):
        result_cache.put_suggestions("pyt", 5, "v1", ["Python Tips"])
        assert result_cache.get_suggestions("pyt", 5, "v1") == ["Python Tips"]
        assert result_cache.get_suggestions("pyt", 5, "v2") is None
        assert result_cache.get_suggestions("pyt", 3, "v1") is None


@pytest.mark.unit
class TestRegistryGrowth:
    @pytest.fixture
    def ticking(self):
        now = {"t": 1000.0}
        return now, InMemoryCacheStore(clock=lambda: now["t"])

    def test_expired_members_are_pruned(self, settings, ticking):
        now, store = ticking
        cache = ResultCache(settings, store)
        for index in range(200):
            cache.put_results(DocumentType.POST, f"python{index}", {}, "v1", {"total": 0})
        assert len(store.get(settings.registry_key("results:post"))) == 200

        now["t"] += 300
        cache.put_results(DocumentType.POST, "recent", {}, "v1", {"total": 1})
        now["t"] += settings.results_cache_ttl - 299
        cache.put_results(DocumentType.POST, "fresh", {}, "v1", {"total": 1})

        members = store.get(settings.registry_key("results:post"))
        assert members == [
            cache.key("results:post", options_key("recent", {})),
            cache.key("results:post", options_key("fresh", {})),
        ]

    def test_registry_expires_with_its_entries(self, settings, ticking):
        now, store = ticking
        cache = ResultCache(settings, store)
        cache.put_suggestions("pyt", 5, "v1", ["Python Tips"])

        now["t"] += settings.suggestion_cache_ttl + 1

        assert store.keys() == []

    def test_restoring_a_key_does_not_duplicate_it(self, result_cache, cache_store, settings):
        result_cache.remember_homepage("latest", lambda: [1])
        cache_store.forget("test_search:home:latest")
        result_cache.remember_homepage("latest", lambda: [2])

        assert cache_store.get(settings.registry_key("home")) == ["test_search:home:latest"]
