"""Shared test fixtures and configuration."""

from datetime import datetime, timezone
import os

import pytest


# Complete test environment that overrides every config value read from the environment
TEST_ENV = {
    "FUZZY_THRESHOLD": "60",
    "CACHE_PREFIX": "test_search",
    "INDEX_TTL": "86400",
    "MAX_INDEX_ITEMS": "10000",
    "RESULTS_CACHE_ENABLED": "true",
    "RESULTS_CACHE_TTL": "600",
    "PAGE_CACHE_TTL": "600",
    "MAX_QUERY_LENGTH": "200",
    "MAX_RESULTS": "100",
    "DEFAULT_PER_PAGE": "15",
    "MAX_PER_PAGE": "50",
    "SUGGESTION_MIN_LENGTH": "3",
    "SUGGESTION_LIMIT": "5",
    "SUGGESTION_CACHE_TTL": "3600",
    "HIGHLIGHT_CLASS": "search-highlight",
    "ANALYTICS_ENABLED": "true",
    "SLOW_QUERY_MS": "1000",
    "LOG_LEVEL": "info",
    "LOG_JSON": "true",
    # Never talk to a real Redis from unit tests
    "REDIS_URL": "",
}


# Set environment variables immediately when conftest.py is loaded
for key, value in TEST_ENV.items():
    os.environ[key] = value

# Now we can safely import config-dependent modules
from content_search.adapters.cache_store import InMemoryCacheStore
from content_search.adapters.content_source import InMemoryContentSource
from content_search.bootstrap import build_engine
from content_search.config import Settings
from content_search.domain.model import (
    AuthorRecord,
    CategoryRecord,
    PostRecord,
    PostStatus,
    TagRecord,
    TagRef,
)
from content_search.services.analytics import InMemorySearchAnalytics


NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Reset environment variables to test defaults before each test."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    """Deterministic wall clock pinned to ``NOW``."""
    return lambda: NOW


@pytest.fixture
def settings():
    return Settings(cache_prefix="test_search", redis_url=None)


@pytest.fixture
def cache_store():
    return InMemoryCacheStore()


def make_post(post_id: int, title: str, **overrides) -> PostRecord:
    """Published post factory; anything not given gets a harmless default."""
    values = {
        "id": post_id,
        "title": title,
        "slug": title.lower().replace(" ", "-"),
        "excerpt": "",
        "content": "",
        "status": PostStatus.PUBLISHED,
        "published_at": datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc),
    }
    values.update(overrides)
    return PostRecord(**values)


def seed_blog(source: InMemoryContentSource) -> InMemoryContentSource:
    """Small blog corpus: three visible programming posts, two cooking posts, three hidden posts."""
    source.add_author(AuthorRecord(id=1, name="Alice Martin"))
    source.add_author(AuthorRecord(id=2, name="Bob Stone"))
    source.add_author(AuthorRecord(id=3, name="Carol Reyes"))

    source.save_category(CategoryRecord(id=1, name="Programming", slug="programming"))
    source.save_category(CategoryRecord(id=2, name="Python", slug="python", parent_id=1))
    source.save_category(CategoryRecord(id=3, name="Django", slug="django", parent_id=2))
    source.save_category(CategoryRecord(id=4, name="Cooking", slug="cooking", description="Recipes and kitchen notes"))
    source.save_category(CategoryRecord(id=5, name="Desserts", slug="desserts", parent_id=4))

    source.save_tag(TagRecord(id=1, name="tutorial", slug="tutorial"))
    source.save_tag(TagRecord(id=2, name="beginner", slug="beginner"))
    source.save_tag(TagRecord(id=3, name="advanced", slug="advanced"))
    source.save_tag(TagRecord(id=4, name="recipes", slug="recipes"))

    tutorial, beginner, advanced, recipes = (
        TagRef(id=1, name="tutorial"),
        TagRef(id=2, name="beginner"),
        TagRef(id=3, name="advanced"),
        TagRef(id=4, name="recipes"),
    )

    source.save_post(
        make_post(
            1,
            "Python Tips",
            excerpt="Short tips for everyday code",
            content="<p>Write readable code every day.</p>",
            published_at=datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc),
            view_count=50,
            author_id=1,
            category_id=2,
            tags=(tutorial, beginner),
        )
    )
    source.save_post(
        make_post(
            2,
            "Getting started with Django",
            excerpt="A friendly first project",
            content="<p>Django is a web framework written in Python.</p>",
            published_at=datetime(2024, 5, 20, 8, 30, tzinfo=timezone.utc),
            view_count=120,
            author_id=2,
            category_id=3,
            tags=(tutorial,),
        )
    )
    source.save_post(
        make_post(
            3,
            "Baking bread at home",
            excerpt="Slow dough, crisp crust",
            content="<p>Flour, water, salt and patience.</p>",
            published_at=datetime(2024, 4, 10, 7, 0, tzinfo=timezone.utc),
            view_count=10,
            author_id=1,
            category_id=4,
            tags=(recipes,),
        )
    )
    source.save_post(
        make_post(
            4,
            "Chocolate cake",
            excerpt="A rich dessert for weekends",
            content="<p>Melt the chocolate slowly.</p>",
            published_at=datetime(2024, 6, 10, 18, 0, tzinfo=timezone.utc),
            view_count=300,
            author_id=2,
            category_id=5,
            tags=(beginner, recipes),
        )
    )
    source.save_post(make_post(5, "Python draft notes", status=PostStatus.DRAFT, published_at=None, author_id=3))
    source.save_post(
        make_post(
            6,
            "Python future post",
            published_at=datetime(2024, 7, 1, 9, 0, tzinfo=timezone.utc),
            author_id=3,
            category_id=2,
        )
    )
    source.save_post(
        make_post(
            7,
            "Python deleted post",
            deleted_at=datetime(2024, 6, 2, 9, 0, tzinfo=timezone.utc),
            author_id=3,
            category_id=2,
        )
    )
    source.save_post(
        make_post(
            8,
            "Advanced Python patterns",
            excerpt="Going further",
            content="<p>Decorators, generators and context managers.</p>",
            published_at=datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc),
            view_count=75,
            author_id=1,
            category_id=1,
            tags=(advanced,),
        )
    )
    return source


@pytest.fixture
def source(clock):
    """In-memory content source seeded with the blog corpus (no listeners yet)."""
    return seed_blog(InMemoryContentSource(clock=clock))


@pytest.fixture
def analytics():
    return InMemorySearchAnalytics()


@pytest.fixture
def engine(settings, source, cache_store, analytics, clock):
    """Fully wired engine; writes to ``source`` notify its invalidation gateway."""
    built = build_engine(settings, source, cache_store=cache_store, analytics=analytics, clock=clock)
    source.subscribe(built.invalidation)
    return built


@pytest.fixture
def post_factory():
    return make_post
