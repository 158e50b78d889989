"""Centralized configuration for content-search using Pydantic Settings."""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strictly typed configuration loaded from environment variables.

    All values are validated at startup. Components receive the instance
    explicitly; nothing reads the environment after construction.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Matching
    fuzzy_threshold: int = Field(default=60, ge=0, le=100, description="Default similarity cutoff (0-100)")

    # Caching
    cache_prefix: str = Field(default="content_search", min_length=1, description="Namespace for every cache key")
    index_ttl: int = Field(default=86400, ge=1, description="Safety-net TTL for index snapshots in seconds")
    max_index_items: int = Field(default=10000, ge=1, description="Maximum records loaded per index rebuild")
    results_cache_enabled: bool = Field(default=True, description="Cache search result pages")
    results_cache_ttl: int = Field(default=600, ge=1, description="TTL for cached search result pages")
    page_cache_ttl: int = Field(default=600, ge=1, description="TTL for category/tag/post view caches")
    redis_url: str | None = Field(default=None, description="Use a Redis cache store when set")

    # Query limits
    max_query_length: int = Field(default=200, ge=1, description="Maximum accepted query length")
    max_results: int = Field(default=100, ge=1, description="Maximum value accepted for the limit parameter")
    default_per_page: int = Field(default=15, ge=1, description="Default page size")
    max_per_page: int = Field(default=50, ge=1, description="Maximum page size")

    # Suggestions
    suggestion_min_length: int = Field(default=3, ge=1, description="Shorter prefixes return no suggestions")
    suggestion_limit: int = Field(default=5, ge=1, description="Default number of suggestions")
    suggestion_cache_ttl: int = Field(default=3600, ge=1, description="TTL for cached suggestion lists")

    # Presentation
    highlight_class: str = Field(default="search-highlight", description="CSS class of highlight markers")

    # Analytics
    analytics_enabled: bool = Field(default=True, description="Report queries to the analytics recorder")
    slow_query_ms: float = Field(default=1000.0, gt=0, description="Searches slower than this are flagged")

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")

    @model_validator(mode="after")
    def _check_page_sizes(self) -> "Settings":
        if self.max_per_page < self.default_per_page:
            raise ValueError("MAX_PER_PAGE must be greater than or equal to DEFAULT_PER_PAGE")
        return self

    def index_key(self, document_type: str) -> str:
        """Cache key of the index snapshot for one document type."""
        return f"{self.cache_prefix}:index:{document_type}"

    def registry_key(self, namespace: str) -> str:
        """Cache key listing the member keys of a result-cache namespace."""
        return f"{self.cache_prefix}:registry:{namespace}"
