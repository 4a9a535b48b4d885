"""
FastAPI Dependencies

FastAPI dependency injection for configuration, the search cache and the
research pipeline. Everything is built once per process; tests replace
any of them through app.dependency_overrides.
"""
from functools import lru_cache
from typing import Optional

from medsearch.core.config import Settings
from medsearch.services.cache import SearchCache
from medsearch.services.retrieval import ResearchPipeline
from medsearch.services.sources import RetryPolicy, build_default_sources


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings.

    Uses lru_cache to ensure settings are only loaded once.
    Can be overridden in tests using app.dependency_overrides.

    Example test override:
        def get_settings_override():
            return Settings(enabled_sources=["PubMed"])

        app.dependency_overrides[get_settings] = get_settings_override
    """
    return Settings()


@lru_cache()
def get_cache() -> Optional[SearchCache]:
    """
    Get the search cache instance, or None when caching is disabled.

    Example test override:
        app.dependency_overrides[get_cache] = lambda: None
    """
    settings = get_settings()
    if not settings.search_cache_enabled:
        return None
    return SearchCache.from_settings(settings)


@lru_cache()
def get_pipeline() -> ResearchPipeline:
    """
    Get the research pipeline wired with the configured sources.

    Example test override:
        app.dependency_overrides[get_pipeline] = lambda: ResearchPipeline([FakeSource()])
    """
    settings = get_settings()
    return ResearchPipeline(
        build_default_sources(settings),
        settings=settings,
        cache=get_cache(),
        retry_policy=RetryPolicy.from_settings(settings),
    )
