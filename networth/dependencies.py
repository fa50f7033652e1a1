# networth/dependencies.py
"""
Composition root for the engine's long-lived objects.

Singletons are created lazily with lru_cache so every caller shares one
cache store, one quote source and one price cache. Tests build their own
instances directly and can call cache_clear() on these factories.

Usage:
    from networth.dependencies import get_price_cache

    cache = get_price_cache()
"""

import logging
from functools import lru_cache

from networth.config import settings
from networth.database import create_cache_engine
from networth.services.market_data import (
    MemoryCacheStore,
    PriceCache,
    SqlCacheStore,
    YahooQuoteSource,
)
from networth.services.protocols import CacheStore

logger = logging.getLogger(__name__)


@lru_cache
def get_cache_store() -> CacheStore:
    """
    Store selected by settings: SQL when CACHE_URL is set, memory otherwise.
    """
    if settings.uses_persistent_cache:
        logger.info("Using SQL price cache store")
        return SqlCacheStore(
            engine=create_cache_engine(settings.cache_url),
            capacity_bytes=settings.cache_capacity_bytes,
        )

    logger.info("Using in-memory price cache store")
    return MemoryCacheStore(capacity_bytes=settings.cache_capacity_bytes)


@lru_cache
def get_quote_source() -> YahooQuoteSource:
    return YahooQuoteSource(timeout=settings.quote_timeout_seconds)


@lru_cache
def get_price_cache() -> PriceCache:
    return PriceCache(
        store=get_cache_store(),
        quote_source=get_quote_source(),
        stale_fallback_days=settings.stale_fallback_days,
    )
