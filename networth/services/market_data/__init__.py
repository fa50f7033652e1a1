# networth/services/market_data/__init__.py
"""
Market data package: quote sources, cache stores and the daily price cache.

Usage:
    from networth.services.market_data import PriceCache, MemoryCacheStore
    from networth.services.market_data import YahooQuoteSource
"""

from networth.services.market_data.base import Quote, QuoteSource
from networth.services.market_data.cache_store import MemoryCacheStore, SqlCacheStore
from networth.services.market_data.price_cache import PriceBatchResult, PriceCache
from networth.services.market_data.yahoo import YahooQuoteSource

__all__ = [
    "Quote",
    "QuoteSource",
    "MemoryCacheStore",
    "SqlCacheStore",
    "PriceCache",
    "PriceBatchResult",
    "YahooQuoteSource",
]
