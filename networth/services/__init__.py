# networth/services/__init__.py
"""
Service layer for the net-worth engine.

Services:
- Have NO presentation or transport knowledge
- Raise domain-specific exceptions (networth.services.exceptions)
- Receive their collaborators through the constructor
- Are easily testable via dependency injection

Usage:
    from networth.services import PriceCache, ValuationService
    from networth.services import classify_error, ErrorType

Architecture:
    services/
    ├── __init__.py                  # This file - main exports
    ├── exceptions.py                # Domain exceptions
    ├── constants.py                 # Cache layout, defaults, classification tables
    ├── protocols.py                 # Collaborator interfaces (Protocol classes)
    ├── errors.py                    # Error classifier
    ├── market_data/                 # Quote sources and the daily price cache
    │   ├── base.py                  # Abstract quote source
    │   ├── yahoo.py                 # Yahoo Finance implementation
    │   ├── cache_store.py           # Memory and SQL key/value stores
    │   └── price_cache.py           # Date-keyed cache with stale fallback
    └── valuation/                   # Valuation engine
        ├── service.py               # Cycle orchestration
        ├── types.py                 # Valuation data types
        ├── extraction.py            # Snapshot partitioning
        └── calculators.py           # Per-category rules and roll-up
"""

from networth.services.errors import (
    ErrorType,
    PortfolioError,
    are_all_errors_offline,
    classify_error,
    create_portfolio_error,
    extract_error_message,
    is_offline_error,
    is_portfolio_error,
    is_retryable_error,
)
from networth.services.exceptions import (
    CacheStoreError,
    FXProviderError,
    FXRateError,
    MarketDataError,
    PortfolioFetchError,
    ProviderUnavailableError,
    RateLimitError,
    ServiceError,
    TickerNotFoundError,
    ValidationError,
)
from networth.services.market_data import (
    MemoryCacheStore,
    PriceBatchResult,
    PriceCache,
    SqlCacheStore,
    YahooQuoteSource,
)
from networth.services.valuation import ValuationService

__all__ = [
    # Services
    "PriceCache",
    "PriceBatchResult",
    "MemoryCacheStore",
    "SqlCacheStore",
    "YahooQuoteSource",
    "ValuationService",
    # Error classification
    "ErrorType",
    "PortfolioError",
    "classify_error",
    "create_portfolio_error",
    "extract_error_message",
    "is_retryable_error",
    "is_offline_error",
    "is_portfolio_error",
    "are_all_errors_offline",
    # Exceptions
    "ServiceError",
    "ValidationError",
    "MarketDataError",
    "ProviderUnavailableError",
    "TickerNotFoundError",
    "RateLimitError",
    "FXRateError",
    "FXProviderError",
    "CacheStoreError",
    "PortfolioFetchError",
]
