# networth/services/exceptions.py
"""
Service layer exceptions.

These exceptions represent domain-specific errors and contain NO transport
or presentation knowledge. Callers map them (usually through
networth.services.errors.classify_error) to the three user-facing
categories: offline, provider error, unknown.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    ├── MarketDataError
    │   ├── ProviderUnavailableError
    │   ├── TickerNotFoundError
    │   └── RateLimitError
    ├── FXRateError
    │   └── FXProviderError
    ├── CacheStoreError
    └── PortfolioFetchError
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from networth.services.errors import PortfolioError


class ServiceError(Exception):
    """
    Base exception for all service layer errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(ServiceError):
    """
    Raised when programmatic input validation fails.

    Snapshot validation is handled by Pydantic; this is for arguments
    passed directly to services (empty symbols, malformed currency codes).

    Attributes:
        field: The field that failed validation (optional)
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


# =============================================================================
# MARKET DATA ERRORS
# =============================================================================


class MarketDataError(ServiceError):
    """
    Base exception for market data provider errors.

    Attributes:
        provider: Name of the provider that failed (e.g., "yahoo")
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)


class ProviderUnavailableError(MarketDataError):
    """
    Raised when a market data provider is temporarily unavailable.

    Examples:
    - Network timeout
    - Server errors (500, 502, 503)

    The underlying exception is chained as __cause__ so it can still be
    classified.
    """

    def __init__(self, provider: str, reason: str) -> None:
        message = f"Provider '{provider}' is unavailable: {reason}"
        super().__init__(message, provider=provider)
        self.reason = reason


class TickerNotFoundError(MarketDataError):
    """
    Raised when a symbol is unknown to the provider or has no price.

    This is NOT a retryable error.
    """

    def __init__(self, symbol: str, provider: str) -> None:
        message = f"Symbol '{symbol}' not found by {provider}"
        super().__init__(message, provider=provider)
        self.symbol = symbol


class RateLimitError(MarketDataError):
    """
    Raised when the provider's rate limit has been exceeded.

    Attributes:
        retry_after: Seconds to wait before retrying (if provided by API)
    """

    def __init__(self, provider: str, retry_after: int | None = None) -> None:
        message = f"Rate limit exceeded for provider '{provider}'"
        if retry_after:
            message += f" (retry after {retry_after}s)"
        super().__init__(message, provider=provider)
        self.retry_after = retry_after


# =============================================================================
# FX RATE ERRORS
# =============================================================================


class FXRateError(ServiceError):
    """
    Base exception for FX rate errors.

    Attributes:
        from_currency: Currency being converted from
        to_currency: Currency being converted to
    """

    def __init__(
            self,
            message: str,
            from_currency: str | None = None,
            to_currency: str | None = None,
    ) -> None:
        self.from_currency = from_currency
        self.to_currency = to_currency
        super().__init__(message)


class FXProviderError(FXRateError):
    """
    Raised when the FX data provider fails or returns no usable rate.

    Attributes:
        provider: Name of the FX data provider
        reason: Specific reason for failure
    """

    def __init__(
            self,
            provider: str,
            from_currency: str,
            to_currency: str,
            reason: str,
    ) -> None:
        self.provider = provider
        self.reason = reason
        super().__init__(
            f"FX provider '{provider}' error for {from_currency}/{to_currency}: {reason}",
            from_currency=from_currency,
            to_currency=to_currency,
        )


# =============================================================================
# CACHE ERRORS
# =============================================================================


class CacheStoreError(ServiceError):
    """
    Raised when the cache store is misconfigured.

    Read/write failures at runtime are logged and treated as misses;
    this is only for problems that make the store unusable.
    """


# =============================================================================
# PORTFOLIO FETCH ERRORS
# =============================================================================


class PortfolioFetchError(ServiceError):
    """
    Raised by the price cache when neither a live fetch nor a stale
    entry produced a value.

    The raw provider exception is chained as __cause__.

    Attributes:
        error: Classified error ready for display
    """

    def __init__(self, error: PortfolioError) -> None:
        self.error = error
        super().__init__(error.message)

    @property
    def symbol(self) -> str | None:
        return self.error.symbol


__all__ = [
    # Base
    "ServiceError",
    # Validation
    "ValidationError",
    # Market data
    "MarketDataError",
    "ProviderUnavailableError",
    "TickerNotFoundError",
    "RateLimitError",
    # FX
    "FXRateError",
    "FXProviderError",
    # Cache
    "CacheStoreError",
    # Fetch
    "PortfolioFetchError",
]
