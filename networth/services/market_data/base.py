# networth/services/market_data/base.py
"""
Abstract interface for quote sources.

This module defines the contract the price cache relies on. Using an
abstract base class allows for:
- Easy addition of new providers
- Fake implementations for testing
- A single place documenting which exceptions a source may raise

A quote source makes exactly one attempt per call. Recovery from failure
(stale fallback) is the price cache's job, not the source's.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class Quote:
    """
    Latest quote for a symbol.

    Attributes:
        symbol: Symbol as requested (e.g., "VWRL.L")
        name: Display name reported by the provider
        price: Last price in `currency` (major units)
        currency: ISO 4217 code (e.g., "GBP")
        change: Absolute change on the day
        change_percent: Percent change on the day (e.g., 1.25 for +1.25%)
    """

    symbol: str
    name: str
    price: Decimal
    currency: str
    change: Decimal = Decimal("0")
    change_percent: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if not self.symbol:
            raise ValueError("symbol is required")
        if not self.currency:
            raise ValueError("currency is required")


# =============================================================================
# QUOTE SOURCE
# =============================================================================

class QuoteSource(ABC):
    """
    Abstract base class for quote sources.

    Raises (from every method):
        TickerNotFoundError: Symbol unknown or without a price
        ProviderUnavailableError / FXProviderError: Network or API error
        RateLimitError: Rate limit exceeded
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Unique identifier for this source.

        Used for logging and error messages (e.g., "yahoo").
        """
        pass

    @abstractmethod
    async def get_quote(self, symbol: str) -> Quote:
        """
        Fetch the latest quote for a symbol.

        Args:
            symbol: Provider symbol (e.g., "AAPL", "VWRL.L", "BTC-USD")

        Returns:
            Quote with price in major currency units
        """
        pass

    @abstractmethod
    async def get_fx_rate(self, from_currency: str, to_currency: str) -> Decimal:
        """
        Fetch the latest conversion rate.

        Returns:
            Rate such that 1 from_currency = rate to_currency
        """
        pass
