# networth/services/market_data/yahoo.py
"""
Yahoo Finance quote source.

Implements QuoteSource with the yfinance library. yfinance is blocking, so
each call runs in a worker thread via asyncio.to_thread and the event loop
stays free for the other fetches of a valuation cycle.

Key features:
- Minor currency normalization (GBp pence → GBP pounds, ZAc → ZAR, ILA → ILS)
- FX rates via Yahoo's "{FROM}{TO}=X" symbols
- Error mapping to domain exceptions, raw exception chained as __cause__

Limitations:
- Rate limits (not officially documented, but exist)
- Data may be delayed (15-20 minutes for some markets)
"""

import asyncio
import logging
import math
from decimal import Decimal
from typing import Any

import yfinance as yf

from networth.services.constants import MINOR_CURRENCY_UNITS
from networth.services.exceptions import (
    FXProviderError,
    ProviderUnavailableError,
    RateLimitError,
    TickerNotFoundError,
)
from networth.services.market_data.base import Quote, QuoteSource

logger = logging.getLogger(__name__)


class YahooQuoteSource(QuoteSource):
    """
    Yahoo Finance implementation of QuoteSource.

    Configuration:
        timeout: Request timeout in seconds (default: 10)
    """

    # Price fields in order of preference
    PRICE_FIELDS = ("regularMarketPrice", "currentPrice", "navPrice", "previousClose")

    def __init__(self, timeout: float = 10) -> None:
        self._timeout = timeout
        logger.info(f"YahooQuoteSource initialized (timeout={timeout}s)")

    @property
    def name(self) -> str:
        return "yahoo"

    # =========================================================================
    # QUOTES
    # =========================================================================

    async def get_quote(self, symbol: str) -> Quote:
        """
        Fetch the latest quote from Yahoo Finance.

        Raises:
            TickerNotFoundError: If the symbol has no price
            RateLimitError: If Yahoo is throttling requests
            ProviderUnavailableError: For any other failure
            TimeoutError: If Yahoo does not answer within the timeout
        """
        return await asyncio.wait_for(
            asyncio.to_thread(self._fetch_quote, symbol),
            timeout=self._timeout,
        )

    def _fetch_quote(self, symbol: str) -> Quote:
        logger.debug(f"Fetching quote for {symbol}")

        try:
            info = yf.Ticker(symbol).info
        except Exception as e:
            raise self._map_error(e, symbol) from e

        price = self._first_decimal(info, self.PRICE_FIELDS)
        if price is None:
            raise TickerNotFoundError(symbol=symbol, provider=self.name)

        currency = info.get("currency") or "USD"
        change = self._to_decimal(info.get("regularMarketChange")) or Decimal("0")
        change_percent = self._to_decimal(info.get("regularMarketChangePercent")) or Decimal("0")

        if currency in MINOR_CURRENCY_UNITS:
            currency, divisor = MINOR_CURRENCY_UNITS[currency]
            price = price / divisor
            change = change / divisor

        return Quote(
            symbol=symbol,
            name=info.get("longName") or info.get("shortName") or symbol,
            price=price,
            currency=currency.upper(),
            change=change,
            change_percent=change_percent,
        )

    # =========================================================================
    # FX RATES
    # =========================================================================

    async def get_fx_rate(self, from_currency: str, to_currency: str) -> Decimal:
        """
        Fetch the latest conversion rate from Yahoo Finance.

        Raises:
            FXProviderError: If the pair has no rate or the request fails
        """
        return await asyncio.wait_for(
            asyncio.to_thread(self._fetch_fx_rate, from_currency, to_currency),
            timeout=self._timeout,
        )

    def _fetch_fx_rate(self, from_currency: str, to_currency: str) -> Decimal:
        yahoo_symbol = self.fx_symbol(from_currency, to_currency)
        logger.debug(f"Fetching FX rate {yahoo_symbol}")

        try:
            info = yf.Ticker(yahoo_symbol).info
        except Exception as e:
            raise FXProviderError(
                provider=self.name,
                from_currency=from_currency,
                to_currency=to_currency,
                reason=str(e),
            ) from e

        rate = self._first_decimal(info, self.PRICE_FIELDS)
        if rate is None or rate <= 0:
            raise FXProviderError(
                provider=self.name,
                from_currency=from_currency,
                to_currency=to_currency,
                reason=f"no data for {yahoo_symbol}",
            )
        return rate

    @staticmethod
    def fx_symbol(from_currency: str, to_currency: str) -> str:
        """Yahoo symbol for a currency pair, e.g. USDGBP=X."""
        return f"{from_currency.upper()}{to_currency.upper()}=X"

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    def _map_error(self, error: Exception, symbol: str) -> Exception:
        error_str = str(error).lower()
        if "not found" in error_str or "no data" in error_str:
            return TickerNotFoundError(symbol=symbol, provider=self.name)
        if "rate limit" in error_str or "too many requests" in error_str:
            return RateLimitError(provider=self.name)

        logger.error(f"Yahoo Finance error for {symbol}: {error}")
        return ProviderUnavailableError(provider=self.name, reason=str(error))

    @classmethod
    def _first_decimal(cls, info: dict | None, fields: tuple[str, ...]) -> Decimal | None:
        if not info:
            return None
        for name in fields:
            value = cls._to_decimal(info.get(name))
            if value is not None and value > 0:
                return value
        return None

    @staticmethod
    def _to_decimal(value: Any) -> Decimal | None:
        """Convert a value to Decimal, returning None for NaN/None."""
        if value is None:
            return None
        try:
            if math.isnan(float(value)):
                return None
            return Decimal(str(value))
        except (TypeError, ValueError):
            return None
