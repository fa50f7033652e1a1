# networth/services/market_data/price_cache.py
"""
Daily price and FX cache with stale-data fallback.

Every quote and conversion rate is stored under a key that includes the UTC
calendar date it was fetched on:

    price:<SYMBOL>:<YYYY-MM-DD>
    fx:<FROM>:<TO>:<YYYY-MM-DD>

so "is it fresh?" is just "does today's key exist?" and entries never need
an explicit expiry. At most one network call per symbol per day is made on
the happy path.

Lookup Strategy (single item):
    1. Today's entry in the store → return it
    2. One QuoteSource call → write today's entry, return it
    3. On failure, scan the previous STALE_FALLBACK_DAYS days, most recent
       first → return the first entry found
    4. Nothing found → raise PortfolioFetchError (classified, raw chained)

Batch operations isolate failures per item: one bad symbol never blocks the
others. Batch FX never raises; a missing rate defaults to 1 and is logged.

There is no locking or request coalescing. Two concurrent misses for the
same key both hit the network and the store keeps whichever write lands
last; both writes carry equivalent data.

Usage:
    cache = PriceCache(store=MemoryCacheStore(5 * 1024 * 1024),
                       quote_source=YahooQuoteSource())

    price = await cache.get_cached_price("VWRL.L")
    batch = await cache.get_cached_prices(["VWRL.L", "AAPL"])
    rates = await cache.get_cached_fx_rates(["USD", "EUR"], "GBP")
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from networth.schemas.market_data import CachedFxRate, CachedPrice
from networth.services.constants import (
    CACHE_KEY_SEPARATOR,
    DEFAULT_FX_RATE,
    FX_CACHE_KIND,
    PRICE_CACHE_KIND,
    STALE_FALLBACK_DAYS,
)
from networth.services.errors import PortfolioError, create_portfolio_error
from networth.services.exceptions import PortfolioFetchError, ValidationError
from networth.services.market_data.base import QuoteSource
from networth.services.protocols import CacheStore
from networth.utils.date_utils import date_key, trailing_days, utc_now

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class PriceBatchResult:
    """
    Result of a batch price lookup.

    Attributes:
        prices: Symbol → cached (fresh or stale) price
        failed: Symbol → PortfolioFetchError; the raw provider exception
                is its __cause__
    """

    prices: dict[str, CachedPrice] = field(default_factory=dict)
    failed: dict[str, Exception] = field(default_factory=dict)

    @property
    def errors(self) -> list[PortfolioError]:
        return [
            create_portfolio_error(error, symbol=symbol)
            for symbol, error in self.failed.items()
        ]

    @property
    def success_count(self) -> int:
        return len(self.prices)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def all_successful(self) -> bool:
        return self.failure_count == 0


# =============================================================================
# PRICE CACHE
# =============================================================================

class PriceCache:
    """
    Date-keyed cache in front of a QuoteSource.

    Args:
        store: Key/value store holding serialized records
        quote_source: Live source consulted on a miss
        clock: Returns the current time; its UTC date selects the key
        stale_fallback_days: Days scanned backwards after a failed fetch
    """

    def __init__(
            self,
            store: CacheStore,
            quote_source: QuoteSource,
            clock: Callable[[], datetime] = utc_now,
            stale_fallback_days: int = STALE_FALLBACK_DAYS,
    ) -> None:
        self._store = store
        self._source = quote_source
        self._clock = clock
        self._stale_fallback_days = stale_fallback_days

    # =========================================================================
    # KEYS
    # =========================================================================

    @staticmethod
    def price_key(symbol: str, day: date) -> str:
        return CACHE_KEY_SEPARATOR.join((PRICE_CACHE_KIND, symbol, date_key(day)))

    @staticmethod
    def fx_key(from_currency: str, to_currency: str, day: date) -> str:
        return CACHE_KEY_SEPARATOR.join(
            (FX_CACHE_KIND, from_currency, to_currency, date_key(day))
        )

    def _today(self) -> date:
        return self._clock().astimezone(timezone.utc).date()

    # =========================================================================
    # PRICES
    # =========================================================================

    async def get_cached_price(self, symbol: str) -> CachedPrice:
        """
        Today's price for a symbol, fetching it at most once per day.

        Raises:
            ValidationError: Empty symbol
            PortfolioFetchError: Fetch failed and no entry exists within
                the stale fallback window
        """
        if not symbol:
            raise ValidationError("Symbol cannot be empty", field="symbol")

        today = self._today()
        key = self.price_key(symbol, today)

        cached = self._read(key, CachedPrice)
        if cached is not None:
            logger.debug(f"Price cache hit: {key}")
            return cached

        logger.debug(f"Price cache miss: {key}")
        try:
            quote = await self._source.get_quote(symbol)
        except Exception as e:
            stale = self._find_stale(
                lambda day: self.price_key(symbol, day), today, CachedPrice
            )
            if stale is not None:
                logger.warning(
                    f"Serving stale price for {symbol} from "
                    f"{stale.fetched_at.date()}: {e}"
                )
                return stale

            error = create_portfolio_error(e, symbol=symbol)
            logger.error(f"Price unavailable for {symbol} ({error.type.value}): {e}")
            raise PortfolioFetchError(error) from e

        record = CachedPrice(
            symbol=symbol,
            price=quote.price,
            currency=quote.currency,
            name=quote.name,
            change=quote.change,
            change_percent=quote.change_percent,
            fetched_at=self._clock(),
        )
        self._write(key, record)
        return record

    def get_cached_price_sync(self, symbol: str) -> CachedPrice | None:
        """Today's cached price without touching the network."""
        return self._read(self.price_key(symbol, self._today()), CachedPrice)

    def has_todays_price(self, symbol: str) -> bool:
        return self._store.has(self.price_key(symbol, self._today()))

    async def get_cached_prices(self, symbols: Iterable[str]) -> PriceBatchResult:
        """
        Prices for many symbols; cached ones are served without a fetch.

        Duplicates are collapsed. Uncached symbols are fetched concurrently
        and a failure is recorded against its symbol only.
        """
        result = PriceBatchResult()
        uncached: list[str] = []

        for symbol in dict.fromkeys(s for s in symbols if s):
            cached = self.get_cached_price_sync(symbol)
            if cached is not None:
                result.prices[symbol] = cached
            else:
                uncached.append(symbol)

        if not uncached:
            return result

        logger.debug(
            f"Fetching {len(uncached)} prices "
            f"({len(result.prices)} served from cache)"
        )
        outcomes = await asyncio.gather(
            *(self.get_cached_price(symbol) for symbol in uncached),
            return_exceptions=True,
        )

        for symbol, outcome in zip(uncached, outcomes):
            if isinstance(outcome, Exception):
                result.failed[symbol] = outcome
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                result.prices[symbol] = outcome

        if result.failed:
            logger.warning(
                f"Batch price fetch: {result.success_count} ok, "
                f"{result.failure_count} failed ({', '.join(result.failed)})"
            )
        return result

    # =========================================================================
    # FX RATES
    # =========================================================================

    async def get_cached_fx_rate(self, from_currency: str, to_currency: str) -> CachedFxRate:
        """
        Today's conversion rate from_currency → to_currency.

        Same-currency requests return rate 1 without touching the store.

        Raises:
            ValidationError: Empty currency code
            PortfolioFetchError: Fetch failed and no entry exists within
                the stale fallback window
        """
        if not from_currency or not to_currency:
            raise ValidationError("Currency codes cannot be empty", field="currency")

        from_currency = from_currency.upper()
        to_currency = to_currency.upper()

        if from_currency == to_currency:
            return self._identity_rate(from_currency)

        pair = f"{from_currency}/{to_currency}"
        today = self._today()
        key = self.fx_key(from_currency, to_currency, today)

        cached = self._read(key, CachedFxRate)
        if cached is not None:
            logger.debug(f"FX cache hit: {key}")
            return cached

        try:
            rate = await self._source.get_fx_rate(from_currency, to_currency)
        except Exception as e:
            stale = self._find_stale(
                lambda day: self.fx_key(from_currency, to_currency, day), today, CachedFxRate
            )
            if stale is not None:
                logger.warning(
                    f"Serving stale FX rate for {pair} from "
                    f"{stale.fetched_at.date()}: {e}"
                )
                return stale

            error = create_portfolio_error(e, symbol=pair)
            logger.error(f"FX rate unavailable for {pair} ({error.type.value}): {e}")
            raise PortfolioFetchError(error) from e

        record = CachedFxRate(
            from_currency=from_currency,
            to_currency=to_currency,
            rate=rate,
            fetched_at=self._clock(),
        )
        self._write(key, record)
        return record

    def get_cached_fx_rate_sync(self, from_currency: str, to_currency: str) -> CachedFxRate | None:
        """Today's cached rate without touching the network."""
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()

        if from_currency == to_currency:
            return self._identity_rate(from_currency)

        return self._read(self.fx_key(from_currency, to_currency, self._today()), CachedFxRate)

    async def get_cached_fx_rates(
            self,
            currencies: Iterable[str],
            base_currency: str,
    ) -> dict[str, CachedFxRate]:
        """
        Rates to base_currency for every currency; never raises.

        A currency whose rate cannot be obtained (live or stale) maps to
        rate 1 so the valuation still completes. This over- or under-states
        that currency's holdings and is logged at ERROR.
        """
        base_currency = base_currency.upper()
        unique = list(dict.fromkeys(c.upper() for c in currencies if c))

        outcomes = await asyncio.gather(
            *(self.get_cached_fx_rate(currency, base_currency) for currency in unique),
            return_exceptions=True,
        )

        rates: dict[str, CachedFxRate] = {}
        for currency, outcome in zip(unique, outcomes):
            if isinstance(outcome, Exception):
                logger.error(
                    f"Using default rate {DEFAULT_FX_RATE} for "
                    f"{currency}/{base_currency}: {outcome}"
                )
                rates[currency] = CachedFxRate(
                    from_currency=currency,
                    to_currency=base_currency,
                    rate=DEFAULT_FX_RATE,
                    fetched_at=self._clock(),
                )
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                rates[currency] = outcome
        return rates

    def _identity_rate(self, currency: str) -> CachedFxRate:
        return CachedFxRate(
            from_currency=currency,
            to_currency=currency,
            rate=DEFAULT_FX_RATE,
            fetched_at=self._clock(),
        )

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    def clear_price_cache(self) -> None:
        """Drop every cached price and rate, forcing fresh fetches."""
        self._store.clear()
        logger.info("Price cache cleared")

    # =========================================================================
    # STORE ACCESS
    # =========================================================================

    def _read(self, key: str, model: type[RecordT]) -> RecordT | None:
        raw = self._store.get(key)
        if raw is None:
            return None
        try:
            return model.model_validate_json(raw)
        except PydanticValidationError as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            self._store.remove(key)
            return None

    def _write(self, key: str, record: BaseModel) -> None:
        self._store.set(key, record.model_dump_json())

    def _find_stale(
            self,
            key_for: Callable[[date], str],
            today: date,
            model: type[RecordT],
    ) -> RecordT | None:
        for day in trailing_days(today, self._stale_fallback_days):
            record = self._read(key_for(day), model)
            if record is not None:
                return record
        return None
