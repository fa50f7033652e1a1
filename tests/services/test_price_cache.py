# tests/services/test_price_cache.py
"""
Tests for the daily price/FX cache.

This module tests:
- Key layout
- At most one fetch per symbol per day
- Stale fallback within the trailing window
- Classified errors when nothing is available
- Same-currency FX short circuit
- Batch partitioning and failure isolation
- Cache-only reads, has_todays_price and clearing
"""

import asyncio
from datetime import date, timedelta
from decimal import Decimal

import pytest

from networth.schemas.market_data import CachedFxRate, CachedPrice
from networth.services.errors import ErrorType
from networth.services.exceptions import PortfolioFetchError, ValidationError
from networth.services.market_data.price_cache import PriceCache


def seed_price(store, symbol: str, day: date, price: str, clock) -> None:
    """Write a price entry as if it had been fetched on `day`."""
    fetched_at = clock.now.replace(year=day.year, month=day.month, day=day.day)
    record = CachedPrice(symbol=symbol, price=Decimal(price), currency="GBP", fetched_at=fetched_at)
    store.set(PriceCache.price_key(symbol, day), record.model_dump_json())


def seed_rate(store, from_currency: str, to_currency: str, day: date, rate: str, clock) -> None:
    fetched_at = clock.now.replace(year=day.year, month=day.month, day=day.day)
    record = CachedFxRate(
        from_currency=from_currency,
        to_currency=to_currency,
        rate=Decimal(rate),
        fetched_at=fetched_at,
    )
    store.set(PriceCache.fx_key(from_currency, to_currency, day), record.model_dump_json())


# =============================================================================
# KEYS
# =============================================================================

class TestCacheKeys:
    """Tests for cache key layout."""

    def test_price_key(self):
        assert PriceCache.price_key("VWRL.L", date(2024, 3, 5)) == "price:VWRL.L:2024-03-05"

    def test_fx_key(self):
        assert PriceCache.fx_key("USD", "GBP", date(2024, 3, 5)) == "fx:USD:GBP:2024-03-05"


# =============================================================================
# SINGLE PRICE
# =============================================================================

class TestGetCachedPrice:
    """Tests for get_cached_price."""

    @pytest.mark.asyncio
    async def test_fetches_and_caches(self, price_cache, quote_source, store, clock):
        """A miss should fetch once and write today's entry."""
        quote_source.add_quote("VWRL.L", "105.20", change="1.20", change_percent="1.15")

        result = await price_cache.get_cached_price("VWRL.L")

        assert result.price == Decimal("105.20")
        assert result.change == Decimal("1.20")
        assert result.change_percent == Decimal("1.15")
        assert result.fetched_at == clock.now
        assert store.has(PriceCache.price_key("VWRL.L", clock.today))

    @pytest.mark.asyncio
    async def test_second_call_same_day_uses_cache(self, price_cache, quote_source):
        """Two fetches on the same date should make one network call."""
        quote_source.add_quote("VWRL.L", "105.20")

        first = await price_cache.get_cached_price("VWRL.L")
        second = await price_cache.get_cached_price("VWRL.L")

        assert second.price == first.price
        assert quote_source.quote_calls["VWRL.L"] == 1

    @pytest.mark.asyncio
    async def test_new_day_fetches_again(self, price_cache, quote_source, clock):
        quote_source.add_quote("VWRL.L", "105.20")
        await price_cache.get_cached_price("VWRL.L")

        clock.advance(days=1)
        await price_cache.get_cached_price("VWRL.L")

        assert quote_source.quote_calls["VWRL.L"] == 2

    @pytest.mark.asyncio
    async def test_stale_fallback_returns_most_recent(self, price_cache, quote_source, store, clock):
        """Only an N-3 and N-5 entry + failure → the N-3 entry is returned."""
        seed_price(store, "VWRL.L", clock.today - timedelta(days=5), "99", clock)
        seed_price(store, "VWRL.L", clock.today - timedelta(days=3), "101", clock)
        quote_source.add_error("VWRL.L", ConnectionError("Network request failed"))

        result = await price_cache.get_cached_price("VWRL.L")

        assert result.price == Decimal("101")
        assert result.fetched_at.date() == clock.today - timedelta(days=3)

    @pytest.mark.asyncio
    async def test_stale_fallback_reaches_seven_days(self, price_cache, quote_source, store, clock):
        seed_price(store, "VWRL.L", clock.today - timedelta(days=7), "98", clock)
        quote_source.add_error("VWRL.L", TimeoutError())

        result = await price_cache.get_cached_price("VWRL.L")
        assert result.price == Decimal("98")

    @pytest.mark.asyncio
    async def test_entry_older_than_window_is_ignored(self, price_cache, quote_source, store, clock):
        """An N-8 entry should not be served."""
        seed_price(store, "VWRL.L", clock.today - timedelta(days=8), "97", clock)
        quote_source.add_error("VWRL.L", TimeoutError())

        with pytest.raises(PortfolioFetchError):
            await price_cache.get_cached_price("VWRL.L")

    @pytest.mark.asyncio
    async def test_stale_fallback_does_not_write_today(self, price_cache, quote_source, store, clock):
        seed_price(store, "VWRL.L", clock.today - timedelta(days=1), "101", clock)
        quote_source.add_error("VWRL.L", TimeoutError())

        await price_cache.get_cached_price("VWRL.L")

        assert not price_cache.has_todays_price("VWRL.L")

    @pytest.mark.asyncio
    async def test_offline_failure_classified(self, price_cache, quote_source):
        """No stale entry + network failure → offline error with the symbol."""
        raw = ConnectionRefusedError("connect ECONNREFUSED")
        quote_source.add_error("VWRL.L", raw)

        with pytest.raises(PortfolioFetchError) as exc_info:
            await price_cache.get_cached_price("VWRL.L")

        assert exc_info.value.error.type is ErrorType.OFFLINE
        assert exc_info.value.symbol == "VWRL.L"
        assert exc_info.value.__cause__ is raw

    @pytest.mark.asyncio
    async def test_unknown_symbol_classified_as_api_error(self, price_cache):
        with pytest.raises(PortfolioFetchError) as exc_info:
            await price_cache.get_cached_price("NOPE")

        assert exc_info.value.error.type is ErrorType.API_ERROR

    @pytest.mark.asyncio
    async def test_empty_symbol_rejected(self, price_cache, quote_source):
        with pytest.raises(ValidationError) as exc_info:
            await price_cache.get_cached_price("")

        assert exc_info.value.field == "symbol"
        assert quote_source.total_calls == 0

    @pytest.mark.asyncio
    async def test_unreadable_entry_refetched(self, price_cache, quote_source, store, clock):
        """A corrupt cache entry should be discarded and refetched."""
        store.set(PriceCache.price_key("VWRL.L", clock.today), "not json")
        quote_source.add_quote("VWRL.L", "105.20")

        result = await price_cache.get_cached_price("VWRL.L")

        assert result.price == Decimal("105.20")
        assert quote_source.quote_calls["VWRL.L"] == 1


# =============================================================================
# SYNC READS
# =============================================================================

class TestSyncReads:
    """Tests for cache-only reads."""

    def test_price_sync_miss(self, price_cache, quote_source):
        assert price_cache.get_cached_price_sync("VWRL.L") is None
        assert quote_source.total_calls == 0

    def test_price_sync_hit(self, price_cache, store, clock):
        seed_price(store, "VWRL.L", clock.today, "105", clock)
        assert price_cache.get_cached_price_sync("VWRL.L").price == Decimal("105")
        assert price_cache.has_todays_price("VWRL.L")

    def test_price_sync_ignores_stale(self, price_cache, store, clock):
        """Only today's entry counts for a sync read."""
        seed_price(store, "VWRL.L", clock.today - timedelta(days=1), "105", clock)
        assert price_cache.get_cached_price_sync("VWRL.L") is None
        assert not price_cache.has_todays_price("VWRL.L")

    def test_fx_sync_same_currency(self, price_cache):
        assert price_cache.get_cached_fx_rate_sync("GBP", "gbp").rate == Decimal("1")

    def test_fx_sync_hit(self, price_cache, store, clock):
        seed_rate(store, "USD", "GBP", clock.today, "0.79", clock)
        assert price_cache.get_cached_fx_rate_sync("usd", "GBP").rate == Decimal("0.79")


# =============================================================================
# FX RATES
# =============================================================================

class TestGetCachedFxRate:
    """Tests for get_cached_fx_rate."""

    @pytest.mark.asyncio
    async def test_same_currency_no_network(self, price_cache, quote_source, store):
        """Same-currency conversion should be 1 with zero calls and no store writes."""
        result = await price_cache.get_cached_fx_rate("GBP", "GBP")

        assert result.rate == Decimal("1")
        assert quote_source.total_calls == 0
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_fetches_and_caches(self, price_cache, quote_source, store, clock):
        quote_source.add_rate("USD", "GBP", "0.79")

        first = await price_cache.get_cached_fx_rate("USD", "GBP")
        second = await price_cache.get_cached_fx_rate("usd", "gbp")

        assert first.rate == Decimal("0.79")
        assert second.rate == Decimal("0.79")
        assert quote_source.fx_calls[("USD", "GBP")] == 1
        assert store.has("fx:USD:GBP:" + clock.today.isoformat())

    @pytest.mark.asyncio
    async def test_pair_direction_matters(self, price_cache, quote_source):
        quote_source.add_rate("USD", "GBP", "0.79")
        quote_source.add_rate("GBP", "USD", "1.27")

        assert (await price_cache.get_cached_fx_rate("USD", "GBP")).rate == Decimal("0.79")
        assert (await price_cache.get_cached_fx_rate("GBP", "USD")).rate == Decimal("1.27")

    @pytest.mark.asyncio
    async def test_stale_fallback(self, price_cache, quote_source, store, clock):
        seed_rate(store, "USD", "GBP", clock.today - timedelta(days=2), "0.78", clock)
        quote_source.add_error("USD/GBP", TimeoutError())

        result = await price_cache.get_cached_fx_rate("USD", "GBP")
        assert result.rate == Decimal("0.78")

    @pytest.mark.asyncio
    async def test_failure_raises(self, price_cache, quote_source):
        quote_source.add_error("USD/GBP", ConnectionError())

        with pytest.raises(PortfolioFetchError) as exc_info:
            await price_cache.get_cached_fx_rate("USD", "GBP")

        assert exc_info.value.error.type is ErrorType.OFFLINE
        assert exc_info.value.symbol == "USD/GBP"


# =============================================================================
# BATCH PRICES
# =============================================================================

class TestGetCachedPrices:
    """Tests for get_cached_prices."""

    @pytest.mark.asyncio
    async def test_partitions_cached_and_uncached(self, price_cache, quote_source, store, clock):
        """Cached symbols should not be fetched again."""
        seed_price(store, "AAPL", clock.today, "180", clock)
        quote_source.add_quote("VWRL.L", "105")

        result = await price_cache.get_cached_prices(["AAPL", "VWRL.L"])

        assert set(result.prices) == {"AAPL", "VWRL.L"}
        assert quote_source.quote_calls["AAPL"] == 0
        assert quote_source.quote_calls["VWRL.L"] == 1
        assert result.all_successful

    @pytest.mark.asyncio
    async def test_deduplicates(self, price_cache, quote_source):
        quote_source.add_quote("VWRL.L", "105")

        result = await price_cache.get_cached_prices(["VWRL.L", "VWRL.L", ""])

        assert list(result.prices) == ["VWRL.L"]
        assert quote_source.quote_calls["VWRL.L"] == 1

    @pytest.mark.asyncio
    async def test_failure_isolated(self, price_cache, quote_source):
        """One failing symbol should not block the others."""
        quote_source.add_quote("AAPL", "180")
        quote_source.add_quote("MSFT", "410")
        quote_source.add_error("BAD", Exception("Invalid symbol: BAD"))

        result = await price_cache.get_cached_prices(["AAPL", "BAD", "MSFT"])

        assert set(result.prices) == {"AAPL", "MSFT"}
        assert set(result.failed) == {"BAD"}
        assert result.failure_count == 1

        [error] = result.errors
        assert error.symbol == "BAD"
        assert error.type is ErrorType.API_ERROR

    @pytest.mark.asyncio
    async def test_fetches_concurrently(self, price_cache, quote_source):
        """All uncached symbols should be in flight before any completes."""
        quote_source.add_quote("AAPL", "180")
        quote_source.add_quote("MSFT", "410")
        quote_source.gate = asyncio.Event()

        task = asyncio.create_task(price_cache.get_cached_prices(["AAPL", "MSFT"]))
        for _ in range(3):
            await asyncio.sleep(0)

        assert quote_source.quote_calls["AAPL"] == 1
        assert quote_source.quote_calls["MSFT"] == 1

        quote_source.gate.set()
        result = await task
        assert result.success_count == 2

    @pytest.mark.asyncio
    async def test_empty(self, price_cache, quote_source):
        result = await price_cache.get_cached_prices([])
        assert result.prices == {}
        assert quote_source.total_calls == 0


# =============================================================================
# BATCH FX
# =============================================================================

class TestGetCachedFxRates:
    """Tests for get_cached_fx_rates."""

    @pytest.mark.asyncio
    async def test_one_failure_defaults_to_one(self, price_cache, quote_source):
        """A failing currency should map to 1 and the batch should not raise."""
        quote_source.add_rate("USD", "GBP", "0.79")
        quote_source.add_rate("EUR", "GBP", "0.85")
        quote_source.add_error("JPY/GBP", ConnectionError())

        rates = await price_cache.get_cached_fx_rates(["USD", "EUR", "JPY"], "GBP")

        assert set(rates) == {"USD", "EUR", "JPY"}
        assert rates["USD"].rate == Decimal("0.79")
        assert rates["EUR"].rate == Decimal("0.85")
        assert rates["JPY"].rate == Decimal("1")

    @pytest.mark.asyncio
    async def test_base_currency_is_identity(self, price_cache, quote_source):
        rates = await price_cache.get_cached_fx_rates(["GBP", "gbp"], "GBP")

        assert list(rates) == ["GBP"]
        assert rates["GBP"].rate == Decimal("1")
        assert quote_source.total_calls == 0

    @pytest.mark.asyncio
    async def test_default_rate_not_cached(self, price_cache, quote_source):
        """A defaulted rate should be retried on the next call."""
        quote_source.add_error("USD/GBP", ConnectionError())
        await price_cache.get_cached_fx_rates(["USD"], "GBP")

        quote_source.clear_errors()
        quote_source.add_rate("USD", "GBP", "0.79")
        rates = await price_cache.get_cached_fx_rates(["USD"], "GBP")

        assert rates["USD"].rate == Decimal("0.79")
        assert quote_source.fx_calls[("USD", "GBP")] == 2


# =============================================================================
# MAINTENANCE
# =============================================================================

class TestClearPriceCache:
    """Tests for clear_price_cache."""

    @pytest.mark.asyncio
    async def test_clear_forces_refetch(self, price_cache, quote_source):
        quote_source.add_quote("VWRL.L", "105")
        await price_cache.get_cached_price("VWRL.L")

        price_cache.clear_price_cache()

        assert not price_cache.has_todays_price("VWRL.L")
        await price_cache.get_cached_price("VWRL.L")
        assert quote_source.quote_calls["VWRL.L"] == 2
