# tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- A fixed, advanceable clock
- Fake quote source with call counters and scripted failures
- Fake property index, equity calculator and debt repayment sync
- Snapshot factories (positions, accounts, portfolios)
"""

import asyncio
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from networth.models import AccountType, AssetType
from networth.schemas.portfolio import (
    Account,
    DebtData,
    MortgageData,
    Portfolio,
    Position,
)
from networth.schemas.validators import normalize_postcode
from networth.services.exceptions import FXProviderError, TickerNotFoundError
from networth.services.market_data.base import Quote, QuoteSource
from networth.services.market_data.cache_store import MemoryCacheStore
from networth.services.market_data.price_cache import PriceCache
from networth.services.valuation.service import ValuationService
from networth.services.valuation.types import (
    DebtSyncResult,
    EquityCalculation,
    PropertyIndexChange,
)

FIXED_NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# CLOCK
# =============================================================================

class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, hours: int = 0) -> None:
        self.now = self.now + timedelta(days=days, hours=hours)

    @property
    def today(self) -> date:
        return self.now.date()


# =============================================================================
# FAKE QUOTE SOURCE
# =============================================================================

class FakeQuoteSource(QuoteSource):
    """
    In-memory QuoteSource for testing.

    Unknown symbols raise TickerNotFoundError and unknown pairs raise
    FXProviderError, like the real source. Configured errors take
    precedence over configured responses.
    """

    def __init__(self) -> None:
        self._quotes: dict[str, Quote] = {}
        self._rates: dict[tuple[str, str], Decimal] = {}
        self._errors: dict[str, Exception] = {}
        self.quote_calls: Counter[str] = Counter()
        self.fx_calls: Counter[tuple[str, str]] = Counter()
        self.gate: asyncio.Event | None = None

    @property
    def name(self) -> str:
        return "fake"

    def add_quote(
            self,
            symbol: str,
            price: str,
            currency: str = "GBP",
            change: str = "0",
            change_percent: str = "0",
    ) -> None:
        self._quotes[symbol] = Quote(
            symbol=symbol,
            name=f"{symbol} Name",
            price=Decimal(price),
            currency=currency,
            change=Decimal(change),
            change_percent=Decimal(change_percent),
        )

    def add_rate(self, from_currency: str, to_currency: str, rate: str) -> None:
        self._rates[(from_currency, to_currency)] = Decimal(rate)

    def add_error(self, key: str, error: Exception) -> None:
        """Fail a symbol, or a pair given as "FROM/TO"."""
        self._errors[key] = error

    def clear_errors(self) -> None:
        self._errors.clear()

    @property
    def total_calls(self) -> int:
        return sum(self.quote_calls.values()) + sum(self.fx_calls.values())

    async def get_quote(self, symbol: str) -> Quote:
        self.quote_calls[symbol] += 1
        if self.gate is not None:
            await self.gate.wait()
        if symbol in self._errors:
            raise self._errors[symbol]
        if symbol in self._quotes:
            return self._quotes[symbol]
        raise TickerNotFoundError(symbol=symbol, provider=self.name)

    async def get_fx_rate(self, from_currency: str, to_currency: str) -> Decimal:
        self.fx_calls[(from_currency, to_currency)] += 1
        if self.gate is not None:
            await self.gate.wait()
        pair = f"{from_currency}/{to_currency}"
        if pair in self._errors:
            raise self._errors[pair]
        if (from_currency, to_currency) in self._rates:
            return self._rates[(from_currency, to_currency)]
        raise FXProviderError(
            provider=self.name,
            from_currency=from_currency,
            to_currency=to_currency,
            reason="no data",
        )


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

class FakePropertyIndex:
    """PropertyIndexService with separate cached (sync) and remote answers."""

    def __init__(self) -> None:
        self.remote: dict[tuple[str, date], PropertyIndexChange] = {}
        self.cached: dict[tuple[str, date], PropertyIndexChange] = {}
        self.errors: dict[tuple[str, date], Exception] = {}
        self.async_calls: list[tuple[str, date]] = []

    @staticmethod
    def _key(postcode: str, valuation_date: date) -> tuple[str, date]:
        return normalize_postcode(postcode), valuation_date

    def add_change(
            self,
            postcode: str,
            valuation_date: date,
            change_percent: str,
            cached: bool = False,
            fetched_at: datetime = FIXED_NOW,
    ) -> None:
        change = PropertyIndexChange(
            change_percent=Decimal(change_percent),
            fetched_at=fetched_at,
            region="London",
        )
        target = self.cached if cached else self.remote
        target[self._key(postcode, valuation_date)] = change

    async def get_property_price_change(
            self,
            postcode: str,
            valuation_date: date,
    ) -> PropertyIndexChange:
        key = self._key(postcode, valuation_date)
        self.async_calls.append(key)
        if key in self.errors:
            raise self.errors[key]
        if key in self.remote:
            return self.remote[key]
        raise LookupError(f"no index data for {postcode}")

    def get_property_price_change_sync(
            self,
            postcode: str,
            valuation_date: date,
    ) -> PropertyIndexChange | None:
        return self.cached.get(self._key(postcode, valuation_date))


class FakeEquityCalculator:
    """
    Linear equity projection.

    appreciation = property value × index %; shared ownership and reserved
    equity are applied to both current and original equity.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[MortgageData, Decimal, date]] = []
        self.error: Exception | None = None

    def calculate_current_equity(
            self,
            mortgage_data: MortgageData,
            index_change_percent: Decimal,
            as_of: date,
    ) -> EquityCalculation:
        self.calls.append((mortgage_data, index_change_percent, as_of))
        if self.error is not None:
            raise self.error

        appreciation = mortgage_data.total_property_value * index_change_percent / Decimal("100")
        current_value = mortgage_data.total_property_value + appreciation
        current_equity = mortgage_data.equity + appreciation
        share = mortgage_data.shared_ownership_percent or Decimal("100")
        reserved = mortgage_data.reserved_equity or Decimal("0")

        return EquityCalculation(
            current_property_value=current_value,
            original_equity=mortgage_data.equity,
            current_equity=current_equity,
            principal_repaid=Decimal("0"),
            appreciation=appreciation,
            outstanding_balance=current_value - current_equity,
            shared_ownership_percent=share,
            reserved_equity=reserved,
            adjusted_equity=current_equity * share / Decimal("100") - reserved,
            adjusted_original_equity=mortgage_data.equity * share / Decimal("100") - reserved,
        )


class FakeDebtSync:
    """DebtRepaymentSync returning preset balances by position id."""

    def __init__(self) -> None:
        self.results: dict[str, DebtSyncResult] = {}
        self.error: Exception | None = None
        self.calls: list[tuple[list, date]] = []

    def set_balance(self, position_id: str, balance: str, paid_off: bool = False) -> None:
        self.results[position_id] = DebtSyncResult(
            current_balance=Decimal(balance),
            paid_off=paid_off,
        )

    async def sync_all_repayments(self, requests, as_of):
        self.calls.append((list(requests), as_of))
        if self.error is not None:
            raise self.error
        requested = {r.position_id for r in requests}
        return {pid: r for pid, r in self.results.items() if pid in requested}


# =============================================================================
# SNAPSHOT FACTORIES
# =============================================================================

_position_counter = 0


def make_position(
        symbol: str = "VWRL.L",
        units: str = "10",
        currency: str = "GBP",
        asset_type: AssetType = AssetType.ETF,
        **kwargs,
) -> Position:
    """Create a position with sensible defaults."""
    global _position_counter
    _position_counter += 1
    return Position(
        id=kwargs.pop("id", f"pos-{_position_counter}"),
        symbol=symbol,
        name=kwargs.pop("name", f"{symbol} Name"),
        units=Decimal(units),
        currency=currency,
        asset_type=asset_type,
        added_at=kwargs.pop("added_at", FIXED_NOW - timedelta(days=30)),
        **kwargs,
    )


def make_cash(amount: str, currency: str = "GBP", **kwargs) -> Position:
    return make_position(
        symbol=f"CASH-{currency}",
        units=amount,
        currency=currency,
        asset_type=AssetType.CASH,
        **kwargs,
    )


def make_debt(
        balance: str,
        currency: str = "GBP",
        asset_type: AssetType = AssetType.CREDIT_CARD,
        archived: bool = False,
        paid_off: bool = False,
        **kwargs,
) -> Position:
    debt = DebtData(
        current_balance=Decimal(balance),
        apr=Decimal("22.9"),
        repayment_day_of_month=1,
        monthly_repayment=Decimal("100"),
        entered_at=FIXED_NOW - timedelta(days=60),
        archived=archived,
        paid_off=paid_off,
    )
    return make_position(
        symbol=kwargs.pop("symbol", "CARD"),
        units="1",
        currency=currency,
        asset_type=asset_type,
        debt_data=debt,
        **kwargs,
    )


def make_property(
        equity: str = "85000",
        total_value: str = "250000",
        postcode: str = "SW1A 1AA",
        valuation_date: date = date(2021, 6, 1),
        currency: str = "GBP",
        **kwargs,
) -> Position:
    mortgage_kwargs = {
        k: kwargs.pop(k)
        for k in ("shared_ownership_percent", "reserved_equity")
        if k in kwargs
    }
    mortgage = MortgageData(
        total_property_value=Decimal(total_value),
        equity=Decimal(equity),
        valuation_date=valuation_date,
        postcode=postcode,
        **mortgage_kwargs,
    )
    return make_position(
        symbol=kwargs.pop("symbol", "HOME"),
        units="1",
        currency=currency,
        asset_type=kwargs.pop("asset_type", AssetType.MORTGAGE),
        mortgage_data=mortgage,
        **kwargs,
    )


def make_account(
        *positions: Position,
        name: str = "Main ISA",
        account_type: AccountType = AccountType.ISA,
) -> Account:
    return Account(
        id=f"acc-{name.lower().replace(' ', '-')}",
        name=name,
        type=account_type,
        positions=positions,
        created_at=FIXED_NOW - timedelta(days=365),
    )


def make_portfolio(*accounts: Account) -> Portfolio:
    return Portfolio(accounts=accounts, updated_at=FIXED_NOW)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def quote_source() -> FakeQuoteSource:
    return FakeQuoteSource()


@pytest.fixture
def store() -> MemoryCacheStore:
    return MemoryCacheStore(capacity_bytes=1024 * 1024)


@pytest.fixture
def price_cache(store, quote_source, clock) -> PriceCache:
    return PriceCache(store=store, quote_source=quote_source, clock=clock)


@pytest.fixture
def property_index() -> FakePropertyIndex:
    return FakePropertyIndex()


@pytest.fixture
def equity_calculator() -> FakeEquityCalculator:
    return FakeEquityCalculator()


@pytest.fixture
def debt_sync() -> FakeDebtSync:
    return FakeDebtSync()


@pytest.fixture
def valuation_service(
        price_cache,
        property_index,
        equity_calculator,
        debt_sync,
        clock,
) -> ValuationService:
    return ValuationService(
        price_cache=price_cache,
        property_index=property_index,
        equity_calculator=equity_calculator,
        debt_sync=debt_sync,
        base_currency="GBP",
        clock=clock,
    )
