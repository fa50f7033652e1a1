# networth/services/valuation/service.py
"""
Valuation Service - orchestrates one valuation cycle.

This is the single entry point for valuing a portfolio:
- refresh(): fetch everything concurrently and publish a new valuation
- render_cached(): synchronous optimistic view from cache-only reads
- clear_cache(): drop cached prices so the next refresh fetches fresh data

Cycle Flow:
    start cycle (new CycleToken, errors cleared, loading)
      → extract symbols / currencies / index lookups / debts
      → fan out four families concurrently:
            prices  (PriceCache.get_cached_prices)
            FX      (PriceCache.get_cached_fx_rates)
            index   (sync lookups first, async fetch for misses)
            debts   (one sync_all_repayments call)
      → join
      → token still current?  no → drop results
                              yes → aggregate, publish state

A cycle never cancels network calls in flight; a superseded cycle simply
does not publish. Cache writes made by a superseded cycle stay, since they
hold the same data a current cycle would write.

Design Principles:
- Dependency Injection: cache and collaborators passed to the constructor
- No presentation knowledge: exposes state, errors and flags only
- Never raises for partial upstream failure

Usage:
    service = ValuationService(
        price_cache=get_price_cache(),
        property_index=index_service,
        equity_calculator=equity_calculator,
        debt_sync=repayment_sync,
    )
    preview = service.render_cached(portfolio)
    valuation = await service.refresh(portfolio)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING

from networth.config import settings
from networth.services.errors import (
    PortfolioError,
    are_all_errors_offline,
    create_portfolio_error,
)
from networth.services.valuation.calculators import (
    PortfolioAggregator,
    PositionValueCalculator,
)
from networth.services.valuation.extraction import extract_portfolio_inputs
from networth.services.valuation.types import (
    CycleToken,
    DebtSyncRequest,
    DebtSyncResult,
    PortfolioValuation,
    PropertyIndexChange,
    PropertyLookup,
    ValuationInputs,
)
from networth.utils.context import reset_cycle_id, set_cycle_id
from networth.utils.date_utils import utc_now

if TYPE_CHECKING:
    from networth.schemas.portfolio import Portfolio
    from networth.services.market_data.price_cache import PriceCache
    from networth.services.protocols import (
        DebtRepaymentSync,
        EquityCalculator,
        PropertyIndexService,
    )

logger = logging.getLogger(__name__)


@dataclass
class ValuationState:
    """
    Published state of the service.

    Attributes:
        valuation: Last published valuation (None before the first refresh)
        errors: Per-symbol price failures from the last published cycle
        is_loading: A refresh is in flight
        generation: Generation of the most recently started cycle
    """

    valuation: PortfolioValuation | None = None
    errors: list[PortfolioError] = field(default_factory=list)
    is_loading: bool = False
    generation: int = 0

    @property
    def all_errors_offline(self) -> bool:
        return are_all_errors_offline(self.errors)


class ValuationService:
    """
    Main service for portfolio valuation.

    Attributes:
        _price_cache: Daily price/FX cache
        _property_index: House price index lookups (optional)
        _debt_sync: Debt repayment sync (optional)
        _aggregator: Position calculator + roll-up
        _clock: Source of "now"; its UTC date is the valuation as-of date
    """

    def __init__(
            self,
            price_cache: PriceCache,
            property_index: PropertyIndexService | None = None,
            equity_calculator: EquityCalculator | None = None,
            debt_sync: DebtRepaymentSync | None = None,
            base_currency: str | None = None,
            clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._price_cache = price_cache
        self._property_index = property_index
        self._debt_sync = debt_sync
        self._aggregator = PortfolioAggregator(PositionValueCalculator(equity_calculator))
        self._base_currency = (base_currency or settings.base_currency).upper()
        self._clock = clock
        self._state = ValuationState()

        logger.info(f"ValuationService initialized (base_currency={self._base_currency})")

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> ValuationState:
        return self._state

    @property
    def valuation(self) -> PortfolioValuation | None:
        return self._state.valuation

    @property
    def base_currency(self) -> str:
        return self._base_currency

    def start_cycle(self) -> CycleToken:
        """Begin a new cycle, superseding any cycle still in flight."""
        self._state.generation += 1
        self._state.errors = []
        self._state.is_loading = True
        return CycleToken(generation=self._state.generation, started_at=self._clock())

    def is_current(self, token: CycleToken) -> bool:
        return token.generation == self._state.generation

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def refresh(
            self,
            portfolio: Portfolio,
            base_currency: str | None = None,
    ) -> PortfolioValuation | None:
        """
        Run a full valuation cycle.

        Args:
            portfolio: Snapshot to value
            base_currency: Overrides the service's base currency

        Returns:
            The published valuation, or None when a newer cycle started
            before this one finished or the cycle failed (the failure is
            recorded in state.errors)
        """
        base = (base_currency or self._base_currency).upper()
        token = self.start_cycle()
        context_token = set_cycle_id(token.cycle_id)

        try:
            as_of = self._as_of(token.started_at)
            work = extract_portfolio_inputs(portfolio)
            logger.debug(
                f"Valuation cycle started: {len(work.symbols)} symbols, "
                f"{len(work.currencies)} currencies, "
                f"{len(work.property_lookups)} properties, "
                f"{len(work.debt_requests)} debts"
            )

            price_batch, fx_rates, property_changes, debt_balances = await asyncio.gather(
                self._price_cache.get_cached_prices(work.symbols),
                self._price_cache.get_cached_fx_rates(work.currencies, base),
                self._fetch_property_changes(work.property_lookups),
                self._sync_debts(work.debt_requests, as_of),
            )

            if not self.is_current(token):
                logger.debug(f"Dropping results of superseded {token.cycle_id}")
                return None

            inputs = ValuationInputs(
                prices=price_batch.prices,
                fx_rates={currency: record.rate for currency, record in fx_rates.items()},
                property_changes=property_changes,
                debt_balances=debt_balances,
            )
            valuation = self._aggregator.aggregate(
                portfolio, inputs, base, as_of, self._clock()
            )

            self._state.valuation = valuation
            self._state.errors = price_batch.errors
            logger.info(
                f"Valuation published: {valuation.total_value} {base} "
                f"({valuation.position_count} positions, {len(self._state.errors)} errors)"
            )
            return valuation

        except Exception as e:
            if not self.is_current(token):
                logger.debug(f"Superseded {token.cycle_id} failed: {e}")
                return None
            logger.error(f"Valuation cycle failed: {e}", exc_info=True)
            self._state.errors = [create_portfolio_error(e)]
            return None

        finally:
            if self.is_current(token):
                self._state.is_loading = False
            reset_cycle_id(context_token)

    def render_cached(
            self,
            portfolio: Portfolio,
            base_currency: str | None = None,
    ) -> PortfolioValuation:
        """
        Value a portfolio from cache-only reads, without any network call.

        Used to show something immediately while refresh() runs. Missing
        data degrades exactly as in a full cycle; debts use stored balances.
        """
        base = (base_currency or self._base_currency).upper()
        now = self._clock()
        work = extract_portfolio_inputs(portfolio)

        prices = {}
        for symbol in work.symbols:
            cached = self._price_cache.get_cached_price_sync(symbol)
            if cached is not None:
                prices[symbol] = cached

        fx_rates = {}
        for currency in work.currencies:
            cached = self._price_cache.get_cached_fx_rate_sync(currency, base)
            if cached is not None:
                fx_rates[currency] = cached.rate

        property_changes = {}
        for key, lookup in work.property_lookups.items():
            change = self._cached_property_change(lookup)
            if change is not None:
                property_changes[key] = change

        inputs = ValuationInputs(
            prices=prices,
            fx_rates=fx_rates,
            property_changes=property_changes,
        )
        return self._aggregator.aggregate(portfolio, inputs, base, self._as_of(now), now)

    def clear_cache(self) -> None:
        """Forget cached prices and rates; the next refresh refetches."""
        self._price_cache.clear_price_cache()

    # =========================================================================
    # FAN-OUT HELPERS
    # =========================================================================

    async def _fetch_property_changes(
            self,
            lookups: dict[str, PropertyLookup],
    ) -> dict[str, PropertyIndexChange]:
        if not lookups:
            return {}
        if self._property_index is None:
            logger.warning(
                f"{len(lookups)} properties need index data but no index service is configured"
            )
            return {}

        results: dict[str, PropertyIndexChange] = {}
        pending: list[PropertyLookup] = []
        for key, lookup in lookups.items():
            cached = self._cached_property_change(lookup)
            if cached is not None:
                results[key] = cached
            else:
                pending.append(lookup)

        outcomes = await asyncio.gather(
            *(
                self._property_index.get_property_price_change(p.postcode, p.valuation_date)
                for p in pending
            ),
            return_exceptions=True,
        )

        for lookup, outcome in zip(pending, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(f"House price index unavailable for {lookup.key}: {outcome}")
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results[lookup.key] = outcome
        return results

    def _cached_property_change(self, lookup: PropertyLookup) -> PropertyIndexChange | None:
        if self._property_index is None:
            return None
        try:
            return self._property_index.get_property_price_change_sync(
                lookup.postcode, lookup.valuation_date
            )
        except Exception as e:
            logger.warning(f"Cached index lookup failed for {lookup.key}: {e}")
            return None

    async def _sync_debts(
            self,
            requests: list[DebtSyncRequest],
            as_of: date,
    ) -> dict[str, DebtSyncResult]:
        if not requests:
            return {}
        if self._debt_sync is None:
            logger.debug("No debt sync configured, using stored balances")
            return {}

        try:
            return await self._debt_sync.sync_all_repayments(requests, as_of)
        except Exception as e:
            logger.error(f"Debt repayment sync failed, using stored balances: {e}")
            return {}

    @staticmethod
    def _as_of(moment: datetime) -> date:
        return moment.astimezone(timezone.utc).date()
