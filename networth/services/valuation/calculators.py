# networth/services/valuation/calculators.py
"""
Valuation calculators.

Each calculator has one job:
- PositionValueCalculator: Values a single position by its category
- PortfolioAggregator: Rolls positions up into accounts and a portfolio total

Per-category rules:
    CASH      price 1, native = units, no change
    DEBT      archived → all zeros; otherwise price = |balance|,
              native = -balance, no change. The synced balance wins over
              the stored one.
    PROPERTY  native = adjusted equity from the equity calculator;
              change = adjusted - adjusted original equity, percent relative
              to the adjusted original (raw index % when that is zero)
    TRADED    price = override, else fetched price, else 0;
              native = units × price; change from the quote unless overridden

Every position: total_base_value = total_native_value × fx_rate.

Design Principles:
- Never raise: a missing input degrades to its default and adds a warning
- Stateless apart from the injected equity calculator
- Uses Decimal for ALL financial calculations

Usage:
    aggregator = PortfolioAggregator(PositionValueCalculator(equity_calculator))
    valuation = aggregator.aggregate(portfolio, inputs, "GBP", as_of, now)
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, assert_never

from networth.models import AssetCategory
from networth.services.constants import (
    CASH_UNIT_PRICE,
    DEFAULT_FX_RATE,
    ONE_HUNDRED,
    ZERO,
)
from networth.services.valuation.extraction import property_index_key
from networth.services.valuation.types import (
    AccountValuation,
    PortfolioValuation,
    PositionValuation,
    ValuationInputs,
)
from networth.utils.date_utils import as_utc

if TYPE_CHECKING:
    from networth.schemas.portfolio import Portfolio, Position
    from networth.services.protocols import EquityCalculator

logger = logging.getLogger(__name__)


# =============================================================================
# POSITION VALUE CALCULATOR
# =============================================================================

class PositionValueCalculator:
    """
    Values one position from the gathered market data.

    Dependencies:
        equity_calculator: Projects mortgage equity for PROPERTY positions
    """

    def __init__(self, equity_calculator: EquityCalculator | None = None) -> None:
        self._equity_calculator = equity_calculator

    def calculate(
            self,
            position: Position,
            inputs: ValuationInputs,
            base_currency: str,
            as_of: date,
            warnings: list[str] | None = None,
    ) -> PositionValuation:
        """
        Value a position.

        Args:
            position: Position from the snapshot
            inputs: Prices, rates, index changes and debt balances
            base_currency: Reporting currency
            as_of: Date the valuation refers to
            warnings: Degraded inputs are appended here when given

        Returns:
            PositionValuation, never raises
        """
        if warnings is None:
            warnings = []

        fx_rate = self._fx_rate(position, inputs, base_currency, warnings)
        category = position.asset_type.category

        match category:
            case AssetCategory.CASH:
                return self._value_cash(position, fx_rate)
            case AssetCategory.DEBT:
                return self._value_debt(position, inputs, fx_rate, warnings)
            case AssetCategory.PROPERTY:
                return self._value_property(position, inputs, fx_rate, as_of, warnings)
            case AssetCategory.TRADED:
                return self._value_traded(position, inputs, fx_rate, warnings)
            case _:
                assert_never(category)

    # =========================================================================
    # CATEGORY RULES
    # =========================================================================

    @staticmethod
    def _value_cash(position: Position, fx_rate: Decimal) -> PositionValuation:
        native = position.units
        return PositionValuation(
            position=position,
            current_price=CASH_UNIT_PRICE,
            total_native_value=native,
            total_base_value=native * fx_rate,
            change=ZERO,
            change_percent=ZERO,
            fx_rate=fx_rate,
        )

    @staticmethod
    def _value_debt(
            position: Position,
            inputs: ValuationInputs,
            fx_rate: Decimal,
            warnings: list[str],
    ) -> PositionValuation:
        debt = position.debt_data

        if debt is None:
            warnings.append(f"{position.display_name}: missing debt data, valued at 0")
            balance = ZERO
        elif debt.archived:
            return PositionValuation(
                position=position,
                current_price=ZERO,
                total_native_value=ZERO,
                total_base_value=ZERO,
                change=ZERO,
                change_percent=ZERO,
                fx_rate=fx_rate,
            )
        else:
            synced = inputs.debt_balances.get(position.id)
            balance = abs(synced.current_balance if synced is not None else debt.current_balance)

        native = -balance
        return PositionValuation(
            position=position,
            current_price=balance,
            total_native_value=native,
            total_base_value=native * fx_rate,
            change=ZERO,
            change_percent=ZERO,
            fx_rate=fx_rate,
        )

    def _value_property(
            self,
            position: Position,
            inputs: ValuationInputs,
            fx_rate: Decimal,
            as_of: date,
            warnings: list[str],
    ) -> PositionValuation:
        mortgage = position.mortgage_data
        if mortgage is None:
            warnings.append(f"{position.display_name}: missing mortgage data, valued at 0")
            return PositionValuation(
                position=position,
                current_price=ZERO,
                total_native_value=ZERO,
                total_base_value=ZERO,
                change=ZERO,
                change_percent=ZERO,
                fx_rate=fx_rate,
            )

        index_change = inputs.property_changes.get(property_index_key(mortgage))
        if index_change is None:
            warnings.append(f"{position.display_name}: no house price index data, assuming 0%")
            hpi_percent = ZERO
        else:
            hpi_percent = index_change.change_percent

        try:
            if self._equity_calculator is None:
                raise LookupError("no equity calculator configured")
            equity = self._equity_calculator.calculate_current_equity(
                mortgage, hpi_percent, as_of
            )
        except Exception as e:
            logger.warning(f"Equity calculation failed for position {position.id}: {e}")
            warnings.append(f"{position.display_name}: equity calculation failed ({e}), using stored equity")
            return PositionValuation(
                position=position,
                current_price=mortgage.equity,
                total_native_value=mortgage.equity,
                total_base_value=mortgage.equity * fx_rate,
                change=ZERO,
                change_percent=ZERO,
                fx_rate=fx_rate,
                hpi_change_percent=hpi_percent,
            )

        adjusted = equity.adjusted_equity
        original = equity.adjusted_original_equity
        change = adjusted - original
        if original != ZERO:
            change_percent = change / original * ONE_HUNDRED
        else:
            change_percent = hpi_percent

        return PositionValuation(
            position=position,
            current_price=adjusted,
            total_native_value=adjusted,
            total_base_value=adjusted * fx_rate,
            change=change,
            change_percent=change_percent,
            fx_rate=fx_rate,
            hpi_change_percent=hpi_percent,
            equity=equity,
        )

    @staticmethod
    def _value_traded(
            position: Position,
            inputs: ValuationInputs,
            fx_rate: Decimal,
            warnings: list[str],
    ) -> PositionValuation:
        if position.price_override is not None:
            price = position.price_override
            change = ZERO
            change_percent = ZERO
        else:
            quote = inputs.prices.get(position.symbol)
            if quote is None:
                warnings.append(f"{position.symbol}: no price available, valued at 0")
                price = ZERO
                change = ZERO
                change_percent = ZERO
            else:
                price = quote.price
                change = quote.change
                change_percent = quote.change_percent

        native = position.units * price
        return PositionValuation(
            position=position,
            current_price=price,
            total_native_value=native,
            total_base_value=native * fx_rate,
            change=change,
            change_percent=change_percent,
            fx_rate=fx_rate,
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _fx_rate(
            position: Position,
            inputs: ValuationInputs,
            base_currency: str,
            warnings: list[str],
    ) -> Decimal:
        if position.currency == base_currency:
            return DEFAULT_FX_RATE

        rate = inputs.fx_rates.get(position.currency)
        if rate is None:
            warnings.append(
                f"{position.display_name}: no {position.currency}/{base_currency} rate, using 1"
            )
            return DEFAULT_FX_RATE
        return rate


# =============================================================================
# PORTFOLIO AGGREGATOR
# =============================================================================

class PortfolioAggregator:
    """
    Rolls position valuations up into accounts and a portfolio total.

    Totals are signed sums, so liabilities reduce them and the portfolio
    total can be negative.
    """

    def __init__(self, position_calculator: PositionValueCalculator) -> None:
        self._position_calculator = position_calculator

    def aggregate(
            self,
            portfolio: Portfolio,
            inputs: ValuationInputs,
            base_currency: str,
            as_of: date,
            now: datetime,
    ) -> PortfolioValuation:
        """
        Build the full valuation tree.

        Args:
            portfolio: Snapshot to value
            inputs: Market data gathered for this cycle
            base_currency: Reporting currency
            as_of: Date passed to the equity calculator
            now: Fallback for last_updated when nothing was fetched

        Returns:
            PortfolioValuation, never raises
        """
        base_currency = base_currency.upper()
        warnings: list[str] = []
        accounts: list[AccountValuation] = []

        for account in portfolio.accounts:
            positions = tuple(
                self._position_calculator.calculate(
                    position, inputs, base_currency, as_of, warnings
                )
                for position in account.positions
            )
            accounts.append(AccountValuation(
                account=account,
                positions=positions,
                total_base_value=sum((p.total_base_value for p in positions), ZERO),
            ))

        total = sum((a.total_base_value for a in accounts), ZERO)

        if warnings:
            logger.warning(f"Valuation completed with {len(warnings)} degraded inputs")

        return PortfolioValuation(
            accounts=accounts,
            total_value=total,
            base_currency=base_currency,
            last_updated=self._last_updated(inputs, now),
            warnings=warnings,
        )

    @staticmethod
    def _last_updated(inputs: ValuationInputs, now: datetime) -> datetime:
        timestamps = [as_utc(p.fetched_at) for p in inputs.prices.values()]
        timestamps.extend(as_utc(c.fetched_at) for c in inputs.property_changes.values())
        return max(timestamps, default=as_utc(now))
