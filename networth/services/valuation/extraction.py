# networth/services/valuation/extraction.py
"""
Turn a portfolio snapshot into deduplicated fetch work.

A single pass over every position partitions it into exactly one category
and collects:
- distinct traded symbols (price lookups)
- distinct currencies from all categories (FX lookups)
- distinct property index lookups keyed by normalized postcode + date
- active debts that need a repayment sync

Usage:
    inputs = extract_portfolio_inputs(portfolio)
    batch = await price_cache.get_cached_prices(inputs.symbols)
"""

from collections import Counter

from networth.models import AssetCategory
from networth.schemas.portfolio import MortgageData, Portfolio
from networth.schemas.validators import normalize_postcode
from networth.services.constants import CACHE_KEY_SEPARATOR
from networth.services.valuation.types import (
    DebtSyncRequest,
    PortfolioInputs,
    PropertyLookup,
)


def property_index_key(mortgage_data: MortgageData) -> str:
    """
    Lookup key for a property's index change.

    Example:
        postcode "sw1a 1aa", valuation date 2021-06-01 → "SW1A1AA:2021-06-01"
    """
    return CACHE_KEY_SEPARATOR.join((
        normalize_postcode(mortgage_data.postcode),
        mortgage_data.valuation_date.isoformat(),
    ))


def extract_portfolio_inputs(portfolio: Portfolio) -> PortfolioInputs:
    """Collect the distinct symbols, currencies, index lookups and debts."""
    symbols: dict[str, None] = {}
    currencies: dict[str, None] = {}
    property_lookups: dict[str, PropertyLookup] = {}
    debt_requests: list[DebtSyncRequest] = []
    counts: Counter[str] = Counter()

    for _account, position in portfolio.iter_positions():
        category = position.asset_type.category
        counts[category.value] += 1
        currencies.setdefault(position.currency)

        if category is AssetCategory.TRADED:
            symbols.setdefault(position.symbol)

        elif category is AssetCategory.PROPERTY:
            if position.mortgage_data is None:
                continue
            key = property_index_key(position.mortgage_data)
            property_lookups.setdefault(key, PropertyLookup(
                key=key,
                postcode=position.mortgage_data.postcode,
                valuation_date=position.mortgage_data.valuation_date,
            ))

        elif category is AssetCategory.DEBT:
            debt = position.debt_data
            if debt is None or debt.archived or debt.paid_off:
                continue
            debt_requests.append(DebtSyncRequest(
                position_id=position.id,
                asset_type=position.asset_type,
                debt_data=debt,
            ))

    return PortfolioInputs(
        symbols=list(symbols),
        currencies=list(currencies),
        property_lookups=property_lookups,
        debt_requests=debt_requests,
        positions_by_category=dict(counts),
    )
