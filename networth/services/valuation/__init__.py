# networth/services/valuation/__init__.py
"""
Valuation package.

Turns a portfolio snapshot plus fetched market data into a fully resolved
valuation tree in one base currency.

Usage:
    from networth.services.valuation import ValuationService

    service = ValuationService(price_cache=cache, equity_calculator=calc)
    valuation = await service.refresh(portfolio)

Architecture:
    valuation/
    ├── __init__.py              # This file - package exports
    ├── types.py                 # Internal data classes
    ├── extraction.py            # Snapshot → deduplicated fetch work
    ├── calculators.py           # Per-category rules and roll-up
    └── service.py               # ValuationService (orchestrator)

Data Flow:
    Portfolio → extract_portfolio_inputs → PortfolioInputs
    PortfolioInputs → concurrent fetch → ValuationInputs
    Portfolio + ValuationInputs → PortfolioAggregator → PortfolioValuation
"""

from networth.services.valuation.calculators import (
    PortfolioAggregator,
    PositionValueCalculator,
)
from networth.services.valuation.extraction import (
    extract_portfolio_inputs,
    property_index_key,
)
from networth.services.valuation.service import ValuationService, ValuationState
from networth.services.valuation.types import (
    AccountValuation,
    CycleToken,
    DebtSyncRequest,
    DebtSyncResult,
    EquityCalculation,
    PortfolioInputs,
    PortfolioValuation,
    PositionValuation,
    PropertyIndexChange,
    PropertyLookup,
    ValuationInputs,
)

__all__ = [
    # Service
    "ValuationService",
    "ValuationState",
    # Calculators
    "PositionValueCalculator",
    "PortfolioAggregator",
    # Extraction
    "extract_portfolio_inputs",
    "property_index_key",
    # Types
    "AccountValuation",
    "CycleToken",
    "DebtSyncRequest",
    "DebtSyncResult",
    "EquityCalculation",
    "PortfolioInputs",
    "PortfolioValuation",
    "PositionValuation",
    "PropertyIndexChange",
    "PropertyLookup",
    "ValuationInputs",
]
