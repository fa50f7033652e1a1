# networth/schemas/__init__.py
"""
Pydantic schemas for the engine's inputs and cached records.

Usage:
    from networth.schemas import Portfolio, Account, Position
    from networth.schemas import CachedPrice, CachedFxRate
"""

from networth.schemas.market_data import CachedFxRate, CachedPrice
from networth.schemas.portfolio import (
    Account,
    DebtData,
    MortgageData,
    Portfolio,
    Position,
)

__all__ = [
    # Snapshot
    "Portfolio",
    "Account",
    "Position",
    "MortgageData",
    "DebtData",
    # Cache records
    "CachedPrice",
    "CachedFxRate",
]
