# networth/services/protocols.py
"""
Protocol interfaces for service dependency injection.

Using typing.Protocol enables structural subtyping:
- Collaborators owned by other packages satisfy protocols without inheritance
- Test fakes work without explicit inheritance
- Clear documentation of the contracts the engine relies on

The numeric algorithms behind EquityCalculator, DebtRepaymentSync and
PropertyIndexService live outside this package; only their contracts are
defined here.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from networth.schemas.portfolio import MortgageData
    from networth.services.valuation.types import (
        DebtSyncRequest,
        DebtSyncResult,
        EquityCalculation,
        PropertyIndexChange,
    )


class CacheStore(Protocol):
    """String key/value store backing the price cache."""

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def has(self, key: str) -> bool:
        ...

    def remove(self, key: str) -> None:
        ...

    def clear(self) -> None:
        ...


class PropertyIndexService(Protocol):
    """House price index lookups keyed by postcode and valuation date."""

    async def get_property_price_change(
        self,
        postcode: str,
        valuation_date: date,
    ) -> PropertyIndexChange:
        ...

    def get_property_price_change_sync(
        self,
        postcode: str,
        valuation_date: date,
    ) -> PropertyIndexChange | None:
        """Cache-only lookup; None when nothing has been fetched yet."""
        ...


class EquityCalculator(Protocol):
    """Projects mortgage equity forward using an index change."""

    def calculate_current_equity(
        self,
        mortgage_data: MortgageData,
        index_change_percent: Decimal,
        as_of: date,
    ) -> EquityCalculation:
        ...


class DebtRepaymentSync(Protocol):
    """Applies scheduled repayments to debts since their entry date."""

    async def sync_all_repayments(
        self,
        requests: list[DebtSyncRequest],
        as_of: date,
    ) -> dict[str, DebtSyncResult]:
        """Returns results keyed by position id; omitted ids were not synced."""
        ...
