# networth/services/valuation/types.py
"""
Internal data types for the valuation engine.

These dataclasses are used by the extraction helpers, the calculators and
the service. The portfolio snapshot itself is a set of Pydantic models in
networth/schemas/portfolio.py.

Design Principles:
- Immutable where possible (frozen=True for value objects)
- Use Decimal for ALL financial values (never float)
- Missing inputs are represented by absent mapping keys, not sentinels
- Warnings accumulate for data quality tracking

Type Hierarchy:
    PropertyIndexChange  - House price index movement since a valuation date
    EquityCalculation    - Equity breakdown from the equity calculator
    DebtSyncRequest      - One debt to bring up to date
    DebtSyncResult       - Balance after applying scheduled repayments
    PropertyLookup       - Normalized (postcode, valuation date) index key
    PortfolioInputs      - Deduplicated fetch work extracted from a snapshot
    ValuationInputs      - Everything fetched for one cycle
    PositionValuation    - Resolved value of one position
    AccountValuation     - Positions of one account plus its total
    PortfolioValuation   - Complete valuation tree
    CycleToken           - Identity of one refresh cycle
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from networth.services.constants import ZERO

if TYPE_CHECKING:
    from networth.models import AssetType
    from networth.schemas.market_data import CachedPrice
    from networth.schemas.portfolio import Account, DebtData, Position


# =============================================================================
# COLLABORATOR RESULTS
# =============================================================================

@dataclass(frozen=True)
class PropertyIndexChange:
    """
    House price index change between a valuation month and the latest month.

    Attributes:
        change_percent: Percent change (e.g., 8.5 for +8.5%)
        fetched_at: When the index data was retrieved
        region: Region name the postcode resolved to
    """

    change_percent: Decimal
    fetched_at: datetime
    region: str | None = None
    region_slug: str | None = None
    valuation_month: str | None = None
    latest_month: str | None = None
    valuation_hpi: Decimal | None = None
    latest_hpi: Decimal | None = None


@dataclass(frozen=True)
class EquityCalculation:
    """
    Equity breakdown for a property position.

    adjusted_* values apply shared ownership and reserved equity, and are
    what the position is worth to the owner.
    """

    current_property_value: Decimal
    original_equity: Decimal
    current_equity: Decimal
    principal_repaid: Decimal
    appreciation: Decimal
    outstanding_balance: Decimal
    shared_ownership_percent: Decimal
    reserved_equity: Decimal
    adjusted_equity: Decimal
    adjusted_original_equity: Decimal


@dataclass(frozen=True)
class DebtSyncRequest:
    position_id: str
    asset_type: AssetType
    debt_data: DebtData


@dataclass(frozen=True)
class DebtSyncResult:
    """Balance after scheduled repayments up to the as-of date."""

    current_balance: Decimal
    paid_off: bool = False


# =============================================================================
# EXTRACTION
# =============================================================================

@dataclass(frozen=True)
class PropertyLookup:
    """
    One house price index lookup.

    Attributes:
        key: "<POSTCODE>:<YYYY-MM-DD>" with the postcode upper-cased and
             stripped of whitespace
        postcode: Postcode as entered (passed to the index service)
        valuation_date: Date the stored equity refers to
    """

    key: str
    postcode: str
    valuation_date: date


@dataclass
class PortfolioInputs:
    """
    Deduplicated work needed to value a portfolio.

    Attributes:
        symbols: Distinct traded symbols, in first-seen order
        currencies: Distinct position currencies across all categories
        property_lookups: Index key → lookup
        debt_requests: Active debts needing a repayment sync
        positions_by_category: Count of positions per category (for logging)
    """

    symbols: list[str] = field(default_factory=list)
    currencies: list[str] = field(default_factory=list)
    property_lookups: dict[str, PropertyLookup] = field(default_factory=dict)
    debt_requests: list[DebtSyncRequest] = field(default_factory=list)
    positions_by_category: dict[str, int] = field(default_factory=dict)


@dataclass
class ValuationInputs:
    """
    Market data gathered for one valuation.

    Any key may be missing; the calculators fall back to defaults.

    Attributes:
        prices: Symbol → cached price
        fx_rates: Currency → rate to the base currency
        property_changes: Property lookup key → index change
        debt_balances: Position id → synced balance
    """

    prices: dict[str, CachedPrice] = field(default_factory=dict)
    fx_rates: dict[str, Decimal] = field(default_factory=dict)
    property_changes: dict[str, PropertyIndexChange] = field(default_factory=dict)
    debt_balances: dict[str, DebtSyncResult] = field(default_factory=dict)


# =============================================================================
# VALUATION TREE
# =============================================================================

@dataclass(frozen=True)
class PositionValuation:
    """
    Resolved value of a single position.

    Invariant: total_base_value == total_native_value * fx_rate

    Attributes:
        position: The snapshot position
        current_price: Per-unit price in the position currency
        total_native_value: Value in the position currency (negative for debt)
        total_base_value: Value in the base currency
        change: Absolute change (day change for traded, equity change for property)
        change_percent: Percent change matching `change`
        fx_rate: Rate applied to convert native → base
        hpi_change_percent: Raw index change for property positions
        equity: Full equity breakdown for property positions
    """

    position: Position
    current_price: Decimal
    total_native_value: Decimal
    total_base_value: Decimal
    change: Decimal
    change_percent: Decimal
    fx_rate: Decimal
    hpi_change_percent: Decimal | None = None
    equity: EquityCalculation | None = None

    @property
    def is_priced(self) -> bool:
        return self.current_price != ZERO


@dataclass(frozen=True)
class AccountValuation:
    account: Account
    positions: tuple[PositionValuation, ...]
    total_base_value: Decimal


@dataclass
class PortfolioValuation:
    """
    Complete valuation of a portfolio in one base currency.

    Attributes:
        accounts: Per-account valuations, in snapshot order
        total_value: Signed sum of all account totals (may be negative)
        base_currency: Currency of every *_base_value
        last_updated: Latest fetched_at among prices and index data used
        warnings: Degraded inputs (missing price, defaulted FX, etc.)
    """

    accounts: list[AccountValuation]
    total_value: Decimal
    base_currency: str
    last_updated: datetime
    warnings: list[str] = field(default_factory=list)

    @property
    def positions(self) -> list[PositionValuation]:
        return [p for account in self.accounts for p in account.positions]

    @property
    def position_count(self) -> int:
        return sum(len(account.positions) for account in self.accounts)

    def has_any_priced_positions(self) -> bool:
        """True once at least one position has a non-zero price."""
        return any(p.is_priced for p in self.positions)


# =============================================================================
# CYCLE CONTROL
# =============================================================================

@dataclass(frozen=True)
class CycleToken:
    """
    Identity of one refresh cycle.

    A cycle may publish its results only while its generation is still the
    service's current generation.
    """

    generation: int
    started_at: datetime

    @property
    def cycle_id(self) -> str:
        return f"cycle-{self.generation}"
