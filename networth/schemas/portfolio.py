# networth/schemas/portfolio.py
"""
Pydantic schemas for the portfolio snapshot handed to the valuation engine.

The snapshot is read-only: accounts and positions are owned by an external
store and the engine never mutates them.

Validation layers:
- Field constraints: non-negative amounts, day-of-month range
- Field validators: currency/postcode normalization
- Model validators: property positions carry mortgage data, debt positions
  carry debt data, never both
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from networth.models import AccountType, AssetType
from networth.schemas.validators import normalize_symbol, validate_currency


# =============================================================================
# CATEGORY PAYLOADS
# =============================================================================

class MortgageData(BaseModel):
    """
    Inputs for valuing a property position.

    total_property_value and equity are as of valuation_date; the equity
    calculator projects them forward using a house price index change.
    """
    model_config = ConfigDict(frozen=True)

    total_property_value: Decimal = Field(..., ge=0)
    equity: Decimal = Field(..., description="Equity held at valuation_date")
    valuation_date: date
    postcode: str = Field(..., min_length=1, examples=["SW1A 1AA"])

    mortgage_rate: Decimal | None = Field(
        default=None,
        ge=0,
        description="Annual interest rate in percent (e.g., 4.5)"
    )
    mortgage_term: int | None = Field(default=None, ge=1, description="Term in years")
    mortgage_start_date: date | None = None

    shared_ownership_percent: Decimal | None = Field(
        default=None,
        gt=0,
        le=100,
        description="Share of the property owned, for shared ownership schemes"
    )
    reserved_equity: Decimal | None = Field(
        default=None,
        ge=0,
        description="Equity ring-fenced for another party, excluded from the owner's share"
    )


class DebtData(BaseModel):
    """
    Inputs for valuing a liability.

    current_balance is the balance as entered at entered_at; a repayment
    sync may produce a more recent figure.
    """
    model_config = ConfigDict(frozen=True)

    current_balance: Decimal = Field(..., ge=0)
    apr: Decimal = Field(..., ge=0, description="Annual percentage rate")
    repayment_day_of_month: int = Field(..., ge=1, le=31)
    monthly_repayment: Decimal = Field(..., ge=0)
    entered_at: datetime

    loan_start_date: date | None = None
    loan_end_date: date | None = None
    total_term_months: int | None = Field(default=None, ge=1)

    paid_off: bool = False
    archived: bool = False


# =============================================================================
# POSITION / ACCOUNT / PORTFOLIO
# =============================================================================

class Position(BaseModel):
    """A single holding within an account."""
    model_config = ConfigDict(frozen=True)

    id: str
    symbol: str = Field(..., min_length=1)
    name: str
    custom_name: str | None = None
    units: Decimal
    currency: str
    asset_type: AssetType
    price_override: Decimal | None = Field(
        default=None,
        ge=0,
        description="Manual price that replaces the fetched quote"
    )
    mortgage_data: MortgageData | None = None
    debt_data: DebtData | None = None
    added_at: datetime

    @field_validator("symbol")
    @classmethod
    def _normalize_symbol(cls, value: str) -> str:
        return normalize_symbol(value)

    @field_validator("currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        return validate_currency(value)

    @model_validator(mode="after")
    def _check_category_payload(self) -> "Position":
        if self.mortgage_data is not None and self.debt_data is not None:
            raise ValueError("A position cannot carry both mortgage_data and debt_data")
        if self.asset_type.is_property and self.mortgage_data is None:
            raise ValueError(f"{self.asset_type.value} positions require mortgage_data")
        if self.asset_type.is_debt and self.debt_data is None:
            raise ValueError(f"{self.asset_type.value} positions require debt_data")
        return self

    @property
    def display_name(self) -> str:
        return self.custom_name or self.name


class Account(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: AccountType
    positions: tuple[Position, ...] = ()
    created_at: datetime


class Portfolio(BaseModel):
    """
    Read-only snapshot of every account the user holds.
    """
    model_config = ConfigDict(frozen=True)

    accounts: tuple[Account, ...] = ()
    updated_at: datetime

    def iter_positions(self):
        """Yield (account, position) pairs in display order."""
        for account in self.accounts:
            for position in account.positions:
                yield account, position
