# networth/models.py
import enum
from datetime import datetime, timezone

from sqlalchemy import String, Text, DateTime, Integer, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class AssetCategory(str, enum.Enum):
    """
    Valuation family of a position.

    Every AssetType belongs to exactly one category, and each category has
    its own pricing rule in the valuation aggregator.
    """
    CASH = "CASH"
    TRADED = "TRADED"
    PROPERTY = "PROPERTY"
    DEBT = "DEBT"


class AssetType(str, enum.Enum):
    # Exchange-traded / quoted
    EQUITY = "EQUITY"
    ETF = "ETF"
    MUTUALFUND = "MUTUALFUND"
    INDEX = "INDEX"
    CURRENCY = "CURRENCY"
    CRYPTOCURRENCY = "CRYPTOCURRENCY"
    OPTION = "OPTION"
    FUTURE = "FUTURE"
    UNKNOWN = "UNKNOWN"

    CASH = "CASH"

    # Valued from mortgage data and a house price index
    MORTGAGE = "MORTGAGE"
    OWNED_PROPERTY = "OWNED_PROPERTY"

    # Liabilities
    CREDIT_CARD = "CREDIT_CARD"
    LOAN = "LOAN"
    STUDENT_LOAN = "STUDENT_LOAN"
    AUTO_LOAN = "AUTO_LOAN"
    BNPL = "BNPL"

    @property
    def category(self) -> AssetCategory:
        if self is AssetType.CASH:
            return AssetCategory.CASH
        if self in _PROPERTY_TYPES:
            return AssetCategory.PROPERTY
        if self in _DEBT_TYPES:
            return AssetCategory.DEBT
        return AssetCategory.TRADED

    @property
    def is_property(self) -> bool:
        return self in _PROPERTY_TYPES

    @property
    def is_debt(self) -> bool:
        return self in _DEBT_TYPES


_PROPERTY_TYPES = frozenset({AssetType.MORTGAGE, AssetType.OWNED_PROPERTY})

_DEBT_TYPES = frozenset({
    AssetType.CREDIT_CARD,
    AssetType.LOAN,
    AssetType.STUDENT_LOAN,
    AssetType.AUTO_LOAN,
    AssetType.BNPL,
})


class AccountType(str, enum.Enum):
    ISA = "ISA"
    LISA = "LISA"
    SIPP = "SIPP"
    GIA = "GIA"
    K401 = "401K"
    BROKERAGE = "BROKERAGE"
    CRYPTO = "CRYPTO"
    CURRENT_ACCOUNT = "CURRENT ACCOUNT"
    SAVINGS_ACCOUNT = "SAVINGS ACCOUNT"
    PROPERTY = "PROPERTY"
    DEBT = "DEBT"
    OTHER = "OTHER"


class CacheEntry(Base):
    """
    Persistent row of the price/FX cache.

    The key already encodes kind, symbol (or currency pair) and calendar
    date, e.g. "price:VWRL.L:2024-03-15" or "fx:USD:GBP:2024-03-15", so
    entries never need an explicit expiry. updated_at drives eviction when
    the store exceeds its capacity.
    """
    __tablename__ = "cache_entries"
    __table_args__ = (
        Index("ix_cache_entries_updated_at", "updated_at"),
    )

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text)
    size_bytes: Mapped[int] = mapped_column(Integer)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
