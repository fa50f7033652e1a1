# networth/schemas/market_data.py
"""
Pydantic schemas for cached market data.

These are the records written to the CacheStore. They are serialized with
model_dump_json() and restored with model_validate_json(), so Decimal and
datetime values survive a round trip through any string store.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class CachedPrice(BaseModel):
    """A quote as stored for one symbol on one calendar date."""
    model_config = ConfigDict(frozen=True)

    symbol: str
    price: Decimal
    currency: str
    name: str = ""
    change: Decimal = Field(default=Decimal("0"), description="Absolute change on the day")
    change_percent: Decimal = Field(default=Decimal("0"), description="Percent change on the day")
    fetched_at: datetime


class CachedFxRate(BaseModel):
    """Conversion rate: 1 unit of from_currency = rate units of to_currency."""
    model_config = ConfigDict(frozen=True)

    from_currency: str
    to_currency: str
    rate: Decimal
    fetched_at: datetime
