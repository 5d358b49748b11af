"""
Price Models for Net Worth Tracker

Three shapes of price data flow through the system:
1. PriceQuote - what a provider returned just now
2. CachedPrice - the last successful quote per symbol (persisted)
3. PriceResult - what callers get back, including staleness

DESIGN DECISION: The cache holds one row per symbol, not a history.
Staleness is judged at read time; old rows are only ever overwritten.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from networth.models.portfolio import HoldingType, utc_now


class PriceSource(str, Enum):
    """Which provider produced a cached price."""
    YAHOO = "yahoo"          # stocks and ETFs
    COINGECKO = "coingecko"  # crypto


class PriceQuote(BaseModel):
    """A live price as returned by a provider client."""

    price: Decimal
    currency: str
    change_percent: Optional[Decimal] = None
    change_absolute: Optional[Decimal] = None


class CachedPrice(BaseModel):
    """Last successfully fetched price for a normalized symbol."""

    symbol: str = Field(..., min_length=1)
    price: Decimal
    currency: str
    change_percent: Optional[Decimal] = None
    change_absolute: Optional[Decimal] = None
    fetched_at: datetime = Field(default_factory=utc_now)
    source: PriceSource


class PriceResult(BaseModel):
    """
    Result of a price fetch.

    is_stale=True means the live fetch failed and this came from the cache;
    `error` then explains why.
    """

    price: Decimal
    currency: str
    change_percent: Optional[Decimal] = None
    change_absolute: Optional[Decimal] = None
    fetched_at: datetime
    is_stale: bool = False
    error: Optional[str] = None

    @classmethod
    def from_cached(
        cls,
        cached: CachedPrice,
        is_stale: bool,
        error: Optional[str] = None,
    ) -> 'PriceResult':
        return cls(
            price=cached.price,
            currency=cached.currency,
            change_percent=cached.change_percent,
            change_absolute=cached.change_absolute,
            fetched_at=cached.fetched_at,
            is_stale=is_stale,
            error=error,
        )


class HoldingForPriceFetch(BaseModel):
    """
    Minimal holding shape needed to fetch a price.

    The price API accepts this instead of a full Holding so callers
    can ask for a price without loading the holding from storage.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[UUID] = None
    type: HoldingType
    symbol: Optional[str] = None
    exchange: Optional[str] = None
    currency: Optional[str] = None


class PriceRefreshResult(BaseModel):
    """Per-holding outcome of a batch refresh, failures included."""

    holding_id: UUID
    symbol: str
    price: Optional[Decimal] = None
    currency: Optional[str] = None
    change_percent: Optional[Decimal] = None
    change_absolute: Optional[Decimal] = None
    fetched_at: Optional[datetime] = None
    is_stale: bool = False
    error: Optional[str] = None
