"""
Portfolio Data Models for Net Worth Tracker

These models define the persisted entities the importers create and the
price fetcher reads:
1. Holding - something the user owns or owes
2. Transaction - a trade against a tradeable holding
3. Snapshot - a point-in-time balance for super, cash or debt
4. Contribution - employer/employee super contributions
5. ImportHistory - one row per CSV upload

DESIGN DECISION: Every entity carries a nullable `deleted_at`.
Nothing is hard-deleted; lookups and duplicate checks ignore soft-deleted rows.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


def utc_now() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class HoldingType(str, Enum):
    """Kinds of holding a user can track."""
    STOCK = "stock"
    ETF = "etf"
    CRYPTO = "crypto"
    SUPER = "super"
    CASH = "cash"
    DEBT = "debt"

    @property
    def is_tradeable(self) -> bool:
        """Only tradeable holdings have live market prices."""
        return self in TRADEABLE_TYPES


TRADEABLE_TYPES = frozenset({HoldingType.STOCK, HoldingType.ETF, HoldingType.CRYPTO})


class Currency(str, Enum):
    """Supported holding currencies."""
    AUD = "AUD"
    NZD = "NZD"
    USD = "USD"


class TransactionAction(str, Enum):
    """
    Transaction actions.

    SPLIT exists for manually entered records but cannot be imported from CSV.
    """
    BUY = "BUY"
    SELL = "SELL"
    DIVIDEND = "DIVIDEND"
    SPLIT = "SPLIT"


IMPORTABLE_ACTIONS = (
    TransactionAction.BUY,
    TransactionAction.SELL,
    TransactionAction.DIVIDEND,
)


class ImportType(str, Enum):
    """What kind of CSV was imported."""
    TRANSACTIONS = "transactions"
    SNAPSHOTS = "snapshots"


# =============================================================================
# CORE ENTITIES
# =============================================================================

class Holding(BaseModel):
    """
    A single holding owned by a user.

    `symbol` is required for tradeable types and null for super/cash/debt.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    type: HoldingType
    symbol: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=200)
    currency: Currency = Currency.AUD
    exchange: Optional[str] = None
    is_dormant: bool = False
    is_active: bool = True
    notes: Optional[str] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @model_validator(mode='after')
    def validate_symbol(self) -> 'Holding':
        """Tradeable holdings must have a symbol."""
        if self.type.is_tradeable and not self.symbol:
            raise ValueError(f"Holding type '{self.type.value}' requires a symbol")
        return self


class Transaction(BaseModel):
    """A buy, sell, dividend or split against a holding."""

    id: UUID = Field(default_factory=uuid4)
    holding_id: UUID
    date: date
    action: TransactionAction
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)
    fees: Decimal = Field(default=Decimal("0"), ge=0)
    currency: Currency = Currency.AUD
    notes: Optional[str] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    deleted_at: Optional[datetime] = None


class Snapshot(BaseModel):
    """
    Balance of a holding on a given date.

    Balance may be zero or negative (debts).
    """

    id: UUID = Field(default_factory=uuid4)
    holding_id: UUID
    date: date
    balance: Decimal
    currency: Currency = Currency.AUD
    notes: Optional[str] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    deleted_at: Optional[datetime] = None


class Contribution(BaseModel):
    """Super contributions recorded against a holding on a date."""

    id: UUID = Field(default_factory=uuid4)
    holding_id: UUID
    date: date
    employer_contrib: Decimal = Field(default=Decimal("0"), ge=0)
    employee_contrib: Decimal = Field(default=Decimal("0"), ge=0)
    notes: Optional[str] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    deleted_at: Optional[datetime] = None


class ImportHistory(BaseModel):
    """Summary of one CSV upload, kept for the user's import history."""

    id: UUID = Field(default_factory=uuid4)
    user_id: str
    type: ImportType
    filename: Optional[str] = None
    total: int = Field(ge=0)
    imported: int = Field(ge=0)
    skipped: int = Field(ge=0)
    error_count: int = Field(ge=0)
    created_at: datetime = Field(default_factory=utc_now)
