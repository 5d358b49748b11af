"""
CSV Import Models for Net Worth Tracker

Rows move through the import pipeline in three shapes:
1. CSVRow - raw header-keyed strings (None for empty cells)
2. TransactionRow / SnapshotRow - typed rows that passed validation
3. ImportResult - what happened to each row

Row numbers are 1-based CSV line numbers: the header is row 1, so the
first data row is row 2.
"""

from datetime import date
from decimal import Decimal
from typing import Generic, Optional, TypeVar, Union

from pydantic import BaseModel, Field

from networth.models.portfolio import TransactionAction


CSVRow = dict[str, Optional[str]]

# Offset from a 0-based data row index to its CSV line number.
HEADER_ROW_OFFSET = 2


class TransactionRow(BaseModel):
    """A validated transaction CSV row."""

    date: date
    symbol: str = Field(..., min_length=1)
    action: TransactionAction
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., gt=0)
    fees: Optional[Decimal] = Field(default=None, ge=0)
    currency: Optional[str] = None
    exchange: Optional[str] = None
    notes: Optional[str] = None


class SnapshotRow(BaseModel):
    """A validated snapshot CSV row (super, cash or debt balance)."""

    date: date
    fund_name: str = Field(..., min_length=1)
    balance: Decimal
    employer_contrib: Optional[Decimal] = Field(default=None, ge=0)
    employee_contrib: Optional[Decimal] = Field(default=None, ge=0)
    currency: Optional[str] = None


RowT = TypeVar("RowT", TransactionRow, SnapshotRow)


class RowValidationResult(BaseModel, Generic[RowT]):
    """Outcome of validating one CSV row. `data` is set only when valid."""

    valid: bool
    errors: list[str] = Field(default_factory=list)
    data: Optional[RowT] = None


class ImportRowError(BaseModel):
    """A row that could not be imported."""

    row: int = Field(..., ge=1, description="1-based CSV line number")
    message: str
    data: Optional[Union[TransactionRow, SnapshotRow, dict]] = None


class ImportResult(BaseModel):
    """
    Tally of an import run.

    imported + skipped + len(errors) always equals the rows submitted.
    """

    imported: int = 0
    skipped: int = 0
    errors: list[ImportRowError] = Field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.imported + self.skipped + len(self.errors)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0


class ImportSummary(ImportResult):
    """ImportResult plus the number of data rows found in the CSV."""

    total: int = 0
