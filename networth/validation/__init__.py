"""Row validation for CSV imports."""

from networth.validation.fields import parse_date, parse_number
from networth.validation.snapshots import validate_snapshot_row, validate_snapshot_rows
from networth.validation.transactions import (
    validate_transaction_row,
    validate_transaction_rows,
)

__all__ = [
    "parse_date",
    "parse_number",
    "validate_snapshot_row",
    "validate_snapshot_rows",
    "validate_transaction_row",
    "validate_transaction_rows",
]
