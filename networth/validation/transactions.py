"""
Transaction Row Validation

Checks one CSV row against the transaction import format:

    date, symbol, action, quantity, unit_price, fees, currency, exchange, notes

Every problem in a row is reported, not just the first, so the user can fix
a row in one pass.

IMPORTANT: Validation NEVER silently fixes issues. The only normalizations
are case-folding the action and dropping thousands separators.
"""

from typing import Optional, Sequence

from networth.models.imports import (
    HEADER_ROW_OFFSET,
    CSVRow,
    RowValidationResult,
    TransactionRow,
)
from networth.models.portfolio import IMPORTABLE_ACTIONS, TransactionAction
from networth.validation.fields import parse_date, parse_number


def _is_importable_action(value: str) -> bool:
    return value.upper() in {a.value for a in IMPORTABLE_ACTIONS}


def validate_transaction_row(
    row: CSVRow,
    row_number: Optional[int] = None,
) -> RowValidationResult[TransactionRow]:
    """
    Validate a CSV row for transaction import.

    Required fields: date, symbol, action, quantity, unit_price
    Optional fields: fees, currency, exchange, notes

    Args:
        row: Header-keyed CSV row
        row_number: CSV line number, used to prefix messages ("Row 3: ...")

    Returns:
        RowValidationResult with the typed row when valid
    """
    errors: list[str] = []
    prefix = f"Row {row_number}: " if row_number is not None else ""

    date_str = row.get("date")
    symbol = row.get("symbol")
    action = row.get("action")
    quantity_str = row.get("quantity")
    unit_price_str = row.get("unit_price")
    fees_str = row.get("fees")

    if not date_str:
        errors.append(f"{prefix}date is required")
    elif parse_date(date_str) is None:
        errors.append(
            f'{prefix}date "{date_str}" is not a valid date format (expected YYYY-MM-DD)'
        )

    if not symbol:
        errors.append(f"{prefix}symbol is required")

    if not action:
        errors.append(f"{prefix}action is required")
    elif not _is_importable_action(action):
        errors.append(
            f'{prefix}action "{action}" is invalid (must be BUY, SELL, or DIVIDEND)'
        )

    for field, raw in (("quantity", quantity_str), ("unit_price", unit_price_str)):
        if not raw:
            errors.append(f"{prefix}{field} is required")
            continue
        value = parse_number(raw)
        if value is None:
            errors.append(f'{prefix}{field} "{raw}" is not a valid number')
        elif value <= 0:
            errors.append(f"{prefix}{field} must be a positive number")

    fees = None
    if fees_str:
        fees = parse_number(fees_str)
        if fees is None:
            errors.append(f'{prefix}fees "{fees_str}" is not a valid number')
        elif fees < 0:
            errors.append(f"{prefix}fees cannot be negative")

    if errors:
        return RowValidationResult[TransactionRow](valid=False, errors=errors)

    data = TransactionRow(
        date=parse_date(date_str),
        symbol=symbol,
        action=TransactionAction(action.upper()),
        quantity=parse_number(quantity_str),
        unit_price=parse_number(unit_price_str),
        fees=fees,
        currency=row.get("currency") or None,
        exchange=row.get("exchange") or None,
        notes=row.get("notes") or None,
    )
    return RowValidationResult[TransactionRow](valid=True, data=data)


def validate_transaction_rows(
    rows: Sequence[CSVRow],
) -> list[RowValidationResult[TransactionRow]]:
    """Validate parsed data rows, numbering them from line 2 (after the header)."""
    return [
        validate_transaction_row(row, index + HEADER_ROW_OFFSET)
        for index, row in enumerate(rows)
    ]
