"""
Snapshot Row Validation

Format: date, fund_name, balance, employer_contrib, employee_contrib, currency

Balances may be zero or negative (debts). Contributions may not be negative.
"""

from typing import Optional, Sequence

from networth.models.imports import (
    HEADER_ROW_OFFSET,
    CSVRow,
    RowValidationResult,
    SnapshotRow,
)
from networth.validation.fields import parse_date, parse_number


def validate_snapshot_row(
    row: CSVRow,
    row_number: Optional[int] = None,
) -> RowValidationResult[SnapshotRow]:
    """
    Validate a CSV row for snapshot import.

    Required fields: date, fund_name, balance
    Optional fields: employer_contrib, employee_contrib, currency
    """
    errors: list[str] = []
    prefix = f"Row {row_number}: " if row_number is not None else ""

    date_str = row.get("date")
    fund_name = row.get("fund_name")
    balance_str = row.get("balance")

    if not date_str:
        errors.append(f"{prefix}date is required")
    elif parse_date(date_str) is None:
        errors.append(
            f'{prefix}date "{date_str}" is not a valid date format (expected YYYY-MM-DD)'
        )

    if not fund_name:
        errors.append(f"{prefix}fund_name is required")

    balance = None
    if not balance_str:
        errors.append(f"{prefix}balance is required")
    else:
        balance = parse_number(balance_str)
        if balance is None:
            errors.append(f'{prefix}balance "{balance_str}" is not a valid number')

    contributions = {}
    for field in ("employer_contrib", "employee_contrib"):
        raw = row.get(field)
        if not raw:
            contributions[field] = None
            continue
        value = parse_number(raw)
        if value is None:
            errors.append(f'{prefix}{field} "{raw}" is not a valid number')
        elif value < 0:
            errors.append(f"{prefix}{field} cannot be negative")
        contributions[field] = value

    if errors:
        return RowValidationResult[SnapshotRow](valid=False, errors=errors)

    data = SnapshotRow(
        date=parse_date(date_str),
        fund_name=fund_name,
        balance=balance,
        employer_contrib=contributions["employer_contrib"],
        employee_contrib=contributions["employee_contrib"],
        currency=row.get("currency") or None,
    )
    return RowValidationResult[SnapshotRow](valid=True, data=data)


def validate_snapshot_rows(
    rows: Sequence[CSVRow],
) -> list[RowValidationResult[SnapshotRow]]:
    """Validate parsed data rows, numbering them from line 2 (after the header)."""
    return [
        validate_snapshot_row(row, index + HEADER_ROW_OFFSET)
        for index, row in enumerate(rows)
    ]
