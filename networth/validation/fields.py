"""
Field parsers shared by the row validators.

Both return None for anything unparseable so the caller can word the error.
"""

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional


DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Plain decimal or scientific notation. Excludes NaN, Infinity and "1_000".
NUMBER_PATTERN = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def parse_date(value: str) -> Optional[date]:
    """Parse a strict YYYY-MM-DD calendar date ("2024-02-30" is rejected)."""
    if not DATE_PATTERN.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def parse_number(value: str) -> Optional[Decimal]:
    """Parse a number, ignoring thousands separators ("1,000.50")."""
    cleaned = value.replace(",", "").strip()
    if not NUMBER_PATTERN.match(cleaned):
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None
