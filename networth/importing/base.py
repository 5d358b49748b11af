"""
Shared import loop.

Rows are imported one at a time with no enclosing transaction. A failing
row is recorded and the loop moves on; duplicate detection makes a re-run
after a partial import safe.
"""

from abc import ABC, abstractmethod
from typing import Generic, Iterable, Optional, TypeVar, Union

import structlog

from networth.models.imports import (
    HEADER_ROW_OFFSET,
    ImportResult,
    ImportRowError,
    SnapshotRow,
    TransactionRow,
)
from networth.models.portfolio import Currency, Holding
from networth.services.storage import PortfolioStorageInterface


logger = structlog.get_logger(__name__)

RowT = TypeVar("RowT", TransactionRow, SnapshotRow)

NumberedRow = tuple[int, RowT]


def numbered_rows(
    rows: Iterable[Union[RowT, NumberedRow]],
) -> list[NumberedRow]:
    """
    Pair each row with its CSV line number.

    Rows already given as (row_number, row) keep their number; bare rows
    are numbered from line 2, after the header.
    """
    numbered = []
    for index, item in enumerate(rows):
        if isinstance(item, tuple):
            numbered.append(item)
        else:
            numbered.append((index + HEADER_ROW_OFFSET, item))
    return numbered


def resolve_currency(value: Optional[str], default: Currency = Currency.AUD) -> Currency:
    """Row currency uppercased, `default` when blank. Unsupported codes raise ValueError."""
    if not value or not value.strip():
        return default
    return Currency(value.strip().upper())


class RowImporter(ABC, Generic[RowT]):
    """
    Imports validated rows for one user.

    Subclasses resolve the holding for a row and write its records.
    """

    import_type: str = "rows"

    def __init__(
        self,
        storage: PortfolioStorageInterface,
        default_currency: Currency = Currency.AUD,
    ):
        self._storage = storage
        self._default_currency = default_currency

    @abstractmethod
    async def _import_row(
        self,
        user_id: str,
        row: RowT,
        holdings: dict[str, Holding],
    ) -> bool:
        """
        Import one row.

        Args:
            user_id: Owner of the imported records
            row: Validated row
            holdings: Holdings resolved earlier in this run, by row key

        Returns:
            True if written, False if skipped as a duplicate
        """
        pass

    async def import_rows(
        self,
        user_id: str,
        rows: Iterable[Union[RowT, NumberedRow]],
    ) -> ImportResult:
        """Import rows sequentially, isolating per-row failures."""
        result = ImportResult()
        holdings: dict[str, Holding] = {}

        for row_number, row in numbered_rows(rows):
            try:
                if await self._import_row(user_id, row, holdings):
                    result.imported += 1
                else:
                    result.skipped += 1
            except Exception as e:
                logger.warning(
                    "import_row_failed",
                    import_type=self.import_type,
                    row=row_number,
                    error=str(e),
                )
                result.errors.append(ImportRowError(
                    row=row_number,
                    message=str(e) or type(e).__name__,
                    data=row,
                ))

        logger.info(
            "import_rows_finished",
            import_type=self.import_type,
            imported=result.imported,
            skipped=result.skipped,
            errors=len(result.errors),
        )
        return result
