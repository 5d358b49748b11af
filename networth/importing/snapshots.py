"""
Snapshot Importer

Writes validated balance snapshots, creating holdings by fund name.
One snapshot per holding per date; later rows for the same pair are
skipped. Super funds also get a contribution record when the row carries
employer or employee amounts.
"""

from decimal import Decimal

import structlog

from networth.importing.base import RowImporter, resolve_currency
from networth.models.imports import SnapshotRow
from networth.models.portfolio import Contribution, Holding, HoldingType, Snapshot


logger = structlog.get_logger(__name__)

SUPER_KEYWORDS = ("super", "retirement", "pension", "kiwisaver")
DEBT_KEYWORDS = ("debt", "loan", "credit", "mortgage", "hecs", "help")


def determine_holding_type(fund_name: str) -> HoldingType:
    """Classify a new fund by keywords in its name. Defaults to cash."""
    lower = fund_name.lower()
    if any(keyword in lower for keyword in SUPER_KEYWORDS):
        return HoldingType.SUPER
    if any(keyword in lower for keyword in DEBT_KEYWORDS):
        return HoldingType.DEBT
    return HoldingType.CASH


class SnapshotImporter(RowImporter[SnapshotRow]):
    """Imports super, cash and debt balances."""

    import_type = "snapshots"

    async def _resolve_holding(
        self,
        user_id: str,
        row: SnapshotRow,
        holdings: dict[str, Holding],
    ) -> Holding:
        key = row.fund_name.strip().lower()
        if key in holdings:
            return holdings[key]

        existing = [
            h for h in await self._storage.list_holdings(user_id)
            if h.name.lower() == key
        ]
        if existing:
            holding = existing[0]
        else:
            holding = Holding(
                user_id=user_id,
                type=determine_holding_type(row.fund_name),
                symbol=None,
                name=row.fund_name.strip(),
                currency=resolve_currency(row.currency, self._default_currency),
                exchange=None,
                is_dormant=False,
                is_active=True,
            )
            await self._storage.save_holding(holding)
            logger.info(
                "holding_created",
                holding_id=str(holding.id),
                name=holding.name,
                type=holding.type.value,
            )

        holdings[key] = holding
        return holding

    async def _upsert_contribution(self, holding: Holding, row: SnapshotRow) -> None:
        employer = row.employer_contrib if row.employer_contrib is not None else Decimal("0")
        employee = row.employee_contrib if row.employee_contrib is not None else Decimal("0")

        existing = await self._storage.get_contribution(holding.id, row.date)
        if existing is not None:
            await self._storage.update_contribution(existing.model_copy(update={
                "employer_contrib": employer,
                "employee_contrib": employee,
            }))
        else:
            await self._storage.save_contribution(Contribution(
                holding_id=holding.id,
                date=row.date,
                employer_contrib=employer,
                employee_contrib=employee,
            ))

    async def _import_row(
        self,
        user_id: str,
        row: SnapshotRow,
        holdings: dict[str, Holding],
    ) -> bool:
        holding = await self._resolve_holding(user_id, row, holdings)

        if await self._storage.snapshot_exists(holding.id, row.date):
            return False

        await self._storage.save_snapshot(Snapshot(
            holding_id=holding.id,
            date=row.date,
            balance=row.balance,
            currency=resolve_currency(row.currency, self._default_currency),
        ))

        has_contribution = (
            row.employer_contrib is not None or row.employee_contrib is not None
        )
        if holding.type == HoldingType.SUPER and has_contribution:
            await self._upsert_contribution(holding, row)

        return True
