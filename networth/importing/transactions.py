"""
Transaction Importer

Writes validated transaction rows, creating holdings on first sight of a
symbol. A transaction is a duplicate when the holding, date, action and
quantity all match an existing one; price and fees are not compared.
"""

from typing import Optional

import structlog

from networth.importing.base import RowImporter, resolve_currency
from networth.models.imports import TransactionRow
from networth.models.portfolio import Holding, HoldingType, Transaction
from networth.services.prices.symbols import STOCK_EXCHANGES, infer_exchange


logger = structlog.get_logger(__name__)


def determine_holding_type(symbol: str, exchange: Optional[str]) -> HoldingType:
    """
    Guess the type of a new holding.

    Known stock exchange or an .AX/.NZ suffix means stock; anything else
    is assumed to be crypto.
    """
    if exchange and exchange.strip().upper() in STOCK_EXCHANGES:
        return HoldingType.STOCK

    upper = symbol.upper()
    if upper.endswith(".AX") or upper.endswith(".NZ"):
        return HoldingType.STOCK

    return HoldingType.CRYPTO


class TransactionImporter(RowImporter[TransactionRow]):
    """Imports BUY/SELL/DIVIDEND rows."""

    import_type = "transactions"

    async def _resolve_holding(
        self,
        user_id: str,
        row: TransactionRow,
        holdings: dict[str, Holding],
    ) -> Holding:
        symbol = row.symbol.strip().upper()
        if symbol in holdings:
            return holdings[symbol]

        holding = await self._storage.find_holding_by_symbol(user_id, symbol)
        if holding is None:
            holding = Holding(
                user_id=user_id,
                type=determine_holding_type(symbol, row.exchange),
                symbol=symbol,
                name=symbol,
                currency=resolve_currency(row.currency, self._default_currency),
                exchange=infer_exchange(symbol, row.exchange),
                is_dormant=False,
                is_active=True,
            )
            await self._storage.save_holding(holding)
            logger.info(
                "holding_created",
                holding_id=str(holding.id),
                symbol=symbol,
                type=holding.type.value,
            )

        holdings[symbol] = holding
        return holding

    async def _import_row(
        self,
        user_id: str,
        row: TransactionRow,
        holdings: dict[str, Holding],
    ) -> bool:
        holding = await self._resolve_holding(user_id, row, holdings)

        if await self._storage.transaction_exists(
            holding.id, row.date, row.action, row.quantity
        ):
            return False

        await self._storage.save_transaction(Transaction(
            holding_id=holding.id,
            date=row.date,
            action=row.action,
            quantity=row.quantity,
            unit_price=row.unit_price,
            fees=row.fees if row.fees is not None else 0,
            currency=resolve_currency(row.currency, self._default_currency),
            notes=row.notes,
        ))
        return True
