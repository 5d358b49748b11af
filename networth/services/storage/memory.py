"""
In-Memory Storage Implementation

Backs the storage interfaces with plain dicts. Used by the test-suite and
for local runs without Google Sheets credentials.

Records are copied on the way in and out so callers can't mutate
stored state by accident.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from networth.models.audit import AuditEvent
from networth.models.portfolio import (
    Contribution,
    Holding,
    ImportHistory,
    Snapshot,
    Transaction,
    TransactionAction,
    utc_now,
)
from networth.models.price import CachedPrice
from networth.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    PortfolioStorageInterface,
    PriceCacheStorageInterface,
)


class InMemoryPortfolioStorage(PortfolioStorageInterface):
    """Dict-backed holdings, transactions, snapshots and contributions."""

    def __init__(self):
        self.holdings: dict[UUID, Holding] = {}
        self.transactions: dict[UUID, Transaction] = {}
        self.snapshots: dict[UUID, Snapshot] = {}
        self.contributions: dict[UUID, Contribution] = {}
        self.import_history: list[ImportHistory] = []

    async def get_holding(self, holding_id: UUID) -> Optional[Holding]:
        holding = self.holdings.get(holding_id)
        if holding is None or holding.deleted_at is not None:
            return None
        return holding.model_copy()

    async def find_holding_by_symbol(
        self,
        user_id: str,
        symbol: str,
    ) -> Optional[Holding]:
        for holding in self.holdings.values():
            if (
                holding.user_id == user_id
                and holding.symbol == symbol
                and holding.deleted_at is None
            ):
                return holding.model_copy()
        return None

    async def list_holdings(self, user_id: str) -> list[Holding]:
        return [
            h.model_copy()
            for h in self.holdings.values()
            if h.user_id == user_id and h.deleted_at is None
        ]

    async def save_holding(self, holding: Holding) -> Holding:
        if holding.id in self.holdings:
            raise DuplicateError(f"Holding already exists: {holding.id}")
        self.holdings[holding.id] = holding.model_copy()
        return holding

    async def transaction_exists(
        self,
        holding_id: UUID,
        transaction_date: date,
        action: TransactionAction,
        quantity: Decimal,
    ) -> bool:
        return any(
            t.holding_id == holding_id
            and t.date == transaction_date
            and t.action == action
            and t.quantity == quantity
            and t.deleted_at is None
            for t in self.transactions.values()
        )

    async def save_transaction(self, transaction: Transaction) -> Transaction:
        if transaction.id in self.transactions:
            raise DuplicateError(f"Transaction already exists: {transaction.id}")
        self.transactions[transaction.id] = transaction.model_copy()
        return transaction

    async def list_transactions(self, holding_id: UUID) -> list[Transaction]:
        rows = [
            t.model_copy()
            for t in self.transactions.values()
            if t.holding_id == holding_id and t.deleted_at is None
        ]
        return sorted(rows, key=lambda t: t.date)

    async def snapshot_exists(self, holding_id: UUID, snapshot_date: date) -> bool:
        return any(
            s.holding_id == holding_id
            and s.date == snapshot_date
            and s.deleted_at is None
            for s in self.snapshots.values()
        )

    async def save_snapshot(self, snapshot: Snapshot) -> Snapshot:
        if snapshot.id in self.snapshots:
            raise DuplicateError(f"Snapshot already exists: {snapshot.id}")
        self.snapshots[snapshot.id] = snapshot.model_copy()
        return snapshot

    async def list_snapshots(self, holding_id: UUID) -> list[Snapshot]:
        rows = [
            s.model_copy()
            for s in self.snapshots.values()
            if s.holding_id == holding_id and s.deleted_at is None
        ]
        return sorted(rows, key=lambda s: s.date)

    async def get_contribution(
        self,
        holding_id: UUID,
        contribution_date: date,
    ) -> Optional[Contribution]:
        for c in self.contributions.values():
            if (
                c.holding_id == holding_id
                and c.date == contribution_date
                and c.deleted_at is None
            ):
                return c.model_copy()
        return None

    async def save_contribution(self, contribution: Contribution) -> Contribution:
        if contribution.id in self.contributions:
            raise DuplicateError(f"Contribution already exists: {contribution.id}")
        self.contributions[contribution.id] = contribution.model_copy()
        return contribution

    async def update_contribution(self, contribution: Contribution) -> Contribution:
        if contribution.id not in self.contributions:
            raise NotFoundError(f"Contribution not found: {contribution.id}")
        updated = contribution.model_copy(update={"updated_at": utc_now()})
        self.contributions[contribution.id] = updated
        return updated.model_copy()

    async def save_import_history(self, record: ImportHistory) -> ImportHistory:
        self.import_history.append(record.model_copy())
        return record

    async def list_import_history(
        self,
        user_id: str,
        limit: int = 20,
    ) -> list[ImportHistory]:
        rows = [r.model_copy() for r in self.import_history if r.user_id == user_id]
        rows.sort(key=lambda r: r.created_at, reverse=True)
        return rows[:limit]


class InMemoryPriceCacheStorage(PriceCacheStorageInterface):
    """Dict-backed price cache keyed by symbol."""

    def __init__(self):
        self.prices: dict[str, CachedPrice] = {}

    async def get_price(self, symbol: str) -> Optional[CachedPrice]:
        cached = self.prices.get(symbol)
        return cached.model_copy() if cached else None

    async def upsert_price(self, cached: CachedPrice) -> CachedPrice:
        self.prices[cached.symbol] = cached.model_copy()
        return cached

    async def list_prices(self) -> list[CachedPrice]:
        return [p.model_copy() for p in self.prices.values()]

    async def delete_price(self, symbol: str) -> bool:
        return self.prices.pop(symbol, None) is not None


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed append-only audit log."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
