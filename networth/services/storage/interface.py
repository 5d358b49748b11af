"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep import and pricing logic decoupled from storage implementation

The interface is intentionally narrow - just the lookups the importers and
the price cache need: lookup by symbol, lookup by (holding, date), and
insert/update/upsert primitives. Soft-deleted rows are invisible to every
lookup.
"""

from abc import ABC, abstractmethod
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
)
from networth.models.price import CachedPrice


class PortfolioStorageInterface(ABC):
    """
    Abstract interface for holdings and the records imported against them.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    # -------------------------------------------------------------------------
    # Holdings
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_holding(self, holding_id: UUID) -> Optional[Holding]:
        """Retrieve a non-deleted holding by ID, or None."""
        pass

    @abstractmethod
    async def find_holding_by_symbol(
        self,
        user_id: str,
        symbol: str,
    ) -> Optional[Holding]:
        """
        Find a user's non-deleted holding by exact symbol.

        Args:
            user_id: Owner of the holding
            symbol: Uppercased symbol as stored

        Returns:
            The first matching holding, or None
        """
        pass

    @abstractmethod
    async def list_holdings(self, user_id: str) -> list[Holding]:
        """List a user's non-deleted holdings."""
        pass

    @abstractmethod
    async def save_holding(self, holding: Holding) -> Holding:
        """
        Insert a new holding.

        Raises:
            DuplicateError: If a holding with the same ID exists
            StorageError: If save fails
        """
        pass

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def transaction_exists(
        self,
        holding_id: UUID,
        transaction_date: date,
        action: TransactionAction,
        quantity: Decimal,
    ) -> bool:
        """
        Check whether a non-deleted transaction with the same holding,
        date, action and quantity exists (duplicate detection).

        Unit price and fees are deliberately not part of the key.
        """
        pass

    @abstractmethod
    async def save_transaction(self, transaction: Transaction) -> Transaction:
        """Insert a transaction."""
        pass

    @abstractmethod
    async def list_transactions(self, holding_id: UUID) -> list[Transaction]:
        """List non-deleted transactions for a holding, oldest first."""
        pass

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    @abstractmethod
    async def snapshot_exists(self, holding_id: UUID, snapshot_date: date) -> bool:
        """Check whether a non-deleted snapshot exists for (holding, date)."""
        pass

    @abstractmethod
    async def save_snapshot(self, snapshot: Snapshot) -> Snapshot:
        """Insert a snapshot."""
        pass

    @abstractmethod
    async def list_snapshots(self, holding_id: UUID) -> list[Snapshot]:
        """List non-deleted snapshots for a holding, oldest first."""
        pass

    # -------------------------------------------------------------------------
    # Contributions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_contribution(
        self,
        holding_id: UUID,
        contribution_date: date,
    ) -> Optional[Contribution]:
        """Get the non-deleted contribution for (holding, date), or None."""
        pass

    @abstractmethod
    async def save_contribution(self, contribution: Contribution) -> Contribution:
        """Insert a contribution."""
        pass

    @abstractmethod
    async def update_contribution(self, contribution: Contribution) -> Contribution:
        """
        Update an existing contribution.

        Raises:
            NotFoundError: If the contribution doesn't exist
        """
        pass

    # -------------------------------------------------------------------------
    # Import history
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_import_history(self, record: ImportHistory) -> ImportHistory:
        """Append an import history record."""
        pass

    @abstractmethod
    async def list_import_history(
        self,
        user_id: str,
        limit: int = 20,
    ) -> list[ImportHistory]:
        """List a user's most recent imports, newest first."""
        pass


class PriceCacheStorageInterface(ABC):
    """
    Abstract interface for the price cache table.

    One row per symbol; writes replace the existing row.
    """

    @abstractmethod
    async def get_price(self, symbol: str) -> Optional[CachedPrice]:
        """Get the cached price for a normalized symbol, or None."""
        pass

    @abstractmethod
    async def upsert_price(self, cached: CachedPrice) -> CachedPrice:
        """Insert or overwrite the row for `cached.symbol`."""
        pass

    @abstractmethod
    async def list_prices(self) -> list[CachedPrice]:
        """List every cached price."""
        pass

    @abstractmethod
    async def delete_price(self, symbol: str) -> bool:
        """Delete the row for a symbol. Returns False if there was none."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Returns True if logged successfully."""
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for one import or refresh, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
