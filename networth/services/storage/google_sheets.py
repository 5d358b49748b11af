"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the storage backend because:
1. The user can view and fix their holdings directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (importers are idempotent, so a re-run repairs a partial import)
- Limited query capabilities (we filter in Python)

Each entity lives in its own worksheet. Values are written RAW so decimals
keep their exact string form, and read back through the pydantic models.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, TypeVar
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import BaseModel
from tenacity import retry, stop_after_attempt, wait_exponential

from networth.config import GoogleSheetsSettings, get_settings
from networth.models.audit import AuditEvent, AuditEventType, AuditSeverity
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
    ConnectionError,
    NotFoundError,
    PortfolioStorageInterface,
    PriceCacheStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


# Column mappings, one list per worksheet
HOLDING_COLUMNS = [
    "id", "user_id", "type", "symbol", "name", "currency", "exchange",
    "is_dormant", "is_active", "notes", "created_at", "updated_at", "deleted_at",
]

TRANSACTION_COLUMNS = [
    "id", "holding_id", "date", "action", "quantity", "unit_price", "fees",
    "currency", "notes", "created_at", "updated_at", "deleted_at",
]

SNAPSHOT_COLUMNS = [
    "id", "holding_id", "date", "balance", "currency", "notes",
    "created_at", "updated_at", "deleted_at",
]

CONTRIBUTION_COLUMNS = [
    "id", "holding_id", "date", "employer_contrib", "employee_contrib", "notes",
    "created_at", "updated_at", "deleted_at",
]

PRICE_CACHE_COLUMNS = [
    "symbol", "price", "currency", "change_percent", "change_absolute",
    "fetched_at", "source",
]

IMPORT_HISTORY_COLUMNS = [
    "id", "user_id", "type", "filename", "total", "imported", "skipped",
    "error_count", "created_at",
]

AUDIT_COLUMNS = [
    "event_id", "timestamp", "event_type", "severity", "entity_type",
    "entity_id", "correlation_id", "description", "details_json",
    "error_message", "is_user_action",
]


def _to_cell(value) -> str:
    """Serialize a model attribute to a sheet cell."""
    if value is None:
        return ""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def model_to_row(model: BaseModel, columns: list[str]) -> list[str]:
    """Convert a model to a spreadsheet row in column order."""
    return [_to_cell(getattr(model, column)) for column in columns]


def row_to_model(row: list, columns: list[str], model_cls: type[ModelT]) -> ModelT:
    """Convert a spreadsheet row back to a model. Empty cells become None."""
    record = {}
    for index, column in enumerate(columns):
        value = row[index] if index < len(row) else ""
        record[column] = value if value != "" else None
    # Drop unset columns so model defaults apply
    return model_cls.model_validate({k: v for k, v in record.items() if v is not None})


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    Worksheets are created with a header row on first use.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets
        self._worksheets: dict[str, gspread.Worksheet] = {}

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        if title in self._worksheets:
            return self._worksheets[title]

        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
            logger.info("worksheet_created", title=title)

        self._worksheets[title] = sheet
        return sheet


class _SheetTable:
    """One worksheet treated as a table of models."""

    def __init__(
        self,
        client: GoogleSheetsClient,
        title: str,
        columns: list[str],
        model_cls: type[ModelT],
    ):
        self._client = client
        self._title = title
        self._columns = columns
        self._model_cls = model_cls

    def sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(self._title, self._columns)

    def rows(self) -> list[tuple[int, BaseModel]]:
        """All parseable rows as (sheet row number, model), header excluded."""
        parsed = []
        for row_number, row in enumerate(self.sheet().get_all_values()[1:], start=2):
            if not row or not row[0]:
                continue
            try:
                parsed.append((row_number, row_to_model(row, self._columns, self._model_cls)))
            except Exception as e:
                logger.warning(
                    "malformed_sheet_row",
                    sheet=self._title,
                    row=row_number,
                    error=str(e),
                )
        return parsed

    def models(self) -> list:
        return [model for _, model in self.rows()]

    def append(self, model: BaseModel) -> None:
        self.sheet().append_row(
            model_to_row(model, self._columns),
            value_input_option="RAW",
        )

    def replace(self, row_number: int, model: BaseModel) -> None:
        self.sheet().update(
            range_name=f"A{row_number}",
            values=[model_to_row(model, self._columns)],
            value_input_option="RAW",
        )


class GoogleSheetsPortfolioStorage(PortfolioStorageInterface):
    """
    Google Sheets implementation of portfolio storage.

    Holdings, transactions, snapshots, contributions and import history
    each live in their own worksheet, one record per row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        names = self._client.settings
        self._holdings = _SheetTable(
            self._client, names.holdings_sheet_name, HOLDING_COLUMNS, Holding
        )
        self._transactions = _SheetTable(
            self._client, names.transactions_sheet_name, TRANSACTION_COLUMNS, Transaction
        )
        self._snapshots = _SheetTable(
            self._client, names.snapshots_sheet_name, SNAPSHOT_COLUMNS, Snapshot
        )
        self._contributions = _SheetTable(
            self._client, names.contributions_sheet_name, CONTRIBUTION_COLUMNS, Contribution
        )
        self._import_history = _SheetTable(
            self._client, names.import_history_sheet_name, IMPORT_HISTORY_COLUMNS, ImportHistory
        )

    async def get_holding(self, holding_id: UUID) -> Optional[Holding]:
        try:
            for holding in self._holdings.models():
                if holding.id == holding_id and holding.deleted_at is None:
                    return holding
            return None
        except Exception as e:
            raise StorageError(f"Failed to get holding: {e}")

    async def find_holding_by_symbol(
        self,
        user_id: str,
        symbol: str,
    ) -> Optional[Holding]:
        try:
            for holding in self._holdings.models():
                if (
                    holding.user_id == user_id
                    and holding.symbol == symbol
                    and holding.deleted_at is None
                ):
                    return holding
            return None
        except Exception as e:
            raise StorageError(f"Failed to find holding: {e}")

    async def list_holdings(self, user_id: str) -> list[Holding]:
        try:
            return [
                h for h in self._holdings.models()
                if h.user_id == user_id and h.deleted_at is None
            ]
        except Exception as e:
            raise StorageError(f"Failed to list holdings: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_holding(self, holding: Holding) -> Holding:
        try:
            self._holdings.append(holding)
            return holding
        except Exception as e:
            raise StorageError(f"Failed to save holding: {e}")

    async def transaction_exists(
        self,
        holding_id: UUID,
        transaction_date: date,
        action: TransactionAction,
        quantity: Decimal,
    ) -> bool:
        try:
            return any(
                t.holding_id == holding_id
                and t.date == transaction_date
                and t.action == action
                and t.quantity == quantity
                and t.deleted_at is None
                for t in self._transactions.models()
            )
        except Exception as e:
            raise StorageError(f"Failed to check transaction: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_transaction(self, transaction: Transaction) -> Transaction:
        try:
            self._transactions.append(transaction)
            return transaction
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

    async def list_transactions(self, holding_id: UUID) -> list[Transaction]:
        try:
            rows = [
                t for t in self._transactions.models()
                if t.holding_id == holding_id and t.deleted_at is None
            ]
            return sorted(rows, key=lambda t: t.date)
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

    async def snapshot_exists(self, holding_id: UUID, snapshot_date: date) -> bool:
        try:
            return any(
                s.holding_id == holding_id
                and s.date == snapshot_date
                and s.deleted_at is None
                for s in self._snapshots.models()
            )
        except Exception as e:
            raise StorageError(f"Failed to check snapshot: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_snapshot(self, snapshot: Snapshot) -> Snapshot:
        try:
            self._snapshots.append(snapshot)
            return snapshot
        except Exception as e:
            raise StorageError(f"Failed to save snapshot: {e}")

    async def list_snapshots(self, holding_id: UUID) -> list[Snapshot]:
        try:
            rows = [
                s for s in self._snapshots.models()
                if s.holding_id == holding_id and s.deleted_at is None
            ]
            return sorted(rows, key=lambda s: s.date)
        except Exception as e:
            raise StorageError(f"Failed to list snapshots: {e}")

    async def get_contribution(
        self,
        holding_id: UUID,
        contribution_date: date,
    ) -> Optional[Contribution]:
        try:
            for c in self._contributions.models():
                if (
                    c.holding_id == holding_id
                    and c.date == contribution_date
                    and c.deleted_at is None
                ):
                    return c
            return None
        except Exception as e:
            raise StorageError(f"Failed to get contribution: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_contribution(self, contribution: Contribution) -> Contribution:
        try:
            self._contributions.append(contribution)
            return contribution
        except Exception as e:
            raise StorageError(f"Failed to save contribution: {e}")

    async def update_contribution(self, contribution: Contribution) -> Contribution:
        try:
            for row_number, existing in self._contributions.rows():
                if existing.id == contribution.id:
                    updated = contribution.model_copy(update={"updated_at": utc_now()})
                    self._contributions.replace(row_number, updated)
                    return updated
            raise NotFoundError(f"Contribution not found: {contribution.id}")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update contribution: {e}")

    async def save_import_history(self, record: ImportHistory) -> ImportHistory:
        try:
            self._import_history.append(record)
            return record
        except Exception as e:
            raise StorageError(f"Failed to save import history: {e}")

    async def list_import_history(
        self,
        user_id: str,
        limit: int = 20,
    ) -> list[ImportHistory]:
        try:
            rows = [r for r in self._import_history.models() if r.user_id == user_id]
            rows.sort(key=lambda r: r.created_at, reverse=True)
            return rows[:limit]
        except Exception as e:
            raise StorageError(f"Failed to list import history: {e}")


class GoogleSheetsPriceCacheStorage(PriceCacheStorageInterface):
    """
    Google Sheets implementation of the price cache.

    The symbol column is the key; an upsert rewrites that row in place.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._table = _SheetTable(
            self._client,
            self._client.settings.price_cache_sheet_name,
            PRICE_CACHE_COLUMNS,
            CachedPrice,
        )

    async def get_price(self, symbol: str) -> Optional[CachedPrice]:
        try:
            for cached in self._table.models():
                if cached.symbol == symbol:
                    return cached
            return None
        except Exception as e:
            raise StorageError(f"Failed to read cached price: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def upsert_price(self, cached: CachedPrice) -> CachedPrice:
        try:
            for row_number, existing in self._table.rows():
                if existing.symbol == cached.symbol:
                    self._table.replace(row_number, cached)
                    return cached
            self._table.append(cached)
            return cached
        except Exception as e:
            raise StorageError(f"Failed to write cached price: {e}")

    async def list_prices(self) -> list[CachedPrice]:
        try:
            return self._table.models()
        except Exception as e:
            raise StorageError(f"Failed to list cached prices: {e}")

    async def delete_price(self, symbol: str) -> bool:
        try:
            for row_number, existing in self._table.rows():
                if existing.symbol == symbol:
                    self._table.sheet().delete_rows(row_number)
                    return True
            return False
        except Exception as e:
            raise StorageError(f"Failed to delete cached price: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(
            self._client.settings.audit_sheet_name,
            AUDIT_COLUMNS,
        )

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _events(self) -> list[AuditEvent]:
        events = []
        for row in self._sheet().get_all_values()[1:]:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._sheet().append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._events() if e.correlation_id == correlation_id]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        try:
            events = self._events()
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
