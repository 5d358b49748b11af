"""Tests for the Google Sheets storage backend against an in-memory worksheet."""

import json
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from networth.config import GoogleSheetsSettings
from networth.models.audit import AuditEventBuilder
from networth.models.portfolio import (
    Contribution,
    Holding,
    HoldingType,
    ImportHistory,
    ImportType,
    Transaction,
    TransactionAction,
)
from networth.models.price import CachedPrice, PriceSource
from networth.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsPortfolioStorage,
    GoogleSheetsPriceCacheStorage,
    NotFoundError,
)
from networth.services.storage.google_sheets import (
    HOLDING_COLUMNS,
    model_to_row,
    row_to_model,
)


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the storage classes."""

    def __init__(self, header):
        self.values = [list(header)]

    def get_all_values(self):
        return [list(row) for row in self.values]

    def append_row(self, values, value_input_option=None):
        self.values.append(list(values))

    def update(self, range_name=None, values=None, value_input_option=None):
        row_number = int(range_name.lstrip("A"))
        self.values[row_number - 1] = list(values[0])

    def delete_rows(self, index):
        del self.values[index - 1]


class FakeSheetsClient(GoogleSheetsClient):
    """Client whose worksheets live in memory."""

    def __init__(self):
        super().__init__(GoogleSheetsSettings.model_construct(
            credentials_path="credentials.json",
            spreadsheet_id="spreadsheet-id",
        ))
        self.sheets = {}

    def get_worksheet(self, title, columns):
        if title not in self.sheets:
            self.sheets[title] = FakeWorksheet(columns)
        return self.sheets[title]


@pytest.fixture
def sheets_client():
    return FakeSheetsClient()


class TestRowConversion:

    def test_round_trip_keeps_types(self):
        holding = Holding(
            user_id="user-1",
            type=HoldingType.ETF,
            symbol="VAS",
            name="Vanguard Australian Shares",
            exchange="ASX",
        )
        row = model_to_row(holding, HOLDING_COLUMNS)

        assert row[2] == "etf"
        assert row[7] == "False"
        assert row[12] == ""

        restored = row_to_model(row, HOLDING_COLUMNS, Holding)
        assert restored.model_dump() == holding.model_dump()

    def test_short_row_uses_defaults(self):
        holding_id = str(uuid4())
        row = [holding_id, "user-1", "cash", "", "ING Savings"]

        holding = row_to_model(row, HOLDING_COLUMNS, Holding)

        assert str(holding.id) == holding_id
        assert holding.symbol is None
        assert holding.is_active


class TestGoogleSheetsPortfolioStorage:
    """Holdings, transactions and contributions in worksheets."""

    @pytest.mark.asyncio
    async def test_holdings(self, sheets_client):
        storage = GoogleSheetsPortfolioStorage(sheets_client)
        holding = Holding(user_id="user-1", type=HoldingType.STOCK, symbol="AAPL", name="Apple")
        await storage.save_holding(holding)

        assert (await storage.find_holding_by_symbol("user-1", "AAPL")).id == holding.id
        assert await storage.find_holding_by_symbol("user-2", "AAPL") is None
        assert (await storage.get_holding(holding.id)).name == "Apple"
        assert len(await storage.list_holdings("user-1")) == 1

    @pytest.mark.asyncio
    async def test_transaction_exists_compares_decimals(self, sheets_client):
        storage = GoogleSheetsPortfolioStorage(sheets_client)
        holding_id = uuid4()
        await storage.save_transaction(Transaction(
            holding_id=holding_id,
            date=date(2024, 1, 15),
            action=TransactionAction.BUY,
            quantity=Decimal("10.50"),
            unit_price=Decimal("95.5"),
        ))

        assert await storage.transaction_exists(
            holding_id, date(2024, 1, 15), TransactionAction.BUY, Decimal("10.5")
        )
        assert not await storage.transaction_exists(
            holding_id, date(2024, 1, 15), TransactionAction.SELL, Decimal("10.5")
        )
        transactions = await storage.list_transactions(holding_id)
        assert transactions[0].unit_price == Decimal("95.5")

    @pytest.mark.asyncio
    async def test_update_contribution_in_place(self, sheets_client):
        storage = GoogleSheetsPortfolioStorage(sheets_client)
        holding_id = uuid4()
        contribution = Contribution(
            holding_id=holding_id,
            date=date(2024, 1, 31),
            employer_contrib=Decimal("100"),
        )
        await storage.save_contribution(contribution)

        await storage.update_contribution(
            contribution.model_copy(update={"employer_contrib": Decimal("250")})
        )

        sheet = sheets_client.sheets["Contributions"]
        assert len(sheet.values) == 2
        updated = await storage.get_contribution(holding_id, date(2024, 1, 31))
        assert updated.employer_contrib == Decimal("250")

    @pytest.mark.asyncio
    async def test_update_missing_contribution(self, sheets_client):
        storage = GoogleSheetsPortfolioStorage(sheets_client)
        with pytest.raises(NotFoundError):
            await storage.update_contribution(
                Contribution(holding_id=uuid4(), date=date(2024, 1, 31))
            )

    @pytest.mark.asyncio
    async def test_malformed_rows_skipped(self, sheets_client):
        storage = GoogleSheetsPortfolioStorage(sheets_client)
        await storage.save_holding(
            Holding(user_id="user-1", type=HoldingType.CASH, name="ING Savings")
        )
        sheet = sheets_client.sheets["Holdings"]
        sheet.values.append(["not-a-uuid", "user-1", "bogus-type", "", "Broken"])

        holdings = await storage.list_holdings("user-1")
        assert [h.name for h in holdings] == ["ING Savings"]

    @pytest.mark.asyncio
    async def test_import_history_newest_first(self, sheets_client):
        storage = GoogleSheetsPortfolioStorage(sheets_client)
        for day in (1, 3, 2):
            await storage.save_import_history(ImportHistory(
                user_id="user-1",
                type=ImportType.SNAPSHOTS,
                total=1,
                imported=1,
                skipped=0,
                error_count=0,
                created_at=datetime(2024, 1, day, tzinfo=timezone.utc),
            ))

        history = await storage.list_import_history("user-1", limit=2)
        assert [r.created_at.day for r in history] == [3, 2]


class TestGoogleSheetsPriceCacheStorage:

    @pytest.mark.asyncio
    async def test_upsert_rewrites_row(self, sheets_client):
        storage = GoogleSheetsPriceCacheStorage(sheets_client)
        first = CachedPrice(symbol="BTC", price=Decimal("60000"), currency="USD",
                            source=PriceSource.COINGECKO)
        await storage.upsert_price(first)
        await storage.upsert_price(first.model_copy(update={"price": Decimal("65000.25")}))

        sheet = sheets_client.sheets["PriceCache"]
        assert len(sheet.values) == 2
        cached = await storage.get_price("BTC")
        assert cached.price == Decimal("65000.25")
        assert cached.change_percent is None

    @pytest.mark.asyncio
    async def test_delete(self, sheets_client):
        storage = GoogleSheetsPriceCacheStorage(sheets_client)
        await storage.upsert_price(CachedPrice(
            symbol="VAS.AX", price=Decimal("95"), currency="AUD", source=PriceSource.YAHOO,
        ))

        assert await storage.delete_price("VAS.AX")
        assert not await storage.delete_price("VAS.AX")
        assert await storage.list_prices() == []


class TestGoogleSheetsAuditStorage:

    @pytest.mark.asyncio
    async def test_append_and_read_back(self, sheets_client):
        storage = GoogleSheetsAuditStorage(sheets_client)
        correlation_id = uuid4()
        event = AuditEventBuilder.import_completed("snapshots", 2, 2, 0, 0, correlation_id)

        assert await storage.append_event(event)
        await storage.append_event(AuditEventBuilder.price_fetched("BTC", "coingecko", "1"))

        events = await storage.get_events_by_correlation_id(correlation_id)
        assert len(events) == 1
        assert events[0].event_id == event.event_id
        assert events[0].details == json.loads(json.dumps(event.details))

        assert len(await storage.get_recent_events(limit=10)) == 2
