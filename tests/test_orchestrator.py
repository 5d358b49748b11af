"""
Integration tests for the import and price flows.

Storage is in memory and providers are fakes; no network calls.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from networth.audit import AuditLogger
from networth.models.audit import AuditEventType, AuditSeverity
from networth.models.portfolio import Holding, HoldingType, ImportType
from networth.models.price import PriceQuote, PriceSource
from networth.orchestrator import (
    EmptyImportError,
    ImportFlowError,
    ImportFlow,
    InvalidFileTypeError,
    PriceFlow,
    UploadTooLargeError,
    create_app_components,
)
from networth.services.prices.errors import NetworkError, NotTradeableError
from networth.services.storage import InMemoryPortfolioStorage, StorageError

from conftest import FakeProvider


TRANSACTIONS_CSV = (
    "date,symbol,action,quantity,unit_price,fees,currency,exchange,notes\n"
    "2024-01-15,VAS,BUY,10,95.50,9.95,AUD,ASX,First buy\n"
    "2024-01-16,VAS,BUY,ten,95.50,,AUD,ASX,\n"
    "2024-01-17,BTC,BUY,0.05,60000,,USD,,\n"
)

SNAPSHOTS_CSV = (
    "date,fund_name,balance,employer_contrib,employee_contrib,currency\n"
    "2024-01-31,AustralianSuper,150000,1200,,AUD\n"
    "2024-01-31,HECS Debt,-25000,,,AUD\n"
)


class FailingHistoryStorage(InMemoryPortfolioStorage):
    async def save_import_history(self, record):
        raise StorageError("sheet unavailable")


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def import_flow(portfolio_storage, audit_logger, app_settings):
    return ImportFlow(portfolio_storage, audit_logger=audit_logger, settings=app_settings)


def event_types(audit_storage):
    return [e.event_type for e in audit_storage.events]


class TestImportFlow:
    """CSV upload to stored records."""

    @pytest.mark.asyncio
    async def test_malformed_row_reported_with_line_number(self, import_flow, portfolio_storage):
        """Valid rows either side of a bad one are imported; the bad one is row 3."""
        summary = await import_flow.import_transactions_csv(
            "user-1", TRANSACTIONS_CSV, filename="trades.csv"
        )

        assert summary.total == 3
        assert summary.imported == 2
        assert summary.skipped == 0
        assert [e.row for e in summary.errors] == [3]
        assert summary.errors[0].message == 'Row 3: quantity "ten" is not a valid number'
        assert summary.errors[0].data["symbol"] == "VAS"
        assert summary.processed == summary.total
        assert len(portfolio_storage.transactions) == 2

    @pytest.mark.asyncio
    async def test_reimport_skips_everything(self, import_flow):
        await import_flow.import_transactions_csv("user-1", TRANSACTIONS_CSV)
        summary = await import_flow.import_transactions_csv("user-1", TRANSACTIONS_CSV)

        assert (summary.imported, summary.skipped, len(summary.errors)) == (0, 2, 1)

    @pytest.mark.asyncio
    async def test_bytes_with_bom(self, import_flow, portfolio_storage):
        content = ("\ufeff" + TRANSACTIONS_CSV).encode("utf-8")
        summary = await import_flow.import_transactions_csv("user-1", content, "trades.CSV")

        assert summary.imported == 2
        holding = next(iter(portfolio_storage.holdings.values()))
        assert holding.symbol == "VAS"

    @pytest.mark.asyncio
    async def test_empty_csv_rejected(self, import_flow, portfolio_storage):
        with pytest.raises(EmptyImportError):
            await import_flow.import_transactions_csv("user-1", "date,symbol,action\n")
        with pytest.raises(EmptyImportError):
            await import_flow.import_snapshots_csv("user-1", "")
        assert portfolio_storage.import_history == []

    @pytest.mark.asyncio
    async def test_upload_too_large(self, import_flow):
        content = "x" * (1024 * 1024 + 1)
        with pytest.raises(UploadTooLargeError):
            await import_flow.import_transactions_csv("user-1", content, "big.csv")

    @pytest.mark.asyncio
    async def test_wrong_extension(self, import_flow):
        with pytest.raises(InvalidFileTypeError):
            await import_flow.import_transactions_csv("user-1", TRANSACTIONS_CSV, "trades.xlsx")

    @pytest.mark.asyncio
    async def test_non_utf8_bytes_rejected(self, import_flow, portfolio_storage):
        content = b"date,symbol,action,quantity,unit_price\n2024-01-01,\xff\xfe,BUY,1,1\n"

        with pytest.raises(ImportFlowError) as exc_info:
            await import_flow.import_transactions_csv("user-1", content, "trades.csv")

        assert isinstance(exc_info.value, InvalidFileTypeError)
        assert portfolio_storage.transactions == {}

    @pytest.mark.asyncio
    async def test_history_saved(self, import_flow, portfolio_storage):
        await import_flow.import_transactions_csv("user-1", TRANSACTIONS_CSV, "trades.csv")

        record = portfolio_storage.import_history[0]
        assert record.type == ImportType.TRANSACTIONS
        assert record.filename == "trades.csv"
        assert (record.total, record.imported, record.skipped, record.error_count) == (3, 2, 0, 1)

    @pytest.mark.asyncio
    async def test_history_failure_does_not_fail_import(
        self, audit_logger, audit_storage, app_settings
    ):
        flow = ImportFlow(FailingHistoryStorage(), audit_logger=audit_logger, settings=app_settings)

        summary = await flow.import_snapshots_csv("user-1", SNAPSHOTS_CSV)

        assert summary.imported == 2
        assert AuditEventType.SYSTEM_ERROR in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_audit_trail(self, import_flow, audit_storage):
        """Start, one event per failed row, then completion, all correlated."""
        correlation_id = uuid4()
        await import_flow.import_transactions_csv(
            "user-1", TRANSACTIONS_CSV, correlation_id=correlation_id
        )

        assert event_types(audit_storage) == [
            AuditEventType.IMPORT_STARTED,
            AuditEventType.IMPORT_ROW_FAILED,
            AuditEventType.IMPORT_COMPLETED,
        ]
        assert all(e.correlation_id == correlation_id for e in audit_storage.events)
        assert audit_storage.events[-1].severity == AuditSeverity.WARNING

    @pytest.mark.asyncio
    async def test_snapshot_import(self, import_flow, portfolio_storage):
        summary = await import_flow.import_snapshots_csv("user-1", SNAPSHOTS_CSV, "balances.csv")

        assert summary.imported == 2
        types = sorted(h.type.value for h in portfolio_storage.holdings.values())
        assert types == ["debt", "super"]
        assert len(portfolio_storage.contributions) == 1

    @pytest.mark.asyncio
    async def test_history_limit(self, import_flow):
        for _ in range(7):
            await import_flow.import_snapshots_csv("user-1", SNAPSHOTS_CSV)

        assert len(await import_flow.list_import_history("user-1")) == 5
        assert len(await import_flow.list_import_history("user-1", limit=7)) == 7
        assert len(await import_flow.list_import_history("user-1", limit=100)) == 5
        assert len(await import_flow.list_import_history("user-1", limit=0)) == 5
        assert await import_flow.list_import_history("user-2") == []


@pytest.fixture
def make_price_flow(make_fetcher, price_cache, portfolio_storage, audit_logger, price_settings):

    def build(stock=None, crypto=None):
        return PriceFlow(
            fetcher=make_fetcher(stock=stock, crypto=crypto),
            cache=price_cache,
            portfolio_storage=portfolio_storage,
            audit_logger=audit_logger,
            settings=price_settings,
        )

    return build


VAS_QUOTE = PriceQuote(price=Decimal("95.50"), currency="AUD")
BTC_QUOTE = PriceQuote(price=Decimal("65000"), currency="USD")


async def add_holdings(storage):
    vas = Holding(user_id="user-1", type=HoldingType.ETF, symbol="VAS", name="VAS", exchange="ASX")
    btc = Holding(user_id="user-1", type=HoldingType.CRYPTO, symbol="BTC", name="Bitcoin")
    old = Holding(user_id="user-1", type=HoldingType.STOCK, symbol="OLD", name="Old",
                  is_active=False)
    fund = Holding(user_id="user-1", type=HoldingType.SUPER, name="Hostplus")
    for holding in (vas, btc, old, fund):
        await storage.save_holding(holding)
    return vas, btc


class TestPriceFlow:
    """Single lookups, batch refreshes and cached reads."""

    @pytest.mark.asyncio
    async def test_get_price_from_dict(self, make_price_flow, audit_storage):
        flow = make_price_flow(crypto=FakeProvider(BTC_QUOTE))

        result = await flow.get_price({"type": "crypto", "symbol": "btc"})

        assert result.price == Decimal("65000")
        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.PRICE_FETCHED
        assert event.details["source"] == PriceSource.COINGECKO.value

    @pytest.mark.asyncio
    async def test_get_price_failure_audited(self, make_price_flow, audit_storage):
        flow = make_price_flow()

        with pytest.raises(NotTradeableError):
            await flow.get_price({"type": "cash"})

        assert audit_storage.events[-1].event_type == AuditEventType.PRICE_FETCH_FAILED
        assert audit_storage.events[-1].error_code == "NotTradeableError"

    @pytest.mark.asyncio
    async def test_stale_price_audited(self, make_price_flow, price_cache, audit_storage, clock):
        await price_cache.set("VAS.AX", VAS_QUOTE, PriceSource.YAHOO)
        clock.advance(hours=1)
        flow = make_price_flow(stock=FakeProvider(NetworkError("offline", symbol="VAS.AX")))

        result = await flow.get_price({"type": "etf", "symbol": "VAS", "exchange": "ASX"})

        assert result.is_stale
        assert audit_storage.events[-1].event_type == AuditEventType.STALE_PRICE_SERVED

    @pytest.mark.asyncio
    async def test_refresh_reports_failures(self, make_price_flow, audit_storage):
        """Failed holdings stay in the list, flagged stale with the error."""
        vas = Holding(user_id="u", type=HoldingType.ETF, symbol="VAS", name="VAS", exchange="ASX")
        eth = Holding(user_id="u", type=HoldingType.CRYPTO, symbol="ETH", name="Ether")
        flow = make_price_flow(
            stock=FakeProvider(VAS_QUOTE),
            crypto=FakeProvider(NetworkError("offline", symbol="ETH")),
        )

        results = await flow.refresh_prices([vas, eth])

        assert [r.holding_id for r in results] == [vas.id, eth.id]
        assert results[0].price == Decimal("95.50") and not results[0].is_stale
        assert results[1].price is None
        assert results[1].is_stale
        assert results[1].error == "offline"

        completed = audit_storage.events[-1]
        assert completed.event_type == AuditEventType.PRICE_REFRESH_COMPLETED
        assert completed.details == {"requested": 2, "fresh": 1, "stale": 0, "failed": 1}

    @pytest.mark.asyncio
    async def test_refresh_user_prices(self, make_price_flow, portfolio_storage):
        vas, btc = await add_holdings(portfolio_storage)
        stocks = FakeProvider(VAS_QUOTE)
        coins = FakeProvider(BTC_QUOTE)
        flow = make_price_flow(stock=stocks, crypto=coins)

        results = await flow.refresh_user_prices("user-1")
        assert {r.holding_id for r in results} == {vas.id, btc.id}

        subset = await flow.refresh_user_prices("user-1", holding_ids=[btc.id])
        assert [r.symbol for r in subset] == ["BTC"]
        assert len(coins.calls) == 2
        assert len(stocks.calls) == 1

    @pytest.mark.asyncio
    async def test_cached_prices(self, make_price_flow, portfolio_storage, price_cache, clock):
        vas, btc = await add_holdings(portfolio_storage)
        await price_cache.set("VAS.AX", VAS_QUOTE, PriceSource.YAHOO)
        stocks = FakeProvider(VAS_QUOTE)
        flow = make_price_flow(stock=stocks)

        by_id = {r.holding_id: r for r in await flow.get_cached_prices("user-1")}
        assert set(by_id) == {vas.id, btc.id}
        assert by_id[vas.id].price == Decimal("95.50")
        assert not by_id[vas.id].is_stale
        assert by_id[btc.id].price is None
        assert by_id[btc.id].is_stale

        clock.advance(minutes=20)
        by_id = {r.holding_id: r for r in await flow.get_cached_prices("user-1")}
        assert by_id[vas.id].is_stale
        assert stocks.calls == []

    @pytest.mark.asyncio
    async def test_user_lookups_need_storage(self, make_fetcher, price_cache, price_settings):
        flow = PriceFlow(make_fetcher(), price_cache, settings=price_settings)
        with pytest.raises(ValueError):
            await flow.get_cached_prices("user-1")


class TestCreateAppComponents:

    def test_in_memory(self):
        import_flow, price_flow, sheets_client = create_app_components(use_storage=False)

        assert isinstance(import_flow, ImportFlow)
        assert isinstance(price_flow, PriceFlow)
        assert sheets_client is None

    def test_falls_back_without_sheets_config(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)

        _, _, sheets_client = create_app_components(use_storage=True)
        assert sheets_client is None
