"""
Main Orchestrator for Net Worth Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. CSV Import (upload → parse → validate → import → history)
2. Prices (holding → cache / provider → result, single or batch)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every uploaded row is accounted for: imported, skipped or an error
- Invalid rows never reach storage
- Every import and refresh is audited

This is the "glue" that callers (web routes, scripts) talk to.
"""

from typing import Iterable, Optional, Union
from uuid import UUID

import structlog

from networth.audit import AuditLogger, create_correlation_id
from networth.config import AppSettings, PriceSettings, get_settings
from networth.importing import SnapshotImporter, TransactionImporter, parse_csv
from networth.importing.base import RowImporter
from networth.models.imports import (
    HEADER_ROW_OFFSET,
    CSVRow,
    ImportRowError,
    ImportSummary,
)
from networth.models.portfolio import Currency, ImportHistory, ImportType
from networth.models.price import HoldingForPriceFetch, PriceRefreshResult, PriceResult
from networth.services.prices import (
    CoinGeckoClient,
    PriceCache,
    PriceFetcher,
    YahooFinanceClient,
)
from networth.services.prices.fetcher import HoldingLike, cache_key_for, select_provider
from networth.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsPortfolioStorage,
    GoogleSheetsPriceCacheStorage,
    InMemoryPortfolioStorage,
    InMemoryPriceCacheStorage,
    PortfolioStorageInterface,
    StorageError,
)
from networth.validation import validate_snapshot_rows, validate_transaction_rows


logger = structlog.get_logger(__name__)

MAX_HISTORY_LIMIT = 20
DEFAULT_HISTORY_LIMIT = 5


class ImportFlowError(Exception):
    """Base exception for uploads rejected before any row is imported."""
    pass


class EmptyImportError(ImportFlowError):
    """CSV has no data rows."""
    pass


class UploadTooLargeError(ImportFlowError):
    """Upload exceeds the configured size limit."""
    pass


class InvalidFileTypeError(ImportFlowError):
    """Uploaded file is not a .csv file."""
    pass


class ImportFlow:
    """
    Orchestrates CSV imports.

    Flow:
    1. Check → size limit and file extension
    2. Parse → header-keyed rows
    3. Validate → every row, collecting all messages
    4. Import → valid rows only, keeping their CSV line numbers
    5. Record → import history and audit trail

    The returned summary always satisfies
    imported + skipped + len(errors) == total.
    """

    def __init__(
        self,
        storage: PortfolioStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app
        default_currency = Currency(self._settings.default_currency)
        self._transaction_importer = TransactionImporter(storage, default_currency)
        self._snapshot_importer = SnapshotImporter(storage, default_currency)

    def _decode(self, content: Union[str, bytes], filename: Optional[str]) -> str:
        size = len(content.encode("utf-8")) if isinstance(content, str) else len(content)
        if size > self._settings.max_upload_size_bytes:
            raise UploadTooLargeError(
                f"File is too large ({size} bytes). "
                f"Maximum size is {self._settings.max_upload_size_mb}MB."
            )

        if filename is not None and not filename.lower().endswith(".csv"):
            raise InvalidFileTypeError("File must be a CSV file")

        if isinstance(content, bytes):
            try:
                return content.decode("utf-8-sig")
            except UnicodeDecodeError:
                raise InvalidFileTypeError("File must be UTF-8 encoded CSV")
        return content

    async def _run(
        self,
        import_type: ImportType,
        user_id: str,
        content: Union[str, bytes],
        filename: Optional[str],
        validate,
        importer: RowImporter,
        correlation_id: Optional[UUID],
    ) -> ImportSummary:
        correlation_id = correlation_id or create_correlation_id()

        rows: list[CSVRow] = parse_csv(self._decode(content, filename))
        if not rows:
            raise EmptyImportError("CSV file is empty or contains no data rows")

        if self._audit_logger:
            await self._audit_logger.log_import_started(
                import_type=import_type,
                user_id=user_id,
                row_count=len(rows),
                filename=filename,
                correlation_id=correlation_id,
            )

        valid_rows = []
        errors: list[ImportRowError] = []
        for index, (raw, result) in enumerate(zip(rows, validate(rows))):
            row_number = index + HEADER_ROW_OFFSET
            if result.valid:
                valid_rows.append((row_number, result.data))
            else:
                errors.append(ImportRowError(
                    row=row_number,
                    message="; ".join(result.errors),
                    data=raw,
                ))

        imported = await importer.import_rows(user_id, valid_rows)
        errors.extend(imported.errors)
        errors.sort(key=lambda e: e.row)

        summary = ImportSummary(
            total=len(rows),
            imported=imported.imported,
            skipped=imported.skipped,
            errors=errors,
        )

        await self._record(import_type, user_id, filename, summary, correlation_id)
        return summary

    async def _record(
        self,
        import_type: ImportType,
        user_id: str,
        filename: Optional[str],
        summary: ImportSummary,
        correlation_id: UUID,
    ) -> None:
        """Save import history and audit events. Failures here never fail the import."""
        try:
            await self._storage.save_import_history(ImportHistory(
                user_id=user_id,
                type=import_type,
                filename=filename,
                total=summary.total,
                imported=summary.imported,
                skipped=summary.skipped,
                error_count=len(summary.errors),
            ))
        except StorageError as e:
            logger.warning("import_history_save_failed", error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="import_history_save_failed",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )

        if self._audit_logger:
            for error in summary.errors:
                await self._audit_logger.log_import_row_failed(
                    import_type=import_type,
                    row=error.row,
                    message=error.message,
                    correlation_id=correlation_id,
                )
            await self._audit_logger.log_import_completed(
                import_type=import_type,
                total=summary.total,
                imported=summary.imported,
                skipped=summary.skipped,
                error_count=len(summary.errors),
                correlation_id=correlation_id,
            )

    async def import_transactions_csv(
        self,
        user_id: str,
        content: Union[str, bytes],
        filename: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ImportSummary:
        """
        Import a transactions CSV for a user.

        Raises:
            UploadTooLargeError: Content exceeds max_upload_size_mb
            InvalidFileTypeError: Filename without a .csv extension, or bytes that are not UTF-8
            EmptyImportError: No data rows
        """
        return await self._run(
            ImportType.TRANSACTIONS,
            user_id,
            content,
            filename,
            validate_transaction_rows,
            self._transaction_importer,
            correlation_id,
        )

    async def import_snapshots_csv(
        self,
        user_id: str,
        content: Union[str, bytes],
        filename: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ImportSummary:
        """Import a balance snapshots CSV for a user. Raises as for transactions."""
        return await self._run(
            ImportType.SNAPSHOTS,
            user_id,
            content,
            filename,
            validate_snapshot_rows,
            self._snapshot_importer,
            correlation_id,
        )

    async def list_import_history(
        self,
        user_id: str,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> list[ImportHistory]:
        """Most recent imports, newest first. Out-of-range limits use the default."""
        if limit <= 0 or limit > MAX_HISTORY_LIMIT:
            limit = DEFAULT_HISTORY_LIMIT
        return await self._storage.list_import_history(user_id, limit)


class PriceFlow:
    """
    Orchestrates price lookups for holdings.

    Single lookups raise when no price can be produced. Batch refreshes
    report each holding's outcome, failures included.
    """

    def __init__(
        self,
        fetcher: PriceFetcher,
        cache: PriceCache,
        portfolio_storage: Optional[PortfolioStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[PriceSettings] = None,
    ):
        self._fetcher = fetcher
        self._cache = cache
        self._portfolio_storage = portfolio_storage
        self._audit_logger = audit_logger
        self._ttl_minutes = (settings or get_settings().prices).cache_ttl_minutes

    async def get_price(
        self,
        holding: Union[HoldingLike, dict],
        force_refresh: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> PriceResult:
        """
        Price one holding.

        Args:
            holding: Holding, HoldingForPriceFetch, or a dict with
                     type/symbol/exchange/currency
            force_refresh: Bypass a fresh cache entry

        Raises:
            PriceFetchError: Holding can't be priced
            PriceProviderError: Provider failed and nothing was cached
        """
        if isinstance(holding, dict):
            holding = HoldingForPriceFetch.model_validate(holding)

        try:
            result = await self._fetcher.fetch_price(holding, force_refresh)
        except Exception as e:
            if self._audit_logger:
                await self._audit_logger.log_price_fetch_failed(
                    symbol=holding.symbol or "",
                    error_type=type(e).__name__,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        await self._audit_result(holding, result, correlation_id)
        return result

    async def _audit_result(
        self,
        holding: HoldingLike,
        result: PriceResult,
        correlation_id: Optional[UUID],
    ) -> None:
        if not self._audit_logger:
            return
        if result.is_stale:
            await self._audit_logger.log_stale_price_served(
                symbol=holding.symbol,
                fetched_at=result.fetched_at.isoformat(),
                error_message=result.error or "",
                correlation_id=correlation_id,
            )
        else:
            await self._audit_logger.log_price_fetched(
                symbol=holding.symbol,
                source=select_provider(holding.type).source.value,
                price=str(result.price),
                correlation_id=correlation_id,
            )

    async def refresh_prices(
        self,
        holdings: Iterable[HoldingLike],
        force_refresh: bool = True,
    ) -> list[PriceRefreshResult]:
        """
        Refresh prices for many holdings.

        Unlike PriceFetcher.fetch_prices_for_holdings, holdings that could
        not be priced are included, with is_stale=True and the error.
        """
        correlation_id = create_correlation_id()
        outcomes = await self._fetcher.fetch_price_outcomes(holdings, force_refresh)

        results = []
        fresh = stale = failed = 0
        for outcome in outcomes:
            holding = outcome.holding
            if outcome.result is None:
                failed += 1
                results.append(PriceRefreshResult(
                    holding_id=holding.id,
                    symbol=holding.symbol,
                    is_stale=True,
                    error=str(outcome.error) or "Failed to fetch price",
                ))
                continue

            result = outcome.result
            if result.is_stale:
                stale += 1
            else:
                fresh += 1
            await self._audit_result(holding, result, correlation_id)
            results.append(PriceRefreshResult(
                holding_id=holding.id,
                symbol=holding.symbol,
                price=result.price,
                currency=result.currency,
                change_percent=result.change_percent,
                change_absolute=result.change_absolute,
                fetched_at=result.fetched_at,
                is_stale=result.is_stale,
                error=result.error,
            ))

        if self._audit_logger:
            await self._audit_logger.log_price_refresh_completed(
                requested=len(outcomes),
                fresh=fresh,
                stale=stale,
                failed=failed,
                correlation_id=correlation_id,
            )
        return results

    async def _user_holdings(
        self,
        user_id: str,
        holding_ids: Optional[Iterable[UUID]] = None,
    ) -> list:
        if self._portfolio_storage is None:
            raise ValueError("Portfolio storage is required to look up a user's holdings")

        wanted = set(holding_ids) if holding_ids else None
        return [
            h for h in await self._portfolio_storage.list_holdings(user_id)
            if h.is_active
            and h.type.is_tradeable
            and h.symbol
            and (wanted is None or h.id in wanted)
        ]

    async def refresh_user_prices(
        self,
        user_id: str,
        holding_ids: Optional[Iterable[UUID]] = None,
    ) -> list[PriceRefreshResult]:
        """Force-refresh a user's active tradeable holdings, optionally a subset."""
        holdings = await self._user_holdings(user_id, holding_ids)
        return await self.refresh_prices(holdings, force_refresh=True)

    async def get_cached_prices(self, user_id: str) -> list[PriceRefreshResult]:
        """
        Cached prices for a user's tradeable holdings, without any provider call.

        is_stale is True when the entry is older than the TTL or missing.
        """
        results = []
        for holding in await self._user_holdings(user_id):
            try:
                cached = await self._cache.get(cache_key_for(holding))
            except Exception as e:
                results.append(PriceRefreshResult(
                    holding_id=holding.id,
                    symbol=holding.symbol,
                    is_stale=True,
                    error=str(e),
                ))
                continue

            if cached is None:
                results.append(PriceRefreshResult(
                    holding_id=holding.id,
                    symbol=holding.symbol,
                    is_stale=True,
                ))
                continue

            results.append(PriceRefreshResult(
                holding_id=holding.id,
                symbol=holding.symbol,
                price=cached.price,
                currency=cached.currency,
                change_percent=cached.change_percent,
                change_absolute=cached.change_absolute,
                fetched_at=cached.fetched_at,
                is_stale=not self._cache.is_valid(cached, self._ttl_minutes),
            ))
        return results


def create_app_components(
    use_storage: bool = True,
) -> tuple[ImportFlow, PriceFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run on in-memory storage.

    Returns:
        (import_flow, price_flow, sheets_client)
    """
    settings = get_settings()
    sheets_client = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient(settings.google_sheets)
            sheets_client.connect()
            portfolio_storage = GoogleSheetsPortfolioStorage(sheets_client)
            price_storage = GoogleSheetsPriceCacheStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            use_storage = False

    if not use_storage:
        portfolio_storage = InMemoryPortfolioStorage()
        price_storage = InMemoryPriceCacheStorage()
        audit_logger = AuditLogger()  # Local-only logging

    cache = PriceCache(price_storage)
    fetcher = PriceFetcher(
        cache=cache,
        stock_client=YahooFinanceClient(settings.yahoo_finance),
        crypto_client=CoinGeckoClient(settings.coingecko),
        settings=settings.prices,
    )

    import_flow = ImportFlow(
        storage=portfolio_storage,
        audit_logger=audit_logger,
        settings=settings.app,
    )
    price_flow = PriceFlow(
        fetcher=fetcher,
        cache=cache,
        portfolio_storage=portfolio_storage,
        audit_logger=audit_logger,
        settings=settings.prices,
    )

    return import_flow, price_flow, sheets_client
