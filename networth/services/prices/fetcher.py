"""
Price Fetcher

Single entry point for "what is this holding worth per unit right now":

1. Reject holdings that can't have a market price
2. Serve a fresh cache entry without touching the network
3. Otherwise ask the provider (with retries) and cache the answer
4. If the provider keeps failing, fall back to the cached entry however
   old it is, flagged is_stale with the provider's error

DESIGN DECISION: A stale price is a degraded success, not an error. The
dashboard would rather show yesterday's price with a warning than nothing.
"""

import asyncio
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional, Union
from uuid import UUID

import structlog

from networth import retry
from networth.config import PriceSettings, get_settings
from networth.models.portfolio import Holding, HoldingType
from networth.models.price import HoldingForPriceFetch, PriceResult, PriceSource
from networth.services.prices.base import PriceProvider
from networth.services.prices.cache import PriceCache
from networth.services.prices.errors import MissingSymbolError, NotTradeableError
from networth.services.prices.symbols import normalize_symbol


logger = structlog.get_logger(__name__)

HoldingLike = Union[Holding, HoldingForPriceFetch]

# on_retry(symbol, attempt, error, delay_seconds)
PriceRetryCallback = Callable[[str, int, BaseException, float], None]


class ProviderKind(str, Enum):
    """Which provider serves a holding type."""
    STOCK = "stock"
    CRYPTO = "crypto"

    @property
    def source(self) -> PriceSource:
        return PriceSource.COINGECKO if self is ProviderKind.CRYPTO else PriceSource.YAHOO


def select_provider(holding_type: HoldingType) -> ProviderKind:
    """
    Route a holding type to its provider.

    Raises:
        NotTradeableError: super, cash and debt have no market price
    """
    if holding_type == HoldingType.CRYPTO:
        return ProviderKind.CRYPTO
    if holding_type in (HoldingType.STOCK, HoldingType.ETF):
        return ProviderKind.STOCK
    raise NotTradeableError(
        f"Cannot fetch price for non-tradeable holding type: {holding_type.value}. "
        "Only stock, etf, and crypto holdings have live prices."
    )


def cache_key_for(holding: HoldingLike) -> str:
    """Normalized symbol used both for the provider call and the cache row."""
    return normalize_symbol(holding.symbol, holding.exchange, holding.type)


class PriceOutcome:
    """One holding's batch result: either a PriceResult or the error."""

    __slots__ = ("holding", "result", "error")

    def __init__(
        self,
        holding: HoldingLike,
        result: Optional[PriceResult] = None,
        error: Optional[BaseException] = None,
    ):
        self.holding = holding
        self.result = result
        self.error = error


class PriceFetcher:
    """
    Fetches prices through the cache, the provider clients and the retry policy.
    """

    def __init__(
        self,
        cache: PriceCache,
        stock_client: PriceProvider,
        crypto_client: PriceProvider,
        settings: Optional[PriceSettings] = None,
        on_retry: Optional[PriceRetryCallback] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._cache = cache
        self._providers = {
            ProviderKind.STOCK: stock_client,
            ProviderKind.CRYPTO: crypto_client,
        }
        self._settings = settings or get_settings().prices
        self._on_retry = on_retry or self._log_retry
        self._sleep = sleep

    @staticmethod
    def _log_retry(symbol: str, attempt: int, error: BaseException, delay: float) -> None:
        logger.info(
            "price_fetch_retry",
            symbol=symbol,
            attempt=attempt,
            delay_seconds=delay,
            error=str(error),
        )

    async def fetch_price(
        self,
        holding: HoldingLike,
        force_refresh: bool = False,
    ) -> PriceResult:
        """
        Get the price for one holding.

        Args:
            holding: Anything with type, symbol and exchange
            force_refresh: Skip the fresh-cache shortcut

        Returns:
            PriceResult, is_stale=True when served from cache after a failure

        Raises:
            NotTradeableError: Holding type has no market price
            MissingSymbolError: Tradeable holding without a symbol
            UnknownSymbolError: Crypto symbol with no provider mapping
            PriceProviderError: Live fetch failed and nothing is cached
        """
        kind = select_provider(holding.type)
        if not holding.symbol:
            raise MissingSymbolError(
                "Cannot fetch price for holding without symbol. "
                f'Holding type "{holding.type.value}" requires a symbol.'
            )

        symbol = cache_key_for(holding)

        if not force_refresh:
            cached = await self._cache.get(symbol)
            if cached and self._cache.is_valid(cached, self._settings.cache_ttl_minutes):
                logger.debug("price_cache_hit", symbol=symbol)
                return PriceResult.from_cached(cached, is_stale=False)

        provider = self._providers[kind]

        def on_retry(attempt: int, error: BaseException, delay: float) -> None:
            self._on_retry(symbol, attempt, error, delay)

        try:
            quote = await retry.with_retry(
                lambda: provider.fetch_live_price(symbol, holding.exchange),
                max_retries=self._settings.max_retries,
                initial_delay=self._settings.initial_delay_seconds,
                backoff_multiplier=self._settings.backoff_multiplier,
                max_delay=self._settings.max_delay_seconds,
                is_retryable=retry.is_transient_error,
                on_retry=on_retry,
                sleep=self._sleep,
            )
        except Exception as e:
            logger.warning("price_fetch_exhausted", symbol=symbol, error=str(e))
            cached = await self._cache.get(symbol)
            if cached is not None:
                return PriceResult.from_cached(cached, is_stale=True, error=str(e))
            raise

        stored = await self._cache.set(symbol, quote, kind.source)
        return PriceResult(
            price=quote.price,
            currency=quote.currency,
            change_percent=quote.change_percent,
            change_absolute=quote.change_absolute,
            fetched_at=stored.fetched_at,
            is_stale=False,
        )

    async def fetch_price_outcomes(
        self,
        holdings: Iterable[HoldingLike],
        force_refresh: bool = False,
    ) -> list[PriceOutcome]:
        """
        Fetch prices concurrently, keeping failures alongside successes.

        Only tradeable holdings with an id and a symbol are attempted.
        At most `batch_concurrency` fetches are in flight at once.
        """
        eligible = [
            h for h in holdings
            if h.id is not None and h.type.is_tradeable and h.symbol
        ]
        semaphore = asyncio.Semaphore(self._settings.batch_concurrency)

        async def fetch_one(holding: HoldingLike) -> PriceOutcome:
            async with semaphore:
                try:
                    result = await self.fetch_price(holding, force_refresh)
                    return PriceOutcome(holding, result=result)
                except Exception as e:
                    logger.warning(
                        "price_unavailable",
                        holding_id=str(holding.id),
                        symbol=holding.symbol,
                        error=str(e),
                    )
                    return PriceOutcome(holding, error=e)

        return list(await asyncio.gather(*(fetch_one(h) for h in eligible)))

    async def fetch_prices_for_holdings(
        self,
        holdings: Iterable[HoldingLike],
        force_refresh: bool = False,
    ) -> dict[UUID, PriceResult]:
        """
        Fetch prices for many holdings.

        Holdings that failed with nothing cached are omitted; partial
        results are normal.
        """
        outcomes = await self.fetch_price_outcomes(holdings, force_refresh)
        return {
            outcome.holding.id: outcome.result
            for outcome in outcomes
            if outcome.result is not None
        }
