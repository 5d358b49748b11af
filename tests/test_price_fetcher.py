"""Tests for the cache-first price fetcher."""

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest

from networth.config import PriceSettings
from networth.models.portfolio import Holding, HoldingType
from networth.models.price import HoldingForPriceFetch, PriceQuote, PriceSource
from networth.services.prices import PriceFetcher, ProviderKind, select_provider
from networth.services.prices.errors import (
    MissingSymbolError,
    NetworkError,
    NotFoundError,
    NotTradeableError,
    UnknownSymbolError,
)

from conftest import FakeProvider


VAS_QUOTE = PriceQuote(
    price=Decimal("95.50"),
    currency="AUD",
    change_percent=Decimal("0.5"),
    change_absolute=Decimal("0.47"),
)
BTC_QUOTE = PriceQuote(price=Decimal("65000"), currency="USD")


def stock(symbol="VAS", exchange="ASX"):
    return HoldingForPriceFetch(id=uuid4(), type=HoldingType.ETF, symbol=symbol, exchange=exchange)


def crypto(symbol="BTC"):
    return HoldingForPriceFetch(id=uuid4(), type=HoldingType.CRYPTO, symbol=symbol)


def offline():
    return NetworkError("offline", symbol="VAS.AX")


class InFlightProvider(FakeProvider):
    """Fake provider that records how many calls overlap."""

    def __init__(self, *script):
        super().__init__(*script)
        self.in_flight = 0
        self.peak = 0

    async def fetch_live_price(self, symbol, exchange=None):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            return await super().fetch_live_price(symbol, exchange)
        finally:
            self.in_flight -= 1


class TestSelectProvider:

    def test_routing(self):
        assert select_provider(HoldingType.STOCK) == ProviderKind.STOCK
        assert select_provider(HoldingType.ETF) == ProviderKind.STOCK
        assert select_provider(HoldingType.CRYPTO) == ProviderKind.CRYPTO
        assert ProviderKind.CRYPTO.source == PriceSource.COINGECKO
        assert ProviderKind.STOCK.source == PriceSource.YAHOO

    def test_balance_types_rejected(self):
        for holding_type in (HoldingType.SUPER, HoldingType.CASH, HoldingType.DEBT):
            with pytest.raises(NotTradeableError):
                select_provider(holding_type)


class TestFetchPrice:
    """Single-holding fetches."""

    @pytest.mark.asyncio
    async def test_fetches_and_caches(self, make_fetcher, price_cache, clock):
        provider = FakeProvider(VAS_QUOTE)
        fetcher = make_fetcher(stock=provider)

        result = await fetcher.fetch_price(stock())

        assert provider.calls == [("VAS.AX", "ASX")]
        assert result.price == Decimal("95.50")
        assert result.change_absolute == Decimal("0.47")
        assert not result.is_stale
        assert result.fetched_at == clock.current

        cached = await price_cache.get("VAS.AX")
        assert cached.source == PriceSource.YAHOO

    @pytest.mark.asyncio
    async def test_fresh_cache_skips_provider(self, make_fetcher, clock):
        """A second fetch inside the TTL is served from the cache."""
        provider = FakeProvider(VAS_QUOTE)
        fetcher = make_fetcher(stock=provider)

        await fetcher.fetch_price(stock())
        clock.advance(minutes=10)
        result = await fetcher.fetch_price(stock(symbol="vas"))

        assert len(provider.calls) == 1
        assert not result.is_stale
        assert result.price == Decimal("95.50")

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_cache(self, make_fetcher):
        provider = FakeProvider(VAS_QUOTE)
        fetcher = make_fetcher(stock=provider)

        await fetcher.fetch_price(stock())
        await fetcher.fetch_price(stock(), force_refresh=True)

        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_expired_cache_refetches(self, make_fetcher, clock):
        provider = FakeProvider(VAS_QUOTE, PriceQuote(price=Decimal("96"), currency="AUD"))
        fetcher = make_fetcher(stock=provider)

        await fetcher.fetch_price(stock())
        clock.advance(minutes=16)
        result = await fetcher.fetch_price(stock())

        assert len(provider.calls) == 2
        assert result.price == Decimal("96")
        assert result.fetched_at == clock.current

    @pytest.mark.asyncio
    async def test_stale_fallback_after_retries(self, make_fetcher, price_cache, clock, sleep):
        """When every attempt fails the old cached price comes back flagged stale."""
        await price_cache.set("VAS.AX", VAS_QUOTE, PriceSource.YAHOO)
        cached_at = clock.current
        clock.advance(hours=2)

        provider = FakeProvider(offline())
        result = await make_fetcher(stock=provider).fetch_price(stock())

        assert len(provider.calls) == 4
        assert sleep.delays == [1.0, 2.0, 4.0]
        assert result.is_stale
        assert result.price == Decimal("95.50")
        assert result.fetched_at == cached_at
        assert result.error == "offline"

    @pytest.mark.asyncio
    async def test_retry_then_success(self, make_fetcher, sleep):
        retries = []
        provider = FakeProvider(offline(), VAS_QUOTE)
        fetcher = make_fetcher(
            stock=provider,
            on_retry=lambda symbol, attempt, error, delay: retries.append((symbol, attempt, delay)),
        )

        result = await fetcher.fetch_price(stock())

        assert not result.is_stale
        assert retries == [("VAS.AX", 1, 1.0)]
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_failure_without_cache_raises(self, make_fetcher):
        with pytest.raises(NetworkError):
            await make_fetcher(stock=FakeProvider(offline())).fetch_price(stock())

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self, make_fetcher, sleep):
        provider = FakeProvider(NotFoundError("gone", symbol="NOPE", status_code=404))

        with pytest.raises(NotFoundError):
            await make_fetcher(stock=provider).fetch_price(stock(symbol="NOPE", exchange=None))

        assert len(provider.calls) == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_crypto_routed_by_ticker(self, make_fetcher, price_cache):
        stocks = FakeProvider(VAS_QUOTE)
        coins = FakeProvider(BTC_QUOTE)

        result = await make_fetcher(stock=stocks, crypto=coins).fetch_price(crypto("btc"))

        assert result.currency == "USD"
        assert coins.calls == [("BTC", None)]
        assert stocks.calls == []
        assert (await price_cache.get("BTC")).source == PriceSource.COINGECKO

    @pytest.mark.asyncio
    async def test_accepts_full_holding(self, make_fetcher):
        holding = Holding(user_id="user-1", type=HoldingType.STOCK, symbol="AAPL", name="Apple")
        result = await make_fetcher(stock=FakeProvider(VAS_QUOTE)).fetch_price(holding)
        assert result.price == Decimal("95.50")

    @pytest.mark.asyncio
    async def test_unpriceable_holdings(self, make_fetcher):
        fetcher = make_fetcher()

        with pytest.raises(NotTradeableError):
            await fetcher.fetch_price(HoldingForPriceFetch(type=HoldingType.SUPER))
        with pytest.raises(MissingSymbolError):
            await fetcher.fetch_price(HoldingForPriceFetch(type=HoldingType.STOCK))
        with pytest.raises(UnknownSymbolError):
            await fetcher.fetch_price(crypto("NOTACOIN"))


class TestBatchFetch:
    """Many holdings at once."""

    @pytest.mark.asyncio
    async def test_partial_results(self, make_fetcher):
        """Failures and unpriceable holdings are left out of the map."""
        good = stock()
        broken = crypto("ETH")
        cash = HoldingForPriceFetch(id=uuid4(), type=HoldingType.CASH)

        fetcher = make_fetcher(
            stock=FakeProvider(VAS_QUOTE),
            crypto=FakeProvider(offline()),
        )
        prices = await fetcher.fetch_prices_for_holdings([good, broken, cash])

        assert list(prices) == [good.id]
        assert prices[good.id].price == Decimal("95.50")

    @pytest.mark.asyncio
    async def test_outcomes_keep_errors(self, make_fetcher):
        good = stock()
        broken = crypto("ETH")
        no_id = HoldingForPriceFetch(type=HoldingType.STOCK, symbol="AAPL")

        fetcher = make_fetcher(
            stock=FakeProvider(VAS_QUOTE),
            crypto=FakeProvider(offline()),
        )
        outcomes = await fetcher.fetch_price_outcomes([good, broken, no_id])

        assert [o.holding for o in outcomes] == [good, broken]
        assert outcomes[0].result is not None and outcomes[0].error is None
        assert outcomes[1].result is None
        assert isinstance(outcomes[1].error, NetworkError)

    @pytest.mark.asyncio
    async def test_batch_concurrency_bounded(self, price_cache, sleep):
        """No more than batch_concurrency provider calls run at once."""
        provider = InFlightProvider(VAS_QUOTE)
        fetcher = PriceFetcher(
            cache=price_cache,
            stock_client=provider,
            crypto_client=FakeProvider(),
            settings=PriceSettings(batch_concurrency=2),
            sleep=sleep,
        )
        holdings = [stock(symbol=s, exchange=None) for s in ("AAPL", "MSFT", "NVDA", "AMZN", "META")]

        prices = await fetcher.fetch_prices_for_holdings(holdings)

        assert set(prices) == {h.id for h in holdings}
        assert len(provider.calls) == 5
        assert provider.peak == 2

    @pytest.mark.asyncio
    async def test_empty_batch(self, make_fetcher):
        assert await make_fetcher().fetch_prices_for_holdings([]) == {}
