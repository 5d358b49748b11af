"""Shared fixtures: in-memory storage, a controllable clock and fake providers."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

import pytest

from networth.config import AppSettings, PriceSettings
from networth.models.price import PriceQuote
from networth.services.prices.base import PriceProvider
from networth.services.prices.cache import PriceCache
from networth.services.prices.fetcher import PriceFetcher
from networth.services.storage import (
    InMemoryAuditStorage,
    InMemoryPortfolioStorage,
    InMemoryPriceCacheStorage,
)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class FakeProvider(PriceProvider):
    """
    Provider that replays a script of quotes and exceptions.

    The last entry repeats once the script runs out.
    """

    name = "fake"

    def __init__(self, *script):
        super().__init__(timeout_seconds=1.0)
        self.script = list(script) or [PriceQuote(price=Decimal("1"), currency="USD")]
        self.calls: list[tuple[str, Optional[str]]] = []

    async def fetch_live_price(self, symbol, exchange=None):
        self.calls.append((symbol, exchange))
        step = self.script[min(len(self.calls), len(self.script)) - 1]
        if isinstance(step, BaseException):
            raise step
        return step


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def portfolio_storage():
    return InMemoryPortfolioStorage()


@pytest.fixture
def price_storage():
    return InMemoryPriceCacheStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def price_cache(price_storage, clock):
    return PriceCache(price_storage, clock=clock)


@pytest.fixture
def price_settings():
    return PriceSettings(
        cache_ttl_minutes=15,
        max_retries=3,
        initial_delay_seconds=1.0,
        backoff_multiplier=2.0,
        max_delay_seconds=10.0,
        batch_concurrency=5,
    )


@pytest.fixture
def app_settings():
    return AppSettings(max_upload_size_mb=1)


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def make_fetcher(price_cache, price_settings, sleep):
    """Build a PriceFetcher around the given fake providers."""

    def build(stock=None, crypto=None, on_retry=None):
        return PriceFetcher(
            cache=price_cache,
            stock_client=stock or FakeProvider(),
            crypto_client=crypto or FakeProvider(),
            settings=price_settings,
            on_retry=on_retry,
            sleep=sleep,
        )

    return build
