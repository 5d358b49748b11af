"""
Price Cache

Keeps the last good quote per normalized symbol. Entries are never expired
or deleted automatically; freshness is judged when reading, against a TTL.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog

from networth.models.portfolio import utc_now
from networth.models.price import CachedPrice, PriceQuote, PriceSource
from networth.services.storage import PriceCacheStorageInterface


logger = structlog.get_logger(__name__)

DEFAULT_PRICE_CACHE_TTL_MINUTES = 15


def _as_utc(value: datetime) -> datetime:
    # Rows written by hand into the sheet may lack an offset
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PriceCache:
    """TTL view over the price cache table."""

    def __init__(
        self,
        storage: PriceCacheStorageInterface,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._storage = storage
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    async def get(self, symbol: str) -> Optional[CachedPrice]:
        """Cached entry for a normalized symbol, fresh or not."""
        return await self._storage.get_price(symbol)

    async def set(
        self,
        symbol: str,
        quote: PriceQuote,
        source: PriceSource,
    ) -> CachedPrice:
        """Upsert the entry for `symbol`, stamped with the current time."""
        cached = CachedPrice(
            symbol=symbol,
            price=quote.price,
            currency=quote.currency,
            change_percent=quote.change_percent,
            change_absolute=quote.change_absolute,
            fetched_at=self.now(),
            source=source,
        )
        await self._storage.upsert_price(cached)
        logger.debug("price_cached", symbol=symbol, source=source.value, price=str(quote.price))
        return cached

    def is_valid(
        self,
        cached: CachedPrice,
        ttl_minutes: int = DEFAULT_PRICE_CACHE_TTL_MINUTES,
        now: Optional[datetime] = None,
    ) -> bool:
        """True while the entry is younger than the TTL."""
        current = _as_utc(now or self.now())
        age = current - _as_utc(cached.fetched_at)
        return age < timedelta(minutes=ttl_minutes)

    async def get_all(self) -> list[CachedPrice]:
        return await self._storage.list_prices()

    async def delete(self, symbol: str) -> bool:
        return await self._storage.delete_price(symbol)
