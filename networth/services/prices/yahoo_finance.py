"""
Yahoo Finance Price Client

Uses the public chart endpoint. The response's meta block carries the
regular market price and the previous close, which gives the day change.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx
import structlog

from networth.config import YahooFinanceSettings, get_settings
from networth.models.price import PriceQuote
from networth.services.prices.base import PriceProvider
from networth.services.prices.errors import NotFoundError, PriceProviderError
from networth.services.prices.symbols import infer_currency, normalize_symbol


logger = structlog.get_logger(__name__)


def _decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


class YahooFinanceClient(PriceProvider):
    """Fetches stock and ETF prices from Yahoo Finance."""

    name = "Yahoo Finance"

    def __init__(
        self,
        settings: Optional[YahooFinanceSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings or get_settings().yahoo_finance
        super().__init__(self._settings.timeout_seconds, http_client)

    async def fetch_live_price(
        self,
        symbol: str,
        exchange: Optional[str] = None,
    ) -> PriceQuote:
        normalized = normalize_symbol(symbol, exchange)

        data = await self._get_json(
            f"{self._settings.base_url}/v8/finance/chart/{normalized}",
            symbol=normalized,
            params={"interval": "1d", "range": "1d"},
            headers={"User-Agent": self._settings.user_agent},
        )

        chart = (data or {}).get("chart") or {}
        results = chart.get("result") or []
        if not results:
            raise NotFoundError(
                f"No quote data returned for symbol: {normalized}",
                symbol=normalized,
            )

        meta = results[0].get("meta") or {}
        try:
            price = _decimal(meta.get("regularMarketPrice"))
            previous = _decimal(meta.get("chartPreviousClose", meta.get("previousClose")))
        except InvalidOperation as e:
            raise PriceProviderError(
                f"Malformed price data for {normalized}",
                symbol=normalized,
                cause=e,
            )

        if price is None:
            raise NotFoundError(
                f"No price available for symbol: {normalized}",
                symbol=normalized,
            )

        change_absolute = None
        change_percent = None
        if previous is not None:
            change_absolute = price - previous
            if previous != 0:
                change_percent = change_absolute / previous * 100

        logger.debug("yahoo_price_fetched", symbol=normalized, price=str(price))
        return PriceQuote(
            price=price,
            currency=meta.get("currency") or infer_currency(normalized),
            change_percent=change_percent,
            change_absolute=change_absolute,
        )
