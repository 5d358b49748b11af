"""
CoinGecko Price Client

Free tier allows 10-30 calls/minute. With COINGECKO_API_KEY set the pro
endpoint is used and the key is sent as a header.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx
import structlog

from networth.config import CoinGeckoSettings, get_settings
from networth.models.price import PriceQuote
from networth.services.prices.base import PriceProvider
from networth.services.prices.errors import NotFoundError, PriceProviderError, UnknownSymbolError
from networth.services.prices.symbols import get_coingecko_id


logger = structlog.get_logger(__name__)


def change_from_percent(price: Decimal, change_percent: Decimal) -> Optional[Decimal]:
    """
    Absolute 24h change implied by a percentage change.

    price = previous * (1 + pct/100), so absolute = price - previous.
    """
    factor = 1 + change_percent / 100
    if factor == 0:
        return None
    return price - price / factor


class CoinGeckoClient(PriceProvider):
    """Fetches USD crypto prices from the CoinGecko simple price endpoint."""

    name = "CoinGecko"

    def __init__(
        self,
        settings: Optional[CoinGeckoSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings or get_settings().coingecko
        super().__init__(self._settings.timeout_seconds, http_client)

    def rate_limit_message(self) -> str:
        if self._settings.api_key:
            return "Rate limit exceeded. Consider upgrading your API plan."
        return "Rate limit exceeded. Consider adding a COINGECKO_API_KEY for higher limits."

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self._settings.api_key:
            headers["x-cg-pro-api-key"] = self._settings.api_key
        return headers

    async def fetch_live_price(
        self,
        symbol: str,
        exchange: Optional[str] = None,
    ) -> PriceQuote:
        upper = symbol.strip().upper()
        coin_id = get_coingecko_id(upper)
        if coin_id is None:
            raise UnknownSymbolError(
                f"Unknown cryptocurrency symbol: {upper}. "
                "Add it to the symbol mapping to fetch prices.",
                symbol=upper,
            )

        data = await self._get_json(
            f"{self._settings.effective_base_url}/simple/price",
            symbol=upper,
            params={
                "ids": coin_id,
                "vs_currencies": "usd",
                "include_24hr_change": "true",
            },
            headers=self._headers(),
        )

        coin = data.get(coin_id) if isinstance(data, dict) else None
        if not coin or coin.get("usd") is None:
            raise NotFoundError(
                f"No price data returned for {upper} ({coin_id})",
                symbol=upper,
            )

        try:
            price = Decimal(str(coin["usd"]))
            raw_change = coin.get("usd_24h_change")
            change_percent = Decimal(str(raw_change)) if raw_change is not None else None
        except InvalidOperation as e:
            raise PriceProviderError(
                f"Malformed price data for {upper}",
                symbol=upper,
                cause=e,
            )

        change_absolute = (
            change_from_percent(price, change_percent)
            if change_percent is not None
            else None
        )

        logger.debug("coingecko_price_fetched", symbol=upper, coin_id=coin_id, price=str(price))
        return PriceQuote(
            price=price,
            currency="USD",
            change_percent=change_percent,
            change_absolute=change_absolute,
        )
