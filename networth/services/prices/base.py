"""
Price Provider Contract

Both provider clients make one GET per quote and translate every failure
into the PriceProviderError tree, so the retry policy can classify errors
without knowing which provider raised them.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
import structlog

from networth.models.price import PriceQuote
from networth.services.prices.errors import (
    HttpError,
    NetworkError,
    NotFoundError,
    PriceProviderError,
    RateLimitedError,
)


logger = structlog.get_logger(__name__)


class PriceProvider(ABC):
    """A source of live prices."""

    name: str = "provider"

    def __init__(
        self,
        timeout_seconds: float,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._timeout = timeout_seconds
        self._http_client = http_client

    @abstractmethod
    async def fetch_live_price(
        self,
        symbol: str,
        exchange: Optional[str] = None,
    ) -> PriceQuote:
        """
        Fetch the current price for a symbol.

        Raises:
            PriceProviderError: Any provider failure, classified by subclass
        """
        pass

    def rate_limit_message(self) -> str:
        return "Rate limit exceeded."

    async def _get_json(
        self,
        url: str,
        symbol: str,
        params: Optional[dict] = None,
        headers: Optional[dict] = None,
    ) -> Any:
        """GET a JSON document, mapping transport and status failures."""
        try:
            if self._http_client is not None:
                response = await self._http_client.get(
                    url, params=params, headers=headers, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(url, params=params, headers=headers)
        except httpx.TransportError as e:
            logger.warning("provider_network_error", provider=self.name, symbol=symbol, error=str(e))
            raise NetworkError(
                f"Network error fetching {symbol}. Please check your internet connection.",
                symbol=symbol,
                cause=e,
            )

        if response.status_code == 429:
            raise RateLimitedError(self.rate_limit_message(), symbol=symbol, status_code=429)
        if response.status_code == 404:
            raise NotFoundError(
                f"Invalid symbol: {symbol}. Please verify the ticker is correct.",
                symbol=symbol,
                status_code=404,
            )
        if response.is_error:
            raise HttpError(
                f"{self.name} returned status {response.status_code}: {response.reason_phrase}",
                symbol=symbol,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise PriceProviderError(
                f"Malformed response for {symbol} from {self.name}",
                symbol=symbol,
                status_code=response.status_code,
                cause=e,
            )
