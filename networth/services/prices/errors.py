"""
Price Provider Exceptions

Two families:
- PriceProviderError: something went wrong talking to a provider. Some of
  these are transient (rate limit, network, 5xx) and worth retrying.
- PriceFetchError: the holding itself can't be priced. Never retried.
"""

from typing import Optional


class PriceProviderError(Exception):
    """Base exception for provider client failures."""

    def __init__(
        self,
        message: str,
        symbol: str,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.symbol = symbol
        self.status_code = status_code
        self.cause = cause


class RateLimitedError(PriceProviderError):
    """Provider answered 429."""
    pass


class HttpError(PriceProviderError):
    """Provider answered with a non-2xx status other than 429/404."""
    pass


class NetworkError(PriceProviderError):
    """Connection failure or timeout before a response arrived."""
    pass


class NotFoundError(PriceProviderError):
    """Provider has no data for the resolved symbol."""
    pass


class UnknownSymbolError(PriceProviderError):
    """Crypto symbol has no CoinGecko id mapping."""
    pass


class PriceFetchError(Exception):
    """Base exception for holdings that cannot be priced at all."""
    pass


class NotTradeableError(PriceFetchError):
    """Holding type has no market price (super, cash, debt)."""
    pass


class MissingSymbolError(PriceFetchError):
    """Tradeable holding without a symbol."""
    pass
