"""
Price Services Package

Symbol normalization, provider clients, the TTL price cache and the
fetcher that ties them together.
"""

from networth.services.prices.errors import (
    HttpError,
    MissingSymbolError,
    NetworkError,
    NotFoundError,
    NotTradeableError,
    PriceFetchError,
    PriceProviderError,
    RateLimitedError,
    UnknownSymbolError,
)
from networth.services.prices.base import PriceProvider
from networth.services.prices.coingecko import CoinGeckoClient
from networth.services.prices.yahoo_finance import YahooFinanceClient
from networth.services.prices.cache import DEFAULT_PRICE_CACHE_TTL_MINUTES, PriceCache
from networth.services.prices.fetcher import (
    PriceFetcher,
    PriceOutcome,
    ProviderKind,
    select_provider,
)

__all__ = [
    # Errors
    "HttpError",
    "MissingSymbolError",
    "NetworkError",
    "NotFoundError",
    "NotTradeableError",
    "PriceFetchError",
    "PriceProviderError",
    "RateLimitedError",
    "UnknownSymbolError",
    # Providers
    "CoinGeckoClient",
    "PriceProvider",
    "YahooFinanceClient",
    # Cache and fetcher
    "DEFAULT_PRICE_CACHE_TTL_MINUTES",
    "PriceCache",
    "PriceFetcher",
    "PriceOutcome",
    "ProviderKind",
    "select_provider",
]
