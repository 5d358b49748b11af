"""Services package."""

from networth.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsPortfolioStorage,
    GoogleSheetsPriceCacheStorage,
    InMemoryAuditStorage,
    InMemoryPortfolioStorage,
    InMemoryPriceCacheStorage,
    NotFoundError,
    PortfolioStorageInterface,
    PriceCacheStorageInterface,
    StorageError,
)
from networth.services.prices import (
    CoinGeckoClient,
    PriceCache,
    PriceFetcher,
    YahooFinanceClient,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsPortfolioStorage",
    "GoogleSheetsPriceCacheStorage",
    "InMemoryAuditStorage",
    "InMemoryPortfolioStorage",
    "InMemoryPriceCacheStorage",
    "NotFoundError",
    "PortfolioStorageInterface",
    "PriceCacheStorageInterface",
    "StorageError",
    # Price services
    "CoinGeckoClient",
    "PriceCache",
    "PriceFetcher",
    "YahooFinanceClient",
]
