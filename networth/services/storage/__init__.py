"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the persistent backend; the in-memory backend serves tests
and credential-less local runs.
"""

from networth.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    PortfolioStorageInterface,
    PriceCacheStorageInterface,
    StorageError,
)
from networth.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryPortfolioStorage,
    InMemoryPriceCacheStorage,
)
from networth.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsPortfolioStorage,
    GoogleSheetsPriceCacheStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "PortfolioStorageInterface",
    "PriceCacheStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryPortfolioStorage",
    "InMemoryPriceCacheStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsPortfolioStorage",
    "GoogleSheetsPriceCacheStorage",
]
