"""
Data Models Package

This package contains all Pydantic models used in the Net Worth Tracker core.
All data flowing through the system must conform to these schemas.
"""

from networth.models.portfolio import (
    IMPORTABLE_ACTIONS,
    TRADEABLE_TYPES,
    Contribution,
    Currency,
    Holding,
    HoldingType,
    ImportHistory,
    ImportType,
    Snapshot,
    Transaction,
    TransactionAction,
    utc_now,
)
from networth.models.price import (
    CachedPrice,
    HoldingForPriceFetch,
    PriceQuote,
    PriceRefreshResult,
    PriceResult,
    PriceSource,
)
from networth.models.imports import (
    HEADER_ROW_OFFSET,
    CSVRow,
    ImportResult,
    ImportRowError,
    ImportSummary,
    RowValidationResult,
    SnapshotRow,
    TransactionRow,
)
from networth.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Portfolio models
    "IMPORTABLE_ACTIONS",
    "TRADEABLE_TYPES",
    "Contribution",
    "Currency",
    "Holding",
    "HoldingType",
    "ImportHistory",
    "ImportType",
    "Snapshot",
    "Transaction",
    "TransactionAction",
    "utc_now",
    # Price models
    "CachedPrice",
    "HoldingForPriceFetch",
    "PriceQuote",
    "PriceRefreshResult",
    "PriceResult",
    "PriceSource",
    # Import models
    "HEADER_ROW_OFFSET",
    "CSVRow",
    "ImportResult",
    "ImportRowError",
    "ImportSummary",
    "RowValidationResult",
    "SnapshotRow",
    "TransactionRow",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
