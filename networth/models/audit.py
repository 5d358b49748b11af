"""
Audit Models for Net Worth Tracker

Every import run and every price fetch that touches a provider is logged
for audit purposes. This provides:
1. Traceability of where each number came from
2. Debugging information when a provider misbehaves
3. Row-level history of imports

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from networth.models.portfolio import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # CSV import
    IMPORT_STARTED = "import_started"
    IMPORT_COMPLETED = "import_completed"
    IMPORT_ROW_FAILED = "import_row_failed"

    # Price fetching
    PRICE_FETCHED = "price_fetched"
    STALE_PRICE_SERVED = "stale_price_served"
    PRICE_FETCH_FAILED = "price_fetch_failed"
    PRICE_REFRESH_COMPLETED = "price_refresh_completed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'holding', 'import', 'price')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID or symbol of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one import)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.import_completed(...)
        await audit_logger.log(event)
    """

    @staticmethod
    def import_started(
        import_type: str,
        user_id: str,
        row_count: int,
        filename: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_STARTED,
            entity_type="import",
            entity_id=import_type,
            correlation_id=correlation_id,
            description=f"Started {import_type} import of {row_count} rows",
            details={"user_id": user_id, "row_count": row_count, "filename": filename},
            is_user_action=True,
        )

    @staticmethod
    def import_completed(
        import_type: str,
        total: int,
        imported: int,
        skipped: int,
        error_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_COMPLETED,
            severity=AuditSeverity.WARNING if error_count else AuditSeverity.INFO,
            entity_type="import",
            entity_id=import_type,
            correlation_id=correlation_id,
            description=(
                f"{import_type.capitalize()} import finished: {imported} imported, "
                f"{skipped} skipped, {error_count} errors"
            ),
            details={
                "total": total,
                "imported": imported,
                "skipped": skipped,
                "error_count": error_count,
            },
        )

    @staticmethod
    def import_row_failed(
        import_type: str,
        row: int,
        message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_ROW_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="import",
            entity_id=import_type,
            correlation_id=correlation_id,
            description=f"Row {row} was not imported",
            details={"row": row},
            error_message=message,
        )

    @staticmethod
    def price_fetched(
        symbol: str,
        source: str,
        price: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PRICE_FETCHED,
            entity_type="price",
            entity_id=symbol,
            correlation_id=correlation_id,
            description=f"Fetched live price for {symbol} from {source}",
            details={"source": source, "price": price},
        )

    @staticmethod
    def stale_price_served(
        symbol: str,
        fetched_at: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STALE_PRICE_SERVED,
            severity=AuditSeverity.WARNING,
            entity_type="price",
            entity_id=symbol,
            correlation_id=correlation_id,
            description=f"Served cached price for {symbol} from {fetched_at}",
            details={"fetched_at": fetched_at},
            error_message=error_message,
        )

    @staticmethod
    def price_fetch_failed(
        symbol: str,
        error_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PRICE_FETCH_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="price",
            entity_id=symbol,
            correlation_id=correlation_id,
            description=f"No price available for {symbol}",
            error_code=error_type,
            error_message=error_message,
        )

    @staticmethod
    def price_refresh_completed(
        requested: int,
        fresh: int,
        stale: int,
        failed: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PRICE_REFRESH_COMPLETED,
            severity=AuditSeverity.WARNING if failed else AuditSeverity.INFO,
            entity_type="price",
            correlation_id=correlation_id,
            description=(
                f"Refreshed {requested} holdings: {fresh} fresh, "
                f"{stale} stale, {failed} failed"
            ),
            details={"requested": requested, "fresh": fresh, "stale": stale, "failed": failed},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"System error: {error_type}",
            details=details or {},
            error_code=error_type,
            error_message=error_message,
        )

