"""
Audit Logger

DESIGN DECISION: Every import run and every price refresh is logged.
This provides:
1. Traceability of imported rows and served prices
2. Debugging capability when a provider misbehaves
3. User can see history of their imports

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash an import if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from networth.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from networth.models.portfolio import ImportType
from networth.services.storage import AuditStorageInterface


def configure_logging() -> None:
    """Configure structlog for JSON output through the stdlib logging tree."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("networth.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_import_started(
        self,
        import_type: ImportType,
        user_id: str,
        row_count: int,
        filename: Optional[str],
        correlation_id: UUID,
    ) -> None:
        """Log the start of a CSV import."""
        await self.log(AuditEventBuilder.import_started(
            import_type=import_type.value,
            user_id=user_id,
            row_count=row_count,
            filename=filename,
            correlation_id=correlation_id,
        ))

    async def log_import_completed(
        self,
        import_type: ImportType,
        total: int,
        imported: int,
        skipped: int,
        error_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.import_completed(
            import_type=import_type.value,
            total=total,
            imported=imported,
            skipped=skipped,
            error_count=error_count,
            correlation_id=correlation_id,
        ))

    async def log_import_row_failed(
        self,
        import_type: ImportType,
        row: int,
        message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.import_row_failed(
            import_type=import_type.value,
            row=row,
            message=message,
            correlation_id=correlation_id,
        ))

    async def log_price_fetched(
        self,
        symbol: str,
        source: str,
        price: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a live price returned by a provider."""
        await self.log(AuditEventBuilder.price_fetched(
            symbol=symbol,
            source=source,
            price=price,
            correlation_id=correlation_id,
        ))

    async def log_stale_price_served(
        self,
        symbol: str,
        fetched_at: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.stale_price_served(
            symbol=symbol,
            fetched_at=fetched_at,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_price_fetch_failed(
        self,
        symbol: str,
        error_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.price_fetch_failed(
            symbol=symbol,
            error_type=error_type,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_price_refresh_completed(
        self,
        requested: int,
        fresh: int,
        stale: int,
        failed: int,
        correlation_id: UUID,
    ) -> None:
        """Log the outcome of a batch price refresh."""
        await self.log(AuditEventBuilder.price_refresh_completed(
            requested=requested,
            fresh=fresh,
            stale=stale,
            failed=failed,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of an import or a price refresh.
    Pass it through all subsequent operations.
    """
    return uuid4()
