"""
Audit Logger

DESIGN DECISION: Every write the core performs on its own is logged.
This provides:
1. Traceability of automatic money movements
2. Debugging capability when a compensation runs
3. User can see history of imports and materializations

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from budget_manager.models.audit import AuditEvent, AuditEventBuilder
from budget_manager.services.storage import AuditStorageInterface


# Configure structlog for local logging
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
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
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

    async def log_materialized(
        self,
        obligation_id: UUID,
        obligation_type: str,
        amount: str,
        record_id: UUID,
        next_occurrence: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.obligation_materialized(
            obligation_id=obligation_id,
            obligation_type=obligation_type,
            amount=amount,
            record_id=record_id,
            next_occurrence=next_occurrence,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_skipped(
        self,
        obligation_id: UUID,
        obligation_type: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.obligation_skipped(
            obligation_id=obligation_id,
            obligation_type=obligation_type,
            reason=reason,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_failed(
        self,
        obligation_id: UUID,
        obligation_type: str,
        error_kind: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a materialization that did not commit."""
        event = AuditEventBuilder.obligation_failed(
            obligation_id=obligation_id,
            obligation_type=obligation_type,
            error_kind=error_kind,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_rollback(
        self,
        operation: str,
        compensated: list[str],
        failed: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log the outcome of a compensating rollback."""
        event = AuditEventBuilder.rollback(
            operation=operation,
            compensated=compensated,
            failed=failed,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_batch_completed(
        self,
        batch_type: str,
        processed: int,
        succeeded: int,
        failed: int,
        skipped: int,
        total_amount: str,
        correlation_id: Optional[UUID] = None,
        is_user_action: bool = False,
    ) -> None:
        event = AuditEventBuilder.batch_completed(
            batch_type=batch_type,
            processed=processed,
            succeeded=succeeded,
            failed=failed,
            skipped=skipped,
            total_amount=total_amount,
            correlation_id=correlation_id,
            is_user_action=is_user_action,
        )
        await self.log(event)

    async def log_backup_exported(
        self,
        owner_id: UUID,
        counts: dict[str, int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.backup_exported(
            owner_id=owner_id,
            counts=counts,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_backup_imported(
        self,
        owner_id: UUID,
        summary: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.backup_imported(
            owner_id=owner_id,
            summary=summary,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_backup_import_failed(
        self,
        owner_id: UUID,
        error_message: str,
        summary: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an aborted import."""
        event = AuditEventBuilder.backup_import_failed(
            owner_id=owner_id,
            error_message=error_message,
            summary=summary,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_backup_rejected(
        self,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a backup document that failed validation."""
        event = AuditEventBuilder.backup_rejected(
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a batch run or an import.
    Pass it through all subsequent operations.
    """
    return uuid4()
