"""
Audit Models for Budget Manager

Every write the core performs on its own (materializations, rollbacks,
imports) is logged for audit purposes. This provides:
1. Traceability of automatic money movements
2. Debugging information when a compensation runs
3. A history the user can review

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Scheduling
    OBLIGATION_MATERIALIZED = "obligation_materialized"
    OBLIGATION_SKIPPED = "obligation_skipped"
    OBLIGATION_FAILED = "obligation_failed"
    PARTIAL_COMMIT = "partial_commit"
    ROLLBACK_PERFORMED = "rollback_performed"
    ROLLBACK_FAILED = "rollback_failed"
    BATCH_COMPLETED = "batch_completed"

    # Backup
    BACKUP_EXPORTED = "backup_exported"
    BACKUP_IMPORTED = "backup_imported"
    BACKUP_IMPORT_FAILED = "backup_import_failed"
    BACKUP_REJECTED = "backup_rejected"

    # System events
    SYSTEM_ERROR = "system_error"
    STORAGE_ERROR = "storage_error"


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
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'recurring_transaction', 'goal', 'backup')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - ties every event of one batch or import together
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    # Automatic runs (startup processing) are not user actions
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
            "entity_id": str(self.entity_id) if self.entity_id else None,
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
            str(self.entity_id) if self.entity_id else "",
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
        event = AuditEventBuilder.obligation_materialized(...)
        event = AuditEventBuilder.backup_imported(...)
    """

    @staticmethod
    def obligation_materialized(
        obligation_id: UUID,
        obligation_type: str,
        amount: str,
        record_id: UUID,
        next_occurrence: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OBLIGATION_MATERIALIZED,
            entity_type=obligation_type,
            entity_id=obligation_id,
            correlation_id=correlation_id,
            description=f"Materialized {obligation_type}: {amount}",
            details={
                "amount": amount,
                "record_id": str(record_id),
                "next_occurrence": next_occurrence,
            },
        )

    @staticmethod
    def obligation_skipped(
        obligation_id: UUID,
        obligation_type: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OBLIGATION_SKIPPED,
            severity=AuditSeverity.DEBUG,
            entity_type=obligation_type,
            entity_id=obligation_id,
            correlation_id=correlation_id,
            description=f"Skipped {obligation_type}: {reason}",
            details={"reason": reason},
        )

    @staticmethod
    def obligation_failed(
        obligation_id: UUID,
        obligation_type: str,
        error_kind: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OBLIGATION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=obligation_type,
            entity_id=obligation_id,
            correlation_id=correlation_id,
            description=f"Failed to materialize {obligation_type} ({error_kind})",
            error_code=error_kind,
            error_message=error_message,
        )

    @staticmethod
    def rollback(
        operation: str,
        compensated: list[str],
        failed: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        ok = not failed
        return AuditEvent(
            event_type=(
                AuditEventType.ROLLBACK_PERFORMED if ok else AuditEventType.ROLLBACK_FAILED
            ),
            severity=AuditSeverity.WARNING if ok else AuditSeverity.CRITICAL,
            entity_type="unit_of_work",
            correlation_id=correlation_id,
            description=f"Rollback of {operation}: {len(compensated)} undone, {len(failed)} failed",
            details={
                "operation": operation,
                "compensated": compensated,
                "failed": failed,
            },
        )

    @staticmethod
    def batch_completed(
        batch_type: str,
        processed: int,
        succeeded: int,
        failed: int,
        skipped: int,
        total_amount: str,
        correlation_id: Optional[UUID] = None,
        is_user_action: bool = False,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BATCH_COMPLETED,
            severity=AuditSeverity.WARNING if failed else AuditSeverity.INFO,
            entity_type=batch_type,
            correlation_id=correlation_id,
            description=(
                f"{batch_type} batch: {succeeded}/{processed} succeeded, "
                f"{skipped} skipped, total {total_amount}"
            ),
            details={
                "processed": processed,
                "succeeded": succeeded,
                "failed": failed,
                "skipped": skipped,
                "total_amount": total_amount,
            },
            is_user_action=is_user_action,
        )

    @staticmethod
    def backup_exported(
        owner_id: UUID,
        counts: dict[str, int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_EXPORTED,
            entity_type="account",
            entity_id=owner_id,
            correlation_id=correlation_id,
            description=f"Backup exported: {counts.get('transactions', 0)} transactions",
            details=counts,
            is_user_action=True,
        )

    @staticmethod
    def backup_imported(
        owner_id: UUID,
        summary: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_IMPORTED,
            entity_type="account",
            entity_id=owner_id,
            correlation_id=correlation_id,
            description="Backup imported",
            details=summary,
            is_user_action=True,
        )

    @staticmethod
    def backup_import_failed(
        owner_id: UUID,
        error_message: str,
        summary: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_IMPORT_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="account",
            entity_id=owner_id,
            correlation_id=correlation_id,
            description="Backup import aborted",
            error_message=error_message,
            details=summary,
            is_user_action=True,
        )

    @staticmethod
    def backup_rejected(
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="backup",
            correlation_id=correlation_id,
            description=f"Backup rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
