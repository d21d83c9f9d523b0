"""
Tests for Budget Manager models

Test strategy:
1. Unit tests for individual components (models, validators, pure analytics)
2. Flow tests against in-memory storage
3. No real API calls in tests (failure-injecting storage subclasses instead)
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from budget_manager.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from budget_manager.models.backup import BackupDocument, ImportSummary
from budget_manager.models.finance import (
    AutoContribution,
    Category,
    Frequency,
    RecurringTransaction,
    SavingsGoal,
    Transaction,
    TransactionType,
)
from budget_manager.models.scheduling import BatchResult, ItemResult, ItemStatus, SkipReason
from budget_manager.models.validation import ValidationIssue, ValidationResult


class TestFinanceModels:
    """Tests for finance-related Pydantic models."""

    def test_category_strips_whitespace(self):
        """Test that whitespace is stripped from category names."""
        category = Category(owner_id=uuid4(), name="  Rent  ", type=TransactionType.EXPENSE)
        assert category.name == "Rent"

    def test_transaction_rejects_non_positive_amount(self):
        """Direction comes from type, so amounts are always positive."""
        with pytest.raises(ValueError):
            Transaction(
                owner_id=uuid4(),
                category_id=uuid4(),
                amount=Decimal("0"),
                date=date(2025, 10, 1),
                type=TransactionType.EXPENSE,
            )

    def test_goal_remaining_amount_never_negative(self):
        goal = SavingsGoal(
            owner_id=uuid4(),
            name="Trip",
            target_amount=Decimal("500"),
            current_amount=Decimal("650"),
        )
        assert goal.remaining_amount == Decimal("0")
        assert goal.is_completed

    def test_goal_rejects_foreign_auto_contribution(self):
        """An auto-contribution must point at the goal that owns it."""
        owner = uuid4()
        with pytest.raises(ValueError):
            SavingsGoal(
                owner_id=owner,
                name="Trip",
                target_amount=Decimal("500"),
                auto_contribution=AutoContribution(
                    owner_id=owner,
                    goal_id=uuid4(),
                    amount=Decimal("50"),
                    frequency=Frequency.WEEKLY,
                    next_occurrence=date(2025, 10, 1),
                ),
            )

    def test_recurring_end_before_start_rejected(self):
        with pytest.raises(ValueError):
            RecurringTransaction(
                owner_id=uuid4(),
                category_id=uuid4(),
                amount=Decimal("10"),
                type=TransactionType.EXPENSE,
                frequency=Frequency.MONTHLY,
                start_date=date(2025, 5, 1),
                end_date=date(2025, 4, 1),
                next_occurrence=date(2025, 5, 1),
            )

    def test_frequency_values(self):
        """Test frequency string values match stored data."""
        assert Frequency.BI_WEEKLY.value == "bi-weekly"
        assert Frequency("yearly") == Frequency.YEARLY


class TestSchedulingModels:
    """Tests for batch bookkeeping."""

    def test_batch_counts_skips_separately(self):
        batch = BatchResult()
        batch.record(ItemResult(obligation_id=uuid4(), status=ItemStatus.SUCCEEDED, amount=Decimal("50")))
        batch.record(ItemResult(obligation_id=uuid4(), status=ItemStatus.FAILED, error="boom"))
        batch.record(ItemResult(
            obligation_id=uuid4(),
            status=ItemStatus.SKIPPED,
            skip_reason=SkipReason.NOT_DUE,
        ))

        assert batch.processed_count == 2
        assert batch.succeeded_count + batch.failed_count == batch.processed_count
        assert batch.skipped_count == 1
        assert batch.total_amount_applied == Decimal("50")
        assert batch.errors == ["boom"]


class TestBackupModels:
    """Tests for the backup document layout."""

    def test_document_reads_camel_case_keys(self):
        document = BackupDocument.model_validate({
            "version": "1.0",
            "exportDate": "2025-10-01T12:00:00+00:00",
            "categories": [],
            "transactions": [],
            "savingsGoals": [],
            "categoryBudgets": [],
            "userSettings": None,
        })
        assert document.version == "1.0"
        assert document.recurring_transactions == []

    def test_document_ignores_unknown_keys(self):
        """Backups from the web dashboard carry userData; it is ignored."""
        document = BackupDocument.model_validate({
            "version": "1.0",
            "exportDate": "2025-10-01T12:00:00Z",
            "userData": {"email": "someone@example.com"},
            "categories": [],
            "transactions": [],
        })
        assert document.savings_goals == []

    def test_import_summary_total(self):
        summary = ImportSummary(categories_created=2, transactions=10, goals=1, budgets=2)
        assert summary.total_items == 15


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.BATCH_COMPLETED,
            description="Batch done",
        )
        assert event.event_type == AuditEventType.BATCH_COMPLETED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEventBuilder.obligation_skipped(
            obligation_id=uuid4(),
            obligation_type="auto_contribution",
            reason="not_due",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "obligation_skipped"
        assert log_dict["severity"] == "debug"
        assert log_dict["details"] == {"reason": "not_due"}

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEventBuilder.obligation_failed(
            obligation_id=uuid4(),
            obligation_type="recurring_transaction",
            error_kind="clean_failure",
            error_message="insert failed",
        )
        row = event.to_sheets_row()
        assert len(row) == 11
        assert row[2] == "obligation_failed"
        assert row[9] == "insert failed"

    def test_rollback_event_severity(self):
        """A rollback that could not undo everything is critical."""
        ok = AuditEventBuilder.rollback("materialize", ["delete contribution"], [])
        broken = AuditEventBuilder.rollback("materialize", [], ["delete contribution"])
        assert ok.event_type == AuditEventType.ROLLBACK_PERFORMED
        assert broken.event_type == AuditEventType.ROLLBACK_FAILED
        assert broken.severity == AuditSeverity.CRITICAL


class TestValidationResult:
    """Tests for validation result model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            subject="backup",
            issues=[
                ValidationIssue(
                    field="version",
                    issue_type="missing",
                    message="Version missing",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors
        assert not result.is_valid
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test result with only warnings."""
        result = ValidationResult(
            subject="backup",
            issues=[
                ValidationIssue(
                    field="category_id",
                    issue_type="dangling_reference",
                    message="2 rows reference unknown categories",
                    severity="warning",
                ),
            ],
        )
        assert result.is_valid
        assert len(result.warnings) == 1
