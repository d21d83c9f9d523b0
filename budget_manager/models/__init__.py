"""
Data Models Package

This package contains all Pydantic models used by Budget Manager.
All data flowing through the core must conform to these schemas.
"""

from budget_manager.models.finance import (
    AutoContribution,
    BudgetPeriod,
    BudgetStatus,
    Category,
    CategoryBudget,
    ContributionSource,
    Frequency,
    GoalContribution,
    RecurringTransaction,
    SavingsGoal,
    ScheduledObligation,
    SpendingBucket,
    Transaction,
    TransactionType,
    UserSettings,
)
from budget_manager.models.scheduling import (
    BatchResult,
    GoalDelta,
    ItemResult,
    ItemStatus,
    MaterializationOutcome,
    MaterializationPlan,
    PersistInstruction,
    RecurringStats,
    RollbackReport,
    ScheduleAdvance,
    Skip,
    SkipReason,
)
from budget_manager.models.backup import (
    BackupDocument,
    ImportSummary,
)
from budget_manager.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from budget_manager.models.validation import (
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    # Finance models
    "AutoContribution",
    "BudgetPeriod",
    "BudgetStatus",
    "Category",
    "CategoryBudget",
    "ContributionSource",
    "Frequency",
    "GoalContribution",
    "RecurringTransaction",
    "SavingsGoal",
    "ScheduledObligation",
    "SpendingBucket",
    "Transaction",
    "TransactionType",
    "UserSettings",
    # Scheduling results
    "BatchResult",
    "GoalDelta",
    "ItemResult",
    "ItemStatus",
    "MaterializationOutcome",
    "MaterializationPlan",
    "PersistInstruction",
    "RecurringStats",
    "RollbackReport",
    "ScheduleAdvance",
    "Skip",
    "SkipReason",
    # Backup
    "BackupDocument",
    "ImportSummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Validation
    "ValidationIssue",
    "ValidationResult",
]
