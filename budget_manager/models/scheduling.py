"""
Scheduling Result Models

Everything the materializer hands back to its caller: skip reasons, the
two-part persistence instruction, per-item outcomes and the batch summary
a host turns into a single notification.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from budget_manager.models.finance import (
    AutoContribution,
    GoalContribution,
    RecurringTransaction,
    Transaction,
)


class SkipReason(str, Enum):
    """Expected conditions under which an obligation is not materialized."""
    NOT_DUE = "not_due"
    ALREADY_COMPLETE = "already_complete"
    INACTIVE = "inactive"
    ENDED = "ended"


class Skip(BaseModel):
    """A structured skip. Never raised, always returned."""

    obligation_id: UUID
    reason: SkipReason
    message: str


class ScheduleAdvance(BaseModel):
    """New schedule state for an obligation once its record is committed."""

    obligation_id: UUID
    last_occurrence: date
    next_occurrence: date


class GoalDelta(BaseModel):
    """Amount to add to a goal's running total."""

    goal_id: UUID
    amount: Decimal


class PersistInstruction(BaseModel):
    """
    The writes that make up one materialization.

    CRITICAL: These are applied as a single unit. If anything after the
    record insert fails, the earlier writes are compensated.
    """

    record: Union[GoalContribution, Transaction]
    goal_delta: Optional[GoalDelta] = None
    schedule: ScheduleAdvance


class MaterializationPlan(BaseModel):
    """What materializing a due obligation will do, computed without side effects."""

    obligation: Union[AutoContribution, RecurringTransaction]
    amount: Decimal
    instruction: PersistInstruction

    @property
    def updated_next_occurrence(self) -> date:
        return self.instruction.schedule.next_occurrence


class MaterializationOutcome(BaseModel):
    """A committed materialization."""

    obligation_id: UUID
    amount: Decimal = Field(..., description="Amount actually applied")
    record_id: UUID
    updated_next_occurrence: date
    updated_obligation: Union[AutoContribution, RecurringTransaction]


class ItemStatus(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


class ItemResult(BaseModel):
    """Outcome of one obligation inside a batch."""

    obligation_id: UUID
    status: ItemStatus
    amount: Decimal = Decimal("0")
    record_id: Optional[UUID] = None
    skip_reason: Optional[SkipReason] = None
    error_kind: Optional[str] = Field(
        default=None,
        description="validation | clean_failure | partial_commit | unexpected"
    )
    error: Optional[str] = None
    rolled_back: Optional[bool] = None


class BatchResult(BaseModel):
    """
    Aggregate summary of a batch run.

    processed_count counts items that reached a commit attempt.
    Skipped items are reported but not processed, so
    succeeded_count + failed_count == processed_count always holds.
    """

    processed_count: int = 0
    succeeded_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    total_amount_applied: Decimal = Decimal("0")
    results: list[ItemResult] = Field(default_factory=list)

    def record(self, result: ItemResult) -> None:
        self.results.append(result)
        if result.status == ItemStatus.SKIPPED:
            self.skipped_count += 1
            return
        self.processed_count += 1
        if result.status == ItemStatus.SUCCEEDED:
            self.succeeded_count += 1
            self.total_amount_applied += result.amount
        else:
            self.failed_count += 1

    @property
    def errors(self) -> list[str]:
        return [r.error for r in self.results if r.error]


class RecurringStats(BaseModel):
    """Counts and monthly totals over a user's recurring transactions."""

    active_count: int = 0
    inactive_count: int = 0
    due_count: int = 0
    total_monthly_income: float = 0.0
    total_monthly_expense: float = 0.0


class RollbackReport(BaseModel):
    """Which compensations ran and which of them failed."""

    compensated: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed
