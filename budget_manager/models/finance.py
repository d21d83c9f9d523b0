"""
Core Finance Models for Budget Manager

These models define the schemas for every row the core reads or writes:
categories, transactions, budgets, savings goals and their scheduled
obligations (recurring transactions and auto-contributions).

DESIGN DECISION: Money is Decimal everywhere a row is persisted.
Analytics view models (see models/analytics.py) switch to float because
they only ever feed percentages and charts.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Frequency(str, Enum):
    """How often a scheduled obligation recurs."""
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class BudgetPeriod(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class BudgetStatus(str, Enum):
    """
    Derived budget status.

    Computed from spending against the budget amount, never stored.
    """
    SAFE = "safe"
    WARNING = "warning"
    EXCEEDED = "exceeded"


class SpendingBucket(str, Enum):
    """50/30/20 classification of a category."""
    NEEDS = "needs"
    WANTS = "wants"
    SAVINGS = "savings"


class ContributionSource(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


# =============================================================================
# CATEGORIES & TRANSACTIONS
# =============================================================================

class Category(BaseModel):
    """
    A user-defined income or expense category.

    `bucket` is optional metadata used by the 50/30/20 analysis. When it is
    missing the analysis falls back to keyword classification of the name.

    `client_ref` is a correlation key set by the caller of a bulk insert and
    echoed back by the store, so callers can match returned rows to their
    inputs without relying on response order.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    owner_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType
    color: str = Field(default="#6b7280", max_length=20)
    icon: Optional[str] = Field(default=None, max_length=50)
    bucket: Optional[SpendingBucket] = None
    client_ref: Optional[str] = Field(default=None, max_length=100)


class Transaction(BaseModel):
    """
    A single income or expense entry.

    Immutable once created except through an explicit edit.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    owner_id: UUID
    category_id: UUID
    amount: Decimal = Field(..., gt=0, description="Always positive; direction comes from type")
    date: date
    type: TransactionType
    description: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utc_now)


class CategoryBudget(BaseModel):
    """Spending limit for one category over a period."""

    id: UUID = Field(default_factory=uuid4)
    owner_id: UUID
    category_id: UUID
    amount: Decimal = Field(..., gt=0)
    period: BudgetPeriod = BudgetPeriod.MONTHLY


class UserSettings(BaseModel):
    """Per-account settings that travel with a backup."""

    owner_id: UUID
    opening_balance: Decimal = Field(default=Decimal("0"))
    opening_date: Optional[date] = None
    currency: str = Field(default="USD", min_length=3, max_length=3)


# =============================================================================
# SCHEDULED OBLIGATIONS
# =============================================================================

class ScheduledObligation(BaseModel):
    """
    Something that recurs on a fixed frequency and is due on `next_occurrence`.

    `last_occurrence` / `next_occurrence` are only ever moved by the
    materializer, after the record it produces has been committed.
    Obligations are deactivated, never hard-deleted, by user action.
    """

    id: UUID = Field(default_factory=uuid4)
    owner_id: UUID
    amount: Decimal = Field(..., description="Configured amount per occurrence")
    frequency: Frequency
    last_occurrence: Optional[date] = None
    next_occurrence: date
    is_active: bool = True


class RecurringTransaction(ScheduledObligation):
    """Template that produces a transaction every period."""
    model_config = ConfigDict(str_strip_whitespace=True)

    category_id: UUID
    type: TransactionType
    description: Optional[str] = Field(default=None, max_length=500)
    start_date: date
    end_date: Optional[date] = None

    @model_validator(mode='after')
    def validate_dates(self) -> 'RecurringTransaction':
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self


class AutoContribution(ScheduledObligation):
    """Rule that moves a fixed amount into a savings goal every period."""

    goal_id: UUID


# =============================================================================
# SAVINGS GOALS
# =============================================================================

class SavingsGoal(BaseModel):
    """
    A savings target.

    CRITICAL: current_amount must never be pushed past target_amount by an
    auto-contribution. The materializer truncates to the remaining amount.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    owner_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    target_amount: Decimal = Field(..., gt=0)
    current_amount: Decimal = Field(default=Decimal("0"), ge=0)
    deadline: Optional[date] = None
    priority: int = Field(default=3, ge=1, le=5)
    auto_contribution: Optional[AutoContribution] = None

    @model_validator(mode='after')
    def validate_auto_contribution(self) -> 'SavingsGoal':
        if self.auto_contribution and self.auto_contribution.goal_id != self.id:
            raise ValueError("Auto-contribution must reference its own goal")
        return self

    @property
    def remaining_amount(self) -> Decimal:
        return max(Decimal("0"), self.target_amount - self.current_amount)

    @property
    def is_completed(self) -> bool:
        return self.current_amount >= self.target_amount


class GoalContribution(BaseModel):
    """Money added to a goal, either by hand or by an auto-contribution."""

    id: UUID = Field(default_factory=uuid4)
    goal_id: UUID
    amount: Decimal = Field(..., gt=0)
    contribution_date: date
    source: ContributionSource = ContributionSource.MANUAL
    notes: Optional[str] = Field(default=None, max_length=500)
