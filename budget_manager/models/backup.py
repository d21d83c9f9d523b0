"""
Backup Document Models

The backup file is a single JSON document. Top-level keys are camelCase
(kept compatible with backups written by the web dashboard); rows inside
are snake_case storage rows.

DESIGN DECISION: IDs inside a backup are local to the document. They are
strings, not UUIDs, so documents produced elsewhere still parse. The
importer remaps every foreign key to freshly generated ids.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from budget_manager.models.finance import (
    BudgetPeriod,
    Frequency,
    SpendingBucket,
    TransactionType,
)


class BackupCategory(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = Field(..., min_length=1)
    type: TransactionType
    color: Optional[str] = None
    icon: Optional[str] = None
    bucket: Optional[SpendingBucket] = None


class BackupTransaction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    category_id: str
    amount: Decimal = Field(..., gt=0)
    date: date
    type: TransactionType
    description: Optional[str] = None


class BackupAutoContribution(BaseModel):
    model_config = ConfigDict(extra="ignore")

    amount: Decimal
    frequency: Frequency
    last_occurrence: Optional[date] = None
    next_occurrence: date
    is_active: bool = True


class BackupSavingsGoal(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    target_amount: Decimal = Field(..., gt=0)
    current_amount: Decimal = Field(default=Decimal("0"), ge=0)
    deadline: Optional[date] = None
    priority: int = 3
    auto_contribution: Optional[BackupAutoContribution] = None


class BackupCategoryBudget(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    category_id: str
    amount: Decimal = Field(..., gt=0)
    period: BudgetPeriod = BudgetPeriod.MONTHLY


class BackupRecurringTransaction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    category_id: str
    amount: Decimal
    type: TransactionType
    description: Optional[str] = None
    frequency: Frequency
    start_date: date
    end_date: Optional[date] = None
    last_occurrence: Optional[date] = None
    next_occurrence: date
    is_active: bool = True


class BackupUserSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    opening_balance: Decimal = Decimal("0")
    opening_date: Optional[date] = None
    currency: str = "USD"


class BackupDocument(BaseModel):
    """
    Versioned snapshot of one account.

    `version` lets future readers tell which layout they are reading.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: str = Field(..., min_length=1)
    export_date: datetime = Field(..., alias="exportDate")
    categories: list[BackupCategory]
    transactions: list[BackupTransaction]
    savings_goals: list[BackupSavingsGoal] = Field(default_factory=list, alias="savingsGoals")
    category_budgets: list[BackupCategoryBudget] = Field(default_factory=list, alias="categoryBudgets")
    user_settings: Optional[BackupUserSettings] = Field(default=None, alias="userSettings")
    recurring_transactions: list[BackupRecurringTransaction] = Field(
        default_factory=list, alias="recurringTransactions"
    )


class ImportSummary(BaseModel):
    """Counts reported after (or up to the failure of) an import."""

    categories_created: int = 0
    categories_reused: int = 0
    transactions: int = 0
    goals: int = 0
    budgets: int = 0
    recurring: int = 0
    settings_restored: bool = False
    unmapped_references: int = Field(
        default=0,
        description="Foreign keys kept as-is because no mapping existed"
    )

    @property
    def total_items(self) -> int:
        return (
            self.categories_created
            + self.transactions
            + self.goals
            + self.budgets
            + self.recurring
        )
