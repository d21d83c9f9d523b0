"""
Analytics View Models

Typed results of the analytics layer. Storage rows never leave this
package's inputs: everything a dashboard renders is one of these.
"""

from datetime import date
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from budget_manager.models.finance import (
    BudgetPeriod,
    BudgetStatus,
    SpendingBucket,
)


# =============================================================================
# AGGREGATION & BUDGETS
# =============================================================================

class CategorySum(BaseModel):
    category_id: UUID
    income: float = 0.0
    expense: float = 0.0
    transaction_count: int = 0

    @property
    def net(self) -> float:
        return self.income - self.expense


class CategoryTotals(BaseModel):
    """Transactions grouped by category and type."""

    by_category: dict[UUID, CategorySum] = Field(default_factory=dict)
    total_income: float = 0.0
    total_expense: float = 0.0
    transaction_count: int = 0

    @property
    def net(self) -> float:
        return self.total_income - self.total_expense


class BudgetWithSpending(BaseModel):
    budget_id: UUID
    category_id: UUID
    category_name: str
    period: BudgetPeriod
    period_start: date
    period_end: date
    amount: float
    spent: float
    remaining: float
    percentage: float
    status: BudgetStatus


class BudgetAlert(BaseModel):
    budget_id: UUID
    category_name: str
    amount: float
    spent: float
    percentage: float
    status: BudgetStatus

    @property
    def key(self) -> str:
        """One alert per budget, status and 10% band."""
        return f"{self.budget_id}-{self.status.value}-{int(self.percentage // 10)}"


class AlertCounts(BaseModel):
    exceeded_count: int = 0
    warning_count: int = 0

    @property
    def total_count(self) -> int:
        return self.exceeded_count + self.warning_count


# =============================================================================
# 50/30/20 ALLOCATION
# =============================================================================

class BudgetAllocation(BaseModel):
    needs: float
    wants: float
    savings: float


class CategoryAllocation(BaseModel):
    category_id: UUID
    category_name: str
    bucket: SpendingBucket
    current_spending: float = 0.0
    allocated_budget: float = 0.0
    utilization_percentage: float = 0.0


class BudgetSummary(BaseModel):
    total_income: float
    allocation: BudgetAllocation
    category_breakdown: list[CategoryAllocation] = Field(default_factory=list)
    needs_spending: float = 0.0
    wants_spending: float = 0.0
    savings_amount: float = 0.0
    needs_utilization: float = 0.0
    wants_utilization: float = 0.0
    savings_utilization: float = 0.0
    is_balanced: bool = True
    recommendations: list[str] = Field(default_factory=list)


class ZeroBasedBudget(BaseModel):
    allocated: float
    unallocated: float
    categories: dict[str, float] = Field(default_factory=dict)


# =============================================================================
# FORECASTING
# =============================================================================

class CashFlowTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class MonthlyData(BaseModel):
    month: str
    income: float
    expenses: float
    net_cash_flow: float
    balance: float


class CashFlowProjection(BaseModel):
    projections: list[MonthlyData] = Field(default_factory=list)
    history: list[MonthlyData] = Field(default_factory=list)
    average_income: float = 0.0
    average_expenses: float = 0.0
    average_net_cash_flow: float = 0.0
    net_cash_flow_slope: float = 0.0
    projected_balance: float = 0.0
    burn_rate: float = Field(
        default=float("inf"),
        description="Months until the balance reaches zero; inf when not burning"
    )
    trend: CashFlowTrend = CashFlowTrend.STABLE


class WhatIfScenario(BaseModel):
    name: str
    description: str
    projections: list[MonthlyData]
    total_impact: float
    recommendation: str


class ScenarioComparison(BaseModel):
    best_case: WhatIfScenario
    worst_case: WhatIfScenario
    summary: str


# =============================================================================
# GOALS
# =============================================================================

class GoalHealth(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    BEHIND = "behind"
    CRITICAL = "critical"


class GoalMilestone(BaseModel):
    """A checkpoint at `percentage` of a goal's target."""

    title: str = Field(..., min_length=1, max_length=100)
    percentage: float = Field(..., gt=0, le=100)


class MilestoneStatus(BaseModel):
    title: str
    percentage: float
    target_amount: float
    is_achieved: bool
    progress_percentage: float = Field(
        description="Progress towards this milestone, capped at 100"
    )


class MilestoneProgress(BaseModel):
    milestones: list[MilestoneStatus] = Field(default_factory=list)
    completed_count: int = 0
    next_milestone: Optional[MilestoneStatus] = None


class GoalAnalytics(BaseModel):
    goal_id: UUID
    goal_name: str
    progress_percentage: float
    remaining_amount: float
    days_until_deadline: Optional[int] = None
    months_until_deadline: Optional[int] = None
    required_monthly_savings: float = 0.0
    required_weekly_savings: float = 0.0
    required_daily_savings: float = 0.0
    average_monthly_contribution: float = 0.0
    contribution_count: int = 0
    estimated_months_to_complete: int = 0
    projected_completion_date: Optional[date] = None
    is_on_track: bool = True
    health: GoalHealth = GoalHealth.GOOD
    milestones: MilestoneProgress = Field(default_factory=MilestoneProgress)
    recommendation: str = ""


class SavingsTotals(BaseModel):
    current_amount: float = 0.0
    target_amount: float = 0.0
    progress_percentage: float = 0.0


# =============================================================================
# REPORTS
# =============================================================================

class IncomeStatement(BaseModel):
    """Profit & loss of one period, compared with the period before it."""

    revenue_total: float = 0.0
    revenue_by_category: dict[str, float] = Field(default_factory=dict)
    revenue_growth: float = 0.0
    expense_total: float = 0.0
    expenses_by_category: dict[str, float] = Field(default_factory=dict)
    operating_expenses: float = 0.0
    non_operating_expenses: float = 0.0
    expense_growth: float = 0.0
    gross_income: float = 0.0
    operating_income: float = 0.0
    net_income: float = 0.0
    net_margin: float = 0.0
    previous_revenue: float = 0.0
    previous_expenses: float = 0.0
    previous_net: float = 0.0


class CashFlowStatement(BaseModel):
    income: float = 0.0
    expenses: float = 0.0
    operating_cash_flow: float = 0.0
    net_cash_flow: float = 0.0
    beginning_balance: float = 0.0
    ending_balance: float = 0.0


class NetWorthPoint(BaseModel):
    month: str
    month_end: date
    net_worth: float
    change: float = 0.0


class SpendingPeriod(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class SpendingPeriodTotal(BaseModel):
    period: str
    amount: float
    transaction_count: int


class ComparisonTrend(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class CategoryComparison(BaseModel):
    category_name: str
    current_amount: float
    previous_amount: float
    change: float
    change_percent: float
    trend: ComparisonTrend


# =============================================================================
# UNUSUAL SPENDING
# =============================================================================

class CategorySpendingPattern(BaseModel):
    """Running mean and population standard deviation of one category's expenses."""

    category_id: UUID
    average_amount: float = 0.0
    standard_deviation: float = 0.0
    transaction_count: int = 0
    last_date: Optional[date] = None


class TransactionAnalysis(BaseModel):
    transaction_id: UUID
    category_id: UUID
    amount: float
    date: date
    is_unusual: bool = False
    deviation_percentage: float = 0.0
    average_amount: Optional[float] = None


class SpendingInsights(BaseModel):
    categories_tracked: int = 0
    average_transactions_per_category: float = 0.0
    most_variable_category_id: Optional[UUID] = None
    most_variable_standard_deviation: float = 0.0
