"""
Category Aggregation & Budget Status

Pure functions over transaction lists. Inputs are storage rows, outputs are
view models from models/analytics.py.
"""

from calendar import monthrange
from datetime import date
from typing import Iterable, Optional, Sequence

from budget_manager.config import get_settings
from budget_manager.models.analytics import (
    BudgetWithSpending,
    CategorySum,
    CategoryTotals,
)
from budget_manager.models.finance import (
    BudgetPeriod,
    BudgetStatus,
    Category,
    CategoryBudget,
    Transaction,
    TransactionType,
)


def aggregate_by_category(transactions: Iterable[Transaction]) -> CategoryTotals:
    """
    Sum income and expense per category.

    An empty input gives all-zero totals.
    """
    totals = CategoryTotals()

    for txn in transactions:
        bucket = totals.by_category.setdefault(
            txn.category_id, CategorySum(category_id=txn.category_id)
        )
        amount = float(txn.amount)
        if txn.type == TransactionType.INCOME:
            bucket.income += amount
            totals.total_income += amount
        else:
            bucket.expense += amount
            totals.total_expense += amount
        bucket.transaction_count += 1
        totals.transaction_count += 1

    return totals


def period_window(period: BudgetPeriod, as_of: date) -> tuple[date, date]:
    """Calendar month or calendar year containing `as_of`, inclusive."""
    if period == BudgetPeriod.YEARLY:
        return date(as_of.year, 1, 1), date(as_of.year, 12, 31)
    last_day = monthrange(as_of.year, as_of.month)[1]
    return date(as_of.year, as_of.month, 1), date(as_of.year, as_of.month, last_day)


def budget_status(
    spent: float,
    amount: float,
    warning_pct: Optional[float] = None,
    exceeded_pct: Optional[float] = None,
) -> tuple[float, BudgetStatus]:
    """
    Percentage used and the derived status.

    Thresholds default to AppSettings (80% warning, 100% exceeded).

    Returns: (percentage, status)
    """
    if warning_pct is None or exceeded_pct is None:
        app = get_settings().app
        warning_pct = app.budget_warning_threshold_pct if warning_pct is None else warning_pct
        exceeded_pct = app.budget_exceeded_threshold_pct if exceeded_pct is None else exceeded_pct

    percentage = (spent / amount) * 100 if amount > 0 else 0.0

    if percentage >= exceeded_pct:
        return percentage, BudgetStatus.EXCEEDED
    if percentage >= warning_pct:
        return percentage, BudgetStatus.WARNING
    return percentage, BudgetStatus.SAFE


def budgets_with_spending(
    budgets: Sequence[CategoryBudget],
    transactions: Sequence[Transaction],
    categories: Sequence[Category],
    as_of: date,
    warning_pct: Optional[float] = None,
    exceeded_pct: Optional[float] = None,
) -> list[BudgetWithSpending]:
    """Evaluate each budget against expenses in its current period."""
    names = {c.id: c.name for c in categories}
    results = []

    for budget in budgets:
        start, end = period_window(budget.period, as_of)
        spent = sum(
            float(t.amount)
            for t in transactions
            if t.type == TransactionType.EXPENSE
            and t.category_id == budget.category_id
            and start <= t.date <= end
        )
        amount = float(budget.amount)
        percentage, status = budget_status(spent, amount, warning_pct, exceeded_pct)
        results.append(BudgetWithSpending(
            budget_id=budget.id,
            category_id=budget.category_id,
            category_name=names.get(budget.category_id, "Uncategorized"),
            period=budget.period,
            period_start=start,
            period_end=end,
            amount=amount,
            spent=spent,
            remaining=amount - spent,
            percentage=percentage,
            status=status,
        ))

    return results
