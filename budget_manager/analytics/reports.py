"""
Financial Reports

Statement-style aggregations over transaction lists:
- income statement with growth against a previous period
- cash-flow statement
- net worth per month
- spending per day, week or month
- category comparison between two periods

Operating expenses are the expenses of needs categories (see
allocation.classify_category). This package tracks no assets or loans, so
net worth is the opening balance plus every transaction to date.
"""

from datetime import date
from typing import Iterable, Optional, Sequence

from dateutil.relativedelta import relativedelta

from budget_manager.analytics.aggregation import period_window
from budget_manager.analytics.allocation import classify_category
from budget_manager.models.analytics import (
    CashFlowStatement,
    CategoryComparison,
    ComparisonTrend,
    IncomeStatement,
    NetWorthPoint,
    SpendingPeriod,
    SpendingPeriodTotal,
)
from budget_manager.models.finance import (
    BudgetPeriod,
    Category,
    SpendingBucket,
    Transaction,
    TransactionType,
)

UNCATEGORIZED = "Uncategorized"

# Changes within this many percent count as stable
COMPARISON_STABLE_PCT = 5.0

PERIOD_KEY_FORMATS = {
    SpendingPeriod.DAY: "%Y-%m-%d",
    SpendingPeriod.WEEK: "%G-W%V",
    SpendingPeriod.MONTH: "%Y-%m",
}


def _total(transactions: Iterable[Transaction], type: TransactionType) -> float:
    return sum(float(t.amount) for t in transactions if t.type == type)


def _growth(current: float, previous: float) -> float:
    return ((current - previous) / previous) * 100 if previous > 0 else 0.0


def group_by_category_name(
    transactions: Iterable[Transaction],
    categories: Sequence[Category],
) -> dict[str, float]:
    """Sum of amounts per category name; unknown categories are 'Uncategorized'."""
    names = {c.id: c.name for c in categories}
    totals: dict[str, float] = {}
    for txn in transactions:
        name = names.get(txn.category_id, UNCATEGORIZED)
        totals[name] = totals.get(name, 0.0) + float(txn.amount)
    return totals


def calculate_income_statement(
    transactions: Sequence[Transaction],
    categories: Sequence[Category],
    previous_transactions: Sequence[Transaction] = (),
) -> IncomeStatement:
    """
    Profit & loss for `transactions`.

    Args:
        transactions: Transactions of the reported period
        categories: Categories, for names and needs classification
        previous_transactions: Transactions of the period to compare with

    Returns:
        IncomeStatement with zero growth when the previous period is empty
    """
    income = [t for t in transactions if t.type == TransactionType.INCOME]
    expenses = [t for t in transactions if t.type == TransactionType.EXPENSE]

    revenue_total = _total(income, TransactionType.INCOME)
    expense_total = _total(expenses, TransactionType.EXPENSE)

    needs = {c.id for c in categories if classify_category(c) == SpendingBucket.NEEDS}
    operating = sum(float(t.amount) for t in expenses if t.category_id in needs)

    previous_revenue = _total(previous_transactions, TransactionType.INCOME)
    previous_expenses = _total(previous_transactions, TransactionType.EXPENSE)

    net_income = revenue_total - expense_total

    return IncomeStatement(
        revenue_total=revenue_total,
        revenue_by_category=group_by_category_name(income, categories),
        revenue_growth=_growth(revenue_total, previous_revenue),
        expense_total=expense_total,
        expenses_by_category=group_by_category_name(expenses, categories),
        operating_expenses=operating,
        non_operating_expenses=expense_total - operating,
        expense_growth=_growth(expense_total, previous_expenses),
        gross_income=net_income,
        operating_income=revenue_total - operating,
        net_income=net_income,
        net_margin=(net_income / revenue_total) * 100 if revenue_total > 0 else 0.0,
        previous_revenue=previous_revenue,
        previous_expenses=previous_expenses,
        previous_net=previous_revenue - previous_expenses,
    )


def calculate_cash_flow_statement(
    transactions: Sequence[Transaction],
    beginning_balance: float = 0.0,
) -> CashFlowStatement:
    income = _total(transactions, TransactionType.INCOME)
    expenses = _total(transactions, TransactionType.EXPENSE)
    operating = income - expenses
    return CashFlowStatement(
        income=income,
        expenses=expenses,
        operating_cash_flow=operating,
        net_cash_flow=operating,
        beginning_balance=beginning_balance,
        ending_balance=beginning_balance + operating,
    )


def calculate_net_worth_history(
    transactions: Sequence[Transaction],
    opening_balance: float,
    as_of: date,
    months: int = 12,
    opening_date: Optional[date] = None,
) -> list[NetWorthPoint]:
    """
    Net worth at the end of each calendar month from `as_of - months`
    through the month of `as_of`, oldest first.

    The current month is measured up to `as_of`. Transactions before
    `opening_date` are already part of the opening balance.
    """
    if months < 0:
        raise ValueError("months must not be negative")

    counted = [
        t for t in transactions
        if opening_date is None or t.date >= opening_date
    ]

    points: list[NetWorthPoint] = []
    for offset in range(months, -1, -1):
        start, end = period_window(BudgetPeriod.MONTHLY, as_of - relativedelta(months=offset))
        end = min(end, as_of)
        net = sum(
            float(t.amount) if t.type == TransactionType.INCOME else -float(t.amount)
            for t in counted
            if t.date <= end
        )
        net_worth = opening_balance + net
        change = net_worth - points[-1].net_worth if points else 0.0
        points.append(NetWorthPoint(
            month=start.strftime("%b %Y"),
            month_end=end,
            net_worth=net_worth,
            change=change,
        ))

    return points


def calculate_spending_patterns(
    transactions: Iterable[Transaction],
    group_by: SpendingPeriod = SpendingPeriod.DAY,
) -> list[SpendingPeriodTotal]:
    """Expense totals per day, ISO week or month, sorted by period key."""
    key_format = PERIOD_KEY_FORMATS[SpendingPeriod(group_by)]
    amounts: dict[str, float] = {}
    counts: dict[str, int] = {}

    for txn in transactions:
        if txn.type != TransactionType.EXPENSE:
            continue
        key = txn.date.strftime(key_format)
        amounts[key] = amounts.get(key, 0.0) + float(txn.amount)
        counts[key] = counts.get(key, 0) + 1

    return [
        SpendingPeriodTotal(period=key, amount=amounts[key], transaction_count=counts[key])
        for key in sorted(amounts)
    ]


def calculate_category_comparisons(
    current_transactions: Sequence[Transaction],
    previous_transactions: Sequence[Transaction],
    categories: Sequence[Category],
    type: TransactionType = TransactionType.EXPENSE,
) -> list[CategoryComparison]:
    """
    Per-category change between two periods, largest current amount first.

    A category with nothing in the previous period reports 0% change.
    """
    current = group_by_category_name(
        (t for t in current_transactions if t.type == type), categories
    )
    previous = group_by_category_name(
        (t for t in previous_transactions if t.type == type), categories
    )

    comparisons = []
    for name in set(current) | set(previous):
        current_amount = current.get(name, 0.0)
        previous_amount = previous.get(name, 0.0)
        change = current_amount - previous_amount
        change_percent = (change / previous_amount) * 100 if previous_amount > 0 else 0.0

        trend = ComparisonTrend.STABLE
        if abs(change_percent) > COMPARISON_STABLE_PCT:
            trend = ComparisonTrend.UP if change_percent > 0 else ComparisonTrend.DOWN

        comparisons.append(CategoryComparison(
            category_name=name,
            current_amount=current_amount,
            previous_amount=previous_amount,
            change=change,
            change_percent=change_percent,
            trend=trend,
        ))

    comparisons.sort(key=lambda c: (-c.current_amount, c.category_name))
    return comparisons
