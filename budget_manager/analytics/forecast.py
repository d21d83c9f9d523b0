"""
Cash-Flow Forecasting

Projects the balance forward from average monthly income and expenses over
a history window, and derives:
- a trend (improving / stable / declining)
- a burn rate: months until the balance reaches zero, `math.inf` when the
  average net cash flow is not negative
- what-if scenarios layered on top of a base projection

DESIGN DECISION: The projection is linear, `balance + avg_net * k` for
month k. The least-squares slope of the historical net cash flow is
reported alongside it but does not bend the projection.
"""

import math
from datetime import date
from typing import Optional, Sequence

from dateutil.relativedelta import relativedelta

from budget_manager.analytics.aggregation import period_window
from budget_manager.config import get_settings
from budget_manager.models.analytics import (
    CashFlowProjection,
    CashFlowTrend,
    MonthlyData,
    ScenarioComparison,
    WhatIfScenario,
)
from budget_manager.models.finance import BudgetPeriod, Transaction, TransactionType

# Average net cash flow above this share of average income counts as improving
TREND_IMPROVING_RATIO = 0.10

MONTH_LABEL_FORMAT = "%b %Y"


def _month_label(day: date) -> str:
    return day.strftime(MONTH_LABEL_FORMAT)


def monthly_history(
    transactions: Sequence[Transaction],
    current_balance: float,
    as_of: date,
    months: int,
) -> list[MonthlyData]:
    """
    Income, expenses and net flow for the `months` calendar months ending
    with the month of `as_of`, oldest first.

    `balance` is the end-of-month balance implied by `current_balance`.
    """
    history = []
    for offset in range(months - 1, -1, -1):
        start, end = period_window(BudgetPeriod.MONTHLY, as_of - relativedelta(months=offset))
        income = expenses = 0.0
        for txn in transactions:
            if start <= txn.date <= end:
                if txn.type == TransactionType.INCOME:
                    income += float(txn.amount)
                else:
                    expenses += float(txn.amount)
        history.append(MonthlyData(
            month=_month_label(start),
            income=income,
            expenses=expenses,
            net_cash_flow=income - expenses,
            balance=0.0,
        ))

    balance = current_balance
    for month in reversed(history):
        month.balance = balance
        balance -= month.net_cash_flow

    return history


def linear_slope(values: Sequence[float]) -> float:
    """Least-squares slope of `values` against their index."""
    n = len(values)
    if n < 2:
        return 0.0
    sum_x = sum(range(n))
    sum_y = sum(values)
    sum_xy = sum(i * y for i, y in enumerate(values))
    sum_x2 = sum(i * i for i in range(n))
    return (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)


def calculate_burn_rate(
    current_balance: float,
    monthly_expenses: float,
    monthly_income: float,
) -> float:
    """Months until the balance runs out; inf when not burning money."""
    net_cash_flow = monthly_income - monthly_expenses
    if net_cash_flow >= 0:
        return math.inf
    return max(0.0, current_balance) / abs(net_cash_flow)


def classify_trend(average_income: float, average_net_cash_flow: float) -> CashFlowTrend:
    if average_net_cash_flow > average_income * TREND_IMPROVING_RATIO:
        return CashFlowTrend.IMPROVING
    if average_net_cash_flow < 0:
        return CashFlowTrend.DECLINING
    return CashFlowTrend.STABLE


def generate_cash_flow_projection(
    transactions: Sequence[Transaction],
    current_balance: float,
    months: int,
    as_of: date,
    history_months: Optional[int] = None,
) -> CashFlowProjection:
    """
    Project the balance `months` months past `as_of`.

    Args:
        transactions: Historical transactions (any range; filtered here)
        current_balance: Balance on `as_of`
        months: Number of months to project
        as_of: Today's date
        history_months: Averaging window (defaults to AppSettings)

    Returns:
        CashFlowProjection with history, projections, trend and burn rate
    """
    if months < 1:
        raise ValueError("months must be at least 1")
    history_months = history_months or get_settings().app.forecast_history_months

    history = monthly_history(transactions, current_balance, as_of, history_months)
    average_income = sum(m.income for m in history) / history_months
    average_expenses = sum(m.expenses for m in history) / history_months
    average_net = average_income - average_expenses

    projections = []
    for k in range(1, months + 1):
        projections.append(MonthlyData(
            month=_month_label(as_of + relativedelta(months=k)),
            income=average_income,
            expenses=average_expenses,
            net_cash_flow=average_net,
            balance=current_balance + average_net * k,
        ))

    return CashFlowProjection(
        projections=projections,
        history=history,
        average_income=average_income,
        average_expenses=average_expenses,
        average_net_cash_flow=average_net,
        net_cash_flow_slope=linear_slope([m.net_cash_flow for m in history]),
        projected_balance=projections[-1].balance,
        burn_rate=calculate_burn_rate(current_balance, average_expenses, average_income),
        trend=classify_trend(average_income, average_net),
    )


# =============================================================================
# WHAT-IF SCENARIOS
# =============================================================================

def scenario_salary_increase(
    base: CashFlowProjection,
    increase_amount: float,
    start_month: int = 0,
) -> WhatIfScenario:
    projections = []
    for index, month in enumerate(base.projections):
        if index >= start_month:
            month = month.model_copy(update={
                "income": month.income + increase_amount,
                "net_cash_flow": month.net_cash_flow + increase_amount,
                "balance": month.balance + increase_amount * (index - start_month + 1),
            })
        projections.append(month)

    total_impact = increase_amount * max(0, len(projections) - start_month)
    return WhatIfScenario(
        name="Salary Increase",
        description=f"Impact of ${increase_amount:.2f} monthly income increase",
        projections=projections,
        total_impact=total_impact,
        recommendation=(
            f"This would improve your financial position by ${total_impact:.2f} "
            "over the projection period."
            if total_impact > 0
            else "Consider negotiating for a raise or exploring additional income sources."
        ),
    )


def scenario_loan_payoff(
    base: CashFlowProjection,
    loan_payment: float,
    remaining_months: int,
) -> WhatIfScenario:
    """Expenses drop by `loan_payment` once the loan is paid off."""
    projections = []
    for index, month in enumerate(base.projections):
        if index >= remaining_months:
            months_since_payoff = index - remaining_months + 1
            month = month.model_copy(update={
                "expenses": month.expenses - loan_payment,
                "net_cash_flow": month.net_cash_flow + loan_payment,
                "balance": month.balance + loan_payment * months_since_payoff,
            })
        projections.append(month)

    payoff_month = (
        projections[remaining_months].month
        if remaining_months < len(projections)
        else "beyond projection period"
    )
    total_impact = max(0.0, loan_payment * (len(projections) - remaining_months))
    return WhatIfScenario(
        name="Loan Payoff",
        description=f"Impact of completing loan payments by {payoff_month}",
        projections=projections,
        total_impact=total_impact,
        recommendation=(
            f"After paying off your loan, you'll free up ${loan_payment:.2f}/month, "
            f"improving your position by ${total_impact:.2f}."
        ),
    )


def scenario_expense_reduction(
    base: CashFlowProjection,
    reduction_amount: float,
    category: str,
) -> WhatIfScenario:
    projections = [
        month.model_copy(update={
            "expenses": month.expenses - reduction_amount,
            "net_cash_flow": month.net_cash_flow + reduction_amount,
            "balance": month.balance + reduction_amount * (index + 1),
        })
        for index, month in enumerate(base.projections)
    ]
    total_impact = reduction_amount * len(projections)
    return WhatIfScenario(
        name="Expense Reduction",
        description=f"Impact of reducing {category} by ${reduction_amount:.2f}/month",
        projections=projections,
        total_impact=total_impact,
        recommendation=(
            f"Cutting {category} expenses would save you ${total_impact:.2f} "
            "over the projection period."
        ),
    )


def scenario_new_expense(
    base: CashFlowProjection,
    expense_amount: float,
    expense_name: str,
) -> WhatIfScenario:
    projections = [
        month.model_copy(update={
            "expenses": month.expenses + expense_amount,
            "net_cash_flow": month.net_cash_flow - expense_amount,
            "balance": month.balance - expense_amount * (index + 1),
        })
        for index, month in enumerate(base.projections)
    ]
    total_impact = -expense_amount * len(projections)
    return WhatIfScenario(
        name="New Expense",
        description=f"Impact of adding {expense_name} at ${expense_amount:.2f}/month",
        projections=projections,
        total_impact=total_impact,
        recommendation=(
            f"This expense would reduce your savings by ${abs(total_impact):.2f}. "
            "Ensure it fits your budget."
            if total_impact < 0
            else "Review if this expense aligns with your financial goals."
        ),
    )


def scenario_emergency_fund(
    base: CashFlowProjection,
    monthly_savings: float,
    target_amount: float,
) -> WhatIfScenario:
    """Set aside `monthly_savings` each month until `target_amount` is reached."""
    if monthly_savings <= 0:
        raise ValueError("monthly_savings must be positive")

    projections = []
    accumulated = 0.0
    for month in base.projections:
        set_aside = min(monthly_savings, max(0.0, target_amount - accumulated))
        accumulated += set_aside
        projections.append(month.model_copy(update={
            "expenses": month.expenses + set_aside,
            "net_cash_flow": month.net_cash_flow - set_aside,
            "balance": month.balance - accumulated,
        }))

    months_to_target = math.ceil(target_amount / monthly_savings)
    total_impact = -min(target_amount, monthly_savings * len(projections))
    return WhatIfScenario(
        name="Emergency Fund",
        description=(
            f"Building ${target_amount:.2f} emergency fund at ${monthly_savings:.2f}/month"
        ),
        projections=projections,
        total_impact=total_impact,
        recommendation=(
            f"You can reach your emergency fund goal in {months_to_target} months."
            if months_to_target <= len(projections)
            else (
                f"At this rate, it will take {months_to_target} months to reach your goal. "
                "Consider increasing monthly contributions if possible."
            )
        ),
    )


def compare_scenarios(scenarios: Sequence[WhatIfScenario]) -> ScenarioComparison:
    """Best and worst scenario by total impact."""
    if not scenarios:
        raise ValueError("At least one scenario is required")

    best = max(scenarios, key=lambda s: s.total_impact)
    worst = min(scenarios, key=lambda s: s.total_impact)
    return ScenarioComparison(
        best_case=best,
        worst_case=worst,
        summary=(
            f"Best scenario: {best.name} (+${best.total_impact:.2f}). "
            f"Worst scenario: {worst.name} (${worst.total_impact:.2f})."
        ),
    )
