"""
Due-Item Selector

Filters scheduled obligations against an injected `as_of` date. Nothing
here reads the clock.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Sequence, TypeVar

from budget_manager.models.finance import (
    AutoContribution,
    RecurringTransaction,
    SavingsGoal,
    ScheduledObligation,
    TransactionType,
)
from budget_manager.models.scheduling import RecurringStats
from budget_manager.scheduling.frequency import monthly_equivalent

ObligationT = TypeVar("ObligationT", bound=ScheduledObligation)


def is_due(item: ScheduledObligation, as_of: date) -> bool:
    return item.is_active and item.next_occurrence <= as_of


def select_due(items: Iterable[ObligationT], as_of: date) -> list[ObligationT]:
    """Active items whose next occurrence is on or before `as_of`, in input order."""
    return [item for item in items if is_due(item, as_of)]


def select_upcoming(
    items: Iterable[ObligationT],
    as_of: date,
    days: int = 7,
) -> list[ObligationT]:
    """Active items falling due within the next `days` days, soonest first."""
    horizon = as_of + timedelta(days=days)
    upcoming = [
        item for item in items
        if item.is_active and as_of <= item.next_occurrence <= horizon
    ]
    # sorted() is stable: ties keep input order
    return sorted(upcoming, key=lambda item: item.next_occurrence)


def recurring_stats(items: Sequence[RecurringTransaction], as_of: date) -> RecurringStats:
    """Counts and monthly-equivalent totals of a user's recurring transactions."""
    income = Decimal("0")
    expense = Decimal("0")
    active = 0

    for item in items:
        if not item.is_active:
            continue
        active += 1
        monthly = monthly_equivalent(item.amount, item.frequency)
        if item.type == TransactionType.INCOME:
            income += monthly
        else:
            expense += monthly

    return RecurringStats(
        active_count=active,
        inactive_count=len(items) - active,
        due_count=len(select_due(items, as_of)),
        total_monthly_income=float(round(income, 2)),
        total_monthly_expense=float(round(expense, 2)),
    )


def auto_contribution_items(goals: Iterable[SavingsGoal]) -> list[AutoContribution]:
    """Active auto-contribution rules of goals that still need money."""
    return [
        goal.auto_contribution
        for goal in goals
        if goal.auto_contribution is not None
        and goal.auto_contribution.is_active
        and not goal.is_completed
    ]
