"""
Unusual Spending Detection

Keeps a running mean and population standard deviation of expense amounts
per category (Welford's online update) and flags an expense that lies more
than UNUSUAL_STD_DEVIATIONS standard deviations from its category's mean.

Patterns are plain values: `update_pattern` returns a new pattern, so the
caller decides whether and where to keep them.
"""

import math
from datetime import date, timedelta
from typing import Iterable, Mapping, Optional
from uuid import UUID

from budget_manager.models.analytics import (
    CategorySpendingPattern,
    SpendingInsights,
    TransactionAnalysis,
)
from budget_manager.models.finance import Transaction, TransactionType

UNUSUAL_STD_DEVIATIONS = 2.0

# Fewer prior expenses than this never flag anything
MIN_PATTERN_TRANSACTIONS = 3


def update_pattern(
    pattern: CategorySpendingPattern,
    amount: float,
    day: Optional[date] = None,
) -> CategorySpendingPattern:
    """Fold one expense into a pattern."""
    count = pattern.transaction_count + 1
    average = pattern.average_amount + (amount - pattern.average_amount) / count
    old_variance = pattern.standard_deviation ** 2
    variance = (
        pattern.transaction_count * old_variance
        + (amount - pattern.average_amount) * (amount - average)
    ) / count
    return pattern.model_copy(update={
        "average_amount": average,
        "standard_deviation": math.sqrt(max(0.0, variance)),
        "transaction_count": count,
        "last_date": day or pattern.last_date,
    })


def build_spending_patterns(
    transactions: Iterable[Transaction],
) -> dict[UUID, CategorySpendingPattern]:
    """Patterns of every category with expenses, keyed by category id."""
    patterns: dict[UUID, CategorySpendingPattern] = {}
    for txn in sorted(transactions, key=lambda t: t.date):
        if txn.type != TransactionType.EXPENSE:
            continue
        pattern = patterns.get(txn.category_id) or CategorySpendingPattern(category_id=txn.category_id)
        patterns[txn.category_id] = update_pattern(pattern, float(txn.amount), txn.date)
    return patterns


def analyze_transaction(
    transaction: Transaction,
    pattern: Optional[CategorySpendingPattern],
) -> TransactionAnalysis:
    """Compare one expense with the pattern of the expenses before it."""
    amount = float(transaction.amount)
    analysis = TransactionAnalysis(
        transaction_id=transaction.id,
        category_id=transaction.category_id,
        amount=amount,
        date=transaction.date,
    )
    if pattern is None or pattern.transaction_count == 0:
        return analysis

    deviation = abs(amount - pattern.average_amount)
    analysis.average_amount = pattern.average_amount
    if pattern.average_amount > 0:
        analysis.deviation_percentage = (deviation / pattern.average_amount) * 100
    analysis.is_unusual = (
        pattern.transaction_count >= MIN_PATTERN_TRANSACTIONS
        and deviation > UNUSUAL_STD_DEVIATIONS * pattern.standard_deviation
    )
    return analysis


def analyze_recent_transactions(
    transactions: Iterable[Transaction],
    as_of: date,
    days: int = 30,
) -> list[TransactionAnalysis]:
    """
    Analyse the expenses of the last `days` days up to `as_of`.

    Expenses are replayed oldest first, so each one is judged against the
    category history before it, including history older than the window.

    Returns:
        Analyses inside the window, newest first
    """
    window_start = as_of - timedelta(days=days)
    patterns: dict[UUID, CategorySpendingPattern] = {}
    analyses = []

    expenses = sorted(
        (t for t in transactions if t.type == TransactionType.EXPENSE and t.date <= as_of),
        key=lambda t: t.date,
    )
    for txn in expenses:
        pattern = patterns.get(txn.category_id)
        if txn.date >= window_start:
            analyses.append(analyze_transaction(txn, pattern))
        patterns[txn.category_id] = update_pattern(
            pattern or CategorySpendingPattern(category_id=txn.category_id),
            float(txn.amount),
            txn.date,
        )

    analyses.reverse()
    return analyses


def spending_insights(patterns: Mapping[UUID, CategorySpendingPattern]) -> SpendingInsights:
    if not patterns:
        return SpendingInsights()

    values = list(patterns.values())
    total = sum(p.transaction_count for p in values)
    most_variable = max(values, key=lambda p: p.standard_deviation)

    insights = SpendingInsights(
        categories_tracked=len(values),
        average_transactions_per_category=total / len(values),
    )
    if most_variable.standard_deviation > 0:
        insights.most_variable_category_id = most_variable.category_id
        insights.most_variable_standard_deviation = most_variable.standard_deviation
    return insights
