"""
50/30/20 Budget Allocation

Splits expenses into needs and wants, treats what is left of income as
savings, and measures each against the 50/30/20 targets.

Classification is driven by `Category.bucket`. Categories without a bucket
fall back to keyword matching on the name; callers can pass their own
classifier.

A budget is unbalanced when needs run above 110% of target or wants above
120% of target.
"""

from datetime import date
from typing import Callable, Optional, Sequence

from budget_manager.models.analytics import (
    BudgetAllocation,
    BudgetSummary,
    CategoryAllocation,
    ZeroBasedBudget,
)
from budget_manager.models.finance import (
    Category,
    SpendingBucket,
    Transaction,
    TransactionType,
)
from budget_manager.validation import validate_percentages

NEEDS_SHARE = 0.5
WANTS_SHARE = 0.3
SAVINGS_SHARE = 0.2

NEEDS_UNBALANCED_PCT = 110.0
WANTS_UNBALANCED_PCT = 120.0

NEEDS_KEYWORDS = (
    "rent", "mortgage", "utilities", "groceries", "food", "health",
    "insurance", "transportation", "gas", "fuel", "medicine",
    "medical", "electricity", "water", "internet", "phone",
    "childcare", "education", "debt", "loan", "emi",
)
SAVINGS_KEYWORDS = (
    "savings", "investment", "retirement", "emergency", "fund",
    "stock", "mutual", "bond", "crypto", "deposit",
)

Classifier = Callable[[Category], SpendingBucket]


def classify_category(category: Category) -> SpendingBucket:
    """Bucket of a category: its metadata if set, else a name keyword match."""
    if category.bucket is not None:
        return category.bucket

    name = category.name.lower()
    if any(keyword in name for keyword in NEEDS_KEYWORDS):
        return SpendingBucket.NEEDS
    if any(keyword in name for keyword in SAVINGS_KEYWORDS):
        return SpendingBucket.SAVINGS
    return SpendingBucket.WANTS


def calculate_503020_allocation(total_income: float) -> BudgetAllocation:
    return BudgetAllocation(
        needs=total_income * NEEDS_SHARE,
        wants=total_income * WANTS_SHARE,
        savings=total_income * SAVINGS_SHARE,
    )


def calculate_custom_allocation(
    total_income: float,
    needs_percentage: float,
    wants_percentage: float,
    savings_percentage: float,
) -> BudgetAllocation:
    """
    Allocation with user-chosen percentages.

    Raises:
        ValidationError: If the percentages don't add up to 100
    """
    validate_percentages(needs_percentage, wants_percentage, savings_percentage)
    return BudgetAllocation(
        needs=total_income * needs_percentage / 100,
        wants=total_income * wants_percentage / 100,
        savings=total_income * savings_percentage / 100,
    )


def _utilization(spent: float, target: float) -> float:
    return (spent / target) * 100 if target > 0 else 0.0


def generate_budget_summary(
    transactions: Sequence[Transaction],
    categories: Sequence[Category],
    total_income: float,
    start: date,
    end: date,
    classifier: Optional[Classifier] = None,
) -> BudgetSummary:
    """
    50/30/20 health of the expenses between `start` and `end` (inclusive).

    Args:
        transactions: Candidate transactions (filtered to the window here)
        categories: Categories of the transactions
        total_income: Monthly income the allocation is based on
        start: First day of the window
        end: Last day of the window
        classifier: Overrides classify_category

    Returns:
        BudgetSummary with utilizations, balance flag and recommendations
    """
    classify = classifier or classify_category
    allocation = calculate_503020_allocation(total_income)
    by_id = {c.id: c for c in categories}

    breakdown: dict = {}
    spending = {bucket: 0.0 for bucket in SpendingBucket}

    for txn in transactions:
        if txn.type != TransactionType.EXPENSE or not (start <= txn.date <= end):
            continue
        category = by_id.get(txn.category_id)
        if category is None:
            continue

        bucket = classify(category)
        amount = float(txn.amount)
        entry = breakdown.setdefault(category.id, CategoryAllocation(
            category_id=category.id,
            category_name=category.name,
            bucket=bucket,
        ))
        entry.current_spending += amount
        spending[bucket] += amount

    targets = {
        SpendingBucket.NEEDS: allocation.needs,
        SpendingBucket.WANTS: allocation.wants,
        SpendingBucket.SAVINGS: allocation.savings,
    }
    for entry in breakdown.values():
        entry.allocated_budget = targets[entry.bucket]
        entry.utilization_percentage = _utilization(entry.current_spending, entry.allocated_budget)

    needs_spending = spending[SpendingBucket.NEEDS]
    wants_spending = spending[SpendingBucket.WANTS]
    savings_amount = total_income - needs_spending - wants_spending

    needs_utilization = _utilization(needs_spending, allocation.needs)
    wants_utilization = _utilization(wants_spending, allocation.wants)
    savings_utilization = _utilization(savings_amount, allocation.savings)

    is_balanced = (
        needs_utilization <= NEEDS_UNBALANCED_PCT
        and wants_utilization <= WANTS_UNBALANCED_PCT
    )

    return BudgetSummary(
        total_income=total_income,
        allocation=allocation,
        category_breakdown=list(breakdown.values()),
        needs_spending=needs_spending,
        wants_spending=wants_spending,
        savings_amount=savings_amount,
        needs_utilization=needs_utilization,
        wants_utilization=wants_utilization,
        savings_utilization=savings_utilization,
        is_balanced=is_balanced,
        recommendations=generate_recommendations(
            allocation,
            needs_spending,
            wants_spending,
            savings_amount,
        ),
    )


def generate_recommendations(
    allocation: BudgetAllocation,
    needs_spending: float,
    wants_spending: float,
    savings_amount: float,
) -> list[str]:
    """Plain-language advice derived from bucket utilizations."""
    recommendations = []
    needs_utilization = _utilization(needs_spending, allocation.needs)
    wants_utilization = _utilization(wants_spending, allocation.wants)
    savings_utilization = _utilization(savings_amount, allocation.savings)

    if needs_utilization > NEEDS_UNBALANCED_PCT:
        excess = needs_spending - allocation.needs
        recommendations.append(
            f"⚠️ Needs spending is {needs_utilization:.0f}% of budget. "
            f"Consider reducing by ${excess:.2f} or increasing income."
        )
    elif needs_utilization < 40:
        recommendations.append(
            f"✅ Needs spending is well under control at {needs_utilization:.0f}%."
        )

    if wants_utilization > WANTS_UNBALANCED_PCT:
        excess = wants_spending - allocation.wants
        recommendations.append(
            f"⚠️ Wants spending is {wants_utilization:.0f}% of budget. "
            f"Cut back by ${excess:.2f} on discretionary expenses."
        )
    elif wants_utilization > 100:
        recommendations.append(
            "⚡ Wants spending is slightly over. Consider reducing dining out or shopping."
        )
    elif wants_utilization < 50:
        recommendations.append(
            "💡 You have room in your wants budget. Consider reallocating it to savings."
        )

    if savings_utilization < 50:
        shortfall = allocation.savings - savings_amount
        recommendations.append(
            f"📈 You're saving less than recommended. "
            f"Try to save an additional ${shortfall:.2f} per month."
        )
    elif savings_utilization > 100:
        recommendations.append(
            "🎉 You're exceeding your savings target. Consider raising it."
        )
    else:
        recommendations.append(
            f"✅ Savings on track at {savings_utilization:.0f}% of target."
        )

    return recommendations


def calculate_zero_based_budget(
    total_income: float,
    expenses: dict[str, float],
) -> ZeroBasedBudget:
    """Every unit of income assigned: what is allocated and what is left."""
    allocated = sum(expenses.values())
    return ZeroBasedBudget(
        allocated=allocated,
        unallocated=total_income - allocated,
        categories=dict(expenses),
    )
