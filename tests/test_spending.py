"""Tests for per-category spending patterns and unusual expense detection."""

import math
import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from budget_manager.analytics import (
    analyze_recent_transactions,
    analyze_transaction,
    build_spending_patterns,
    spending_insights,
    update_pattern,
)
from budget_manager.models.analytics import CategorySpendingPattern
from budget_manager.models.finance import Transaction, TransactionType


def _expense(owner_id, category_id, amount, day, type=TransactionType.EXPENSE):
    return Transaction(
        owner_id=owner_id,
        category_id=category_id,
        amount=Decimal(str(amount)),
        date=day,
        type=type,
    )


class TestSpendingPatterns:
    """Tests for the running mean and standard deviation."""

    def test_online_update_matches_population_statistics(self, owner_id):
        category_id = uuid4()
        patterns = build_spending_patterns([
            _expense(owner_id, category_id, 30, date(2025, 9, 3)),
            _expense(owner_id, category_id, 10, date(2025, 9, 1)),
            _expense(owner_id, category_id, 20, date(2025, 9, 2)),
        ])

        pattern = patterns[category_id]

        assert pattern.transaction_count == 3
        assert pattern.average_amount == pytest.approx(20)
        assert pattern.standard_deviation == pytest.approx(math.sqrt(200 / 3))
        assert pattern.last_date == date(2025, 9, 3)

    def test_income_ignored(self, owner_id):
        patterns = build_spending_patterns([
            _expense(owner_id, uuid4(), 3000, date(2025, 9, 1), TransactionType.INCOME),
        ])
        assert patterns == {}

    def test_update_returns_new_pattern(self):
        pattern = CategorySpendingPattern(category_id=uuid4())
        updated = update_pattern(pattern, 50.0)
        assert pattern.transaction_count == 0
        assert updated.average_amount == 50
        assert updated.standard_deviation == 0


class TestAnalyzeTransaction:
    """Tests for flagging a single expense."""

    @pytest.fixture
    def pattern(self):
        return CategorySpendingPattern(
            category_id=uuid4(), average_amount=100, standard_deviation=10, transaction_count=5,
        )

    def test_beyond_two_deviations_is_unusual(self, owner_id, pattern):
        analysis = analyze_transaction(
            _expense(owner_id, pattern.category_id, 130, date(2025, 10, 1)), pattern
        )
        assert analysis.is_unusual
        assert analysis.deviation_percentage == pytest.approx(30)
        assert analysis.average_amount == 100

    def test_within_two_deviations(self, owner_id, pattern):
        analysis = analyze_transaction(
            _expense(owner_id, pattern.category_id, 115, date(2025, 10, 1)), pattern
        )
        assert not analysis.is_unusual

    def test_short_history_never_flags(self, owner_id, pattern):
        short = pattern.model_copy(update={"transaction_count": 2})
        analysis = analyze_transaction(
            _expense(owner_id, pattern.category_id, 500, date(2025, 10, 1)), short
        )
        assert not analysis.is_unusual

    def test_no_pattern(self, owner_id):
        analysis = analyze_transaction(_expense(owner_id, uuid4(), 500, date(2025, 10, 1)), None)
        assert not analysis.is_unusual
        assert analysis.average_amount is None


class TestAnalyzeRecentTransactions:
    """Tests for replaying recent expenses against earlier history."""

    def test_spike_flagged_against_history(self, owner_id):
        groceries = uuid4()
        history = [
            _expense(owner_id, groceries, amount, day)
            for amount, day in [
                (100, date(2025, 9, 1)),
                (110, date(2025, 9, 8)),
                (90, date(2025, 9, 15)),
                (100, date(2025, 9, 22)),
            ]
        ]
        recent = [
            _expense(owner_id, groceries, 400, date(2025, 10, 28)),
            _expense(owner_id, groceries, 100, date(2025, 10, 5)),
            _expense(owner_id, groceries, 900, date(2025, 11, 2)),
            _expense(owner_id, groceries, 5000, date(2025, 10, 6), TransactionType.INCOME),
        ]

        analyses = analyze_recent_transactions(history + recent, as_of=date(2025, 10, 31), days=30)

        assert [a.date for a in analyses] == [date(2025, 10, 28), date(2025, 10, 5)]
        assert analyses[0].is_unusual
        assert analyses[0].deviation_percentage == pytest.approx(300)
        assert not analyses[1].is_unusual

    def test_nothing_recent(self, owner_id):
        old = _expense(owner_id, uuid4(), 100, date(2025, 1, 1))
        assert analyze_recent_transactions([old], as_of=date(2025, 10, 31)) == []


class TestSpendingInsights:
    """Tests for spending_insights."""

    def test_most_variable_category(self, owner_id):
        steady, erratic = uuid4(), uuid4()
        patterns = build_spending_patterns([
            _expense(owner_id, steady, 50, date(2025, 9, 1)),
            _expense(owner_id, steady, 50, date(2025, 9, 2)),
            _expense(owner_id, erratic, 10, date(2025, 9, 1)),
            _expense(owner_id, erratic, 30, date(2025, 9, 2)),
        ])

        insights = spending_insights(patterns)

        assert insights.categories_tracked == 2
        assert insights.average_transactions_per_category == 2
        assert insights.most_variable_category_id == erratic
        assert insights.most_variable_standard_deviation == pytest.approx(10)

    def test_no_patterns(self):
        insights = spending_insights({})
        assert insights.categories_tracked == 0
        assert insights.most_variable_category_id is None
