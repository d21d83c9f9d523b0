"""Tests for savings goal analytics."""

import pytest
from datetime import date
from decimal import Decimal

from pydantic import ValidationError

from budget_manager.analytics import (
    calculate_goal_analytics,
    calculate_total_savings,
    default_milestones,
    milestone_progress,
)
from budget_manager.models.analytics import GoalHealth, GoalMilestone
from budget_manager.models.finance import ContributionSource, GoalContribution, SavingsGoal

from tests.factories import make_goal

AS_OF = date(2025, 10, 1)


def _goal(owner_id, target, current, deadline=None):
    return SavingsGoal(
        owner_id=owner_id,
        name="Laptop",
        target_amount=Decimal(target),
        current_amount=Decimal(current),
        deadline=deadline,
    )


def _contribution(goal, amount, day):
    return GoalContribution(
        goal_id=goal.id,
        amount=Decimal(amount),
        contribution_date=day,
        source=ContributionSource.MANUAL,
    )


class TestGoalAnalytics:
    """Tests for calculate_goal_analytics."""

    def test_on_track_goal(self, owner_id):
        goal = _goal(owner_id, "1200", "600", deadline=date(2026, 4, 1))
        contributions = [_contribution(goal, "600", date(2025, 7, 1))]

        result = calculate_goal_analytics(goal, contributions, AS_OF)

        assert result.progress_percentage == 50
        assert result.days_until_deadline == 182
        assert result.months_until_deadline == 6
        assert result.required_monthly_savings == 100
        assert result.required_daily_savings == 600 / 182
        assert result.average_monthly_contribution == 200
        assert result.estimated_months_to_complete == 3
        assert result.projected_completion_date == date(2026, 1, 1)
        assert result.is_on_track
        assert result.health == GoalHealth.GOOD
        assert result.recommendation.startswith("✅")

    def test_behind_goal(self, owner_id):
        goal = _goal(owner_id, "1200", "100", deadline=date(2026, 4, 1))
        contributions = [_contribution(goal, "100", date(2025, 9, 1))]

        result = calculate_goal_analytics(goal, contributions, AS_OF)

        assert not result.is_on_track
        assert result.health == GoalHealth.BEHIND

    def test_critical_when_deadline_close(self, owner_id):
        goal = _goal(owner_id, "1000", "200", deadline=date(2025, 10, 20))
        result = calculate_goal_analytics(goal, [], AS_OF)
        assert result.health == GoalHealth.CRITICAL
        assert result.recommendation.startswith("🚨")

    def test_deadline_within_a_month(self, owner_id):
        """Test the remainder falls due this month when fewer than 30 days are left."""
        goal = _goal(owner_id, "1000", "600", deadline=date(2025, 10, 21))

        result = calculate_goal_analytics(goal, [], AS_OF)

        assert result.months_until_deadline == 0
        assert result.required_daily_savings == 20
        assert result.required_monthly_savings == 400
        assert not result.is_on_track
        assert result.health == GoalHealth.BEHIND

    def test_rule_covers_short_deadline(self, owner_id):
        goal = make_goal(owner_id, target="1000", current="600", amount="500")
        goal.deadline = date(2025, 10, 21)

        result = calculate_goal_analytics(goal, [], AS_OF)

        assert result.is_on_track
        assert result.health == GoalHealth.GOOD

    def test_missed_deadline_not_on_track(self, owner_id):
        goal = _goal(owner_id, "1000", "600", deadline=date(2025, 9, 1))
        result = calculate_goal_analytics(goal, [], AS_OF)
        assert result.required_daily_savings == 0
        assert not result.is_on_track

    def test_excellent_near_completion(self, owner_id):
        goal = _goal(owner_id, "1000", "950", deadline=date(2025, 10, 20))
        assert calculate_goal_analytics(goal, [], AS_OF).health == GoalHealth.EXCELLENT

    def test_estimate_from_auto_contribution_rule(self, owner_id):
        """Without contribution history the rule's monthly amount drives the estimate."""
        goal = make_goal(owner_id, target="1000", current="250", amount="100")
        result = calculate_goal_analytics(goal, [], AS_OF)

        assert result.estimated_months_to_complete == 8
        assert result.projected_completion_date == date(2026, 6, 1)
        assert result.days_until_deadline is None

    def test_no_deadline_no_rate(self, owner_id):
        result = calculate_goal_analytics(_goal(owner_id, "500", "0"), [], AS_OF)
        assert result.required_monthly_savings == 0
        assert result.estimated_months_to_complete == 0
        assert result.projected_completion_date is None
        assert result.is_on_track


class TestMilestones:
    """Tests for milestone progress."""

    def test_default_quarter_milestones(self, owner_id):
        progress = milestone_progress(_goal(owner_id, "1000", "600"))

        assert [m.percentage for m in progress.milestones] == [25, 50, 75, 100]
        assert progress.completed_count == 2
        assert progress.next_milestone.percentage == 75
        assert progress.next_milestone.target_amount == 750
        assert progress.next_milestone.progress_percentage == pytest.approx(80)
        assert progress.milestones[0].progress_percentage == 100

    def test_custom_milestones_sorted(self, owner_id):
        milestones = [
            GoalMilestone(title="Car", percentage=80),
            GoalMilestone(title="Deposit", percentage=20),
        ]

        progress = milestone_progress(_goal(owner_id, "5000", "1000"), milestones)

        assert [m.title for m in progress.milestones] == ["Deposit", "Car"]
        assert progress.milestones[0].is_achieved
        assert progress.next_milestone.title == "Car"

    def test_all_achieved(self, owner_id):
        progress = milestone_progress(_goal(owner_id, "1000", "1000"))
        assert progress.completed_count == 4
        assert progress.next_milestone is None

    def test_goal_analytics_includes_milestones(self, owner_id):
        goal = _goal(owner_id, "1000", "300")
        result = calculate_goal_analytics(goal, [], AS_OF, milestones=default_milestones()[:2])
        assert result.milestones.completed_count == 1
        assert result.milestones.next_milestone.title == "50% saved"

    def test_percentage_must_be_in_range(self):
        with pytest.raises(ValidationError):
            GoalMilestone(title="Too far", percentage=120)


class TestTotalSavings:
    """Tests for calculate_total_savings."""

    def test_totals(self, owner_id):
        totals = calculate_total_savings([
            _goal(owner_id, "1000", "250"),
            _goal(owner_id, "3000", "750"),
        ])
        assert totals.current_amount == 1000
        assert totals.target_amount == 4000
        assert totals.progress_percentage == 25

    def test_no_goals(self):
        assert calculate_total_savings([]).progress_percentage == 0
