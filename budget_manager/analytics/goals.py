"""
Savings Goal Analytics

Progress, required savings rates, projected completion and a health
rating for a goal, computed against an injected `as_of` date.
"""

import math
from datetime import date
from typing import Optional, Sequence

from dateutil.relativedelta import relativedelta

from budget_manager.models.analytics import (
    GoalAnalytics,
    GoalHealth,
    GoalMilestone,
    MilestoneProgress,
    MilestoneStatus,
    SavingsTotals,
)
from budget_manager.models.finance import GoalContribution, SavingsGoal
from budget_manager.scheduling.frequency import MONTHLY_MULTIPLIERS

EXCELLENT_PROGRESS_PCT = 90.0
CRITICAL_DAYS_LEFT = 30
CRITICAL_PROGRESS_PCT = 50.0
DEFAULT_MILESTONE_PCTS = (25.0, 50.0, 75.0, 100.0)


def _months_between(start: date, end: date) -> int:
    """Whole calendar months from `start` to `end` (negative if end is earlier)."""
    delta = relativedelta(end, start)
    return delta.years * 12 + delta.months


def _monthly_rule_amount(goal: SavingsGoal) -> float:
    rule = goal.auto_contribution
    if rule is None or not rule.is_active or rule.amount <= 0:
        return 0.0
    return float(rule.amount * MONTHLY_MULTIPLIERS.get(rule.frequency, 1))


def calculate_goal_analytics(
    goal: SavingsGoal,
    contributions: Sequence[GoalContribution],
    as_of: date,
    milestones: Optional[Sequence[GoalMilestone]] = None,
) -> GoalAnalytics:
    """
    Analyse one goal.

    Args:
        goal: The goal
        contributions: Its contributions (any order)
        as_of: Today's date
        milestones: Checkpoints to track; quarter milestones when omitted

    Returns:
        GoalAnalytics view model
    """
    target = float(goal.target_amount)
    current = float(goal.current_amount)
    progress = (current / target) * 100 if target > 0 else 0.0
    remaining = float(goal.remaining_amount)

    days_left: Optional[int] = None
    months_left: Optional[int] = None
    if goal.deadline is not None:
        days_left = (goal.deadline - as_of).days
        months_left = _months_between(as_of, goal.deadline)

    # Less than a month left means the whole remainder is due this month.
    required_monthly = required_weekly = required_daily = 0.0
    if days_left is not None and days_left > 0:
        required_daily = remaining / days_left
        required_weekly = remaining / max(1.0, days_left / 7)
        required_monthly = remaining / max(1, months_left)

    average_monthly = 0.0
    if contributions:
        first = min(c.contribution_date for c in contributions)
        months_since_start = max(1, _months_between(first, as_of))
        average_monthly = current / months_since_start

    estimated_months = 0
    projected_completion: Optional[date] = None
    monthly_rate = average_monthly or _monthly_rule_amount(goal)
    if monthly_rate > 0:
        estimated_months = math.ceil(remaining / monthly_rate)
        projected_completion = as_of + relativedelta(months=estimated_months)

    is_on_track = True
    if days_left is not None and remaining > 0:
        is_on_track = days_left > 0 and monthly_rate >= required_monthly

    health = GoalHealth.GOOD
    if progress >= EXCELLENT_PROGRESS_PCT:
        health = GoalHealth.EXCELLENT
    elif days_left is not None:
        if days_left < CRITICAL_DAYS_LEFT and progress < CRITICAL_PROGRESS_PCT:
            health = GoalHealth.CRITICAL
        elif not is_on_track:
            health = GoalHealth.BEHIND

    return GoalAnalytics(
        goal_id=goal.id,
        goal_name=goal.name,
        progress_percentage=progress,
        remaining_amount=remaining,
        days_until_deadline=days_left,
        months_until_deadline=months_left,
        required_monthly_savings=required_monthly,
        required_weekly_savings=required_weekly,
        required_daily_savings=required_daily,
        average_monthly_contribution=average_monthly,
        contribution_count=len(contributions),
        estimated_months_to_complete=estimated_months,
        projected_completion_date=projected_completion,
        is_on_track=is_on_track,
        health=health,
        milestones=milestone_progress(goal, milestones),
        recommendation=_recommendation(
            goal, progress, is_on_track, required_monthly, monthly_rate, health
        ),
    )


def default_milestones() -> list[GoalMilestone]:
    return [GoalMilestone(title=f"{pct:.0f}% saved", percentage=pct) for pct in DEFAULT_MILESTONE_PCTS]


def milestone_progress(
    goal: SavingsGoal,
    milestones: Optional[Sequence[GoalMilestone]] = None,
) -> MilestoneProgress:
    """
    Where a goal stands against its milestones, lowest percentage first.

    A milestone is achieved once the goal's progress reaches its percentage.
    """
    if milestones is None:
        milestones = default_milestones()

    target = float(goal.target_amount)
    progress = (float(goal.current_amount) / target) * 100 if target > 0 else 0.0

    statuses = []
    for milestone in sorted(milestones, key=lambda m: m.percentage):
        achieved = progress >= milestone.percentage
        statuses.append(MilestoneStatus(
            title=milestone.title,
            percentage=milestone.percentage,
            target_amount=target * milestone.percentage / 100,
            is_achieved=achieved,
            progress_percentage=100.0 if achieved else progress / milestone.percentage * 100,
        ))

    return MilestoneProgress(
        milestones=statuses,
        completed_count=sum(1 for s in statuses if s.is_achieved),
        next_milestone=next((s for s in statuses if not s.is_achieved), None),
    )


def _recommendation(
    goal: SavingsGoal,
    progress: float,
    is_on_track: bool,
    required_monthly: float,
    monthly_rate: float,
    health: GoalHealth,
) -> str:
    if progress >= 100:
        return f"🎉 You've reached your {goal.name} goal! Consider setting a new one."
    if health == GoalHealth.CRITICAL:
        return (
            f"🚨 You need to save ${required_monthly:.2f}/month to meet your deadline. "
            "Consider extending the deadline or increasing contributions."
        )
    if health == GoalHealth.BEHIND:
        shortfall = required_monthly - monthly_rate
        return (
            f"⚠️ Increase monthly savings by ${shortfall:.2f} to stay on track, "
            "or adjust your deadline."
        )
    if is_on_track and progress > 25:
        return (
            f"✅ Keep contributing ${monthly_rate:.2f}/month and you'll reach "
            "your goal on time."
        )
    if progress < 10:
        return (
            f"🎯 Set up auto-contributions of ${required_monthly:.2f}/month "
            "to reach your goal."
        )
    return f"💪 You're {progress:.0f}% of the way there. Stay consistent."


def calculate_total_savings(goals: Sequence[SavingsGoal]) -> SavingsTotals:
    current = sum(float(g.current_amount) for g in goals)
    target = sum(float(g.target_amount) for g in goals)
    return SavingsTotals(
        current_amount=current,
        target_amount=target,
        progress_percentage=(current / target) * 100 if target > 0 else 0.0,
    )
