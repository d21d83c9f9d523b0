"""
Analytics package.

Pure functions from storage rows to the view models in
budget_manager.models.analytics.
"""

from budget_manager.analytics.aggregation import (
    aggregate_by_category,
    budget_status,
    budgets_with_spending,
    period_window,
)
from budget_manager.analytics.allocation import (
    calculate_503020_allocation,
    calculate_custom_allocation,
    calculate_zero_based_budget,
    classify_category,
    generate_budget_summary,
    generate_recommendations,
)
from budget_manager.analytics.forecast import (
    TREND_IMPROVING_RATIO,
    calculate_burn_rate,
    compare_scenarios,
    generate_cash_flow_projection,
    scenario_emergency_fund,
    scenario_expense_reduction,
    scenario_loan_payoff,
    scenario_new_expense,
    scenario_salary_increase,
)
from budget_manager.analytics.goals import (
    calculate_goal_analytics,
    calculate_total_savings,
    default_milestones,
    milestone_progress,
)
from budget_manager.analytics.reports import (
    calculate_cash_flow_statement,
    calculate_category_comparisons,
    calculate_income_statement,
    calculate_net_worth_history,
    calculate_spending_patterns,
)
from budget_manager.analytics.spending import (
    analyze_recent_transactions,
    analyze_transaction,
    build_spending_patterns,
    spending_insights,
    update_pattern,
)
from budget_manager.analytics.alerts import (
    AlertHistory,
    InMemoryAlertHistory,
    JsonFileAlertHistory,
    alert_counts,
    alert_message,
    collect_budget_alerts,
    filter_new_alerts,
)

__all__ = [
    # Aggregation & budgets
    "aggregate_by_category",
    "budget_status",
    "budgets_with_spending",
    "period_window",
    # 50/30/20
    "calculate_503020_allocation",
    "calculate_custom_allocation",
    "calculate_zero_based_budget",
    "classify_category",
    "generate_budget_summary",
    "generate_recommendations",
    # Forecasting
    "TREND_IMPROVING_RATIO",
    "calculate_burn_rate",
    "compare_scenarios",
    "generate_cash_flow_projection",
    "scenario_emergency_fund",
    "scenario_expense_reduction",
    "scenario_loan_payoff",
    "scenario_new_expense",
    "scenario_salary_increase",
    # Goals
    "calculate_goal_analytics",
    "calculate_total_savings",
    "default_milestones",
    "milestone_progress",
    # Reports
    "calculate_cash_flow_statement",
    "calculate_category_comparisons",
    "calculate_income_statement",
    "calculate_net_worth_history",
    "calculate_spending_patterns",
    # Unusual spending
    "analyze_recent_transactions",
    "analyze_transaction",
    "build_spending_patterns",
    "spending_insights",
    "update_pattern",
    # Alerts
    "AlertHistory",
    "InMemoryAlertHistory",
    "JsonFileAlertHistory",
    "alert_counts",
    "alert_message",
    "collect_budget_alerts",
    "filter_new_alerts",
]
