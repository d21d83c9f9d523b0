"""Scheduling package: due dates, due selection and materialization."""

from budget_manager.scheduling.frequency import (
    MONTHLY_MULTIPLIERS,
    initial_occurrence,
    monthly_equivalent,
    next_date,
)
from budget_manager.scheduling.selector import (
    auto_contribution_items,
    is_due,
    recurring_stats,
    select_due,
    select_upcoming,
)
from budget_manager.scheduling.materializer import (
    MaterializationError,
    ObligationMaterializer,
    PartialCommitError,
)

__all__ = [
    # Frequency
    "MONTHLY_MULTIPLIERS",
    "initial_occurrence",
    "monthly_equivalent",
    "next_date",
    # Selection
    "auto_contribution_items",
    "is_due",
    "recurring_stats",
    "select_due",
    "select_upcoming",
    # Materialization
    "MaterializationError",
    "ObligationMaterializer",
    "PartialCommitError",
]
