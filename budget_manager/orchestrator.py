"""
Main Orchestrator for Budget Manager

This module ties together all the components and defines the
end-to-end flows for:
1. Obligation processing (load → select due → materialize → summarize)
2. Insights (budgets, alerts, 50/30/20 health, forecast, goals, reports,
   unusual spending)
3. Backup (export → JSON, JSON → validate → import)

DESIGN DECISION: The orchestrator is the only place that decides what
"today" is. Every flow method takes `as_of` (or `exported_at`) from its
caller and hands it down; the core below never reads the clock.

This is the "glue" a host (web handler, scheduled job, CLI) calls.
"""

from datetime import date, datetime, timedelta
from typing import Optional
from uuid import UUID

import structlog

from budget_manager.analytics import (
    AlertHistory,
    aggregate_by_category,
    analyze_recent_transactions,
    budgets_with_spending,
    calculate_cash_flow_statement,
    calculate_category_comparisons,
    calculate_income_statement,
    calculate_net_worth_history,
    calculate_spending_patterns,
    calculate_goal_analytics,
    collect_budget_alerts,
    filter_new_alerts,
    generate_budget_summary,
    generate_cash_flow_projection,
    period_window,
)
from budget_manager.audit import AuditLogger, create_correlation_id
from budget_manager.backup import BackupSerializer, backup_filename
from budget_manager.config import get_settings, validate_all_settings
from budget_manager.models.analytics import (
    BudgetAlert,
    BudgetSummary,
    BudgetWithSpending,
    CashFlowProjection,
    CashFlowStatement,
    CategoryComparison,
    CategoryTotals,
    GoalAnalytics,
    IncomeStatement,
    NetWorthPoint,
    SpendingPeriod,
    SpendingPeriodTotal,
    TransactionAnalysis,
)
from budget_manager.models.backup import ImportSummary
from budget_manager.models.finance import BudgetPeriod, RecurringTransaction, TransactionType
from budget_manager.models.scheduling import BatchResult, RecurringStats
from budget_manager.scheduling import (
    ObligationMaterializer,
    auto_contribution_items,
    initial_occurrence,
    recurring_stats,
    select_due,
    select_upcoming,
)
from budget_manager.services.storage import (
    FinanceStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsFinanceStorage,
    InMemoryFinanceStorage,
)

logger = structlog.get_logger(__name__)


class ObligationProcessingFlow:
    """
    Orchestrates processing of recurring transactions and auto-contributions.

    Flow:
    1. Load → recurring transactions and goals of the owner
    2. Select → obligations due on `as_of`
    3. Materialize → one unit of work per obligation, failures isolated
    4. Summarize → one BatchResult for the host to notify with

    The host decides when this runs (startup, button, scheduled job).
    """

    def __init__(
        self,
        storage: FinanceStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        materializer: Optional[ObligationMaterializer] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._materializer = materializer or ObligationMaterializer(storage, self._audit_logger)

    async def process_due(
        self,
        owner_id: UUID,
        as_of: date,
        correlation_id: Optional[UUID] = None,
        is_user_action: bool = False,
    ) -> BatchResult:
        """Materialize every due obligation of one owner."""
        correlation_id = correlation_id or create_correlation_id()

        recurring = await self._storage.list_recurring(owner_id)
        goals = await self._storage.list_goals(owner_id)

        items = select_due(recurring, as_of) + select_due(auto_contribution_items(goals), as_of)

        return await self._materializer.process_batch(
            items,
            as_of,
            correlation_id=correlation_id,
            is_user_action=is_user_action,
        )

    async def upcoming(
        self,
        owner_id: UUID,
        as_of: date,
        days: Optional[int] = None,
    ) -> list[RecurringTransaction]:
        days = days or get_settings().app.upcoming_window_days
        return select_upcoming(await self._storage.list_recurring(owner_id), as_of, days)

    async def stats(self, owner_id: UUID, as_of: date) -> RecurringStats:
        return recurring_stats(await self._storage.list_recurring(owner_id), as_of)

    async def create_recurring(
        self,
        recurring: RecurringTransaction,
        as_of: date,
    ) -> RecurringTransaction:
        """
        Save a new recurring transaction.

        A start date in the past is caught up: the first occurrence becomes
        the first scheduled date on or after `as_of`.
        """
        first = initial_occurrence(recurring.start_date, recurring.frequency, as_of)
        row = recurring.model_copy(update={"next_occurrence": first})
        inserted = await self._storage.insert_recurring([row])
        return inserted[0]


class InsightsFlow:
    """
    Read-only analytics over one owner's data.

    Every method loads rows from storage and returns a view model.
    """

    def __init__(self, storage: FinanceStorageInterface):
        self._storage = storage

    async def category_totals(
        self,
        owner_id: UUID,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> CategoryTotals:
        transactions = await self._storage.list_transactions(owner_id, date_from=start, date_to=end)
        return aggregate_by_category(transactions)

    async def budget_overview(self, owner_id: UUID, as_of: date) -> list[BudgetWithSpending]:
        budgets = await self._storage.list_budgets(owner_id)
        if not budgets:
            return []
        start, _ = period_window(BudgetPeriod.YEARLY, as_of)
        transactions = await self._storage.list_transactions(
            owner_id,
            date_from=start,
            date_to=as_of,
            type=TransactionType.EXPENSE,
        )
        categories = await self._storage.list_categories(owner_id)
        return budgets_with_spending(budgets, transactions, categories, as_of)

    async def new_budget_alerts(
        self,
        owner_id: UUID,
        as_of: date,
        history: AlertHistory,
    ) -> list[BudgetAlert]:
        """Alerts the user hasn't seen yet; returned alerts are marked shown."""
        alerts = collect_budget_alerts(await self.budget_overview(owner_id, as_of))
        return filter_new_alerts(alerts, history)

    async def budget_summary(
        self,
        owner_id: UUID,
        as_of: date,
        total_income: Optional[float] = None,
    ) -> BudgetSummary:
        """
        50/30/20 health of the month containing `as_of`.

        Income defaults to the income recorded in that month.
        """
        start, end = period_window(BudgetPeriod.MONTHLY, as_of)
        transactions = await self._storage.list_transactions(owner_id, date_from=start, date_to=end)
        categories = await self._storage.list_categories(owner_id)
        if total_income is None:
            total_income = sum(
                float(t.amount) for t in transactions if t.type == TransactionType.INCOME
            )
        return generate_budget_summary(transactions, categories, total_income, start, end)

    async def current_balance(self, owner_id: UUID, as_of: date) -> float:
        """Opening balance plus every transaction since the opening date, up to `as_of`."""
        settings = await self._storage.get_user_settings(owner_id)
        opening = float(settings.opening_balance) if settings else 0.0
        since = settings.opening_date if settings else None
        transactions = await self._storage.list_transactions(owner_id, date_from=since, date_to=as_of)
        totals = aggregate_by_category(transactions)
        return opening + totals.net

    async def cash_flow(
        self,
        owner_id: UUID,
        as_of: date,
        months: int = 6,
    ) -> CashFlowProjection:
        transactions = await self._storage.list_transactions(owner_id, date_to=as_of)
        balance = await self.current_balance(owner_id, as_of)
        return generate_cash_flow_projection(transactions, balance, months, as_of)

    async def income_statement(self, owner_id: UUID, start: date, end: date) -> IncomeStatement:
        """Income statement of [start, end], compared with the equally long period before it."""
        previous_end = start - timedelta(days=1)
        previous_start = previous_end - (end - start)
        transactions = await self._storage.list_transactions(owner_id, date_from=start, date_to=end)
        previous = await self._storage.list_transactions(
            owner_id, date_from=previous_start, date_to=previous_end
        )
        categories = await self._storage.list_categories(owner_id)
        return calculate_income_statement(transactions, categories, previous)

    async def cash_flow_statement(self, owner_id: UUID, start: date, end: date) -> CashFlowStatement:
        beginning = await self.current_balance(owner_id, start - timedelta(days=1))
        transactions = await self._storage.list_transactions(owner_id, date_from=start, date_to=end)
        return calculate_cash_flow_statement(transactions, beginning)

    async def net_worth_history(
        self,
        owner_id: UUID,
        as_of: date,
        months: int = 12,
    ) -> list[NetWorthPoint]:
        settings = await self._storage.get_user_settings(owner_id)
        opening = float(settings.opening_balance) if settings else 0.0
        since = settings.opening_date if settings else None
        transactions = await self._storage.list_transactions(owner_id, date_from=since, date_to=as_of)
        return calculate_net_worth_history(transactions, opening, as_of, months, opening_date=since)

    async def spending_patterns(
        self,
        owner_id: UUID,
        start: date,
        end: date,
        group_by: SpendingPeriod = SpendingPeriod.DAY,
    ) -> list[SpendingPeriodTotal]:
        transactions = await self._storage.list_transactions(
            owner_id, date_from=start, date_to=end, type=TransactionType.EXPENSE
        )
        return calculate_spending_patterns(transactions, group_by)

    async def category_comparisons(self, owner_id: UUID, as_of: date) -> list[CategoryComparison]:
        """Expenses per category: the month of `as_of` against the month before."""
        start, end = period_window(BudgetPeriod.MONTHLY, as_of)
        previous_start, previous_end = period_window(BudgetPeriod.MONTHLY, start - timedelta(days=1))
        current = await self._storage.list_transactions(owner_id, date_from=start, date_to=end)
        previous = await self._storage.list_transactions(
            owner_id, date_from=previous_start, date_to=previous_end
        )
        categories = await self._storage.list_categories(owner_id)
        return calculate_category_comparisons(current, previous, categories)

    async def unusual_spending(
        self,
        owner_id: UUID,
        as_of: date,
        days: int = 30,
    ) -> list[TransactionAnalysis]:
        """Recent expenses, each judged against its category's earlier expenses."""
        expenses = await self._storage.list_transactions(
            owner_id, date_to=as_of, type=TransactionType.EXPENSE
        )
        return analyze_recent_transactions(expenses, as_of, days)

    async def goal_analytics(self, owner_id: UUID, as_of: date) -> list[GoalAnalytics]:
        results = []
        for goal in await self._storage.list_goals(owner_id):
            contributions = await self._storage.list_contributions(goal.id)
            results.append(calculate_goal_analytics(goal, contributions, as_of))
        return results


class BackupFlow:
    """
    Orchestrates account backup and restore.

    Flow:
    Export: snapshot → document → JSON text + suggested filename
    Import: JSON text → validate (no writes on failure) → remap → insert
    """

    def __init__(
        self,
        storage: FinanceStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        serializer: Optional[BackupSerializer] = None,
    ):
        self._serializer = serializer or BackupSerializer(storage, audit_logger)

    async def export_json(self, owner_id: UUID, exported_at: datetime) -> tuple[str, str]:
        """
        Returns:
            (filename, json_text)
        """
        document = await self._serializer.export(owner_id, exported_at)
        return backup_filename(exported_at), self._serializer.to_json(document)

    async def import_json(
        self,
        owner_id: UUID,
        text: str,
        correlation_id: Optional[UUID] = None,
    ) -> ImportSummary:
        return await self._serializer.import_document(owner_id, text, correlation_id)


def create_app_components(
    use_storage: bool = True,
) -> tuple[ObligationProcessingFlow, InsightsFlow, BackupFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run on in-memory storage.

    Returns:
        (obligation_flow, insights_flow, backup_flow, sheets_client)
    """
    sheets_client = None
    storage: FinanceStorageInterface

    if use_storage and not validate_all_settings()["google_sheets"]:
        logger.warning("storage_not_configured", backend="google_sheets")
        use_storage = False

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            storage = GoogleSheetsFinanceStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            storage = InMemoryFinanceStorage()
            audit_logger = AuditLogger()  # Local-only logging
    else:
        storage = InMemoryFinanceStorage()
        audit_logger = AuditLogger()  # Local-only logging

    obligation_flow = ObligationProcessingFlow(storage, audit_logger)
    insights_flow = InsightsFlow(storage)
    backup_flow = BackupFlow(storage, audit_logger)

    return obligation_flow, insights_flow, backup_flow, sheets_client
