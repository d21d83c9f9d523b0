"""
In-Memory Storage Implementation

Used by the test suite and for offline runs. Behaves like a well-behaved
hosted table store: rows are copied in and out (callers never share
instances with the store), bulk inserts are all-or-nothing, and
`add_to_goal_amount` is atomic.
"""

from datetime import date
from decimal import Decimal
from typing import Optional, TypeVar, Union
from uuid import UUID

from pydantic import BaseModel

from budget_manager.models.audit import AuditEvent
from budget_manager.models.finance import (
    AutoContribution,
    Category,
    CategoryBudget,
    GoalContribution,
    RecurringTransaction,
    SavingsGoal,
    Transaction,
    TransactionType,
    UserSettings,
)
from budget_manager.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    FinanceStorageInterface,
    NotFoundError,
)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _copy(model: ModelT) -> ModelT:
    return model.model_copy(deep=True)


def _insert_all(table: dict[UUID, ModelT], rows: list[ModelT], kind: str) -> list[ModelT]:
    ids = [row.id for row in rows]
    if len(set(ids)) != len(ids) or any(row_id in table for row_id in ids):
        raise DuplicateError(f"Duplicate {kind} id in insert")
    for row in rows:
        table[row.id] = _copy(row)
    return [_copy(row) for row in rows]


class InMemoryFinanceStorage(FinanceStorageInterface):
    """Dict-backed implementation of the finance store."""

    def __init__(self):
        self.categories: dict[UUID, Category] = {}
        self.transactions: dict[UUID, Transaction] = {}
        self.goals: dict[UUID, SavingsGoal] = {}
        self.contributions: dict[UUID, GoalContribution] = {}
        self.recurring: dict[UUID, RecurringTransaction] = {}
        self.budgets: dict[UUID, CategoryBudget] = {}
        self.user_settings: dict[UUID, UserSettings] = {}

    # Categories

    async def list_categories(self, owner_id: UUID) -> list[Category]:
        return [_copy(c) for c in self.categories.values() if c.owner_id == owner_id]

    async def insert_categories(self, categories: list[Category]) -> list[Category]:
        return _insert_all(self.categories, categories, "category")

    async def delete_category(self, category_id: UUID) -> bool:
        return self.categories.pop(category_id, None) is not None

    # Transactions

    async def list_transactions(
        self,
        owner_id: UUID,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        type: Optional[TransactionType] = None,
        category_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        rows = []
        for txn in self.transactions.values():
            if txn.owner_id != owner_id:
                continue
            if date_from and txn.date < date_from:
                continue
            if date_to and txn.date > date_to:
                continue
            if type and txn.type != type:
                continue
            if category_id and txn.category_id != category_id:
                continue
            rows.append(_copy(txn))
        rows.sort(key=lambda t: t.date)
        return rows

    async def insert_transaction(self, transaction: Transaction) -> Transaction:
        return _insert_all(self.transactions, [transaction], "transaction")[0]

    async def insert_transactions(self, transactions: list[Transaction]) -> list[Transaction]:
        return _insert_all(self.transactions, transactions, "transaction")

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        if transaction.id not in self.transactions:
            raise NotFoundError(f"Transaction not found: {transaction.id}")
        self.transactions[transaction.id] = _copy(transaction)
        return _copy(transaction)

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        return self.transactions.pop(transaction_id, None) is not None

    # Goals

    async def list_goals(self, owner_id: UUID) -> list[SavingsGoal]:
        return [_copy(g) for g in self.goals.values() if g.owner_id == owner_id]

    async def get_goal(self, goal_id: UUID) -> Optional[SavingsGoal]:
        goal = self.goals.get(goal_id)
        return _copy(goal) if goal else None

    async def insert_goals(self, goals: list[SavingsGoal]) -> list[SavingsGoal]:
        return _insert_all(self.goals, goals, "goal")

    async def update_goal(self, goal: SavingsGoal) -> SavingsGoal:
        if goal.id not in self.goals:
            raise NotFoundError(f"Goal not found: {goal.id}")
        self.goals[goal.id] = _copy(goal)
        return _copy(goal)

    async def add_to_goal_amount(self, goal_id: UUID, delta: Decimal) -> SavingsGoal:
        goal = self.goals.get(goal_id)
        if goal is None:
            raise NotFoundError(f"Goal not found: {goal_id}")
        updated = goal.model_copy(update={"current_amount": goal.current_amount + delta})
        self.goals[goal_id] = updated
        return _copy(updated)

    async def delete_goal(self, goal_id: UUID) -> bool:
        return self.goals.pop(goal_id, None) is not None

    # Contributions

    async def insert_contribution(self, contribution: GoalContribution) -> GoalContribution:
        return _insert_all(self.contributions, [contribution], "contribution")[0]

    async def list_contributions(self, goal_id: UUID) -> list[GoalContribution]:
        rows = [_copy(c) for c in self.contributions.values() if c.goal_id == goal_id]
        rows.sort(key=lambda c: c.contribution_date, reverse=True)
        return rows

    async def delete_contribution(self, contribution_id: UUID) -> bool:
        return self.contributions.pop(contribution_id, None) is not None

    # Recurring

    async def list_recurring(self, owner_id: UUID) -> list[RecurringTransaction]:
        return [_copy(r) for r in self.recurring.values() if r.owner_id == owner_id]

    async def get_recurring(self, recurring_id: UUID) -> Optional[RecurringTransaction]:
        item = self.recurring.get(recurring_id)
        return _copy(item) if item else None

    async def insert_recurring(
        self,
        items: list[RecurringTransaction],
    ) -> list[RecurringTransaction]:
        return _insert_all(self.recurring, items, "recurring transaction")

    async def delete_recurring(self, recurring_id: UUID) -> bool:
        return self.recurring.pop(recurring_id, None) is not None

    async def update_schedule(
        self,
        obligation_id: UUID,
        last_occurrence: date,
        next_occurrence: date,
    ) -> Union[RecurringTransaction, AutoContribution]:
        schedule = {"last_occurrence": last_occurrence, "next_occurrence": next_occurrence}

        if obligation_id in self.recurring:
            updated = self.recurring[obligation_id].model_copy(update=schedule)
            self.recurring[obligation_id] = updated
            return _copy(updated)

        for goal in self.goals.values():
            rule = goal.auto_contribution
            if rule is not None and rule.id == obligation_id:
                updated_rule = rule.model_copy(update=schedule)
                self.goals[goal.id] = goal.model_copy(update={"auto_contribution": updated_rule})
                return _copy(updated_rule)

        raise NotFoundError(f"Scheduled obligation not found: {obligation_id}")

    # Budgets & settings

    async def list_budgets(self, owner_id: UUID) -> list[CategoryBudget]:
        return [_copy(b) for b in self.budgets.values() if b.owner_id == owner_id]

    async def upsert_budgets(self, budgets: list[CategoryBudget]) -> list[CategoryBudget]:
        stored = []
        for budget in budgets:
            existing = next(
                (
                    b for b in self.budgets.values()
                    if b.owner_id == budget.owner_id
                    and b.category_id == budget.category_id
                    and b.period == budget.period
                ),
                None,
            )
            row = budget.model_copy(update={"id": existing.id}) if existing else _copy(budget)
            self.budgets[row.id] = row
            stored.append(_copy(row))
        return stored

    async def get_user_settings(self, owner_id: UUID) -> Optional[UserSettings]:
        settings = self.user_settings.get(owner_id)
        return _copy(settings) if settings else None

    async def upsert_user_settings(self, settings: UserSettings) -> UserSettings:
        self.user_settings[settings.owner_id] = _copy(settings)
        return _copy(settings)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self.events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
