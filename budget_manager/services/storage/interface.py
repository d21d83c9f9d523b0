"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Run against Google Sheets or a hosted database with the same core
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The store is assumed to offer no multi-row transactions. Callers that need
several writes to succeed together (materialization, backup import) carry
their own compensating actions (see services/unit_of_work.py).
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

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


class FinanceStorageInterface(ABC):
    """
    Abstract interface for budget data.

    Every list operation is scoped to one owner. Tenant isolation itself is
    the backend's responsibility.
    """

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_categories(self, owner_id: UUID) -> list[Category]:
        """List all categories of an owner."""
        pass

    @abstractmethod
    async def insert_categories(self, categories: list[Category]) -> list[Category]:
        """
        Insert several categories in one request.

        Returns:
            The persisted rows. Each row carries the `client_ref` of the
            input it was created from; order is not guaranteed.

        Raises:
            StorageError: If the insert fails (nothing is written)
        """
        pass

    @abstractmethod
    async def delete_category(self, category_id: UUID) -> bool:
        """Delete a category. Returns False if it did not exist."""
        pass

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_transactions(
        self,
        owner_id: UUID,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        type: Optional[TransactionType] = None,
        category_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        """
        List transactions with optional filters.

        Args:
            owner_id: Owner of the transactions
            date_from: Only transactions on or after this date
            date_to: Only transactions on or before this date
            type: Only income or only expense
            category_id: Only this category

        Returns:
            Matching transactions, oldest first
        """
        pass

    @abstractmethod
    async def insert_transaction(self, transaction: Transaction) -> Transaction:
        """
        Insert one transaction.

        Returns:
            The persisted row including its id

        Raises:
            StorageError: If the insert fails
            DuplicateError: If the id already exists
        """
        pass

    @abstractmethod
    async def insert_transactions(self, transactions: list[Transaction]) -> list[Transaction]:
        """Insert several transactions in one request (all or nothing)."""
        pass

    @abstractmethod
    async def update_transaction(self, transaction: Transaction) -> Transaction:
        """
        Replace an existing transaction.

        Raises:
            NotFoundError: If it doesn't exist
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: UUID) -> bool:
        """Hard-delete a transaction. Returns False if it did not exist."""
        pass

    # -------------------------------------------------------------------------
    # Savings goals
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_goals(self, owner_id: UUID) -> list[SavingsGoal]:
        pass

    @abstractmethod
    async def get_goal(self, goal_id: UUID) -> Optional[SavingsGoal]:
        pass

    @abstractmethod
    async def insert_goals(self, goals: list[SavingsGoal]) -> list[SavingsGoal]:
        pass

    @abstractmethod
    async def update_goal(self, goal: SavingsGoal) -> SavingsGoal:
        """
        Replace an existing goal.

        Raises:
            NotFoundError: If it doesn't exist
        """
        pass

    @abstractmethod
    async def add_to_goal_amount(self, goal_id: UUID, delta: Decimal) -> SavingsGoal:
        """
        Add `delta` (may be negative) to a goal's current_amount.

        Backends without an atomic increment emulate it with read-then-write.

        Returns:
            The goal after the update

        Raises:
            NotFoundError: If the goal doesn't exist
        """
        pass

    @abstractmethod
    async def delete_goal(self, goal_id: UUID) -> bool:
        pass

    # -------------------------------------------------------------------------
    # Goal contributions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def insert_contribution(self, contribution: GoalContribution) -> GoalContribution:
        pass

    @abstractmethod
    async def list_contributions(self, goal_id: UUID) -> list[GoalContribution]:
        """List contributions of a goal, newest first."""
        pass

    @abstractmethod
    async def delete_contribution(self, contribution_id: UUID) -> bool:
        pass

    # -------------------------------------------------------------------------
    # Recurring transactions & schedules
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_recurring(self, owner_id: UUID) -> list[RecurringTransaction]:
        pass

    @abstractmethod
    async def get_recurring(self, recurring_id: UUID) -> Optional[RecurringTransaction]:
        pass

    @abstractmethod
    async def insert_recurring(
        self,
        items: list[RecurringTransaction],
    ) -> list[RecurringTransaction]:
        pass

    @abstractmethod
    async def delete_recurring(self, recurring_id: UUID) -> bool:
        pass

    @abstractmethod
    async def update_schedule(
        self,
        obligation_id: UUID,
        last_occurrence: date,
        next_occurrence: date,
    ) -> Union[RecurringTransaction, AutoContribution]:
        """
        Move an obligation's schedule.

        `obligation_id` is either a recurring transaction id or the id of a
        goal's auto-contribution rule.

        Raises:
            NotFoundError: If no obligation has this id
        """
        pass

    # -------------------------------------------------------------------------
    # Budgets & settings
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_budgets(self, owner_id: UUID) -> list[CategoryBudget]:
        pass

    @abstractmethod
    async def upsert_budgets(self, budgets: list[CategoryBudget]) -> list[CategoryBudget]:
        """Insert budgets, replacing any existing one for the same (owner, category, period)."""
        pass

    @abstractmethod
    async def get_user_settings(self, owner_id: UUID) -> Optional[UserSettings]:
        pass

    @abstractmethod
    async def upsert_user_settings(self, settings: UserSettings) -> UserSettings:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events of one batch or import, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
