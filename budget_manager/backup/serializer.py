"""
Backup Serializer

Exports one account to a versioned JSON document and restores such a
document into an account.

DESIGN DECISION: IDs in a backup are local to the document. On import every
row gets a fresh id and every foreign key is remapped:
- categories that already exist (same name and type) are reused
- new categories are bulk-inserted with `client_ref` set to their old id;
  the store echoes `client_ref` back, so the old -> new mapping never
  depends on the order rows come back in
- a reference with no mapping keeps its original id (when that id is a
  UUID) and is counted in `unmapped_references`

Import order: categories, transactions (batches of `import_batch_size`),
goals, recurring transactions, budgets (upsert), settings (upsert).

A failing step aborts the import. Rows inserted so far are deleted again
through compensations and BackupImportError reports how far it got.
Budget and settings upserts are the last two steps and are not undone.
"""

import json
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Union
from uuid import UUID

import structlog

from budget_manager.audit import AuditLogger, create_correlation_id
from budget_manager.config import get_settings
from budget_manager.models.backup import (
    BackupAutoContribution,
    BackupCategory,
    BackupCategoryBudget,
    BackupDocument,
    BackupRecurringTransaction,
    BackupSavingsGoal,
    BackupTransaction,
    BackupUserSettings,
    ImportSummary,
)
from budget_manager.models.finance import (
    AutoContribution,
    Category,
    CategoryBudget,
    RecurringTransaction,
    SavingsGoal,
    Transaction,
    UserSettings,
)
from budget_manager.models.validation import ValidationIssue
from budget_manager.services.storage import FinanceStorageInterface
from budget_manager.services.unit_of_work import UnitOfWork
from budget_manager.validation import BackupValidator, ValidationError

logger = structlog.get_logger(__name__)

BACKUP_FILENAME_FORMAT = "budget-manager-backup-%Y-%m-%d-%H%M%S.json"


class BackupImportError(Exception):
    """
    Import aborted part-way.

    `summary` holds the counts reached before the failure; `rolled_back`
    tells whether every inserted row was removed again.
    """

    def __init__(self, message: str, summary: ImportSummary, rolled_back: bool):
        self.summary = summary
        self.rolled_back = rolled_back
        super().__init__(message)


def backup_filename(exported_at: datetime) -> str:
    return exported_at.strftime(BACKUP_FILENAME_FORMAT)


async def _delete_all(delete: Callable[[UUID], Awaitable[bool]], ids: list[UUID]) -> None:
    for row_id in ids:
        await delete(row_id)


class _IdMap:
    """Old (document) id -> new (store) id."""

    def __init__(self):
        self._ids: dict[str, UUID] = {}
        self.unmapped = 0

    def __setitem__(self, old_id: str, new_id: UUID) -> None:
        self._ids[old_id] = new_id

    def resolve(self, old_id: str) -> Optional[UUID]:
        """New id, else the original id if it is a UUID, else None."""
        if old_id in self._ids:
            return self._ids[old_id]
        self.unmapped += 1
        try:
            return UUID(old_id)
        except ValueError:
            return None


class BackupSerializer:
    """
    Export and import of a whole account.

    Usage:
        serializer = BackupSerializer(storage, audit_logger)
        document = await serializer.export(owner_id, exported_at=now)
        text = serializer.to_json(document)
        summary = await serializer.import_document(other_owner_id, text)
    """

    def __init__(
        self,
        storage: FinanceStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[BackupValidator] = None,
        batch_size: Optional[int] = None,
    ):
        app = get_settings().app
        self._storage = storage
        self._audit = audit_logger or AuditLogger()
        self._validator = validator or BackupValidator(app.backup_schema_version)
        self._batch_size = batch_size or app.import_batch_size
        self._version = app.backup_schema_version

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    async def export(
        self,
        owner_id: UUID,
        exported_at: datetime,
        correlation_id: Optional[UUID] = None,
    ) -> BackupDocument:
        """Snapshot every row of one owner into a BackupDocument."""
        categories = await self._storage.list_categories(owner_id)
        transactions = await self._storage.list_transactions(owner_id)
        goals = await self._storage.list_goals(owner_id)
        budgets = await self._storage.list_budgets(owner_id)
        recurring = await self._storage.list_recurring(owner_id)
        settings = await self._storage.get_user_settings(owner_id)

        document = BackupDocument(
            version=self._version,
            export_date=exported_at,
            categories=[
                BackupCategory(
                    id=str(c.id),
                    name=c.name,
                    type=c.type,
                    color=c.color,
                    icon=c.icon,
                    bucket=c.bucket,
                )
                for c in categories
            ],
            transactions=[
                BackupTransaction(
                    id=str(t.id),
                    category_id=str(t.category_id),
                    amount=t.amount,
                    date=t.date,
                    type=t.type,
                    description=t.description,
                )
                for t in transactions
            ],
            savings_goals=[self._export_goal(g) for g in goals],
            category_budgets=[
                BackupCategoryBudget(
                    id=str(b.id),
                    category_id=str(b.category_id),
                    amount=b.amount,
                    period=b.period,
                )
                for b in budgets
            ],
            user_settings=(
                BackupUserSettings(
                    opening_balance=settings.opening_balance,
                    opening_date=settings.opening_date,
                    currency=settings.currency,
                )
                if settings
                else None
            ),
            recurring_transactions=[
                BackupRecurringTransaction(
                    id=str(r.id),
                    category_id=str(r.category_id),
                    amount=r.amount,
                    type=r.type,
                    description=r.description,
                    frequency=r.frequency,
                    start_date=r.start_date,
                    end_date=r.end_date,
                    last_occurrence=r.last_occurrence,
                    next_occurrence=r.next_occurrence,
                    is_active=r.is_active,
                )
                for r in recurring
            ],
        )

        await self._audit.log_backup_exported(
            owner_id=owner_id,
            counts={
                "categories": len(document.categories),
                "transactions": len(document.transactions),
                "savings_goals": len(document.savings_goals),
                "category_budgets": len(document.category_budgets),
                "recurring_transactions": len(document.recurring_transactions),
            },
            correlation_id=correlation_id,
        )
        return document

    @staticmethod
    def _export_goal(goal: SavingsGoal) -> BackupSavingsGoal:
        rule = goal.auto_contribution
        return BackupSavingsGoal(
            id=str(goal.id),
            name=goal.name,
            target_amount=goal.target_amount,
            current_amount=goal.current_amount,
            deadline=goal.deadline,
            priority=goal.priority,
            auto_contribution=(
                BackupAutoContribution(
                    amount=rule.amount,
                    frequency=rule.frequency,
                    last_occurrence=rule.last_occurrence,
                    next_occurrence=rule.next_occurrence,
                    is_active=rule.is_active,
                )
                if rule
                else None
            ),
        )

    # -------------------------------------------------------------------------
    # JSON boundary
    # -------------------------------------------------------------------------

    @staticmethod
    def to_json(document: BackupDocument) -> str:
        return document.model_dump_json(by_alias=True, indent=2)

    def parse(self, text: Union[str, bytes]) -> BackupDocument:
        """
        Decode and validate a backup file.

        Raises:
            ValidationError: Not JSON, or not a valid backup document
        """
        try:
            raw = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValidationError(
                "Backup is not valid JSON",
                issues=[ValidationIssue(
                    field="document",
                    issue_type="invalid_format",
                    message=f"Could not decode JSON: {e}",
                    severity="error",
                    suggested_fix="Select a file created by the export feature",
                )],
            ) from e
        return self._validator.parse(raw)

    # -------------------------------------------------------------------------
    # Import
    # -------------------------------------------------------------------------

    async def import_document(
        self,
        owner_id: UUID,
        document: Union[BackupDocument, dict[str, Any], str, bytes],
        correlation_id: Optional[UUID] = None,
    ) -> ImportSummary:
        """
        Restore a backup into the account of `owner_id`.

        Args:
            owner_id: Account receiving the data
            document: A parsed document, a decoded JSON object, or the raw text

        Returns:
            ImportSummary with per-table counts

        Raises:
            ValidationError: Before any write, if the document is malformed
            BackupImportError: If a write failed; inserted rows were compensated
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            if isinstance(document, (str, bytes)):
                document = self.parse(document)
            elif isinstance(document, BackupDocument):
                document = self._validator.parse(document.model_dump(mode="json", by_alias=True))
            else:
                document = self._validator.parse(document)
        except ValidationError as e:
            await self._audit.log_backup_rejected(
                issues=[issue.model_dump() for issue in e.issues],
                correlation_id=correlation_id,
            )
            raise

        summary = ImportSummary()
        uow = UnitOfWork("backup import")
        try:
            await self._import_rows(owner_id, document, summary, uow)
        except Exception as e:
            logger.error("backup_import_aborted", owner_id=str(owner_id), error=str(e))
            report = await uow.rollback()
            await self._audit.log_rollback(
                operation=uow.operation,
                compensated=report.compensated,
                failed=report.failed,
                correlation_id=correlation_id,
            )
            await self._audit.log_backup_import_failed(
                owner_id=owner_id,
                error_message=str(e),
                summary=summary.model_dump(),
                correlation_id=correlation_id,
            )
            raise BackupImportError(
                f"Import aborted: {e}",
                summary=summary,
                rolled_back=report.complete,
            ) from e

        uow.commit()
        await self._audit.log_backup_imported(
            owner_id=owner_id,
            summary=summary.model_dump(),
            correlation_id=correlation_id,
        )
        return summary

    async def _import_rows(
        self,
        owner_id: UUID,
        document: BackupDocument,
        summary: ImportSummary,
        uow: UnitOfWork,
    ) -> None:
        ids = _IdMap()
        storage = self._storage

        # Categories
        existing = {(c.name, c.type): c.id for c in await storage.list_categories(owner_id)}
        pending: dict[tuple, Category] = {}
        for cat in document.categories:
            key = (cat.name.strip(), cat.type)
            if key in existing:
                ids[cat.id] = existing[key]
                summary.categories_reused += 1
            elif key in pending:
                # Same category twice in one document: both map to the new row
                ids[cat.id] = pending[key].id
            else:
                pending[key] = Category(
                    owner_id=owner_id,
                    name=cat.name,
                    type=cat.type,
                    color=cat.color or "#6b7280",
                    icon=cat.icon,
                    bucket=cat.bucket,
                    client_ref=cat.id,
                )

        if pending:
            inserted = await storage.insert_categories(list(pending.values()))
            uow.add(
                "delete imported categories",
                lambda rows=inserted: _delete_all(storage.delete_category, [r.id for r in rows]),
            )
            for row in inserted:
                ids[row.client_ref] = row.id
            summary.categories_created = len(inserted)

        # Transactions, in batches
        rows = []
        for txn in document.transactions:
            category_id = ids.resolve(txn.category_id)
            if category_id is None:
                continue
            rows.append(Transaction(
                owner_id=owner_id,
                category_id=category_id,
                amount=txn.amount,
                date=txn.date,
                type=txn.type,
                description=txn.description,
            ))

        for start in range(0, len(rows), self._batch_size):
            batch = rows[start:start + self._batch_size]
            inserted_txns = await storage.insert_transactions(batch)
            uow.add(
                f"delete imported transactions {start}-{start + len(batch) - 1}",
                lambda rows=inserted_txns: _delete_all(
                    storage.delete_transaction, [r.id for r in rows]
                ),
            )
            summary.transactions += len(inserted_txns)

        # Goals (with their auto-contribution rules)
        goals = [self._goal_row(owner_id, goal) for goal in document.savings_goals]
        if goals:
            inserted_goals = await storage.insert_goals(goals)
            uow.add(
                "delete imported goals",
                lambda rows=inserted_goals: _delete_all(storage.delete_goal, [r.id for r in rows]),
            )
            summary.goals = len(inserted_goals)

        # Recurring transactions
        recurring = []
        for item in document.recurring_transactions:
            category_id = ids.resolve(item.category_id)
            if category_id is None:
                continue
            recurring.append(RecurringTransaction(
                owner_id=owner_id,
                category_id=category_id,
                amount=item.amount,
                type=item.type,
                description=item.description,
                frequency=item.frequency,
                start_date=item.start_date,
                end_date=item.end_date,
                last_occurrence=item.last_occurrence,
                next_occurrence=item.next_occurrence,
                is_active=item.is_active,
            ))
        if recurring:
            inserted_recurring = await storage.insert_recurring(recurring)
            uow.add(
                "delete imported recurring transactions",
                lambda rows=inserted_recurring: _delete_all(
                    storage.delete_recurring, [r.id for r in rows]
                ),
            )
            summary.recurring = len(inserted_recurring)

        # Budgets (upsert by owner, category and period)
        budgets = []
        for budget in document.category_budgets:
            category_id = ids.resolve(budget.category_id)
            if category_id is None:
                continue
            budgets.append(CategoryBudget(
                owner_id=owner_id,
                category_id=category_id,
                amount=budget.amount,
                period=budget.period,
            ))
        if budgets:
            summary.budgets = len(await storage.upsert_budgets(budgets))

        summary.unmapped_references = ids.unmapped

        # Settings
        if document.user_settings is not None:
            await storage.upsert_user_settings(UserSettings(
                owner_id=owner_id,
                opening_balance=document.user_settings.opening_balance,
                opening_date=document.user_settings.opening_date,
                currency=document.user_settings.currency,
            ))
            summary.settings_restored = True

    @staticmethod
    def _goal_row(owner_id: UUID, goal: BackupSavingsGoal) -> SavingsGoal:
        row = SavingsGoal(
            owner_id=owner_id,
            name=goal.name,
            target_amount=goal.target_amount,
            current_amount=goal.current_amount,
            deadline=goal.deadline,
            priority=min(5, max(1, goal.priority)),
        )
        rule = goal.auto_contribution
        if rule is not None:
            row.auto_contribution = AutoContribution(
                owner_id=owner_id,
                goal_id=row.id,
                amount=rule.amount,
                frequency=rule.frequency,
                last_occurrence=rule.last_occurrence,
                next_occurrence=rule.next_occurrence,
                is_active=rule.is_active,
            )
        return row
