"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is a supported backend because:
1. Users can view and fix their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (fine for one household)
- No transactions: the core compensates failed multi-step writes itself
- No atomic increment: add_to_goal_amount is read-then-write
- Limited query capabilities (we filter in Python)

Each table lives in its own worksheet. Row 1 holds the column names;
nested values (a goal's auto-contribution rule) are JSON-encoded.
"""

import json
from datetime import date
from decimal import Decimal
from typing import Any, Generic, Optional, TypeVar, Union
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import BaseModel
from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from budget_manager.config import get_settings
from budget_manager.models.audit import AuditEvent, AuditEventType, AuditSeverity
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
    ConnectionError,
    DuplicateError,
    FinanceStorageInterface,
    NotFoundError,
    StorageError,
)

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Column mappings, one list per worksheet
CATEGORY_COLUMNS = ["id", "owner_id", "name", "type", "color", "icon", "bucket", "client_ref"]
TRANSACTION_COLUMNS = [
    "id", "owner_id", "category_id", "amount", "date", "type", "description", "created_at",
]
GOAL_COLUMNS = [
    "id", "owner_id", "name", "target_amount", "current_amount", "deadline",
    "priority", "auto_contribution",
]
CONTRIBUTION_COLUMNS = ["id", "goal_id", "amount", "contribution_date", "source", "notes"]
RECURRING_COLUMNS = [
    "id", "owner_id", "amount", "frequency", "last_occurrence", "next_occurrence",
    "is_active", "category_id", "type", "description", "start_date", "end_date",
]
BUDGET_COLUMNS = ["id", "owner_id", "category_id", "amount", "period"]
USER_SETTINGS_COLUMNS = ["owner_id", "opening_balance", "opening_date", "currency"]
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

SHEETS_RETRY = dict(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._settings = get_settings().google_sheets

    @property
    def settings(self):
        return self._settings

    @retry(**SHEETS_RETRY)
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet whose first row is `columns`."""
        if title in self._worksheets:
            return self._worksheets[title]

        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        self._worksheets[title] = sheet
        return sheet


def _to_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


class SheetTable(Generic[ModelT]):
    """
    One worksheet holding rows of one model.

    Rows are matched by the value in `key_column` (the first column).
    """

    def __init__(
        self,
        client: GoogleSheetsClient,
        title: str,
        model: type[ModelT],
        columns: list[str],
        json_columns: tuple[str, ...] = (),
    ):
        self._client = client
        self._title = title
        self._model = model
        self._columns = columns
        self._json_columns = set(json_columns)

    @property
    def sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(self._title, self._columns)

    def to_row(self, item: ModelT) -> list[str]:
        data = item.model_dump(mode="json")
        return [_to_cell(data.get(column)) for column in self._columns]

    def from_row(self, row: list[str]) -> ModelT:
        data: dict[str, Any] = {}
        for index, column in enumerate(self._columns):
            value = row[index] if index < len(row) else ""
            if value == "":
                continue
            data[column] = json.loads(value) if column in self._json_columns else value
        return self._model.model_validate(data)

    def all(self) -> list[ModelT]:
        items = []
        for row in self.sheet.get_all_values()[1:]:  # Skip header
            if not row or not row[0]:
                continue
            try:
                items.append(self.from_row(row))
            except Exception as e:
                logger.warning("sheet_row_skipped", sheet=self._title, key=row[0], error=str(e))
        return items

    def find_row_index(self, key: str) -> Optional[int]:
        """1-based sheet row index of `key`, or None."""
        for idx, row in enumerate(self.sheet.get_all_values()[1:], start=2):
            if row and row[0] == key:
                return idx
        return None

    def append(self, items: list[ModelT]) -> None:
        if items:
            self.sheet.append_rows([self.to_row(i) for i in items], value_input_option="RAW")

    def replace(self, key: str, item: ModelT) -> bool:
        idx = self.find_row_index(key)
        if idx is None:
            return False
        self.sheet.batch_update(
            [{"range": f"A{idx}", "values": [self.to_row(item)]}],
            value_input_option="RAW",
        )
        return True

    def delete(self, key: str) -> bool:
        idx = self.find_row_index(key)
        if idx is None:
            return False
        self.sheet.delete_rows(idx)
        return True


class GoogleSheetsFinanceStorage(FinanceStorageInterface):
    """
    Google Sheets implementation of the finance store.

    Reads and idempotent writes are retried; inserts are not, since a retry
    after a timeout could duplicate rows.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        names = self._client.settings
        self._categories = SheetTable(
            self._client, names.categories_sheet_name, Category, CATEGORY_COLUMNS
        )
        self._transactions = SheetTable(
            self._client, names.transactions_sheet_name, Transaction, TRANSACTION_COLUMNS
        )
        self._goals = SheetTable(
            self._client, names.goals_sheet_name, SavingsGoal, GOAL_COLUMNS,
            json_columns=("auto_contribution",),
        )
        self._contributions = SheetTable(
            self._client, names.contributions_sheet_name, GoalContribution, CONTRIBUTION_COLUMNS
        )
        self._recurring = SheetTable(
            self._client, names.recurring_sheet_name, RecurringTransaction, RECURRING_COLUMNS
        )
        self._budgets = SheetTable(
            self._client, names.budgets_sheet_name, CategoryBudget, BUDGET_COLUMNS
        )
        self._user_settings = SheetTable(
            self._client, names.user_settings_sheet_name, UserSettings, USER_SETTINGS_COLUMNS
        )

    def _insert(self, table: SheetTable, rows: list, kind: str) -> list:
        try:
            existing = {str(item.id) for item in table.all()}
            if any(str(row.id) in existing for row in rows):
                raise DuplicateError(f"Duplicate {kind} id in insert")
            table.append(rows)
            return rows
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to insert {kind}: {e}")

    def _delete(self, table: SheetTable, key: UUID, kind: str) -> bool:
        try:
            return table.delete(str(key))
        except Exception as e:
            raise StorageError(f"Failed to delete {kind}: {e}")

    def _replace(self, table: SheetTable, key: UUID, item, kind: str):
        try:
            found = table.replace(str(key), item)
        except Exception as e:
            raise StorageError(f"Failed to update {kind}: {e}")
        if not found:
            raise NotFoundError(f"{kind.capitalize()} not found: {key}")
        return item

    # Categories

    @retry(**SHEETS_RETRY)
    async def list_categories(self, owner_id: UUID) -> list[Category]:
        try:
            return [c for c in self._categories.all() if c.owner_id == owner_id]
        except Exception as e:
            raise StorageError(f"Failed to list categories: {e}")

    async def insert_categories(self, categories: list[Category]) -> list[Category]:
        return self._insert(self._categories, categories, "category")

    async def delete_category(self, category_id: UUID) -> bool:
        return self._delete(self._categories, category_id, "category")

    # Transactions

    @retry(**SHEETS_RETRY)
    async def list_transactions(
        self,
        owner_id: UUID,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        type: Optional[TransactionType] = None,
        category_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        try:
            rows = []
            for txn in self._transactions.all():
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
                rows.append(txn)
            rows.sort(key=lambda t: t.date)
            return rows
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

    async def insert_transaction(self, transaction: Transaction) -> Transaction:
        return self._insert(self._transactions, [transaction], "transaction")[0]

    async def insert_transactions(self, transactions: list[Transaction]) -> list[Transaction]:
        return self._insert(self._transactions, transactions, "transaction")

    @retry(**SHEETS_RETRY)
    async def update_transaction(self, transaction: Transaction) -> Transaction:
        return self._replace(self._transactions, transaction.id, transaction, "transaction")

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        return self._delete(self._transactions, transaction_id, "transaction")

    # Goals

    @retry(**SHEETS_RETRY)
    async def list_goals(self, owner_id: UUID) -> list[SavingsGoal]:
        try:
            return [g for g in self._goals.all() if g.owner_id == owner_id]
        except Exception as e:
            raise StorageError(f"Failed to list goals: {e}")

    @retry(**SHEETS_RETRY)
    async def get_goal(self, goal_id: UUID) -> Optional[SavingsGoal]:
        try:
            return next((g for g in self._goals.all() if g.id == goal_id), None)
        except Exception as e:
            raise StorageError(f"Failed to get goal: {e}")

    async def insert_goals(self, goals: list[SavingsGoal]) -> list[SavingsGoal]:
        return self._insert(self._goals, goals, "goal")

    @retry(**SHEETS_RETRY)
    async def update_goal(self, goal: SavingsGoal) -> SavingsGoal:
        return self._replace(self._goals, goal.id, goal, "goal")

    async def add_to_goal_amount(self, goal_id: UUID, delta: Decimal) -> SavingsGoal:
        goal = await self.get_goal(goal_id)
        if goal is None:
            raise NotFoundError(f"Goal not found: {goal_id}")
        updated = goal.model_copy(update={"current_amount": goal.current_amount + delta})
        return self._replace(self._goals, goal_id, updated, "goal")

    async def delete_goal(self, goal_id: UUID) -> bool:
        return self._delete(self._goals, goal_id, "goal")

    # Contributions

    async def insert_contribution(self, contribution: GoalContribution) -> GoalContribution:
        return self._insert(self._contributions, [contribution], "contribution")[0]

    @retry(**SHEETS_RETRY)
    async def list_contributions(self, goal_id: UUID) -> list[GoalContribution]:
        try:
            rows = [c for c in self._contributions.all() if c.goal_id == goal_id]
            rows.sort(key=lambda c: c.contribution_date, reverse=True)
            return rows
        except Exception as e:
            raise StorageError(f"Failed to list contributions: {e}")

    async def delete_contribution(self, contribution_id: UUID) -> bool:
        return self._delete(self._contributions, contribution_id, "contribution")

    # Recurring

    @retry(**SHEETS_RETRY)
    async def list_recurring(self, owner_id: UUID) -> list[RecurringTransaction]:
        try:
            return [r for r in self._recurring.all() if r.owner_id == owner_id]
        except Exception as e:
            raise StorageError(f"Failed to list recurring transactions: {e}")

    @retry(**SHEETS_RETRY)
    async def get_recurring(self, recurring_id: UUID) -> Optional[RecurringTransaction]:
        try:
            return next((r for r in self._recurring.all() if r.id == recurring_id), None)
        except Exception as e:
            raise StorageError(f"Failed to get recurring transaction: {e}")

    async def insert_recurring(
        self,
        items: list[RecurringTransaction],
    ) -> list[RecurringTransaction]:
        return self._insert(self._recurring, items, "recurring transaction")

    async def delete_recurring(self, recurring_id: UUID) -> bool:
        return self._delete(self._recurring, recurring_id, "recurring transaction")

    @retry(**SHEETS_RETRY, retry=retry_if_not_exception_type(NotFoundError))
    async def update_schedule(
        self,
        obligation_id: UUID,
        last_occurrence: date,
        next_occurrence: date,
    ) -> Union[RecurringTransaction, AutoContribution]:
        schedule = {"last_occurrence": last_occurrence, "next_occurrence": next_occurrence}
        try:
            recurring = next((r for r in self._recurring.all() if r.id == obligation_id), None)
            if recurring is not None:
                updated = recurring.model_copy(update=schedule)
                self._recurring.replace(str(obligation_id), updated)
                return updated

            for goal in self._goals.all():
                rule = goal.auto_contribution
                if rule is not None and rule.id == obligation_id:
                    updated_rule = rule.model_copy(update=schedule)
                    self._goals.replace(
                        str(goal.id),
                        goal.model_copy(update={"auto_contribution": updated_rule}),
                    )
                    return updated_rule
        except Exception as e:
            raise StorageError(f"Failed to update schedule: {e}")

        raise NotFoundError(f"Scheduled obligation not found: {obligation_id}")

    # Budgets & settings

    @retry(**SHEETS_RETRY)
    async def list_budgets(self, owner_id: UUID) -> list[CategoryBudget]:
        try:
            return [b for b in self._budgets.all() if b.owner_id == owner_id]
        except Exception as e:
            raise StorageError(f"Failed to list budgets: {e}")

    @retry(**SHEETS_RETRY)
    async def upsert_budgets(self, budgets: list[CategoryBudget]) -> list[CategoryBudget]:
        try:
            existing = self._budgets.all()
            stored, new_rows = [], []
            for budget in budgets:
                match = next(
                    (
                        b for b in existing
                        if b.owner_id == budget.owner_id
                        and b.category_id == budget.category_id
                        and b.period == budget.period
                    ),
                    None,
                )
                if match:
                    row = budget.model_copy(update={"id": match.id})
                    self._budgets.replace(str(match.id), row)
                else:
                    row = budget
                    new_rows.append(row)
                stored.append(row)
            self._budgets.append(new_rows)
            return stored
        except Exception as e:
            raise StorageError(f"Failed to upsert budgets: {e}")

    @retry(**SHEETS_RETRY)
    async def get_user_settings(self, owner_id: UUID) -> Optional[UserSettings]:
        try:
            return next((s for s in self._user_settings.all() if s.owner_id == owner_id), None)
        except Exception as e:
            raise StorageError(f"Failed to get user settings: {e}")

    @retry(**SHEETS_RETRY)
    async def upsert_user_settings(self, settings: UserSettings) -> UserSettings:
        try:
            if not self._user_settings.replace(str(settings.owner_id), settings):
                self._user_settings.append([settings])
            return settings
        except Exception as e:
            raise StorageError(f"Failed to upsert user settings: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(
            self._client.settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=safe_get(1),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _all_events(self) -> list[AuditEvent]:
        events = []
        for row in self._sheet().get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception:
                continue
        return events

    @retry(**SHEETS_RETRY)
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._sheet().append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning("audit_event_not_persisted", event_id=str(event.event_id), error=str(e))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._all_events() if e.correlation_id == correlation_id]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = sorted(self._all_events(), key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
