"""
Budget Alerts

Turns budget statuses into alerts and suppresses alerts the user has
already seen.

DESIGN DECISION: Where "already shown" is remembered is an injected
capability (AlertHistory). The core never touches browser storage, files
or the clock on its own: the in-memory history takes a clock, the file
history takes a path.

An alert is identified by budget, status and 10% band, so crossing from
85% to 95% raises a new warning while 85% to 88% does not. Entries expire
after `alert_history_ttl_hours` (24h by default).
"""

import json
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence, Union

import structlog

from budget_manager.config import get_settings
from budget_manager.models.analytics import AlertCounts, BudgetAlert, BudgetWithSpending
from budget_manager.models.finance import BudgetStatus

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AlertHistory(ABC):
    """Remembers which alert keys have been shown."""

    @abstractmethod
    def has_shown(self, key: str) -> bool:
        pass

    @abstractmethod
    def mark_shown(self, key: str) -> None:
        pass


class InMemoryAlertHistory(AlertHistory):
    """Alert keys with the time they were shown; expired keys count as unseen."""

    def __init__(self, ttl_hours: Optional[int] = None, clock: Optional[Clock] = None):
        hours = ttl_hours or get_settings().app.alert_history_ttl_hours
        self._ttl = timedelta(hours=hours)
        self._clock = clock or _utc_now
        self._shown: dict[str, datetime] = {}

    def _prune(self) -> None:
        cutoff = self._clock() - self._ttl
        self._shown = {k: t for k, t in self._shown.items() if t > cutoff}

    def has_shown(self, key: str) -> bool:
        self._prune()
        return key in self._shown

    def mark_shown(self, key: str) -> None:
        self._shown[key] = self._clock()


class JsonFileAlertHistory(InMemoryAlertHistory):
    """
    InMemoryAlertHistory persisted to a JSON file of {key: ISO timestamp}.

    A missing or unreadable file starts an empty history.
    """

    def __init__(
        self,
        path: Union[str, Path],
        ttl_hours: Optional[int] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(ttl_hours=ttl_hours, clock=clock)
        self._path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            self._shown = {k: datetime.fromisoformat(v) for k, v in raw.items()}
        except (OSError, ValueError, AttributeError) as e:
            logger.warning("alert_history_unreadable", path=str(self._path), error=str(e))
            self._shown = {}

    def _save(self) -> None:
        self._prune()
        data = {k: t.isoformat() for k, t in self._shown.items()}
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def mark_shown(self, key: str) -> None:
        super().mark_shown(key)
        self._save()


def collect_budget_alerts(budgets: Iterable[BudgetWithSpending]) -> list[BudgetAlert]:
    """Alerts for every budget in warning or exceeded state, exceeded first."""
    alerts = [
        BudgetAlert(
            budget_id=b.budget_id,
            category_name=b.category_name,
            amount=b.amount,
            spent=b.spent,
            percentage=b.percentage,
            status=b.status,
        )
        for b in budgets
        if b.status in (BudgetStatus.WARNING, BudgetStatus.EXCEEDED)
    ]
    return sorted(alerts, key=lambda a: a.status != BudgetStatus.EXCEEDED)


def filter_new_alerts(
    alerts: Sequence[BudgetAlert],
    history: AlertHistory,
    mark: bool = True,
) -> list[BudgetAlert]:
    """
    Alerts whose key hasn't been shown yet.

    With `mark` (the default) the returned alerts are recorded as shown.
    """
    fresh = [alert for alert in alerts if not history.has_shown(alert.key)]
    if mark:
        for alert in fresh:
            history.mark_shown(alert.key)
    return fresh


def alert_counts(budgets: Iterable[BudgetWithSpending]) -> AlertCounts:
    counts = AlertCounts()
    for budget in budgets:
        if budget.status == BudgetStatus.EXCEEDED:
            counts.exceeded_count += 1
        elif budget.status == BudgetStatus.WARNING:
            counts.warning_count += 1
    return counts


def alert_message(alert: BudgetAlert) -> tuple[str, str]:
    """Title and body for a notification."""
    if alert.status == BudgetStatus.EXCEEDED:
        overspent = alert.spent - alert.amount
        return (
            f"Budget Exceeded: {alert.category_name}",
            f"You've exceeded your budget by ${overspent:,.2f}. "
            f"Current spending: ${alert.spent:,.2f} of ${alert.amount:,.2f}.",
        )
    remaining = alert.amount - alert.spent
    return (
        f"Budget Alert: {alert.category_name}",
        f"You've used {alert.percentage:.1f}% of your budget. "
        f"Only ${remaining:,.2f} remaining.",
    )
