"""Tests for budget alerts and alert history."""

import json
from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

from budget_manager.analytics import (
    InMemoryAlertHistory,
    JsonFileAlertHistory,
    alert_counts,
    alert_message,
    collect_budget_alerts,
    filter_new_alerts,
)
from budget_manager.models.analytics import BudgetAlert, BudgetWithSpending
from budget_manager.models.finance import BudgetPeriod, BudgetStatus


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def _budget(status, percentage, spent=None, amount=100.0, name="Dining"):
    spent = percentage if spent is None else spent
    return BudgetWithSpending(
        budget_id=uuid4(),
        category_id=uuid4(),
        category_name=name,
        period=BudgetPeriod.MONTHLY,
        period_start=date(2025, 10, 1),
        period_end=date(2025, 10, 31),
        amount=amount,
        spent=spent,
        remaining=amount - spent,
        percentage=percentage,
        status=status,
    )


def _alert(percentage, status=BudgetStatus.WARNING):
    return BudgetAlert(
        budget_id=uuid4(),
        category_name="Dining",
        amount=100.0,
        spent=percentage,
        percentage=percentage,
        status=status,
    )


class TestCollectAlerts:
    """Tests for turning budgets into alerts."""

    def test_only_warning_and_exceeded_exceeded_first(self):
        budgets = [
            _budget(BudgetStatus.SAFE, 20),
            _budget(BudgetStatus.WARNING, 85, name="Dining"),
            _budget(BudgetStatus.EXCEEDED, 130, name="Fuel"),
        ]

        alerts = collect_budget_alerts(budgets)

        assert [a.category_name for a in alerts] == ["Fuel", "Dining"]
        counts = alert_counts(budgets)
        assert (counts.exceeded_count, counts.warning_count, counts.total_count) == (1, 1, 2)

    def test_key_uses_ten_percent_band(self):
        alert = _alert(87.5)
        assert alert.key == f"{alert.budget_id}-warning-8"

    def test_messages(self):
        title, body = alert_message(_alert(130, BudgetStatus.EXCEEDED))
        assert title == "Budget Exceeded: Dining"
        assert "$30.00" in body

        title, body = alert_message(_alert(85))
        assert title == "Budget Alert: Dining"
        assert "85.0%" in body
        assert "$15.00 remaining" in body


class TestAlertHistory:
    """Tests for de-duplication across runs."""

    def test_alert_shown_once(self):
        history = InMemoryAlertHistory(ttl_hours=24, clock=FakeClock(datetime(2025, 10, 1, tzinfo=timezone.utc)))
        alert = _alert(85)

        assert filter_new_alerts([alert], history) == [alert]
        assert filter_new_alerts([alert], history) == []

    def test_new_band_is_a_new_alert(self):
        history = InMemoryAlertHistory(ttl_hours=24, clock=FakeClock(datetime(2025, 10, 1, tzinfo=timezone.utc)))
        alert = _alert(85)
        filter_new_alerts([alert], history)

        crossed = alert.model_copy(update={"percentage": 95.0})
        assert filter_new_alerts([crossed], history) == [crossed]

    def test_entries_expire(self):
        clock = FakeClock(datetime(2025, 10, 1, 8, tzinfo=timezone.utc))
        history = InMemoryAlertHistory(ttl_hours=24, clock=clock)
        alert = _alert(85)
        filter_new_alerts([alert], history)

        clock.now += timedelta(hours=23)
        assert filter_new_alerts([alert], history) == []

        clock.now += timedelta(hours=2)
        assert filter_new_alerts([alert], history) == [alert]

    def test_peek_without_marking(self):
        history = InMemoryAlertHistory(ttl_hours=24)
        alert = _alert(85)
        assert filter_new_alerts([alert], history, mark=False) == [alert]
        assert not history.has_shown(alert.key)

    def test_json_file_history_persists(self, tmp_path):
        path = tmp_path / "alerts.json"
        clock = FakeClock(datetime(2025, 10, 1, tzinfo=timezone.utc))
        alert = _alert(85)

        filter_new_alerts([alert], JsonFileAlertHistory(path, ttl_hours=24, clock=clock))

        assert alert.key in json.loads(path.read_text(encoding="utf-8"))
        reloaded = JsonFileAlertHistory(path, ttl_hours=24, clock=clock)
        assert reloaded.has_shown(alert.key)

    def test_unreadable_file_starts_empty(self, tmp_path):
        path = tmp_path / "alerts.json"
        path.write_text("not json", encoding="utf-8")
        history = JsonFileAlertHistory(path, ttl_hours=24)
        assert not history.has_shown("anything")
