"""Tests for two-stage validation."""

import pytest
from decimal import Decimal
from uuid import uuid4

from budget_manager.validation import (
    BackupValidator,
    ValidationError,
    get_user_friendly_summary,
    validate_obligation,
    validate_percentages,
)

from tests.factories import make_recurring


def _backup(**overrides):
    document = {
        "version": "1.0",
        "exportDate": "2025-10-01T12:00:00Z",
        "categories": [
            {"id": "c1", "name": "Groceries", "type": "expense"},
            {"id": "c2", "name": "Salary", "type": "income"},
        ],
        "transactions": [
            {"id": "t1", "category_id": "c1", "amount": "42.50", "date": "2025-09-14", "type": "expense"},
        ],
    }
    document.update(overrides)
    return document


class TestSchemaValidation:
    """Stage 1: shape and types."""

    def test_valid_document_parses(self):
        document = BackupValidator().parse(_backup())
        assert len(document.categories) == 2
        assert document.transactions[0].amount == Decimal("42.50")

    def test_non_object_rejected(self):
        result, document = BackupValidator().validate(["not", "a", "backup"])
        assert document is None
        assert result.issues[0].issue_type == "invalid_format"

    def test_missing_required_fields(self):
        raw = _backup()
        del raw["version"]
        del raw["transactions"]

        result, _ = BackupValidator().validate(raw)

        assert {i.field for i in result.issues} == {"version", "transactions"}
        assert result.error_count == 2

    def test_categories_must_be_a_list(self):
        result, _ = BackupValidator().validate(_backup(categories={"c1": "Groceries"}))
        assert result.issues[0].field == "categories"

    def test_bad_row_reported_with_location(self):
        raw = _backup(transactions=[
            {"category_id": "c1", "amount": "-3", "date": "2025-09-14", "type": "expense"},
        ])
        result, document = BackupValidator().validate(raw)
        assert document is None
        assert result.issues[0].field.startswith("transactions.0")

    def test_parse_raises_with_issues(self):
        with pytest.raises(ValidationError) as exc_info:
            BackupValidator().parse({})
        assert len(exc_info.value.issues) == 4


class TestSemanticValidation:
    """Stage 2: version, duplicates and references."""

    def test_other_major_version_rejected(self):
        with pytest.raises(ValidationError):
            BackupValidator().parse(_backup(version="2.0"))

    def test_minor_version_accepted(self):
        assert BackupValidator().parse(_backup(version="1.3")).version == "1.3"

    def test_duplicate_category_ids_rejected(self):
        raw = _backup(categories=[
            {"id": "c1", "name": "Groceries", "type": "expense"},
            {"id": "c1", "name": "Food", "type": "expense"},
        ])
        result, _ = BackupValidator().validate(raw)
        assert result.has_errors

    def test_dangling_reference_is_a_warning(self):
        raw = _backup(transactions=[
            {"category_id": "gone", "amount": "10", "date": "2025-09-14", "type": "expense"},
        ])
        result, document = BackupValidator().validate(raw)
        assert result.is_valid
        assert result.warnings[0].issue_type == "dangling_reference"
        assert document is not None

    def test_goal_over_target_is_a_warning(self):
        raw = _backup(savingsGoals=[
            {"name": "Trip", "target_amount": "100", "current_amount": "150"},
        ])
        result, _ = BackupValidator().validate(raw)
        assert result.is_valid
        assert len(result.warnings) == 1


class TestObligationValidation:
    """Tests for validate_obligation and validate_percentages."""

    def test_positive_amount_passes(self):
        validate_obligation(make_recurring(uuid4(), uuid4(), amount="10"))

    def test_zero_amount_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_obligation(make_recurring(uuid4(), uuid4(), amount="0"))
        assert exc_info.value.issues[0].field == "amount"

    def test_percentages_must_sum_to_100(self):
        validate_percentages(60, 30, 10)
        validate_percentages(33.33, 33.33, 33.34)
        with pytest.raises(ValidationError):
            validate_percentages(50, 30, 30)


class TestUserFriendlySummary:
    """Tests for the non-technical summary."""

    def test_clean_result(self):
        result, _ = BackupValidator().validate(_backup())
        assert get_user_friendly_summary(result) == "✅ All checks passed."

    def test_errors_listed(self):
        result, _ = BackupValidator().validate(_backup(version="9.0"))
        summary = get_user_friendly_summary(result)
        assert "could not be used" in summary
        assert "9.0" in summary
