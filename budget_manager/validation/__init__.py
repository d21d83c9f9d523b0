"""Validation package."""

from budget_manager.validation.validator import (
    BackupValidator,
    ValidationError,
    get_user_friendly_summary,
    validate_obligation,
    validate_percentages,
)

__all__ = [
    "BackupValidator",
    "ValidationError",
    "get_user_friendly_summary",
    "validate_obligation",
    "validate_percentages",
]
