"""
Configuration Management for Budget Manager

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Business thresholds (budget warning levels, import batch size, forecast
window) live next to the storage configuration so a deployment can see every
tunable in one place.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # One worksheet per table
    categories_sheet_name: str = Field(default="Categories")
    transactions_sheet_name: str = Field(default="Transactions")
    goals_sheet_name: str = Field(default="SavingsGoals")
    contributions_sheet_name: str = Field(default="GoalContributions")
    recurring_sheet_name: str = Field(default="RecurringTransactions")
    budgets_sheet_name: str = Field(default="CategoryBudgets")
    user_settings_sheet_name: str = Field(default="UserSettings")
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Budget status thresholds (percent of budget amount)
    budget_warning_threshold_pct: float = Field(
        default=80.0,
        gt=0.0,
        description="Spending percentage at which a budget turns to warning"
    )
    budget_exceeded_threshold_pct: float = Field(
        default=100.0,
        gt=0.0,
        description="Spending percentage at which a budget is exceeded"
    )

    # Backup
    backup_schema_version: str = Field(
        default="1.0",
        description="Schema version written into exported backups"
    )
    import_batch_size: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Rows per insert request when restoring transactions"
    )

    # Analytics windows
    forecast_history_months: int = Field(
        default=6,
        ge=1,
        le=36,
        description="Months of history averaged by the cash-flow forecast"
    )
    upcoming_window_days: int = Field(
        default=7,
        ge=1,
        description="Look-ahead window for upcoming recurring transactions"
    )
    alert_history_ttl_hours: int = Field(
        default=24,
        ge=1,
        description="How long a shown budget alert stays suppressed"
    )

    @model_validator(mode='after')
    def validate_thresholds(self) -> 'AppSettings':
        if self.budget_warning_threshold_pct > self.budget_exceeded_threshold_pct:
            raise ValueError("Budget warning threshold cannot exceed the exceeded threshold")
        return self


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Loaded lazily to allow partial configuration (no sheets in tests)

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.google_sheets
        results["google_sheets"] = True
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
