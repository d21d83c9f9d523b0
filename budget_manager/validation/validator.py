"""
Two-Stage Validation

DESIGN DECISION: Inputs that lead to writes are validated before the first
write happens, in two stages:

STAGE 1 - SCHEMA VALIDATION:
- Required top-level fields of a backup document
- Type and format checks (delegated to the pydantic models)

STAGE 2 - SEMANTIC VALIDATION:
- Supported schema version
- Duplicate ids inside the document
- References to categories the document doesn't contain
- Goals already past their target

Errors block the operation with a ValidationError. Warnings are reported
and the operation proceeds.

IMPORTANT: Validation NEVER silently fixes issues.
"""

from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from budget_manager.config import get_settings
from budget_manager.models.backup import BackupDocument
from budget_manager.models.finance import AutoContribution, RecurringTransaction
from budget_manager.models.validation import ValidationIssue, ValidationResult

REQUIRED_BACKUP_FIELDS = ("version", "exportDate", "categories", "transactions")


class ValidationError(Exception):
    """Input rejected before any mutation."""

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        self.issues = issues or []
        super().__init__(message)


def validate_obligation(obligation: Union[AutoContribution, RecurringTransaction]) -> None:
    """
    Reject obligations that must never be materialized.

    Raises:
        ValidationError: If the configured amount is not positive
    """
    if obligation.amount <= 0:
        raise ValidationError(
            f"Obligation {obligation.id} has a non-positive amount ({obligation.amount})",
            issues=[ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Configured amount must be greater than zero",
                severity="error",
                suggested_fix="Edit the schedule and set a positive amount",
            )],
        )


def validate_percentages(needs: float, wants: float, savings: float) -> None:
    """Allocation percentages must add up to 100 (within 0.01)."""
    total = needs + wants + savings
    if abs(total - 100) > 0.01:
        raise ValidationError(
            "Percentages must add up to 100%",
            issues=[ValidationIssue(
                field="percentages",
                issue_type="invalid_value",
                message=f"Percentages add up to {total:g}%, expected 100%",
                severity="error",
            )],
        )


class BackupValidator:
    """
    Validates a decoded backup document.

    Stage 1: Schema validation (top-level shape, then the pydantic models)
    Stage 2: Semantic validation (only if stage 1 passes)
    """

    def __init__(self, supported_version: Optional[str] = None):
        self._supported_version = (
            supported_version or get_settings().app.backup_schema_version
        )

    def _validate_schema(
        self,
        raw: Any,
    ) -> tuple[Optional[BackupDocument], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (document or None, list_of_issues)
        """
        issues = []

        if not isinstance(raw, dict):
            issues.append(ValidationIssue(
                field="document",
                issue_type="invalid_format",
                message="Backup must be a JSON object",
                severity="error",
                suggested_fix="Select a file created by the export feature",
            ))
            return None, issues

        for field in REQUIRED_BACKUP_FIELDS:
            if field not in raw or raw[field] is None:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="missing",
                    message=f"Required field '{field}' is missing",
                    severity="error",
                    suggested_fix="The file may be truncated or not a backup",
                ))

        for field in ("categories", "transactions"):
            if field in raw and raw[field] is not None and not isinstance(raw[field], list):
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="invalid_format",
                    message=f"'{field}' must be a list",
                    severity="error",
                ))

        if issues:
            return None, issues

        try:
            document = BackupDocument.model_validate(raw)
        except PydanticValidationError as e:
            for error in e.errors():
                location = ".".join(str(part) for part in error["loc"])
                issues.append(ValidationIssue(
                    field=location or "document",
                    issue_type="invalid_value",
                    message=error["msg"],
                    severity="error",
                ))
            return None, issues

        return document, issues

    def _validate_semantic(self, document: BackupDocument) -> list[ValidationIssue]:
        """
        Stage 2: Semantic validation.

        Checks:
        - Schema version compatibility
        - Duplicate category ids
        - Dangling category references
        - Goals whose current amount exceeds the target
        """
        issues = []

        supported_major = self._supported_version.split(".")[0]
        if document.version.split(".")[0] != supported_major:
            issues.append(ValidationIssue(
                field="version",
                issue_type="unsupported_version",
                message=(
                    f"Backup version {document.version} is not supported "
                    f"(expected {self._supported_version})"
                ),
                severity="error",
            ))

        category_ids = [c.id for c in document.categories]
        if len(set(category_ids)) != len(category_ids):
            issues.append(ValidationIssue(
                field="categories",
                issue_type="duplicate",
                message="Backup contains duplicate category ids",
                severity="error",
            ))

        known = set(category_ids)
        dangling = sum(1 for t in document.transactions if t.category_id not in known)
        dangling += sum(1 for b in document.category_budgets if b.category_id not in known)
        dangling += sum(1 for r in document.recurring_transactions if r.category_id not in known)
        if dangling:
            issues.append(ValidationIssue(
                field="category_id",
                issue_type="dangling_reference",
                message=f"{dangling} rows reference categories not present in the backup",
                severity="warning",
                suggested_fix="These rows keep their original category id",
            ))

        for goal in document.savings_goals:
            if goal.current_amount > goal.target_amount:
                issues.append(ValidationIssue(
                    field="savingsGoals",
                    issue_type="suspicious_value",
                    message=f"Goal '{goal.name}' is above its target",
                    severity="warning",
                ))
            rule = goal.auto_contribution
            if rule is not None and rule.amount <= Decimal("0"):
                issues.append(ValidationIssue(
                    field="savingsGoals.auto_contribution",
                    issue_type="invalid_value",
                    message=f"Auto-contribution of goal '{goal.name}' has a non-positive amount",
                    severity="warning",
                ))

        return issues

    def validate(self, raw: Any) -> tuple[ValidationResult, Optional[BackupDocument]]:
        """
        Run full two-stage validation.

        Returns:
            The result and, when stage 1 passed, the parsed document
        """
        document, issues = self._validate_schema(raw)
        if document is not None:
            issues.extend(self._validate_semantic(document))
        return ValidationResult(subject="backup", issues=issues), document

    def parse(self, raw: Any) -> BackupDocument:
        """
        Validate and return the document.

        Raises:
            ValidationError: If any error-level issue was found
        """
        result, document = self.validate(raw)
        if result.has_errors or document is None:
            raise ValidationError(
                f"Backup rejected: {result.error_count} error(s)",
                issues=result.issues,
            )
        return document


def get_user_friendly_summary(result: ValidationResult) -> str:
    """
    Generate a user-friendly summary of validation results.

    This is what we show to non-technical users.
    """
    if result.is_valid and not result.warnings:
        return "✅ All checks passed."

    lines = []

    if result.has_errors:
        lines.append("❌ The file could not be used:")
        for issue in result.issues:
            if issue.severity == "error":
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

    if result.warnings:
        lines.append("")
        lines.append("⚠️ Please note:")
        for warning in result.warnings:
            lines.append(f"   • {warning.message}")

    return "\n".join(lines).strip()
