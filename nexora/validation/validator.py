"""
Two-Stage Transaction Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence (date, type, category, amount)
- Type and format checking
- Transaction invariants (amount > 0, TEAM expenses name investors)
- This catches malformed form input

STAGE 2 - SEMANTIC VALIDATION:
- Attachment decodes, fits the size limit, and images are real images
- Future date detection
- Bank card references point at a stored card
- This catches data that is well-formed but wrong

Stage 2 only runs when stage 1 produced a draft.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them so the form can show them.
"""

import datetime as dt
from typing import Any, Callable, Iterable, Optional, Union

from pydantic import ValidationError

from nexora.config import AppSettings, get_settings
from nexora.models.finance import (
    BankAccount,
    TransactionDraft,
    ValidationIssue,
    ValidationResult,
)
from nexora.services.attachments import (
    AttachmentError,
    AttachmentTooLargeError,
    inspect_attachment,
)

_SCHEMA_FIXES = {
    "amount": "Enter an amount greater than zero",
    "category": "Pick or type a category",
    "date": "Use the YYYY-MM-DD format",
    "type": "Choose income or expense",
    "payment_method": "Choose one of the listed payment methods",
}


_ALIAS_TO_FIELD = {
    field.alias: name
    for name, field in TransactionDraft.model_fields.items()
    if field.alias
}


def _field_name(loc: tuple) -> str:
    # loc carries camelCase aliases; report python names
    parts = [_ALIAS_TO_FIELD.get(str(part), str(part)) for part in loc]
    return ".".join(parts) if parts else "transaction"


class TransactionValidator:
    """
    Validates transaction form input through a two-stage pipeline.

    Stage 1: Schema validation (pydantic, TransactionDraft)
    Stage 2: Semantic validation (attachment, dates, bank card)
    """

    def __init__(
        self,
        app_settings: Optional[AppSettings] = None,
        today: Optional[Callable[[], dt.date]] = None,
    ):
        """
        Initialize validator.

        Args:
            app_settings: Limits and tolerances; defaults to get_settings().app
            today: Clock for the future date check
        """
        self._settings = app_settings or get_settings().app
        self._today = today or dt.date.today

    def _validate_schema(
        self,
        payload: Union[TransactionDraft, dict[str, Any]],
    ) -> tuple[Optional[TransactionDraft], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (draft_or_none, list_of_issues)
        """
        if isinstance(payload, TransactionDraft):
            return payload, []

        try:
            return TransactionDraft.model_validate(payload), []
        except ValidationError as e:
            issues = []
            for error in e.errors(include_url=False):
                field = _field_name(error["loc"])
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="missing" if error["type"] == "missing" else "invalid_value",
                    message=error["msg"],
                    severity="error",
                    suggested_fix=_SCHEMA_FIXES.get(field),
                ))
            return None, issues

    def _validate_semantic(
        self,
        draft: TransactionDraft,
        bank_accounts: Optional[Iterable[BankAccount]] = None,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if draft.attachment:
            try:
                inspect_attachment(draft.attachment, self._settings.max_attachment_size_bytes)
            except AttachmentTooLargeError as e:
                issues.append(ValidationIssue(
                    field="attachment",
                    issue_type="too_large",
                    message=str(e),
                    severity="error",
                    suggested_fix=f"Attach a file under {self._settings.max_attachment_size_mb} MB",
                ))
            except AttachmentError as e:
                issues.append(ValidationIssue(
                    field="attachment",
                    issue_type="invalid_attachment",
                    message=str(e),
                    severity="error",
                    suggested_fix="Attach the file again",
                ))

        # Future date check (with tolerance)
        max_future_date = self._today() + dt.timedelta(days=self._settings.future_date_tolerance_days)
        if draft.date > max_future_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Transaction date ({draft.date}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        if draft.bank_account_id and bank_accounts is not None:
            known = {bank.id for bank in bank_accounts}
            if draft.bank_account_id not in known:
                issues.append(ValidationIssue(
                    field="bank_account_id",
                    issue_type="unknown_reference",
                    message="The selected bank card no longer exists",
                    severity="warning",
                    suggested_fix="Pick another card or leave it empty",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate(
        self,
        payload: Union[TransactionDraft, dict[str, Any]],
        bank_accounts: Optional[Iterable[BankAccount]] = None,
    ) -> ValidationResult:
        """
        Run the full two-stage validation pipeline.

        Args:
            payload: Form data (dict) or an already-built draft
            bank_accounts: Stored cards, for checking bank_account_id.
                           If None, that check is skipped.

        Returns:
            ValidationResult with all issues found and the parsed draft
        """
        all_issues = []

        # Stage 1: Schema validation
        draft, schema_issues = self._validate_schema(payload)
        all_issues.extend(schema_issues)
        schema_valid = draft is not None

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if draft is not None:
            semantic_valid, semantic_issues = self._validate_semantic(draft, bank_accounts)
            all_issues.extend(semantic_issues)

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
            draft=draft,
        )

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Generate a short summary of validation results for the entry form.
        """
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []

        if result.has_errors:
            lines.append("Please fix the following before saving:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"  - {issue.field}: {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"    ({issue.suggested_fix})")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please verify:")
            for warning in result.warnings:
                lines.append(f"  - {warning}")

        return "\n".join(lines)
