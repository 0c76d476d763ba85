"""
Subscription Input Validation

Checks raw form input before it becomes a Subscription record.

ERRORS block saving:
- blank service name, or a name or note over the record length limits
- amount that is not a number, or is negative
- first payment date that is not YYYY-MM-DD or not a calendar date
- currency code that is not three letters

WARNINGS are shown but do not block:
- currency not in the supported list (it will be treated as base currency
  unless a rate is entered for it)
- unusually large amount
- first payment date far in the future

IMPORTANT: Validation never silently fixes values beyond trimming whitespace.
"""

import re
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID

from subtrack.billing.projector import InvalidDateError, parse_date
from subtrack.config import get_settings
from subtrack.models.subscription import (
    NOTE_MAX_LENGTH,
    SERVICE_NAME_MAX_LENGTH,
    Subscription,
    SubscriptionDraft,
    ValidationIssue,
    ValidationResult,
)


_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class SubscriptionValidator:
    """
    Validates subscription drafts and turns valid ones into records.
    """

    def __init__(self):
        self._settings = get_settings().app

    def _parse_amount(self, raw: str) -> Optional[Decimal]:
        try:
            amount = Decimal(raw)
        except InvalidOperation:
            return None
        if not amount.is_finite():
            return None
        return amount

    def _parse_first_payment_date(self, raw: str) -> Optional[date]:
        if not _DATE_PATTERN.match(raw):
            return None
        try:
            return parse_date(raw)
        except InvalidDateError:
            return None

    def validate(
        self,
        draft: SubscriptionDraft,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        Validate a draft.

        Args:
            draft: Raw form input
            today: Reference date for the future-date check (defaults to today)

        Returns:
            ValidationResult with all issues found
        """
        today = today or date.today()
        issues = []

        if not draft.service_name:
            issues.append(ValidationIssue(
                field="service_name",
                issue_type="missing",
                message="Please enter a service name",
                severity="error",
            ))
        elif len(draft.service_name) > SERVICE_NAME_MAX_LENGTH:
            issues.append(ValidationIssue(
                field="service_name",
                issue_type="too_long",
                message=f"Service name must be at most {SERVICE_NAME_MAX_LENGTH} characters",
                severity="error",
            ))

        if len(draft.note) > NOTE_MAX_LENGTH:
            issues.append(ValidationIssue(
                field="note",
                issue_type="too_long",
                message=f"Note must be at most {NOTE_MAX_LENGTH} characters",
                severity="error",
            ))

        amount = self._parse_amount(draft.amount)
        if amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message="Please enter a valid amount",
                severity="error",
            ))
        elif amount < 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be zero or more",
                severity="error",
            ))
        elif amount > Decimal(str(self._settings.max_subscription_amount)):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({amount:,}) seems unusually high",
                severity="warning",
            ))

        code = draft.currency_code.upper()
        if len(code) != 3 or not code.isalpha():
            issues.append(ValidationIssue(
                field="currency_code",
                issue_type="invalid_format",
                message=f"Invalid currency code: {draft.currency_code!r}",
                severity="error",
            ))
        elif code not in self._settings.supported_currencies_list:
            issues.append(ValidationIssue(
                field="currency_code",
                issue_type="unsupported",
                message=(
                    f"{code} is not a supported currency; "
                    f"amounts will count as {self._settings.base_currency_code} "
                    f"until a rate is set"
                ),
                severity="warning",
            ))

        first_payment = self._parse_first_payment_date(draft.first_payment_date)
        if first_payment is None:
            issues.append(ValidationIssue(
                field="first_payment_date",
                issue_type="invalid_format",
                message="Please choose a valid date (YYYY-MM-DD)",
                severity="error",
            ))
        elif first_payment > today + timedelta(days=self._settings.future_date_tolerance_days):
            issues.append(ValidationIssue(
                field="first_payment_date",
                issue_type="future_date",
                message=f"First payment date ({first_payment}) is far in the future",
                severity="warning",
            ))

        warnings = [issue.message for issue in issues if issue.severity == "warning"]
        is_valid = not any(issue.severity == "error" for issue in issues)

        return ValidationResult(
            is_valid=is_valid,
            issues=issues,
            warnings=warnings,
        )

    def build_subscription(
        self,
        draft: SubscriptionDraft,
        subscription_id: Optional[UUID] = None,
    ) -> Subscription:
        """
        Build a Subscription from a draft that passed validation.

        Raises:
            ValueError: if the draft has not been validated
        """
        amount = self._parse_amount(draft.amount)
        first_payment = self._parse_first_payment_date(draft.first_payment_date)
        if amount is None or first_payment is None:
            raise ValueError("Draft must pass validation before building a subscription")

        fields = dict(
            service_name=draft.service_name,
            amount=amount,
            currency_code=draft.currency_code,
            cycle=draft.cycle,
            first_payment_date=first_payment,
            usage_frequency=draft.frequency.value,
            note=draft.note or None,
            icon_url=draft.icon_url,
        )
        if subscription_id is not None:
            fields["id"] = subscription_id
        return Subscription(**fields)

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Summary of validation results to show under the form.
        """
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []

        if result.has_errors:
            lines.append("Please fix the following:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
