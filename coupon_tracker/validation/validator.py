"""
Input Validation

DESIGN DECISION: Validation happens BEFORE a mutation reaches a store.
The stores accept any well-typed model; whether the user filled in the
form properly is decided here.

Checks:
- Coupons: name, code and currency are required; description length
- Debits: the amount must be positive
- Groups and lists: names must not be blank
- Smart list conditions: operands must fit the field (warnings only,
  a condition with a missing operand simply never matches)

IMPORTANT: Validation NEVER raises and NEVER silently fixes input.
It reports issues; the caller refuses the operation.
"""

from decimal import Decimal
from typing import Optional

from coupon_tracker.config import AppSettings, get_settings
from coupon_tracker.models.coupon import Coupon, ValidationIssue, ValidationResult
from coupon_tracker.models.lists import ConditionField, CouponList


class CouponValidator:
    """
    Validates user input for coupons, debits, groups and lists.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        """
        Initialize validator.

        Args:
            settings: App settings (description cap). Defaults to the
                     cached application settings.
        """
        self._settings = settings or get_settings().app

    @staticmethod
    def _result(issues: list[ValidationIssue]) -> ValidationResult:
        return ValidationResult(
            is_valid=not any(issue.severity == "error" for issue in issues),
            issues=issues,
        )

    def validate_coupon(self, coupon: Coupon) -> ValidationResult:
        """
        Check that a coupon may be saved.

        Mirrors the save button rule: name, code and currency must be
        filled in.
        """
        issues = []

        if not coupon.name.strip():
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Coupon name is required",
                severity="error",
            ))

        if not coupon.code.strip():
            issues.append(ValidationIssue(
                field="code",
                issue_type="missing",
                message="Code or card number is required",
                severity="error",
                suggested_fix="Enter the code printed on the coupon",
            ))

        if not coupon.currency_code.strip():
            issues.append(ValidationIssue(
                field="currency_code",
                issue_type="missing",
                message="Currency is required",
                severity="error",
            ))

        max_length = self._settings.description_max_length
        if coupon.description and len(coupon.description) > max_length:
            issues.append(ValidationIssue(
                field="description",
                issue_type="too_long",
                message=f"Description is longer than {max_length} characters",
                severity="error",
                suggested_fix="Shorten the description",
            ))

        if coupon.remaining_value is not None and coupon.remaining_value == 0:
            issues.append(ValidationIssue(
                field="remaining_value",
                issue_type="suspicious_value",
                message="Coupon has no balance left",
                severity="info",
            ))

        return self._result(issues)

    def validate_amount(self, amount: Optional[Decimal]) -> ValidationResult:
        """A debit must take off a positive, finite amount."""
        issues = []
        if amount is None or not amount.is_finite() or amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount to use must be greater than zero",
                severity="error",
            ))
        return self._result(issues)

    def validate_group_name(self, name: str) -> ValidationResult:
        """Category and type names must not be blank."""
        issues = []
        if not name or not name.strip():
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Name cannot be empty",
                severity="error",
            ))
        return self._result(issues)

    def validate_list(self, coupon_list: CouponList) -> ValidationResult:
        """Check a list before it is created or updated."""
        issues = []

        if not coupon_list.name.strip():
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="List name is required",
                severity="error",
            ))

        if coupon_list.is_smart:
            for index, condition in enumerate(coupon_list.conditions):
                field = condition.field
                missing = (
                    (field.is_string and not condition.string_operand)
                    or (field == ConditionField.AMOUNT and condition.numeric_operand is None)
                    or (
                        field == ConditionField.EXPIRATION_DATE
                        and condition.date_operand is None
                        and condition.numeric_operand is None
                    )
                )
                if missing:
                    issues.append(ValidationIssue(
                        field=f"conditions[{index}]",
                        issue_type="missing_operand",
                        message=f"Rule on '{field.value}' has no value to compare with",
                        severity="warning",
                        suggested_fix="This rule will never match until a value is set",
                    ))
                elif field.is_string and not condition.operator.is_equality:
                    issues.append(ValidationIssue(
                        field=f"conditions[{index}]",
                        issue_type="unsupported_operator",
                        message=f"Text rule on '{field.value}' only supports equals / not equals",
                        severity="warning",
                    ))
                elif field.is_presence and not condition.operator.is_equality:
                    issues.append(ValidationIssue(
                        field=f"conditions[{index}]",
                        issue_type="unsupported_operator",
                        message=f"Rule on '{field.value}' only supports has / has not",
                        severity="warning",
                    ))

        return self._result(issues)

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.
        """
        if result.is_valid and not result.issues:
            return "✅ All checks passed!"

        lines = []

        errors = [issue for issue in result.issues if issue.severity == "error"]
        warnings = [issue for issue in result.issues if issue.severity == "warning"]

        if errors:
            lines.append("❌ Please fix the following:")
            for issue in errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

        if warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for issue in warnings:
                lines.append(f"   • {issue.message}")

        if not lines:
            return "✅ All checks passed!"

        return "\n".join(lines)
