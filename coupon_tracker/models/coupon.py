"""
Core Data Models for Coupon Tracker

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Decode older or partial snapshots with explicit defaults
3. Be serializable for storage and logging
4. Support the audit trail

DESIGN DECISION: Balances are Decimals, never floats.
Repeated debits on a gift card must not drift by fractions of a cent.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


DESCRIPTION_MAX_LENGTH = 500
DEFAULT_CURRENCY_CODE = "USD"


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Read naive datetimes as UTC, convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =============================================================================
# CORE COUPON MODEL
# =============================================================================

class Coupon(BaseModel):
    """
    A single tracked value unit: gift card, discount coupon or store credit.

    Every field except `id` and `created_at` may change over the coupon's
    life. `remaining_value` of None means the coupon has no tracked balance
    (e.g. a "20% off" code); otherwise it is never negative.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        description="Unique coupon ID"
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the coupon was created"
    )

    # What the user typed in
    name: str = Field(
        default="",
        max_length=200,
        description="Display name"
    )
    code: str = Field(
        default="",
        max_length=200,
        description="Code or card number (required to save, see CouponValidator)"
    )
    remaining_value: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Balance left on the coupon, None when not tracked"
    )
    currency_code: str = Field(
        default=DEFAULT_CURRENCY_CODE,
        max_length=10,
        description="Currency of the balance (3-letter convention, not enforced)"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=DESCRIPTION_MAX_LENGTH,
        description="Free-text notes"
    )
    expiration_date: Optional[datetime] = Field(
        default=None,
        description="When the coupon stops being valid"
    )

    # Free-text classification
    category: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Grouping category (may be outside the managed vocabulary)"
    )
    type: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Coupon type, e.g. 'Gift Cards'"
    )

    @field_validator('description', 'category', 'type', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        """Blank optional text is the same as no text."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('currency_code', mode='before')
    @classmethod
    def default_blank_currency(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_CURRENCY_CODE
        return v

    @property
    def has_balance(self) -> bool:
        """True when a tracked balance is left on the coupon."""
        return self.remaining_value is not None and self.remaining_value > 0

    @property
    def has_description(self) -> bool:
        return self.description is not None and bool(self.description.strip())

    def debited(self, amount: Decimal) -> "Coupon":
        """
        Return a copy with `amount` taken off the balance.

        The balance is clamped at zero. Coupons without a tracked balance
        are returned unchanged.
        """
        if self.remaining_value is None:
            return self
        remaining = max(Decimal("0"), self.remaining_value - amount)
        return self.model_copy(update={"remaining_value": remaining})


class DeletedCoupon(BaseModel):
    """
    A coupon sitting in Recently Deleted.

    Deleted coupons no longer belong to any list. They are purged once
    they are older than the retention window.
    """

    coupon: Coupon
    deleted_at: datetime = Field(
        default_factory=utc_now,
        description="When the coupon was deleted"
    )

    @property
    def id(self) -> UUID:
        return self.coupon.id


# =============================================================================
# CURRENCY MODELS
# =============================================================================

class CurrencyInfo(BaseModel):
    """Display information for a currency code."""
    model_config = ConfigDict(frozen=True)

    code: str
    symbol: str
    name: str


class CurrencyTotal(BaseModel):
    """Sum of remaining balances for one currency."""

    currency_code: str
    total: Decimal = Field(default=Decimal("0"))


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'too_long', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of validating user input before it is saved.

    Validation never raises: callers check `is_valid` and show the issues.
    """

    validated_at: datetime = Field(
        default_factory=utc_now
    )
    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
