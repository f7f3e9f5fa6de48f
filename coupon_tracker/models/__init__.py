"""
Data Models Package

This package contains all Pydantic models used in the Coupon Tracker system.
All data flowing through the system must conform to these schemas.
"""

from coupon_tracker.models.coupon import (
    DEFAULT_CURRENCY_CODE,
    DESCRIPTION_MAX_LENGTH,
    Coupon,
    CurrencyInfo,
    CurrencyTotal,
    DeletedCoupon,
    ValidationIssue,
    ValidationResult,
    ensure_utc,
    utc_now,
)
from coupon_tracker.models.lists import (
    RECENTLY_DELETED_LIST_ID,
    RECENTLY_DELETED_LIST_NAME,
    UNCATEGORIZED,
    ComparisonOperator,
    ConditionField,
    CouponList,
    GroupSection,
    ListCondition,
    MoveIntent,
)
from coupon_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Coupon models
    "DEFAULT_CURRENCY_CODE",
    "DESCRIPTION_MAX_LENGTH",
    "Coupon",
    "CurrencyInfo",
    "CurrencyTotal",
    "DeletedCoupon",
    "ValidationIssue",
    "ValidationResult",
    "ensure_utc",
    "utc_now",
    # List models
    "RECENTLY_DELETED_LIST_ID",
    "RECENTLY_DELETED_LIST_NAME",
    "UNCATEGORIZED",
    "ComparisonOperator",
    "ConditionField",
    "CouponList",
    "GroupSection",
    "ListCondition",
    "MoveIntent",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
