"""
Smart List Condition Evaluator

Decides whether a coupon belongs to a list. Pure functions, no state.

Rules:
- An ordinary list accepts every coupon (membership is the storage scope).
- A smart list combines its conditions with AND (match_all) or OR.
  No conditions at all means every coupon matches.
- Text compares trimmed and case-insensitively; only equals / not_equals.
- Dates compare by calendar day for equals / not_equals, by instant for
  the ordering operators. Naive datetimes are read as UTC.
- A condition on an optional field the coupon does not have never matches,
  whatever the operator. The has_* fields test presence directly.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from coupon_tracker.models.coupon import Coupon, ensure_utc
from coupon_tracker.models.lists import (
    ComparisonOperator,
    ConditionField,
    CouponList,
    ListCondition,
)


def matches(coupon: Coupon, source_list_name: str, coupon_list: CouponList) -> bool:
    """
    Whether `coupon`, stored in the list named `source_list_name`, is a
    member of `coupon_list`.
    """
    if not coupon_list.is_smart:
        return True
    if not coupon_list.conditions:
        return True

    results = (
        evaluate_condition(coupon, source_list_name, condition)
        for condition in coupon_list.conditions
    )
    if coupon_list.match_all:
        return all(results)
    return any(results)


def implied_type(coupon_list: CouponList) -> Optional[str]:
    """
    The type a coupon needs to satisfy a smart list's `type equals` rule,
    or None when the list has no such rule.
    """
    if not coupon_list.is_smart:
        return None
    for condition in coupon_list.conditions:
        if (
            condition.field == ConditionField.TYPE
            and condition.operator == ComparisonOperator.EQUALS
            and condition.string_operand
            and condition.string_operand.strip()
        ):
            return condition.string_operand.strip()
    return None


def evaluate_condition(
    coupon: Coupon,
    source_list_name: str,
    condition: ListCondition,
) -> bool:
    """Evaluate one condition against one coupon."""
    field = condition.field
    operator = condition.operator

    if field.is_presence:
        present = {
            ConditionField.HAS_BALANCE: coupon.has_balance,
            ConditionField.HAS_DESCRIPTION: coupon.has_description,
            ConditionField.HAS_EXPIRATION_DATE: coupon.expiration_date is not None,
        }[field]
        if operator == ComparisonOperator.EQUALS:
            return present
        if operator == ComparisonOperator.NOT_EQUALS:
            return not present
        return False

    if field == ConditionField.TYPE:
        return _compare_text(coupon.type, condition.string_operand, operator)

    if field == ConditionField.SOURCE_LIST_NAME:
        return _compare_text(source_list_name, condition.string_operand, operator)

    if field == ConditionField.AMOUNT:
        if coupon.remaining_value is None or condition.numeric_operand is None:
            return False
        return _compare_ordered(coupon.remaining_value, condition.numeric_operand, operator)

    if field == ConditionField.EXPIRATION_DATE:
        operand = _date_operand(condition)
        if coupon.expiration_date is None or operand is None:
            return False
        value = ensure_utc(coupon.expiration_date)
        if operator.is_equality:
            same_day = value.date() == operand.date()
            return same_day if operator == ComparisonOperator.EQUALS else not same_day
        return _compare_ordered(value, operand, operator)

    return False


def _compare_text(
    value: Optional[str],
    operand: Optional[str],
    operator: ComparisonOperator,
) -> bool:
    if value is None or operand is None:
        return False
    equal = value.strip().casefold() == operand.strip().casefold()
    if operator == ComparisonOperator.EQUALS:
        return equal
    if operator == ComparisonOperator.NOT_EQUALS:
        return not equal
    return False


def _compare_ordered(value: Any, operand: Any, operator: ComparisonOperator) -> bool:
    if operator == ComparisonOperator.EQUALS:
        return value == operand
    if operator == ComparisonOperator.NOT_EQUALS:
        return value != operand
    if operator == ComparisonOperator.GREATER_THAN:
        return value > operand
    if operator == ComparisonOperator.LESS_THAN:
        return value < operand
    if operator == ComparisonOperator.GREATER_OR_EQUAL:
        return value >= operand
    if operator == ComparisonOperator.LESS_OR_EQUAL:
        return value <= operand
    return False


def _date_operand(condition: ListCondition) -> Optional[datetime]:
    if condition.date_operand is not None:
        return ensure_utc(condition.date_operand)
    if condition.numeric_operand is not None:
        # numeric operand carries a POSIX timestamp
        try:
            return datetime.fromtimestamp(float(condition.numeric_operand), tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    return None
