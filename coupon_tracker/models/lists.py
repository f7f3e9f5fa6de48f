"""
List Models for Coupon Tracker

A list is either ordinary (its members are the coupons stored under its id)
or smart (its members are every coupon, from any list, matching its
conditions). Smart lists are views: a coupon can show up in several of them.

DESIGN DECISION: The Recently Deleted list is never stored with the other
lists. It is synthesized on demand under a reserved id so that it can never
be renamed, deleted or lost in a sync.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coupon_tracker.models.coupon import Coupon


RECENTLY_DELETED_LIST_ID = UUID("00000000-0000-0000-0000-00000000dead")
RECENTLY_DELETED_LIST_NAME = "Recently Deleted"

UNCATEGORIZED = "Uncategorized"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ConditionField(str, Enum):
    """
    Coupon attributes a smart list condition can test.

    Presence fields (has_*) only answer "has" / "has not".
    """
    TYPE = "type"
    AMOUNT = "amount"  # amount present, compared by value
    HAS_BALANCE = "has_balance"
    EXPIRATION_DATE = "expiration_date"
    HAS_DESCRIPTION = "has_description"
    HAS_EXPIRATION_DATE = "has_expiration_date"
    SOURCE_LIST_NAME = "source_list_name"

    @property
    def is_string(self) -> bool:
        return self in (ConditionField.TYPE, ConditionField.SOURCE_LIST_NAME)

    @property
    def is_presence(self) -> bool:
        return self in (
            ConditionField.HAS_BALANCE,
            ConditionField.HAS_DESCRIPTION,
            ConditionField.HAS_EXPIRATION_DATE,
        )


class ComparisonOperator(str, Enum):
    """Comparison operators. Ordering operators apply to numbers and dates only."""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_OR_EQUAL = "greater_or_equal"
    LESS_OR_EQUAL = "less_or_equal"

    @property
    def is_equality(self) -> bool:
        return self in (ComparisonOperator.EQUALS, ComparisonOperator.NOT_EQUALS)


# =============================================================================
# LIST MODELS
# =============================================================================

class ListCondition(BaseModel):
    """
    One rule of a smart list.

    Only the operand matching the field kind is read:
    - string fields: string_operand
    - amount: numeric_operand
    - expiration_date: date_operand, else numeric_operand as a POSIX timestamp
    - presence fields: no operand
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    field: ConditionField
    operator: ComparisonOperator = ComparisonOperator.EQUALS
    string_operand: Optional[str] = None
    numeric_operand: Optional[Decimal] = None
    date_operand: Optional[datetime] = None


class CouponList(BaseModel):
    """
    A named list of coupons, ordinary or smart.

    Default lists are seeded on first run. They can be edited but not
    deleted, and they always stay smart.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique list ID (also the storage scope of its coupons)"
    )
    name: str = Field(
        default="",
        max_length=100,
        description="Display name"
    )
    color_tag: str = Field(
        default="purple",
        max_length=30
    )
    icon_tag: str = Field(
        default="tag",
        max_length=60
    )
    is_default: bool = False
    is_smart: bool = False
    match_all: bool = Field(
        default=True,
        description="AND the conditions together (True) or OR them (False)"
    )
    conditions: list[ListCondition] = Field(default_factory=list)

    @field_validator('conditions')
    @classmethod
    def drop_duplicate_conditions(cls, v: list[ListCondition]) -> list[ListCondition]:
        """Conditions are an ordered set: keep the first of any duplicates."""
        unique: list[ListCondition] = []
        for condition in v:
            if condition not in unique:
                unique.append(condition)
        return unique

    @property
    def is_recently_deleted(self) -> bool:
        return self.id == RECENTLY_DELETED_LIST_ID

    @classmethod
    def recently_deleted(cls) -> "CouponList":
        """The synthesized Recently Deleted pseudo-list."""
        return cls(
            id=RECENTLY_DELETED_LIST_ID,
            name=RECENTLY_DELETED_LIST_NAME,
            color_tag="gray",
            icon_tag="trash",
        )


# =============================================================================
# GROUPING MODELS
# =============================================================================

class GroupSection(BaseModel):
    """One titled section of a grouped coupon list."""

    title: str
    coupons: list[Coupon] = Field(default_factory=list)


class MoveIntent(BaseModel):
    """
    A drag-and-drop gesture, as the grouping engine consumes it.

    destination_index is group-local. None means the coupon was dropped on
    the section itself rather than on a row.
    """
    model_config = ConfigDict(frozen=True)

    coupon_id: UUID
    source_group: str
    destination_group: str
    destination_index: Optional[int] = Field(default=None, ge=0)
