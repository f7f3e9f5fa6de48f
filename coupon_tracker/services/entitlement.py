"""
Entitlement Guard

DESIGN DECISION: Product policy lives in exactly one place.
The stores and the registry never look at the purchase state themselves;
they ask the guard before every gated operation and get back an explicit
allow/deny decision with a reason.

Gated operations:
- adding a record beyond the free-tier count
- selecting a non-default list
- mutating vocabularies (categories, types)
- creating, editing, deleting or reordering lists

A denial is NOT a validation failure. Callers report it as an
`upsell_required` event, never as a form error.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class GatedAction(str, Enum):
    """Operations that require the upgrade past the free tier."""
    ADD_RECORD = "add_record"
    SELECT_LIST = "select_list"
    EDIT_VOCABULARY = "edit_vocabulary"
    MANAGE_LISTS = "manage_lists"


class GuardDecision(BaseModel):
    """Outcome of an entitlement check."""
    model_config = ConfigDict(frozen=True)

    allowed: bool
    action: GatedAction
    reason: Optional[str] = None


class EntitlementProvider(ABC):
    """
    External purchase state.

    The core only needs to know whether the upgrade is unlocked.
    """

    @property
    @abstractmethod
    def is_unlocked(self) -> bool:
        pass


class StaticEntitlementProvider(EntitlementProvider):
    """Entitlement fixed at construction; flip it with `unlocked`."""

    def __init__(self, unlocked: bool = False):
        self.unlocked = unlocked

    @property
    def is_unlocked(self) -> bool:
        return self.unlocked


class EntitlementGuard:
    """
    The single policy function consulted before gated operations.
    """

    def __init__(self, provider: EntitlementProvider, free_record_limit: int):
        """
        Args:
            provider: Purchase state
            free_record_limit: Records a list may hold without the upgrade
        """
        self._provider = provider
        self._free_record_limit = free_record_limit

    @property
    def free_record_limit(self) -> int:
        return self._free_record_limit

    def check(self, action: GatedAction, existing_count: int = 0) -> GuardDecision:
        """
        Decide whether an action may proceed.

        Args:
            action: The gated operation
            existing_count: For ADD_RECORD, how many records the target
                           list already holds
        """
        if self._provider.is_unlocked:
            return GuardDecision(allowed=True, action=action)

        if action == GatedAction.ADD_RECORD:
            if existing_count < self._free_record_limit:
                return GuardDecision(allowed=True, action=action)
            return GuardDecision(
                allowed=False,
                action=action,
                reason=f"Free tier is limited to {self._free_record_limit} coupons per list",
            )

        reasons = {
            GatedAction.SELECT_LIST: "Custom lists require the upgrade",
            GatedAction.EDIT_VOCABULARY: "Editing categories and types requires the upgrade",
            GatedAction.MANAGE_LISTS: "Managing lists requires the upgrade",
        }
        return GuardDecision(allowed=False, action=action, reason=reasons[action])
