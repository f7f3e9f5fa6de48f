"""
List Registry

Named lists (ordinary or smart), their display order and the current
selection.

DESIGN DECISION: Default lists are seeded on first run and stay forever.
They can be renamed and their rules edited, but they cannot be deleted
and they never stop being smart or default. That way there is always at
least one list to fall back to when a selection becomes invalid.

Smart lists store nothing themselves. Coupons added through one are kept
in the storage list: the first ordinary list, created on demand as
"My Coupons" when there is none (the free tier only has the smart
defaults).

Seeds are written locally only. The replica is left alone so that a
fresh install never overwrites lists pushed by another device; the next
pull adopts those instead.
"""

from typing import Iterable, Optional
from uuid import UUID

from pydantic import TypeAdapter

from coupon_tracker.audit import AuditLogger
from coupon_tracker.models.audit import AuditEventBuilder, AuditEventType
from coupon_tracker.models.lists import (
    RECENTLY_DELETED_LIST_ID,
    ComparisonOperator,
    ConditionField,
    CouponList,
    ListCondition,
)
from coupon_tracker.queries.grouping import move_items
from coupon_tracker.services.entitlement import EntitlementGuard, GatedAction
from coupon_tracker.services.storage.persistence import PersistenceGateway, StorageKeys


_LISTS = TypeAdapter(list[CouponList])

DEFAULT_LIST_TYPES = [
    ("Gift Cards", "blue", "gift"),
    ("Coupons", "orange", "ticket"),
    ("Store Credits", "green", "creditcard"),
]

STORAGE_LIST_NAME = "My Coupons"


def default_lists() -> list[CouponList]:
    """The smart lists every registry starts with."""
    return [
        CouponList(
            name=name,
            color_tag=color,
            icon_tag=icon,
            is_default=True,
            is_smart=True,
            match_all=True,
            conditions=[ListCondition(
                field=ConditionField.TYPE,
                operator=ComparisonOperator.EQUALS,
                string_operand=name,
            )],
        )
        for name, color, icon in DEFAULT_LIST_TYPES
    ]


class ListRegistry:
    """
    Registered lists and the selection.

    Every mutation is gated by the entitlement guard. Denials leave the
    registry untouched and are reported as upsell events.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        guard: Optional[EntitlementGuard] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._gateway = gateway
        self._guard = guard
        self._audit_logger = audit_logger or AuditLogger()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def list_all(self) -> list[CouponList]:
        """
        Registered lists in display order.

        An empty registry is seeded with the default lists first.
        """
        lists = self._gateway.read_typed(StorageKeys.LISTS_INFO, _LISTS, [])
        if not lists:
            lists = default_lists()
            self._gateway.write_typed(StorageKeys.LISTS_INFO, _LISTS, lists, mirror=False)
            self._audit_logger.log(AuditEventBuilder.list_changed(
                AuditEventType.DEFAULT_LISTS_SEEDED,
                lists[0].id,
                f"{len(lists)} default lists",
            ))
        return lists

    def get(self, list_id: UUID) -> Optional[CouponList]:
        """A registered list, or the Recently Deleted pseudo-list for its id."""
        if list_id == RECENTLY_DELETED_LIST_ID:
            return CouponList.recently_deleted()
        return next((l for l in self.list_all() if l.id == list_id), None)

    def first_default(self) -> CouponList:
        """The first default list, or the first list if none is default."""
        lists = self.list_all()
        return next((l for l in lists if l.is_default), lists[0])

    def is_storage_scope(self, list_id: UUID) -> bool:
        """Whether coupons may be stored under `list_id` (a registered ordinary list)."""
        if list_id == RECENTLY_DELETED_LIST_ID:
            return False
        coupon_list = self.get(list_id)
        return coupon_list is not None and not coupon_list.is_smart

    def storage_list(self) -> CouponList:
        """
        The ordinary list that keeps coupons added through smart lists.

        Created when no ordinary list exists. This is bookkeeping rather
        than list management, so it is not gated.
        """
        lists = self.list_all()
        existing = next((l for l in lists if not l.is_smart), None)
        if existing is not None:
            return existing

        storage = CouponList(name=STORAGE_LIST_NAME, color_tag="purple", icon_tag="tray")
        lists.append(storage)
        self._save(lists)
        self._audit_logger.log(AuditEventBuilder.list_changed(
            AuditEventType.LIST_CREATED,
            storage.id,
            storage.name,
        ))
        return storage

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def create_list(
        self,
        name: str,
        color_tag: str = "purple",
        icon_tag: str = "tag",
        is_smart: bool = False,
        match_all: bool = True,
        conditions: Optional[list[ListCondition]] = None,
    ) -> Optional[CouponList]:
        """
        Register a new list at the end of the display order.

        Returns:
            The created list, or None if refused (blank name or no entitlement)
        """
        if not name or not name.strip():
            return None
        if not self._allowed(GatedAction.MANAGE_LISTS):
            return None

        coupon_list = CouponList(
            name=name,
            color_tag=color_tag,
            icon_tag=icon_tag,
            is_smart=is_smart,
            match_all=match_all,
            conditions=conditions or [],
        )
        lists = self.list_all()
        lists.append(coupon_list)
        self._save(lists)
        self._audit_logger.log(AuditEventBuilder.list_changed(
            AuditEventType.LIST_CREATED,
            coupon_list.id,
            coupon_list.name,
        ))
        return coupon_list

    def update_list(self, coupon_list: CouponList) -> bool:
        """
        Replace a list's name, looks and rules.

        Default lists keep their default and smart flags whatever is passed
        in; other lists can never become default.
        """
        if coupon_list.is_recently_deleted or not coupon_list.name.strip():
            return False

        lists = self.list_all()
        index = next((i for i, l in enumerate(lists) if l.id == coupon_list.id), None)
        if index is None:
            return False
        if not self._allowed(GatedAction.MANAGE_LISTS):
            return False

        stored = lists[index]
        if stored.is_default:
            locked = {"is_default": True, "is_smart": True}
        else:
            locked = {"is_default": False}
        lists[index] = coupon_list.model_copy(update=locked)
        self._save(lists)
        self._audit_logger.log(AuditEventBuilder.list_changed(
            AuditEventType.LIST_UPDATED,
            coupon_list.id,
            coupon_list.name,
        ))
        return True

    def delete_list(self, list_id: UUID) -> bool:
        """
        Unregister a list.

        Refused for the pseudo-list, default lists, unknown ids and the last
        remaining list. The list's coupons are not touched here.
        """
        if list_id == RECENTLY_DELETED_LIST_ID:
            return False

        lists = self.list_all()
        target = next((l for l in lists if l.id == list_id), None)
        if target is None or target.is_default or len(lists) <= 1:
            return False
        if not self._allowed(GatedAction.MANAGE_LISTS):
            return False

        was_selected = self.selected_list_id == list_id
        self._save([l for l in lists if l.id != list_id])
        self._audit_logger.log(AuditEventBuilder.list_changed(
            AuditEventType.LIST_DELETED,
            list_id,
            target.name,
        ))
        if was_selected:
            self._set_selected(self.first_default().id)
        return True

    def move_lists(self, from_indices: Iterable[int], to_index: int) -> bool:
        """Reorder lists; `to_index` is a pre-removal position."""
        lists = self.list_all()
        reordered = move_items(lists, from_indices, to_index)
        if [l.id for l in reordered] == [l.id for l in lists]:
            return False
        if not self._allowed(GatedAction.MANAGE_LISTS):
            return False

        self._save(reordered)
        self._audit_logger.log(AuditEventBuilder.list_changed(
            AuditEventType.LISTS_REORDERED,
            reordered[0].id,
            f"{len(reordered)} lists",
        ))
        return True

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    @property
    def selected_list_id(self) -> UUID:
        """
        The selected list.

        A missing, unknown or no-longer-permitted stored selection resolves
        to the first default list.
        """
        stored = self._gateway.read(StorageKeys.LISTS_SELECTED)
        try:
            list_id = UUID(str(stored)) if stored else None
        except ValueError:
            list_id = None

        if list_id == RECENTLY_DELETED_LIST_ID:
            return list_id
        coupon_list = self.get(list_id) if list_id else None
        if coupon_list is not None and self._selectable(coupon_list):
            return coupon_list.id
        return self.first_default().id

    def selected_list(self) -> CouponList:
        return self.get(self.selected_list_id) or self.first_default()

    def select_list(self, list_id: UUID) -> bool:
        """
        Make a list the selected one.

        Recently Deleted and default lists can always be selected. Other
        lists need the upgrade; without it the selection falls back to the
        first default list.

        Returns:
            True if `list_id` is now selected
        """
        coupon_list = self.get(list_id)
        if coupon_list is None:
            return False

        if not self._selectable(coupon_list):
            decision = self._guard.check(GatedAction.SELECT_LIST)
            self._audit_logger.log_upsell(decision.action.value, decision.reason)
            self._set_selected(self.first_default().id)
            return False

        self._set_selected(coupon_list.id)
        return True

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _selectable(self, coupon_list: CouponList) -> bool:
        if coupon_list.is_recently_deleted or coupon_list.is_default or self._guard is None:
            return True
        return self._guard.check(GatedAction.SELECT_LIST).allowed

    def _set_selected(self, list_id: UUID) -> None:
        if self._gateway.read(StorageKeys.LISTS_SELECTED) == str(list_id):
            return
        self._gateway.write(StorageKeys.LISTS_SELECTED, str(list_id))
        name = self.get(list_id).name
        self._audit_logger.log(AuditEventBuilder.list_changed(
            AuditEventType.LIST_SELECTED,
            list_id,
            name,
        ))

    def _allowed(self, action: GatedAction) -> bool:
        if self._guard is None:
            return True
        decision = self._guard.check(action)
        if not decision.allowed:
            self._audit_logger.log_upsell(decision.action.value, decision.reason)
        return decision.allowed

    def _save(self, lists: list[CouponList]) -> None:
        self._gateway.write_typed(StorageKeys.LISTS_INFO, _LISTS, lists)
