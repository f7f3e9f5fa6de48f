"""
Record Store

Owns the coupons of every list-scope and the global Recently Deleted
collection.

DESIGN DECISION: Every operation is scoped by a list id and is a no-op
when it cannot apply (unknown id, non-positive debit, quota reached).
Operations return True only when state actually changed, so callers can
retry freely.

Delete is soft: the coupon moves to the head of Recently Deleted and is
purged permanently after the retention window.
"""

from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional, Union
from uuid import UUID

from pydantic import TypeAdapter

from coupon_tracker.audit import AuditLogger
from coupon_tracker.models.audit import AuditEventBuilder
from coupon_tracker.models.coupon import Coupon, DeletedCoupon, ensure_utc, utc_now
from coupon_tracker.models.lists import RECENTLY_DELETED_LIST_ID
from coupon_tracker.services.entitlement import EntitlementGuard, GatedAction
from coupon_tracker.services.storage.persistence import PersistenceGateway, StorageKeys


DEFAULT_RETENTION_DAYS = 40

_COUPONS = TypeAdapter(list[Coupon])
_DELETED = TypeAdapter(list[DeletedCoupon])


def _to_decimal(amount: Union[Decimal, int, float, str]) -> Optional[Decimal]:
    try:
        return amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError):
        return None


class RecordStore:
    """
    Canonical coupons per list-scope.

    Each mutating call persists the affected key(s) through the gateway,
    which writes locally and mirrors to the remote replica.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        guard: Optional[EntitlementGuard] = None,
        audit_logger: Optional[AuditLogger] = None,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        accepts_scope: Optional[Callable[[UUID], bool]] = None,
    ):
        """
        Initialize the store.

        Args:
            gateway: Persistence for the records.* and deletedRecords keys
            guard: Entitlement guard for the record quota.
                   If None, adds are never limited.
            audit_logger: Change feed and log
            retention_days: Age at which deleted coupons are purged
            accepts_scope: Whether a list id may hold coupons (smart lists
                           may not). If None, every scope but Recently
                           Deleted is accepted.
        """
        self._gateway = gateway
        self._guard = guard
        self._audit_logger = audit_logger or AuditLogger()
        self._retention = timedelta(days=retention_days)
        self._accepts_scope = accepts_scope

    @property
    def retention_days(self) -> int:
        return self._retention.days

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def load(self, list_id: UUID) -> list[Coupon]:
        """
        Coupons stored under a list, in their user-defined order.

        The Recently Deleted id returns the deleted coupons, newest first.
        """
        if list_id == RECENTLY_DELETED_LIST_ID:
            return [entry.coupon for entry in self.deleted()]
        return self._gateway.read_typed(StorageKeys.records(list_id), _COUPONS, [])

    def deleted(self) -> list[DeletedCoupon]:
        """The Recently Deleted collection, newest first."""
        return self._gateway.read_typed(StorageKeys.DELETED_RECORDS, _DELETED, [])

    def get(self, list_id: UUID, coupon_id: UUID) -> Optional[Coupon]:
        for coupon in self.load(list_id):
            if coupon.id == coupon_id:
                return coupon
        return None

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def add(self, list_id: UUID, coupon: Coupon) -> bool:
        """
        Append a coupon to a list.

        Refused when the record quota is reached (upsell signalled), the
        id is already stored in the scope or the scope cannot hold coupons.
        """
        if not self._accepts(list_id):
            return False

        coupons = self.load(list_id)
        if any(existing.id == coupon.id for existing in coupons):
            return False
        if not self._quota_allows(len(coupons)):
            return False

        coupons.append(coupon)
        self._save(list_id, coupons)
        self._audit_logger.log(AuditEventBuilder.coupon_added(
            coupon_id=coupon.id,
            list_id=list_id,
            name=coupon.name,
        ))
        return True

    def update(self, list_id: UUID, coupon: Coupon) -> bool:
        """Replace a coupon by id. `created_at` is kept from the stored copy."""
        coupons = self.load(list_id)
        for index, existing in enumerate(coupons):
            if existing.id == coupon.id:
                coupons[index] = coupon.model_copy(update={"created_at": existing.created_at})
                self._save(list_id, coupons)
                self._audit_logger.log(AuditEventBuilder.coupon_updated(coupon.id, list_id))
                return True
        return False

    def delete(self, list_id: UUID, coupon: Coupon) -> bool:
        """
        Move a coupon from a list into Recently Deleted.

        Deleting from Recently Deleted itself deletes permanently.
        """
        if list_id == RECENTLY_DELETED_LIST_ID:
            return self.permanently_delete(coupon.id)

        coupons = self.load(list_id)
        removed = [c for c in coupons if c.id == coupon.id]
        if not removed:
            return False

        self._save(list_id, [c for c in coupons if c.id != coupon.id])

        deleted = [entry for entry in self.deleted() if entry.id != coupon.id]
        deleted.insert(0, DeletedCoupon(coupon=removed[0]))
        self._save_deleted(deleted)

        self._audit_logger.log(AuditEventBuilder.coupon_deleted(coupon.id, list_id))
        return True

    def permanently_delete(self, coupon_id: UUID) -> bool:
        """Remove a coupon from Recently Deleted for good."""
        deleted = self.deleted()
        remaining = [entry for entry in deleted if entry.id != coupon_id]
        if len(remaining) == len(deleted):
            return False
        self._save_deleted(remaining)
        self._audit_logger.log(AuditEventBuilder.coupon_purged(coupon_id, reason="permanent delete"))
        return True

    def use_amount(
        self,
        list_id: UUID,
        coupon: Coupon,
        amount: Union[Decimal, int, float, str],
    ) -> bool:
        """
        Take `amount` off a coupon's balance, clamping at zero.

        No-op for non-positive amounts, untracked balances and unknown coupons.
        """
        value = _to_decimal(amount)
        if value is None or not value.is_finite() or value <= 0:
            return False

        coupons = self.load(list_id)
        for index, existing in enumerate(coupons):
            if existing.id != coupon.id:
                continue
            if existing.remaining_value is None:
                return False
            debited = existing.debited(value)
            coupons[index] = debited
            self._save(list_id, coupons)
            self._audit_logger.log(AuditEventBuilder.balance_used(
                coupon_id=coupon.id,
                list_id=list_id,
                amount=value,
                remaining=debited.remaining_value,
            ))
            return True
        return False

    def move(self, coupon: Coupon, from_list_id: UUID, to_list_id: UUID) -> bool:
        """
        Move a coupon between lists.

        Same source and destination is an update. Otherwise the coupon is
        removed from the source and upserted into the destination.
        """
        if from_list_id == to_list_id:
            return self.update(from_list_id, coupon)
        if from_list_id == RECENTLY_DELETED_LIST_ID or not self._accepts(to_list_id):
            return False

        source = self.load(from_list_id)
        remaining = [c for c in source if c.id != coupon.id]
        if len(remaining) != len(source):
            self._save(from_list_id, remaining)

        destination = self.load(to_list_id)
        for index, existing in enumerate(destination):
            if existing.id == coupon.id:
                destination[index] = coupon
                break
        else:
            destination.append(coupon)
        self._save(to_list_id, destination)

        self._audit_logger.log(AuditEventBuilder.coupon_moved(coupon.id, from_list_id, to_list_id))
        return True

    def reorder(self, list_id: UUID, ordered: list[Coupon]) -> bool:
        """
        Replace a list's coupons with a new ordering of the same coupons.

        Field changes carried by `ordered` (e.g. a new category after a
        cross-group drop) are kept. Refused if the ids differ from the
        stored ones.
        """
        if not self._accepts(list_id):
            return False
        current = self.load(list_id)
        current_ids = [c.id for c in current]
        new_ids = [c.id for c in ordered]
        if len(set(new_ids)) != len(new_ids) or sorted(map(str, current_ids)) != sorted(map(str, new_ids)):
            return False
        if ordered == current:
            return False
        self._save(list_id, list(ordered))
        self._audit_logger.log(AuditEventBuilder.coupons_reordered(list_id, len(ordered)))
        return True

    def restore(self, coupon_id: UUID, list_id: UUID) -> bool:
        """Put a deleted coupon back into a list (subject to the record quota)."""
        if not self._accepts(list_id):
            return False

        deleted = self.deleted()
        entry = next((e for e in deleted if e.id == coupon_id), None)
        if entry is None:
            return False

        coupons = [c for c in self.load(list_id) if c.id != coupon_id]
        if not self._quota_allows(len(coupons)):
            return False

        coupons.append(entry.coupon)
        self._save(list_id, coupons)
        self._save_deleted([e for e in deleted if e.id != coupon_id])
        self._audit_logger.log(AuditEventBuilder.coupon_restored(coupon_id, list_id))
        return True

    def clear_scope(self, list_id: UUID) -> list[Coupon]:
        """
        Drop a list's storage key, returning the coupons it held.

        Used when a list is deleted; the caller decides what happens to them.
        """
        coupons = self.load(list_id)
        self._gateway.remove(StorageKeys.records(list_id))
        return coupons

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """
        Permanently delete coupons that have been in Recently Deleted for
        longer than the retention window.

        Returns:
            Number of coupons purged
        """
        cutoff = ensure_utc(now or utc_now()) - self._retention
        deleted = self.deleted()
        kept = [entry for entry in deleted if ensure_utc(entry.deleted_at) >= cutoff]
        purged = len(deleted) - len(kept)
        if purged:
            self._save_deleted(kept)
            for entry in deleted:
                if entry not in kept:
                    self._audit_logger.log(AuditEventBuilder.coupon_purged(entry.id, reason="retention"))
        return purged

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _accepts(self, list_id: UUID) -> bool:
        if list_id == RECENTLY_DELETED_LIST_ID:
            return False
        return self._accepts_scope is None or self._accepts_scope(list_id)

    def _quota_allows(self, existing_count: int) -> bool:
        if self._guard is None:
            return True
        decision = self._guard.check(GatedAction.ADD_RECORD, existing_count=existing_count)
        if not decision.allowed:
            self._audit_logger.log_upsell(decision.action.value, decision.reason)
        return decision.allowed

    def _save(self, list_id: UUID, coupons: list[Coupon]) -> None:
        self._gateway.write_typed(StorageKeys.records(list_id), _COUPONS, coupons)

    def _save_deleted(self, deleted: list[DeletedCoupon]) -> None:
        self._gateway.write_typed(StorageKeys.DELETED_RECORDS, _DELETED, deleted)
