"""
Main Orchestrator for Coupon Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Coupon edits (validate -> resolve scope -> store -> notify)
2. Views (membership -> grouping -> totals)
3. Sync (remote change / foreground -> pull -> sweep)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is stored without passing validation
- Nothing gated happens without asking the entitlement guard
- Every change is audited, and the audit feed is the change feed

All state lives in the CouponTracker instance and the stores it owns.
There are no module-level singletons besides the cached settings.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Union
from uuid import UUID

import structlog

from coupon_tracker.audit import AuditListener, AuditLogger
from coupon_tracker.config import AppSettings, get_settings
from coupon_tracker.models.coupon import (
    Coupon,
    CurrencyTotal,
    DeletedCoupon,
    ValidationResult,
)
from coupon_tracker.models.lists import (
    RECENTLY_DELETED_LIST_ID,
    CouponList,
    GroupSection,
    ListCondition,
    MoveIntent,
)
from coupon_tracker.queries import AggregationEngine, GroupingEngine, implied_type
from coupon_tracker.services.currency import CurrencyLookup
from coupon_tracker.services.entitlement import (
    EntitlementGuard,
    EntitlementProvider,
    StaticEntitlementProvider,
)
from coupon_tracker.services.lists import ListRegistry
from coupon_tracker.services.records import RecordStore
from coupon_tracker.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsKeyValueStore,
    JsonFileKeyValueStore,
    PersistenceGateway,
)
from coupon_tracker.services.sync import SyncReconciler
from coupon_tracker.services.vocabulary import VocabularyStore
from coupon_tracker.validation import CouponValidator


logger = structlog.get_logger("coupon_tracker.orchestrator")


class CouponTracker:
    """
    The application state container.

    Commands that take user input return (changed, validation_result) so
    the caller can show what to fix. Other commands return whether
    anything changed. Refusals for entitlement reasons are not validation
    failures: they come through the change feed as `upsell_required`.

    `list_id` arguments default to the selected list.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        entitlement: Optional[EntitlementProvider] = None,
        settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        currencies: Optional[CurrencyLookup] = None,
    ):
        self._gateway = gateway
        self._settings = settings or get_settings().app
        self._audit_logger = audit_logger or AuditLogger()
        self._entitlement = entitlement or StaticEntitlementProvider()

        self._guard = EntitlementGuard(
            self._entitlement,
            free_record_limit=self._settings.free_tier_record_limit,
        )
        self._registry = ListRegistry(gateway, guard=self._guard, audit_logger=self._audit_logger)
        self._records = RecordStore(
            gateway,
            guard=self._guard,
            audit_logger=self._audit_logger,
            retention_days=self._settings.retention_days,
            accepts_scope=self._registry.is_storage_scope,
        )
        self._vocabulary = VocabularyStore(
            gateway,
            guard=self._guard,
            audit_logger=self._audit_logger,
            default_currency=self._settings.default_currency,
        )
        self._aggregation = AggregationEngine(self._registry, self._records)
        self._grouping = GroupingEngine()
        self._sync = SyncReconciler(gateway, self._records, audit_logger=self._audit_logger)
        self._validator = CouponValidator(self._settings)
        self._currencies = currencies or CurrencyLookup()

    # -------------------------------------------------------------------------
    # Components
    # -------------------------------------------------------------------------

    @property
    def records(self) -> RecordStore:
        return self._records

    @property
    def registry(self) -> ListRegistry:
        return self._registry

    @property
    def vocabulary(self) -> VocabularyStore:
        return self._vocabulary

    @property
    def aggregation(self) -> AggregationEngine:
        return self._aggregation

    @property
    def grouping(self) -> GroupingEngine:
        return self._grouping

    @property
    def sync(self) -> SyncReconciler:
        return self._sync

    @property
    def guard(self) -> EntitlementGuard:
        return self._guard

    @property
    def validator(self) -> CouponValidator:
        return self._validator

    @property
    def currencies(self) -> CurrencyLookup:
        return self._currencies

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    def subscribe(self, listener: AuditListener):
        """Be told about every change. Returns an unsubscribe callable."""
        return self._audit_logger.subscribe(listener)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self, now: Optional[datetime] = None) -> int:
        """
        Prepare state at app launch: seed the default lists if needed and
        sweep expired deletions.

        Returns:
            Number of deleted coupons purged
        """
        self._registry.list_all()
        return self._sync.on_load(now)

    def on_remote_change(self, changed_keys: Optional[Iterable[str]] = None) -> list[str]:
        return self._sync.on_remote_change(changed_keys)

    def on_foreground(self, now: Optional[datetime] = None) -> list[str]:
        return self._sync.on_foreground(now)

    def close(self) -> None:
        """Wait for queued replica writes, then stop mirroring in the background."""
        self._gateway.close()

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def lists(self) -> list[CouponList]:
        return self._registry.list_all()

    def selected_list(self) -> CouponList:
        return self._registry.selected_list()

    def coupons(self, list_id: Optional[UUID] = None) -> list[Coupon]:
        coupon_list = self._resolve_list(list_id)
        if coupon_list is None:
            return []
        return self._aggregation.members_of(coupon_list)

    def deleted_coupons(self) -> list[DeletedCoupon]:
        return self._records.deleted()

    def count(self, list_id: Optional[UUID] = None) -> int:
        coupon_list = self._resolve_list(list_id)
        if coupon_list is None:
            return 0
        return self._aggregation.count_of(coupon_list)

    def totals(self, list_id: Optional[UUID] = None) -> list[CurrencyTotal]:
        return self._aggregation.totals_by_currency(self.coupons(list_id))

    def sections(
        self,
        list_id: Optional[UUID] = None,
        preserve_order: bool = False,
    ) -> list[GroupSection]:
        """The list's coupons grouped by category, vocabulary first."""
        coupon_list = self._resolve_list(list_id)
        if coupon_list is None:
            return []
        return self._grouping.group_by(
            self._aggregation.members_of(coupon_list),
            self._vocabulary.categories(coupon_list.id),
            preserve_order=preserve_order,
        )

    def source_list(self, coupon_id: UUID) -> Optional[CouponList]:
        """The list a coupon is stored in (shown on smart list rows)."""
        list_id = self._aggregation.locate(coupon_id)
        return self._registry.get(list_id) if list_id else None

    # -------------------------------------------------------------------------
    # Coupon commands
    # -------------------------------------------------------------------------

    def add_coupon(
        self,
        coupon: Coupon,
        list_id: Optional[UUID] = None,
    ) -> tuple[bool, ValidationResult]:
        """
        Validate and add a coupon to a list (the selected one by default).

        Adding through a smart list stores the coupon in the storage list.
        A coupon without a type takes the one the smart list's rule asks
        for, so it shows up where it was added.
        """
        result = self._validate_coupon(coupon)
        if not result.is_valid:
            return False, result
        coupon_list = self._resolve_list(list_id)
        if coupon_list is None or coupon_list.is_recently_deleted:
            return False, result
        if coupon_list.is_smart and coupon.type is None:
            implied = implied_type(coupon_list)
            if implied:
                coupon = coupon.model_copy(update={"type": implied})
        return self._records.add(self._storage_scope(coupon_list), coupon), result

    def update_coupon(self, coupon: Coupon) -> tuple[bool, ValidationResult]:
        """Validate and save an edited coupon in the list that stores it."""
        result = self._validate_coupon(coupon)
        if not result.is_valid:
            return False, result
        scope = self._aggregation.locate(coupon.id)
        if scope is None:
            return False, result
        return self._records.update(scope, coupon), result

    def delete_coupon(self, coupon: Coupon, list_id: Optional[UUID] = None) -> bool:
        """
        Delete a coupon shown in a list.

        From Recently Deleted this deletes permanently; anywhere else the
        coupon moves to Recently Deleted.
        """
        coupon_list = self._resolve_list(list_id)
        if coupon_list is None:
            return False
        if coupon_list.is_recently_deleted:
            return self._records.delete(RECENTLY_DELETED_LIST_ID, coupon)
        scope = self._aggregation.locate(coupon.id)
        if scope is None:
            return False
        return self._records.delete(scope, coupon)

    def use_amount(
        self,
        coupon: Coupon,
        amount: Union[Decimal, int, float, str],
    ) -> tuple[bool, ValidationResult]:
        """Take an amount off a coupon's balance (clamped at zero)."""
        try:
            value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
        except (InvalidOperation, ValueError):
            value = None
        result = self._validator.validate_amount(value)
        if not result.is_valid:
            self._report_invalid("amount", result)
            return False, result
        scope = self._aggregation.locate(coupon.id)
        if scope is None:
            return False, result
        return self._records.use_amount(scope, coupon, value), result

    def move_coupon(self, coupon: Coupon, to_list_id: UUID) -> bool:
        """Move a coupon to another ordinary list. Smart lists cannot be a destination."""
        scope = self._aggregation.locate(coupon.id)
        if scope is None or not self._registry.is_storage_scope(to_list_id):
            return False
        return self._records.move(coupon, scope, to_list_id)

    def restore_coupon(self, coupon_id: UUID, list_id: Optional[UUID] = None) -> bool:
        """
        Bring a deleted coupon back.

        Goes to `list_id`, else the selected list, else (when Recently
        Deleted is selected) the first default list. A smart target means
        the storage list.
        """
        coupon_list = self._resolve_list(list_id)
        if coupon_list is None or coupon_list.is_recently_deleted:
            coupon_list = self._registry.first_default()
        return self._records.restore(coupon_id, self._storage_scope(coupon_list))

    def permanently_delete(self, coupon_id: UUID) -> bool:
        return self._records.permanently_delete(coupon_id)

    def apply_move(self, intent: MoveIntent, list_id: Optional[UUID] = None) -> bool:
        """
        Apply a drag-and-drop gesture on a list grouped by category.

        Ordinary lists store the new order. Smart lists show coupons stored
        elsewhere, so only a change of category is applied there, to the
        coupon in its own list.
        """
        coupon_list = self._resolve_list(list_id)
        if coupon_list is None or coupon_list.is_recently_deleted:
            return False

        members = self._aggregation.members_of(coupon_list)
        reordered = self._grouping.apply(members, intent)

        if not coupon_list.is_smart:
            return self._records.reorder(coupon_list.id, reordered)

        before = next((c for c in members if c.id == intent.coupon_id), None)
        after = next((c for c in reordered if c.id == intent.coupon_id), None)
        if before is None or after is None or before.category == after.category:
            return False
        scope = self._aggregation.locate(intent.coupon_id)
        if scope is None:
            return False
        return self._records.update(scope, after)

    # -------------------------------------------------------------------------
    # List commands
    # -------------------------------------------------------------------------

    def select_list(self, list_id: UUID) -> bool:
        return self._registry.select_list(list_id)

    def create_list(
        self,
        name: str,
        color_tag: str = "purple",
        icon_tag: str = "tag",
        is_smart: bool = False,
        match_all: bool = True,
        conditions: Optional[list[ListCondition]] = None,
    ) -> tuple[Optional[CouponList], ValidationResult]:
        candidate = CouponList(
            name=name,
            color_tag=color_tag,
            icon_tag=icon_tag,
            is_smart=is_smart,
            match_all=match_all,
            conditions=conditions or [],
        )
        result = self._validator.validate_list(candidate)
        if not result.is_valid:
            self._report_invalid("list", result)
            return None, result
        created = self._registry.create_list(
            name=candidate.name,
            color_tag=candidate.color_tag,
            icon_tag=candidate.icon_tag,
            is_smart=candidate.is_smart,
            match_all=candidate.match_all,
            conditions=candidate.conditions,
        )
        return created, result

    def update_list(self, coupon_list: CouponList) -> tuple[bool, ValidationResult]:
        result = self._validator.validate_list(coupon_list)
        if not result.is_valid:
            self._report_invalid("list", result)
            return False, result
        return self._registry.update_list(coupon_list), result

    def delete_list(self, list_id: UUID) -> bool:
        """
        Delete a list. Its coupons go to Recently Deleted and its
        categories and default currency are forgotten.
        """
        if not self._registry.delete_list(list_id):
            return False
        for coupon in self._records.load(list_id):
            self._records.delete(list_id, coupon)
        self._records.clear_scope(list_id)
        self._vocabulary.clear_list(list_id)
        return True

    def move_lists(self, from_indices: Iterable[int], to_index: int) -> bool:
        return self._registry.move_lists(from_indices, to_index)

    # -------------------------------------------------------------------------
    # Vocabulary commands
    # -------------------------------------------------------------------------

    def add_category(self, name: str, list_id: Optional[UUID] = None) -> tuple[bool, ValidationResult]:
        result = self._validator.validate_group_name(name)
        if not result.is_valid:
            self._report_invalid("category", result)
            return False, result
        coupon_list = self._resolve_list(list_id)
        if coupon_list is None or coupon_list.is_recently_deleted:
            return False, result
        return self._vocabulary.add_category(coupon_list.id, name), result

    def remove_category(self, name: str, list_id: Optional[UUID] = None) -> bool:
        coupon_list = self._resolve_list(list_id)
        if coupon_list is None:
            return False
        return self._vocabulary.remove_category(coupon_list.id, name)

    def add_type(self, name: str) -> tuple[bool, ValidationResult]:
        result = self._validator.validate_group_name(name)
        if not result.is_valid:
            self._report_invalid("type", result)
            return False, result
        return self._vocabulary.add_type(name), result

    def remove_type(self, name: str) -> bool:
        return self._vocabulary.remove_type(name)

    def default_currency(self, list_id: Optional[UUID] = None) -> str:
        coupon_list = self._resolve_list(list_id)
        if coupon_list is None:
            return self._settings.default_currency
        return self._vocabulary.default_currency(coupon_list.id)

    def set_default_currency(self, currency_code: str, list_id: Optional[UUID] = None) -> bool:
        coupon_list = self._resolve_list(list_id)
        if coupon_list is None or coupon_list.is_recently_deleted:
            return False
        return self._vocabulary.set_default_currency(coupon_list.id, currency_code)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _resolve_list(self, list_id: Optional[UUID]) -> Optional[CouponList]:
        if list_id is None:
            return self._registry.selected_list()
        return self._registry.get(list_id)

    def _storage_scope(self, coupon_list: CouponList) -> UUID:
        if coupon_list.is_smart:
            return self._registry.storage_list().id
        return coupon_list.id

    def _validate_coupon(self, coupon: Coupon) -> ValidationResult:
        result = self._validator.validate_coupon(coupon)
        if not result.is_valid:
            self._report_invalid("coupon", result)
        return result

    def _report_invalid(self, subject: str, result: ValidationResult) -> None:
        issues = [
            {"field": i.field, "type": i.issue_type, "message": i.message}
            for i in result.issues
        ]
        self._audit_logger.log_validation_failed(subject=subject, issues=issues)


def create_app_components(
    use_remote: Optional[bool] = None,
    entitlement: Optional[EntitlementProvider] = None,
) -> tuple[CouponTracker, Optional[GoogleSheetsClient]]:
    """
    Factory function to create the application.

    Args:
        use_remote: Whether to mirror to the Google Sheets replica.
                    Defaults to the remote_sync_enabled setting.
        entitlement: Purchase state. Defaults to the free tier.

    Returns:
        (tracker, sheets_client); sheets_client is None when running
        without the replica
    """
    settings = get_settings()
    app_settings = settings.app
    audit_logger = AuditLogger()

    local = JsonFileKeyValueStore(settings.storage.data_path)

    if use_remote is None:
        use_remote = app_settings.remote_sync_enabled

    sheets_client = None
    remote = None
    if use_remote:
        try:
            sheets_client = GoogleSheetsClient()
            remote = GoogleSheetsKeyValueStore(sheets_client)
        except Exception as e:
            # Replica not configured - continue local-only
            logger.warning("remote_replica_unavailable", error=str(e))
            sheets_client = None
            remote = None

    gateway = PersistenceGateway(local, remote=remote, audit_logger=audit_logger)
    tracker = CouponTracker(
        gateway,
        entitlement=entitlement,
        settings=app_settings,
        audit_logger=audit_logger,
    )
    return tracker, sheets_client
