"""
Integration tests for the CouponTracker facade.

These run the end-to-end flows against in-memory tiers: a local store and
a replica that other "devices" write to directly.
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from coupon_tracker.models.audit import AuditEventType
from coupon_tracker.models.coupon import CurrencyTotal, utc_now
from coupon_tracker.models.lists import RECENTLY_DELETED_LIST_ID, MoveIntent
from coupon_tracker.orchestrator import CouponTracker, create_app_components
from coupon_tracker.services.storage import (
    InMemoryKeyValueStore,
    PersistenceGateway,
    StorageKeys,
)


@pytest.fixture
def unlocked(entitlement):
    entitlement.unlocked = True
    return entitlement


@pytest.fixture
def wallet(tracker, unlocked):
    created, _ = tracker.create_list("Wallet")
    tracker.select_list(created.id)
    return created


class TestScenarios:
    """The headline behaviors, end to end."""

    def test_totals_per_currency(self, tracker, wallet, make_coupon):
        tracker.add_coupon(make_coupon("Coffee", remaining_value="25", currency_code="USD"))
        tracker.add_coupon(make_coupon("Lunch", remaining_value="10", currency_code="USD"))
        tracker.add_coupon(make_coupon("Train", remaining_value="30", currency_code="EUR"))

        assert tracker.totals() == [
            CurrencyTotal(currency_code="EUR", total=Decimal("30")),
            CurrencyTotal(currency_code="USD", total=Decimal("35")),
        ]

    def test_smart_list_by_type(self, tracker, wallet, make_coupon):
        tracker.add_coupon(make_coupon("Amazon", type="Gift Cards", remaining_value="50"))
        tracker.add_coupon(make_coupon("Pizza", type="Coupons"))

        gift_cards = tracker.lists()[0]
        members = tracker.coupons(gift_cards.id)
        assert [c.name for c in members] == ["Amazon"]
        assert tracker.source_list(members[0].id).name == "Wallet"
        assert [c.name for c in tracker.coupons()] == ["Amazon", "Pizza"]

    def test_debit_clamps_to_zero(self, tracker, wallet, make_coupon):
        coupon = make_coupon("Coffee", remaining_value="10")
        tracker.add_coupon(coupon)
        changed, result = tracker.use_amount(coupon, Decimal("15"))
        assert changed is True
        assert result.is_valid
        assert tracker.coupons()[0].remaining_value == Decimal("0")

    def test_deleted_coupon_purged_after_41_days(self, tracker, wallet, make_coupon):
        coupon = make_coupon()
        tracker.add_coupon(coupon)
        tracker.delete_coupon(coupon)
        assert [c.id for c in tracker.coupons(RECENTLY_DELETED_LIST_ID)] == [coupon.id]

        assert tracker.start(utc_now() + timedelta(days=41)) == 1
        assert tracker.coupons(RECENTLY_DELETED_LIST_ID) == []
        assert tracker.count(RECENTLY_DELETED_LIST_ID) == 0


class TestCouponFlows:
    """Tests for validated coupon commands."""

    def test_invalid_coupon_is_refused(self, tracker, wallet, make_coupon, events):
        changed, result = tracker.add_coupon(make_coupon(code=""))
        assert changed is False
        assert result.is_valid is False
        assert tracker.coupons() == []
        assert events[-1].event_type == AuditEventType.VALIDATION_FAILED

    def test_quota_is_an_upsell_not_a_validation_error(self, tracker, make_coupon, events):
        for i in range(10):
            tracker.add_coupon(make_coupon(f"C{i}"))
        changed, result = tracker.add_coupon(make_coupon("Eleventh"))
        assert changed is False
        assert result.is_valid is True
        assert events[-1].event_type == AuditEventType.UPSELL_REQUIRED

    def test_update_from_smart_list_edits_the_stored_copy(self, tracker, wallet, make_coupon):
        coupon = make_coupon("Amazon", type="Gift Cards")
        tracker.add_coupon(coupon)
        changed, _ = tracker.update_coupon(coupon.model_copy(update={"name": "Amazon.com"}))
        assert changed is True
        assert [c.name for c in tracker.records.load(wallet.id)] == ["Amazon.com"]

    def test_invalid_amount(self, tracker, wallet, make_coupon):
        coupon = make_coupon(remaining_value="10")
        tracker.add_coupon(coupon)
        changed, result = tracker.use_amount(coupon, "-2")
        assert changed is False
        assert result.is_valid is False
        changed, result = tracker.use_amount(coupon, "ten")
        assert changed is False
        assert result.is_valid is False

    def test_delete_from_smart_list_and_restore(self, tracker, wallet, make_coupon):
        coupon = make_coupon("Amazon", type="Gift Cards")
        tracker.add_coupon(coupon)
        gift_cards = tracker.lists()[0]

        assert tracker.delete_coupon(coupon, gift_cards.id) is True
        assert tracker.coupons(gift_cards.id) == []
        assert tracker.restore_coupon(coupon.id, wallet.id) is True
        assert [c.id for c in tracker.coupons(gift_cards.id)] == [coupon.id]

    def test_delete_from_recently_deleted_is_permanent(self, tracker, wallet, make_coupon):
        coupon = make_coupon()
        tracker.add_coupon(coupon)
        tracker.delete_coupon(coupon)
        assert tracker.delete_coupon(coupon, RECENTLY_DELETED_LIST_ID) is True
        assert tracker.deleted_coupons() == []

    def test_move_coupon(self, tracker, wallet, make_coupon):
        drawer, _ = tracker.create_list("Drawer")
        coupon = make_coupon()
        tracker.add_coupon(coupon)
        assert tracker.move_coupon(coupon, drawer.id) is True
        assert tracker.coupons(wallet.id) == []
        assert [c.id for c in tracker.coupons(drawer.id)] == [coupon.id]


class TestFreeTier:
    """Tests for adding and restoring while only the default smart lists exist."""

    def test_add_through_default_list_is_visible_there(self, tracker, make_coupon):
        gift_cards = tracker.selected_list()
        assert gift_cards.is_smart

        changed, _ = tracker.add_coupon(make_coupon("Coffee", remaining_value="10"))
        assert changed is True
        assert [c.name for c in tracker.coupons()] == ["Coffee"]
        assert tracker.coupons()[0].type == "Gift Cards"
        assert tracker.records.load(gift_cards.id) == []

        storage = tracker.registry.storage_list()
        assert storage.is_smart is False
        assert tracker.source_list(tracker.coupons()[0].id).id == storage.id

    def test_explicit_type_is_kept(self, tracker, make_coupon):
        tracker.add_coupon(make_coupon("Pizza", type="Coupons"))
        gift_cards, coupons_list = tracker.lists()[:2]
        assert tracker.coupons(gift_cards.id) == []
        assert [c.name for c in tracker.coupons(coupons_list.id)] == ["Pizza"]

    def test_storage_list_is_created_once(self, tracker, make_coupon):
        tracker.add_coupon(make_coupon("One"))
        tracker.add_coupon(make_coupon("Two"))
        ordinary = [l for l in tracker.lists() if not l.is_smart]
        assert [l.name for l in ordinary] == ["My Coupons"]
        assert tracker.count() == 2

    def test_restore_while_default_list_selected(self, tracker, make_coupon):
        coupon = make_coupon()
        tracker.add_coupon(coupon)
        tracker.delete_coupon(coupon)
        assert tracker.coupons() == []

        assert tracker.restore_coupon(coupon.id) is True
        assert [c.id for c in tracker.coupons()] == [coupon.id]
        assert tracker.records.load(tracker.selected_list().id) == []

    def test_restore_while_recently_deleted_selected(self, tracker, make_coupon):
        coupon = make_coupon()
        tracker.add_coupon(coupon)
        tracker.delete_coupon(coupon)
        assert tracker.select_list(RECENTLY_DELETED_LIST_ID) is True

        assert tracker.restore_coupon(coupon.id) is True
        storage = tracker.registry.storage_list()
        assert [c.id for c in tracker.records.load(storage.id)] == [coupon.id]

    def test_smart_list_is_not_a_move_destination(self, tracker, make_coupon):
        coupon = make_coupon()
        tracker.add_coupon(coupon)
        coupons_list = tracker.lists()[1]
        assert tracker.move_coupon(coupon, coupons_list.id) is False
        assert tracker.records.load(coupons_list.id) == []

    def test_nothing_is_added_to_recently_deleted(self, tracker, make_coupon):
        tracker.select_list(RECENTLY_DELETED_LIST_ID)
        changed, result = tracker.add_coupon(make_coupon())
        assert changed is False
        assert result.is_valid is True


class TestGroupedLists:
    """Tests for sections and drag and drop through the facade."""

    def test_sections_follow_vocabulary(self, tracker, wallet, make_coupon):
        tracker.add_category("Travel")
        tracker.add_category("Food")
        tracker.add_coupon(make_coupon("Pizza", category="Food"))
        tracker.add_coupon(make_coupon("Train", category="Travel"))
        tracker.add_coupon(make_coupon("Misc"))
        assert [s.title for s in tracker.sections()] == ["Travel", "Food", "Uncategorized"]

    def test_apply_move_reorders_ordinary_list(self, tracker, wallet, make_coupon):
        first = make_coupon("First", category="Food")
        second = make_coupon("Second", category="Food")
        tracker.add_coupon(first)
        tracker.add_coupon(second)
        intent = MoveIntent(
            coupon_id=second.id,
            source_group="Food",
            destination_group="Food",
            destination_index=0,
        )
        assert tracker.apply_move(intent) is True
        assert [c.name for c in tracker.coupons()] == ["Second", "First"]
        [section] = tracker.sections(preserve_order=True)
        assert [c.name for c in section.coupons] == ["Second", "First"]

    def test_apply_move_across_groups(self, tracker, wallet, make_coupon):
        coupon = make_coupon("Pizza", category="Food")
        tracker.add_coupon(coupon)
        intent = MoveIntent(coupon_id=coupon.id, source_group="Food", destination_group="Travel")
        assert tracker.apply_move(intent) is True
        assert tracker.coupons()[0].category == "Travel"

    def test_apply_move_on_smart_list_only_reassigns(self, tracker, wallet, make_coupon):
        first = make_coupon("First", type="Gift Cards", category="Food")
        second = make_coupon("Second", type="Gift Cards", category="Food")
        tracker.add_coupon(first)
        tracker.add_coupon(second)
        gift_cards = tracker.lists()[0]

        reorder = MoveIntent(
            coupon_id=second.id,
            source_group="Food",
            destination_group="Food",
            destination_index=0,
        )
        assert tracker.apply_move(reorder, gift_cards.id) is False

        reassign = MoveIntent(coupon_id=second.id, source_group="Food", destination_group="Uncategorized")
        assert tracker.apply_move(reassign, gift_cards.id) is True
        stored = {c.name: c for c in tracker.records.load(wallet.id)}
        assert stored["Second"].category is None


class TestListFlows:
    """Tests for list commands through the facade."""

    def test_create_list_validation(self, tracker, unlocked):
        created, result = tracker.create_list("  ")
        assert created is None
        assert result.is_valid is False

    def test_delete_list_cascades(self, tracker, wallet, make_coupon):
        coupon = make_coupon()
        tracker.add_coupon(coupon)
        tracker.add_category("Food")
        tracker.set_default_currency("EUR")

        assert tracker.delete_list(wallet.id) is True
        assert tracker.registry.get(wallet.id) is None
        assert [e.coupon.id for e in tracker.deleted_coupons()] == [coupon.id]
        assert tracker.records.load(wallet.id) == []
        assert tracker.vocabulary.categories(wallet.id) == []
        assert tracker.vocabulary.default_currency(wallet.id) == "USD"
        assert tracker.selected_list().id == tracker.registry.first_default().id

    def test_default_currency_per_list(self, tracker, wallet):
        assert tracker.default_currency() == "USD"
        tracker.set_default_currency("ILS")
        assert tracker.default_currency() == "ILS"
        assert tracker.default_currency(tracker.lists()[0].id) == "USD"


class TestSyncFlows:
    """Tests for multi-device behavior through the facade."""

    def test_remote_change_is_adopted(self, tracker, wallet, gateway, remote_store, app_settings, make_coupon):
        gateway.flush()
        phone_gateway = PersistenceGateway(InMemoryKeyValueStore(), remote=remote_store)
        phone = CouponTracker(phone_gateway, settings=app_settings)
        try:
            phone.on_remote_change()
            added, _ = phone.add_coupon(make_coupon("From phone"), wallet.id)
            assert added is True
            phone_gateway.flush()
        finally:
            phone_gateway.close()

        key = StorageKeys.records(wallet.id)
        assert tracker.on_remote_change([key]) == [key]
        assert [c.name for c in tracker.records.load(wallet.id)] == ["From phone"]

    def test_subscribers_see_every_change(self, tracker, wallet, make_coupon):
        received = []
        unsubscribe = tracker.subscribe(received.append)
        tracker.add_coupon(make_coupon())
        unsubscribe()
        tracker.add_coupon(make_coupon("Later"))
        assert [e.event_type for e in received] == [AuditEventType.COUPON_ADDED]


class TestFactory:
    """Tests for create_app_components."""

    def test_local_only(self, tmp_path):
        tracker, sheets_client = create_app_components(use_remote=False)
        assert sheets_client is None
        assert tracker.lists()[0].name == "Gift Cards"
        assert (tmp_path / "data" / "lists.info.json").exists()
        tracker.close()

    def test_unconfigured_remote_falls_back_to_local(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        tracker, sheets_client = create_app_components(use_remote=True)
        assert sheets_client is None
        assert tracker.lists()

    def test_unknown_selection(self, tracker):
        assert tracker.select_list(uuid4()) is False
