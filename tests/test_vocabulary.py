"""Tests for categories, types and default currencies."""

from uuid import uuid4

import pytest

from coupon_tracker.models.audit import AuditEventType


LIST_ID = uuid4()


@pytest.fixture
def unlocked(entitlement):
    entitlement.unlocked = True
    return entitlement


class TestCategories:
    """Tests for the per-list category vocabulary."""

    def test_empty_by_default(self, vocabulary):
        assert vocabulary.categories(LIST_ID) == []

    def test_add_and_remove(self, vocabulary, unlocked):
        assert vocabulary.add_category(LIST_ID, " Food ") is True
        assert vocabulary.add_category(LIST_ID, "Travel") is True
        assert vocabulary.categories(LIST_ID) == ["Food", "Travel"]
        assert vocabulary.remove_category(LIST_ID, "Food") is True
        assert vocabulary.categories(LIST_ID) == ["Travel"]

    def test_duplicates_and_blanks_are_dropped(self, vocabulary, unlocked):
        vocabulary.set_categories(LIST_ID, ["Food", "", "Food", "  ", "Travel"])
        assert vocabulary.categories(LIST_ID) == ["Food", "Travel"]
        assert vocabulary.add_category(LIST_ID, "Food") is False

    def test_categories_are_per_list(self, vocabulary, unlocked):
        vocabulary.add_category(LIST_ID, "Food")
        assert vocabulary.categories(uuid4()) == []

    def test_move_categories(self, vocabulary, unlocked):
        vocabulary.set_categories(LIST_ID, ["A", "B", "C"])
        vocabulary.move_categories(LIST_ID, [2], 0)
        assert vocabulary.categories(LIST_ID) == ["C", "A", "B"]

    def test_editing_requires_entitlement(self, vocabulary, events):
        assert vocabulary.add_category(LIST_ID, "Food") is False
        assert vocabulary.categories(LIST_ID) == []
        assert events[-1].event_type == AuditEventType.UPSELL_REQUIRED

    def test_clear_list(self, vocabulary, unlocked):
        vocabulary.add_category(LIST_ID, "Food")
        vocabulary.set_default_currency(LIST_ID, "EUR")
        vocabulary.clear_list(LIST_ID)
        assert vocabulary.categories(LIST_ID) == []
        assert vocabulary.default_currency(LIST_ID) == "USD"


class TestTypes:
    """Tests for the global type vocabulary."""

    def test_defaults(self, vocabulary):
        assert vocabulary.types() == ["Gift Cards", "Coupons", "Store Credits"]

    def test_add_type(self, vocabulary, unlocked, events):
        assert vocabulary.add_type("Vouchers") is True
        assert vocabulary.types()[-1] == "Vouchers"
        assert events[-1].event_type == AuditEventType.VOCABULARY_CHANGED

    def test_remove_type(self, vocabulary, unlocked):
        vocabulary.remove_type("Coupons")
        assert "Coupons" not in vocabulary.types()


class TestDefaultCurrency:
    """Tests for the per-list default currency."""

    def test_falls_back_to_configured_default(self, vocabulary):
        assert vocabulary.default_currency(LIST_ID) == "USD"

    def test_set_is_not_gated(self, vocabulary, events):
        assert vocabulary.set_default_currency(LIST_ID, "eur") is True
        assert vocabulary.default_currency(LIST_ID) == "EUR"
        assert events[-1].event_type == AuditEventType.DEFAULT_CURRENCY_CHANGED

    def test_same_or_blank_is_noop(self, vocabulary):
        assert vocabulary.set_default_currency(LIST_ID, "USD") is False
        assert vocabulary.set_default_currency(LIST_ID, "  ") is False
