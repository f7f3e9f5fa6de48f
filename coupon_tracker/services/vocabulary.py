"""
Vocabulary Store

The managed names a user picks from: categories (per list), types
(shared by all lists) and each list's default currency.

Vocabularies only drive pickers and section order. A coupon may carry a
category or type that is not (or no longer) in the vocabulary; it stays
valid and shows up in its own section.
"""

from typing import Iterable, Optional
from uuid import UUID

from pydantic import TypeAdapter

from coupon_tracker.audit import AuditLogger
from coupon_tracker.models.audit import AuditEventBuilder
from coupon_tracker.models.coupon import DEFAULT_CURRENCY_CODE
from coupon_tracker.queries.grouping import move_items
from coupon_tracker.services.entitlement import EntitlementGuard, GatedAction
from coupon_tracker.services.storage.persistence import PersistenceGateway, StorageKeys


DEFAULT_TYPES = ["Gift Cards", "Coupons", "Store Credits"]

_NAMES = TypeAdapter(list[str])


def _clean(values: Iterable[str]) -> list[str]:
    """Trim, drop blanks and keep the first of any duplicates."""
    cleaned: list[str] = []
    for value in values:
        value = value.strip()
        if value and value not in cleaned:
            cleaned.append(value)
    return cleaned


class VocabularyStore:
    """Categories, types and default currencies."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        guard: Optional[EntitlementGuard] = None,
        audit_logger: Optional[AuditLogger] = None,
        default_currency: str = DEFAULT_CURRENCY_CODE,
    ):
        self._gateway = gateway
        self._guard = guard
        self._audit_logger = audit_logger or AuditLogger()
        self._default_currency = default_currency

    # -------------------------------------------------------------------------
    # Categories (per list)
    # -------------------------------------------------------------------------

    def categories(self, list_id: UUID) -> list[str]:
        return self._gateway.read_typed(StorageKeys.categories(list_id), _NAMES, [])

    def set_categories(self, list_id: UUID, values: Iterable[str]) -> bool:
        return self._replace(StorageKeys.categories(list_id), self.categories(list_id), values)

    def add_category(self, list_id: UUID, name: str) -> bool:
        return self.set_categories(list_id, self.categories(list_id) + [name])

    def remove_category(self, list_id: UUID, name: str) -> bool:
        return self.set_categories(
            list_id,
            [c for c in self.categories(list_id) if c != name.strip()],
        )

    def move_categories(self, list_id: UUID, from_indices: Iterable[int], to_index: int) -> bool:
        return self.set_categories(
            list_id,
            move_items(self.categories(list_id), from_indices, to_index),
        )

    # -------------------------------------------------------------------------
    # Types (global)
    # -------------------------------------------------------------------------

    def types(self) -> list[str]:
        """The type vocabulary; the default list types until edited."""
        return self._gateway.read_typed(StorageKeys.TYPES, _NAMES, list(DEFAULT_TYPES))

    def set_types(self, values: Iterable[str]) -> bool:
        return self._replace(StorageKeys.TYPES, self.types(), values)

    def add_type(self, name: str) -> bool:
        return self.set_types(self.types() + [name])

    def remove_type(self, name: str) -> bool:
        return self.set_types([t for t in self.types() if t != name.strip()])

    # -------------------------------------------------------------------------
    # Default currency (per list)
    # -------------------------------------------------------------------------

    def default_currency(self, list_id: UUID) -> str:
        stored = self._gateway.read(StorageKeys.default_currency(list_id))
        if isinstance(stored, str) and stored.strip():
            return stored.strip()
        return self._default_currency

    def set_default_currency(self, list_id: UUID, currency_code: str) -> bool:
        """Preference for new coupons in a list. Not gated."""
        currency_code = currency_code.strip().upper()
        if not currency_code or currency_code == self.default_currency(list_id):
            return False
        self._gateway.write(StorageKeys.default_currency(list_id), currency_code)
        self._audit_logger.log(AuditEventBuilder.default_currency_changed(list_id, currency_code))
        return True

    def clear_list(self, list_id: UUID) -> None:
        """Forget a deleted list's categories and currency."""
        self._gateway.remove(StorageKeys.categories(list_id))
        self._gateway.remove(StorageKeys.default_currency(list_id))

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _replace(self, key: str, current: list[str], values: Iterable[str]) -> bool:
        cleaned = _clean(values)
        if cleaned == current:
            return False
        if self._guard is not None:
            decision = self._guard.check(GatedAction.EDIT_VOCABULARY)
            if not decision.allowed:
                self._audit_logger.log_upsell(decision.action.value, decision.reason)
                return False

        self._gateway.write_typed(key, _NAMES, cleaned)
        self._audit_logger.log(AuditEventBuilder.vocabulary_changed(key, cleaned))
        return True
