"""Services package."""

from coupon_tracker.services.currency import DEFAULT_CURRENCIES, CurrencyLookup
from coupon_tracker.services.entitlement import (
    EntitlementGuard,
    EntitlementProvider,
    GatedAction,
    GuardDecision,
    StaticEntitlementProvider,
)
from coupon_tracker.services.lists import ListRegistry, default_lists
from coupon_tracker.services.records import RecordStore
from coupon_tracker.services.storage import (
    ConnectionError,
    GoogleSheetsClient,
    GoogleSheetsKeyValueStore,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStoreInterface,
    NotFoundError,
    PersistenceGateway,
    StorageError,
    StorageKeys,
)
from coupon_tracker.services.sync import SyncReconciler
from coupon_tracker.services.vocabulary import DEFAULT_TYPES, VocabularyStore

__all__ = [
    # Currency
    "DEFAULT_CURRENCIES",
    "CurrencyLookup",
    # Entitlement
    "EntitlementGuard",
    "EntitlementProvider",
    "GatedAction",
    "GuardDecision",
    "StaticEntitlementProvider",
    # Stores
    "DEFAULT_TYPES",
    "ListRegistry",
    "RecordStore",
    "VocabularyStore",
    "default_lists",
    # Sync
    "SyncReconciler",
    # Storage services
    "ConnectionError",
    "GoogleSheetsClient",
    "GoogleSheetsKeyValueStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStoreInterface",
    "NotFoundError",
    "PersistenceGateway",
    "StorageError",
    "StorageKeys",
]
