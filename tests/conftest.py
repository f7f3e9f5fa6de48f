"""
Shared fixtures.

Everything runs in memory: the local tier and the remote replica are both
InMemoryKeyValueStore instances, so no test touches the disk (except the
JSON file store tests, which use tmp_path) or the network.
"""

from decimal import Decimal
from typing import Optional

import pytest

from coupon_tracker.audit import AuditLogger
from coupon_tracker.config import AppSettings, get_settings
from coupon_tracker.models.coupon import Coupon
from coupon_tracker.orchestrator import CouponTracker
from coupon_tracker.services.entitlement import EntitlementGuard, StaticEntitlementProvider
from coupon_tracker.services.lists import ListRegistry
from coupon_tracker.services.records import RecordStore
from coupon_tracker.services.storage import (
    InMemoryKeyValueStore,
    KeyValueStoreInterface,
    PersistenceGateway,
    StorageError,
)
from coupon_tracker.services.vocabulary import VocabularyStore


class FailingKeyValueStore(KeyValueStoreInterface):
    """A storage tier that is always down."""

    def get(self, key: str) -> Optional[str]:
        raise StorageError("tier unavailable")

    def set(self, key: str, value: str) -> None:
        raise StorageError("tier unavailable")

    def delete(self, key: str) -> bool:
        raise StorageError("tier unavailable")

    def keys(self) -> list[str]:
        raise StorageError("tier unavailable")


@pytest.fixture(autouse=True)
def _isolate_settings(tmp_path, monkeypatch):
    """Keep the developer's .env and data directory out of the tests."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("COUPONS_STORAGE_DATA_DIR", str(tmp_path / "data"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def app_settings():
    return AppSettings()


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def events(audit_logger):
    """Every audit event emitted during the test, in order."""
    received = []
    audit_logger.subscribe(received.append)
    return received


@pytest.fixture
def local_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def remote_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def failing_store():
    return FailingKeyValueStore()


@pytest.fixture
def gateway(local_store, remote_store, audit_logger):
    gateway = PersistenceGateway(local_store, remote=remote_store, audit_logger=audit_logger)
    yield gateway
    gateway.close()


@pytest.fixture
def entitlement():
    return StaticEntitlementProvider(unlocked=False)


@pytest.fixture
def guard(entitlement, app_settings):
    return EntitlementGuard(entitlement, free_record_limit=app_settings.free_tier_record_limit)


@pytest.fixture
def records(gateway, guard, audit_logger):
    return RecordStore(gateway, guard=guard, audit_logger=audit_logger)


@pytest.fixture
def registry(gateway, guard, audit_logger):
    return ListRegistry(gateway, guard=guard, audit_logger=audit_logger)


@pytest.fixture
def vocabulary(gateway, guard, audit_logger):
    return VocabularyStore(gateway, guard=guard, audit_logger=audit_logger)


@pytest.fixture
def tracker(gateway, entitlement, app_settings, audit_logger):
    return CouponTracker(
        gateway,
        entitlement=entitlement,
        settings=app_settings,
        audit_logger=audit_logger,
    )


@pytest.fixture
def make_coupon():
    """Build a saveable coupon; override any field with keyword arguments."""
    def _make(name: str = "Coffee", **kwargs) -> Coupon:
        kwargs.setdefault("code", "CODE-123")
        if "remaining_value" in kwargs and kwargs["remaining_value"] is not None:
            kwargs["remaining_value"] = Decimal(str(kwargs["remaining_value"]))
        return Coupon(name=name, **kwargs)
    return _make
